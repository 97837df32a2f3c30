"""Auth user lookup."""

from typing import Any

from nested.exceptions import RemoteStoreError


class AuthMixin:
    """Mixin resolving a bearer token to its auth user."""

    async def get_user(self, access_token: str) -> dict[str, Any] | None:
        """Return the user behind a token, or None if the token is rejected."""
        try:
            return await self._request(
                "GET",
                "/auth/v1/user",
                access_token=access_token,
                operation="auth.get_user",
            )
        except RemoteStoreError as e:
            if e.status_code in (401, 403):
                return None
            raise
