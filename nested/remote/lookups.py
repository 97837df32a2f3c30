"""Existence checks backed by database functions."""

from typing import Any

from nested.validation import normalize_username


class LookupMixin:
    """Mixin providing RPC lookups."""

    async def rpc(
        self,
        function: str,
        args: dict[str, Any] | None = None,
        *,
        access_token: str | None = None,
    ) -> Any:
        return await self._request(
            "POST",
            f"/rest/v1/rpc/{function}",
            json=args or {},
            access_token=access_token,
            operation=f"rpc.{function}",
        )

    async def is_username_available(self, username: str) -> bool:
        """Case-insensitive check that no profile has claimed the username."""
        data = await self.rpc(
            "is_username_available",
            {"check_username": normalize_username(username)},
        )
        return data is True

    async def check_email_exists(self, email: str) -> bool:
        """Check whether an account already uses this address."""
        data = await self.rpc(
            "check_email_exists",
            {"email_to_check": email.strip().lower()},
        )
        return data is True
