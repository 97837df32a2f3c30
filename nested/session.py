"""Explicit session value passed into every persistence call."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Session:
    """The authenticated user a call acts on behalf of.

    Attributes:
        user_id: Identifier issued by the auth backend. Empty means anonymous.
        access_token: Bearer token forwarded to the backend for row-level
            security. Falls back to the anon key when absent.
        email: Email address the user signed in with, if known.
    """

    user_id: str | None = None
    access_token: str | None = None
    email: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


ANONYMOUS = Session()
