"""Username format and reservation rules.

Letters, numbers, underscores and periods; 3 to 30 characters; no
leading, trailing or doubled periods; not all digits; not reserved.
"""

import re
from enum import Enum

RESERVED_USERNAMES: frozenset[str] = frozenset(
    {
        # Brand
        "nested", "nestednyc", "nested_nyc", "admin", "administrator",
        "support", "help", "info", "contact", "team", "staff",
        # Routes
        "home", "discover", "events", "matches", "messages", "chat",
        "profile", "settings", "notifications", "search", "explore",
        "signin", "signup", "login", "logout", "register", "auth",
        "verify", "confirm", "reset", "password", "account",
        # System
        "api", "app", "web", "www", "mail", "email", "ftp", "smtp",
        "cdn", "static", "assets", "images", "files", "uploads",
        "null", "undefined", "true", "false", "test", "dev", "prod",
        # Official accounts
        "official", "verified", "moderator", "mod", "bot", "system",
        "announcement", "announcements", "news", "update", "updates",
        # Universities
        "nyu", "columbia", "parsons", "cuny", "pratt", "fit", "sva",
        "fordham", "pace", "cooperunion", "barnard", "juilliard",
        # Misc
        "root", "sudo", "webmaster", "postmaster",
        "abuse", "security", "privacy", "legal", "copyright", "dmca",
    }
)  # fmt: skip

MIN_LENGTH = 3
MAX_LENGTH = 30

_ALLOWED_RE = re.compile(r"^[a-zA-Z0-9_.]+$")


class UsernameError(str, Enum):
    """Why a username was rejected."""

    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    INVALID_CHARS = "invalid_chars"
    LEADING_DOT = "leading_dot"
    TRAILING_DOT = "trailing_dot"
    CONSECUTIVE_DOTS = "consecutive_dots"
    NUMERIC_ONLY = "numeric_only"
    RESERVED = "reserved"


_MESSAGES = {
    UsernameError.TOO_SHORT: f"Username must be at least {MIN_LENGTH} characters",
    UsernameError.TOO_LONG: f"Username must be {MAX_LENGTH} characters or less",
    UsernameError.INVALID_CHARS: "Only letters, numbers, underscores and periods allowed",
    UsernameError.LEADING_DOT: "Username cannot start with a period",
    UsernameError.TRAILING_DOT: "Username cannot end with a period",
    UsernameError.CONSECUTIVE_DOTS: "Username cannot have consecutive periods",
    UsernameError.NUMERIC_ONLY: "Username cannot be only numbers",
    UsernameError.RESERVED: "This username is not available",
}


def validate_username_format(username: str | None) -> UsernameError | None:
    """Validate a username without touching the network.

    Args:
        username: Raw user input (surrounding whitespace is ignored)

    Returns:
        The first rule the username breaks, or None when it is valid
    """
    if not username or not isinstance(username, str):
        return UsernameError.TOO_SHORT

    trimmed = username.strip()

    if len(trimmed) < MIN_LENGTH:
        return UsernameError.TOO_SHORT
    if len(trimmed) > MAX_LENGTH:
        return UsernameError.TOO_LONG
    if not _ALLOWED_RE.match(trimmed):
        return UsernameError.INVALID_CHARS
    if trimmed.startswith("."):
        return UsernameError.LEADING_DOT
    if trimmed.endswith("."):
        return UsernameError.TRAILING_DOT
    if ".." in trimmed:
        return UsernameError.CONSECUTIVE_DOTS
    if trimmed.isdigit():
        return UsernameError.NUMERIC_ONLY
    if trimmed.lower() in RESERVED_USERNAMES:
        return UsernameError.RESERVED

    return None


def is_valid_username_format(username: str | None) -> bool:
    return validate_username_format(username) is None


def is_reserved_username(username: str | None) -> bool:
    if not username or not isinstance(username, str):
        return False
    return username.strip().lower() in RESERVED_USERNAMES


def normalize_username(username: str | None) -> str:
    """Canonical form used for storage and lookups."""
    if not username or not isinstance(username, str):
        return ""
    return username.strip().lower()


def username_error_message(error: UsernameError | None) -> str | None:
    return _MESSAGES.get(error) if error else None
