"""Checks applied to outbound email requests.

Recipient format, action types, per-kind send limits, and the redirect
allowlist that keeps links in emails pointing at our own sites.
"""

from __future__ import annotations

import re
from enum import Enum
from fnmatch import fnmatchcase
from urllib.parse import urlsplit

from nested.settings import Settings, get_settings

MAX_EMAIL_LENGTH = 254
SAFE_DEFAULT_URL = "https://nested.social"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class EmailActionType(str, Enum):
    """Auth emails sent through the hook."""

    SIGNUP = "signup"
    RECOVERY = "recovery"
    MAGICLINK = "magiclink"
    INVITE = "invite"
    EMAIL_CHANGE = "email_change"
    REAUTHENTICATION = "reauthentication"


class TransactionalType(str, Enum):
    WELCOME = "welcome"
    NOTIFICATION = "notification"
    MATCH = "match"
    EVENT_REMINDER = "event_reminder"


TRANSACTIONAL_KIND = "transactional"

# Sends per recipient per hour, by email kind
DEFAULT_RATE_LIMITS: dict[str, int] = {
    "auth_signup": 5,
    "auth_recovery": 5,
    "auth_magiclink": 10,
    "auth_invite": 10,
    "auth_email_change": 3,
    TRANSACTIONAL_KIND: 20,
}


def is_valid_email(email: str | None) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(_EMAIL_RE.match(email)) and len(email) <= MAX_EMAIL_LENGTH


def parse_action_type(value: str | None) -> EmailActionType | None:
    try:
        return EmailActionType(value)
    except ValueError:
        return None


def parse_transactional_type(value: str | None) -> TransactionalType | None:
    try:
        return TransactionalType(value)
    except ValueError:
        return None


def auth_email_kind(action: EmailActionType) -> str:
    return f"auth_{action.value}"


def rate_limit_for(kind: str, settings: Settings | None = None) -> int:
    """Hourly send ceiling for an email kind.

    Settings overrides win, then the built-in table, then the default.
    """
    settings = settings or get_settings()
    if kind in settings.email_rate_limit_overrides:
        return settings.email_rate_limit_overrides[kind]
    return DEFAULT_RATE_LIMITS.get(kind, settings.email_rate_limit_per_hour)


def redirect_patterns(settings: Settings | None = None) -> list[str]:
    settings = settings or get_settings()
    return [p.strip() for p in settings.allowed_redirect_patterns.split(",") if p.strip()]


def is_allowed_redirect(url: str | None, patterns: list[str]) -> bool:
    """Whether url is http(s) and its origin matches an allowlisted pattern.

    Patterns match ``scheme://host[:port]``; the path is not considered.
    URLs carrying credentials are refused.
    """
    if not url:
        return False
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return False
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    if parts.username or parts.password:
        return False

    origin = f"{parts.scheme}://{parts.hostname}"
    if port is not None:
        origin = f"{origin}:{port}"
    return any(fnmatchcase(origin, pattern) for pattern in patterns)


def get_safe_redirect_url(
    url: str | None,
    fallback: str | None = None,
    settings: Settings | None = None,
) -> str:
    """The first of url, fallback that passes the allowlist.

    Falls back to the configured site URL, and finally to a fixed
    default.
    """
    settings = settings or get_settings()
    patterns = redirect_patterns(settings)
    for candidate in (url, fallback, settings.site_url):
        if is_allowed_redirect(candidate, patterns):
            return candidate
    return SAFE_DEFAULT_URL
