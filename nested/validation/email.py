"""University email validation.

Only ``.edu`` addresses and a short list of international academic
suffixes are accepted.
"""

import re
from dataclasses import dataclass
from enum import Enum

ALLOWED_EMAIL_SUFFIXES: tuple[str, ...] = (
    ".edu",
    ".ac.uk",
    ".edu.au",
    ".edu.ca",
    ".ac.za",
)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class EmailErrorKind(str, Enum):
    """Why an email address was rejected."""

    EMPTY_INPUT = "empty_input"
    MALFORMED_EMAIL = "malformed_email"
    NON_EDU_DOMAIN = "non_edu_domain"


@dataclass(frozen=True)
class EmailValidation:
    """Outcome of validate_edu_email()."""

    valid: bool
    error_kind: EmailErrorKind | None = None


def email_domain(email: str | None) -> str | None:
    """Return the lowercased domain of an address, or None if there isn't one."""
    if not email or not isinstance(email, str):
        return None
    parts = email.strip().split("@")
    return parts[1].lower() if len(parts) == 2 else None


def validate_edu_email(email: str | None) -> EmailValidation:
    """Validate that an address is a well-formed university email.

    Args:
        email: Raw user input

    Returns:
        EmailValidation with valid=True, or the first failing error kind
    """
    if not email or not isinstance(email, str) or not email.strip():
        return EmailValidation(False, EmailErrorKind.EMPTY_INPUT)

    candidate = email.strip()
    if not _EMAIL_RE.match(candidate):
        return EmailValidation(False, EmailErrorKind.MALFORMED_EMAIL)

    domain = email_domain(candidate)
    if not domain or not domain.endswith(ALLOWED_EMAIL_SUFFIXES):
        return EmailValidation(False, EmailErrorKind.NON_EDU_DOMAIN)

    return EmailValidation(True)


def is_edu_email(email: str | None) -> bool:
    return validate_edu_email(email).valid


def email_error_message(email: str | None, kind: EmailErrorKind | None) -> str | None:
    """User-facing message for an email validation failure."""
    if kind is None:
        return None
    if kind is EmailErrorKind.EMPTY_INPUT:
        return "Please enter your email address"
    if kind is EmailErrorKind.MALFORMED_EMAIL:
        return "Please enter a valid email address"
    domain = email_domain(email)
    if domain:
        return (
            f'Only university email addresses are allowed. "{domain}" is not a valid '
            "university domain. Please use your address ending in .edu"
        )
    return "Only university email addresses are allowed. Please use your address ending in .edu"
