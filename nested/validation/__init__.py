"""Input format validators.

Pure functions with no I/O. Run them before any network call.
"""

from nested.validation.email import (
    ALLOWED_EMAIL_SUFFIXES,
    EmailErrorKind,
    EmailValidation,
    email_domain,
    email_error_message,
    is_edu_email,
    validate_edu_email,
)
from nested.validation.username import (
    RESERVED_USERNAMES,
    UsernameError,
    is_reserved_username,
    is_valid_username_format,
    normalize_username,
    username_error_message,
    validate_username_format,
)

__all__ = [
    "ALLOWED_EMAIL_SUFFIXES",
    "RESERVED_USERNAMES",
    "EmailErrorKind",
    "EmailValidation",
    "UsernameError",
    "email_domain",
    "email_error_message",
    "is_edu_email",
    "is_reserved_username",
    "is_valid_username_format",
    "normalize_username",
    "username_error_message",
    "validate_edu_email",
    "validate_username_format",
]
