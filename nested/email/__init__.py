"""Auth and transactional email delivery."""

from nested.email.hook import HookResponse, SendEmailHook, TransactionalEmailRequest
from nested.email.rate_limit import EmailRateLimiter
from nested.email.sender import ResendSender
from nested.email.templates import EmailTemplate, auth_email, transactional_email
from nested.email.validation import (
    EmailActionType,
    TransactionalType,
    get_safe_redirect_url,
    is_allowed_redirect,
    is_valid_email,
    rate_limit_for,
)
from nested.email.webhook import sign, verify

__all__ = [
    "EmailActionType",
    "EmailRateLimiter",
    "EmailTemplate",
    "HookResponse",
    "ResendSender",
    "SendEmailHook",
    "TransactionalEmailRequest",
    "TransactionalType",
    "auth_email",
    "get_safe_redirect_url",
    "is_allowed_redirect",
    "is_valid_email",
    "rate_limit_for",
    "sign",
    "transactional_email",
    "verify",
]
