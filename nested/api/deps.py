"""FastAPI dependencies."""

from functools import lru_cache

from nested.email import EmailRateLimiter, ResendSender, SendEmailHook
from nested.exceptions import ConfigurationError
from nested.remote import get_remote_client
from nested.services import ProfileService
from nested.settings import get_settings


@lru_cache
def get_email_hook() -> SendEmailHook:
    """Process-wide email hook; the rate limiter state lives with it."""
    settings = get_settings()
    try:
        sender: ResendSender | None = ResendSender.from_settings(settings)
    except ConfigurationError:
        sender = None
    remote = get_remote_client(settings, service_role=True) or get_remote_client(settings)
    return SendEmailHook(sender, EmailRateLimiter(settings), remote, settings)


def get_profile_service() -> ProfileService:
    return ProfileService.from_settings()
