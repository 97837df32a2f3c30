"""Send-email hook: auth emails from the backend and transactional
emails from signed-in users.

Requests carrying the three webhook headers come from the auth backend
and are signature-verified. Anything else must carry a user bearer
token, resolved through the backend's auth user lookup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from nested.email.rate_limit import EmailRateLimiter
from nested.email.sender import ResendSender
from nested.email.templates import EmailTemplate, auth_email, transactional_email
from nested.email.validation import (
    TRANSACTIONAL_KIND,
    auth_email_kind,
    is_valid_email,
    parse_action_type,
    parse_transactional_type,
)
from nested.email.webhook import has_webhook_headers, verify
from nested.exceptions import EmailDeliveryError, RemoteStoreError, WebhookVerificationError
from nested.remote import RemoteStoreClient
from nested.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


def _error(status_code: int, message: str) -> HookResponse:
    return HookResponse(status_code, {"error": message})


class AuthHookUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email: str = ""


class AuthHookEmailData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    token: str = ""
    token_hash: str = ""
    redirect_to: str | None = None
    email_action_type: str
    site_url: str | None = None
    new_email: str | None = None


class AuthHookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user: AuthHookUser
    email_data: AuthHookEmailData


class TransactionalEmailRequest(BaseModel):
    """Body of a transactional send. Accepts camelCase keys too."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    to: str = ""
    type: str | None = None
    recipient_name: str | None = Field(default=None, alias="recipientName")
    subject: str | None = None
    message: str | None = None
    cta_text: str | None = Field(default=None, alias="ctaText")
    cta_url: str | None = Field(default=None, alias="ctaUrl")


class SendEmailHook:
    """Verify, rate limit, render and deliver hook emails.

    Args:
        sender: Email provider, or None when not configured
        limiter: Per-recipient send limiter
        remote: Backend client used to resolve bearer tokens
        settings: Settings override
    """

    def __init__(
        self,
        sender: ResendSender | None,
        limiter: EmailRateLimiter,
        remote: RemoteStoreClient | None,
        settings: Settings | None = None,
    ) -> None:
        self.sender = sender
        self.limiter = limiter
        self.remote = remote
        self.settings = settings or get_settings()

    async def handle(self, body: bytes, headers: Any) -> HookResponse:
        if has_webhook_headers(headers):
            return await self.handle_auth_hook(body, headers)

        auth_header = headers.get("authorization") or ""
        if not auth_header.startswith("Bearer "):
            return _error(401, "Authorization required")
        user_id = await self._resolve_user(auth_header[len("Bearer ") :])
        if user_id is None:
            return _error(401, "Invalid or expired token")
        return await self.handle_transactional(body, user_id)

    async def _resolve_user(self, token: str) -> str | None:
        if self.remote is None or not token:
            return None
        try:
            user = await self.remote.get_user(token)
        except RemoteStoreError as e:
            logger.warning("Token lookup failed: %s", e)
            return None
        return str(user["id"]) if user and user.get("id") else None

    async def handle_auth_hook(self, body: bytes, headers: Any) -> HookResponse:
        secret = self.settings.send_email_hook_secret.get_secret_value()
        if not secret:
            logger.error("SEND_EMAIL_HOOK_SECRET not configured")
            return _error(500, "Server configuration error")

        try:
            data = verify(secret, body, headers)
            payload = AuthHookPayload.model_validate(data)
        except WebhookVerificationError as e:
            logger.warning("Webhook verification failed: %s", e)
            return _error(401, "Invalid webhook signature")
        except PydanticValidationError:
            return _error(400, "Invalid hook payload")

        user, email_data = payload.user, payload.email_data
        if not is_valid_email(user.email):
            return _error(400, "Invalid email address")
        action = parse_action_type(email_data.email_action_type)
        if action is None:
            return _error(400, "Invalid email action type")

        kind = auth_email_kind(action)
        if not self.limiter.allow(user.id, kind):
            return _error(429, "Rate limit exceeded. Please try again later.")

        template = auth_email(
            action,
            token=email_data.token,
            token_hash=email_data.token_hash,
            redirect_to=email_data.redirect_to,
            site_url=email_data.site_url,
            new_email=email_data.new_email,
            settings=self.settings,
        )
        delivered = await self._deliver(user.email, template)
        if not delivered:
            # Auth hook error shape understood by the backend
            return HookResponse(500, {"error": {"http_code": 500, "message": "Failed to send email"}})

        self.limiter.record(user.id, kind)
        return HookResponse(200, {})

    async def handle_transactional(self, body: bytes, user_id: str) -> HookResponse:
        try:
            request = TransactionalEmailRequest.model_validate_json(body)
        except PydanticValidationError:
            return _error(400, "Invalid JSON body")

        if not is_valid_email(request.to):
            return _error(400, "Valid recipient email required")
        if not self.limiter.allow(user_id, TRANSACTIONAL_KIND):
            return _error(429, "Rate limit exceeded. Please try again later.")

        template = transactional_email(
            parse_transactional_type(request.type),
            recipient_name=request.recipient_name,
            subject=request.subject,
            message=request.message,
            cta_text=request.cta_text,
            cta_url=request.cta_url,
            settings=self.settings,
        )
        message_id = await self._deliver(request.to, template)
        if not message_id:
            return _error(500, "Failed to send email")

        self.limiter.record(user_id, TRANSACTIONAL_KIND)
        return HookResponse(200, {"success": True, "id": message_id})

    async def _deliver(self, to: str, template: EmailTemplate) -> str | None:
        if self.sender is None:
            logger.error("Email provider not configured")
            return None
        try:
            return await self.sender.send(to, template) or "sent"
        except EmailDeliveryError as e:
            logger.error("Failed to send email: %s", e)
            return None
