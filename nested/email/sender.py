"""Outbound delivery through the Resend HTTP API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from nested.email.templates import EmailTemplate
from nested.exceptions import ConfigurationError, EmailDeliveryError
from nested.settings import Settings, get_settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ResendSender:
    """Send rendered emails via Resend.

    Args:
        api_key: Resend API key
        from_address: Sender, e.g. ``Nested <hi@nested.social>``
        timeout: Request timeout in seconds
        transport: httpx transport override (tests)
    """

    def __init__(
        self,
        api_key: str,
        from_address: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ResendSender:
        settings = settings or get_settings()
        api_key = settings.resend_api_key.get_secret_value()
        if not api_key:
            raise ConfigurationError("RESEND_API_KEY not configured")
        return cls(api_key, settings.email_from, timeout=settings.remote_timeout_seconds)

    async def send(self, to: str, template: EmailTemplate, *, reply_to: str | None = None) -> str | None:
        """Deliver one email.

        Returns:
            The provider message id

        Raises:
            EmailDeliveryError: Transport failure or a non-success response
        """
        payload: dict[str, Any] = {
            "from": self.from_address,
            "to": [to],
            "subject": template.subject,
            "html": template.html,
            "text": template.text,
        }
        if reply_to:
            payload["reply_to"] = reply_to

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    RESEND_API_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Email provider unreachable: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400:
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else data.get("message")
            raise EmailDeliveryError(
                message or "Failed to send email",
                status_code=response.status_code,
            )

        message_id = data.get("id")
        logger.info("Email sent: %s", message_id)
        return message_id
