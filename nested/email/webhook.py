"""Standard Webhooks signature verification for the auth email hook.

The signed content is ``{webhook-id}.{webhook-timestamp}.{body}``,
signed with HMAC-SHA256 under the base64-decoded secret. The signature
header holds one or more space-separated ``v1,<base64>`` entries; any
match is accepted.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import secrets
import time
from typing import Any

from nested.exceptions import WebhookVerificationError

TOLERANCE_SECONDS = 5 * 60
SECRET_PREFIX = "whsec_"

WEBHOOK_ID = "webhook-id"
WEBHOOK_TIMESTAMP = "webhook-timestamp"
WEBHOOK_SIGNATURE = "webhook-signature"


def decode_secret(secret: str) -> bytes:
    """Secret bytes from a ``v1,whsec_<base64>`` or ``whsec_<base64>`` value."""
    value = secret.strip()
    if value.startswith("v1,"):
        value = value[3:]
    if value.startswith(SECRET_PREFIX):
        value = value[len(SECRET_PREFIX) :]
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise WebhookVerificationError("Webhook secret is not valid base64") from e


def sign(secret: bytes, msg_id: str, timestamp: int | str, body: bytes | str) -> str:
    """The ``v1,<signature>`` entry for a payload."""
    if isinstance(body, str):
        body = body.encode()
    content = f"{msg_id}.{timestamp}.".encode() + body
    digest = hmac.new(secret, content, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode()


def has_webhook_headers(headers: Any) -> bool:
    return all(headers.get(name) for name in (WEBHOOK_ID, WEBHOOK_TIMESTAMP, WEBHOOK_SIGNATURE))


def verify(
    secret: str,
    body: bytes | str,
    headers: Any,
    *,
    now: float | None = None,
) -> dict[str, Any]:
    """Verify a signed webhook and return its decoded JSON payload.

    Args:
        secret: Configured hook secret
        body: Raw request body, exactly as received
        headers: Mapping with the three webhook headers
        now: Current unix time override

    Raises:
        WebhookVerificationError: Missing headers, stale or future
            timestamp, bad signature, or a body that is not JSON
    """
    msg_id = headers.get(WEBHOOK_ID)
    timestamp = headers.get(WEBHOOK_TIMESTAMP)
    signature_header = headers.get(WEBHOOK_SIGNATURE)
    if not (msg_id and timestamp and signature_header):
        raise WebhookVerificationError("Missing required webhook headers")

    try:
        ts = int(timestamp)
    except ValueError as e:
        raise WebhookVerificationError("Invalid webhook timestamp") from e

    current = time.time() if now is None else now
    if ts < current - TOLERANCE_SECONDS:
        raise WebhookVerificationError("Webhook timestamp too old")
    if ts > current + TOLERANCE_SECONDS:
        raise WebhookVerificationError("Webhook timestamp too new")

    expected = sign(decode_secret(secret), msg_id, ts, body).split(",", 1)[1]
    for entry in signature_header.split():
        version, _, candidate = entry.partition(",")
        if version == "v1" and secrets.compare_digest(candidate.encode(), expected.encode()):
            break
    else:
        raise WebhookVerificationError("No matching webhook signature")

    try:
        return json.loads(body)
    except ValueError as e:
        raise WebhookVerificationError("Webhook body is not valid JSON") from e
