"""Nested exception hierarchy.

Base exceptions for all application layers with correlation ID support.

Usage:
    from nested.exceptions import RemoteStoreError, RemoteConstraintError

    try:
        record = await client.upsert("profiles", user_id, fields)
    except RemoteConstraintError as e:
        logger.info("Duplicate %s", e.field, extra={"correlation_id": e.correlation_id})
"""

import uuid
from typing import Any


class NestedError(Exception):
    """Base exception for all Nested application errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class RemoteStoreError(NestedError):
    """Errors from hosted backend calls.

    Any non-success response that is not a uniqueness violation.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
        code: str | None = None,
        correlation_id: str | None = None,
    ):
        self.operation = operation
        self.details = details or {}
        self.status_code = status_code
        self.code = code
        super().__init__(message, correlation_id=correlation_id)


class RemoteTransportError(RemoteStoreError):
    """The backend could not be reached (connection failure, timeout)."""

    pass


class RemoteConstraintError(RemoteStoreError):
    """A uniqueness constraint rejected the write (Postgres 23505)."""

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any):
        self.field = field
        super().__init__(message, **kwargs)


class ValidationError(NestedError):
    """Errors from input validation (beyond Pydantic)."""

    def __init__(self, message: str, *, kind: str | None = None, **kwargs: Any):
        self.kind = kind
        super().__init__(message, **kwargs)


class AssetValidationError(ValidationError):
    """An uploaded file has a disallowed MIME type or exceeds the size ceiling."""

    pass


class ConfigurationError(NestedError):
    """Errors from application configuration."""

    pass


class EmailDeliveryError(NestedError):
    """Errors from the outbound email provider."""

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        self.status_code = status_code
        super().__init__(message, **kwargs)


class WebhookVerificationError(NestedError):
    """A signed webhook failed signature or timestamp verification."""

    pass
