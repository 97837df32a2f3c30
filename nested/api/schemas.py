"""API response models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class HealthResponse(BaseModel):
    status: HealthStatus
    timestamp: datetime
    version: str


class SystemStatus(BaseModel):
    """Which backends this instance can reach."""

    status: HealthStatus
    version: str
    environment: str
    remote_configured: bool = Field(description="Hosted backend credentials are present and valid")
    email_configured: bool = Field(description="Email provider key is set")
    hook_secret_configured: bool
    cache_dir: str


class AvailabilityResponse(BaseModel):
    value: str
    status: str
    available: bool
    error: str | None = None
    message: str | None = None
