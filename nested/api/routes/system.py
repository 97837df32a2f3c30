"""System health and status endpoints.

Endpoints:
- /health: Lightweight liveness check
- /status: Which backends are configured
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter

from nested import __version__
from nested.api.schemas import HealthResponse, HealthStatus, SystemStatus
from nested.remote import is_remote_configured
from nested.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check (Liveness)",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        timestamp=datetime.now(UTC),
        version=__version__,
    )


@router.get("/status", response_model=SystemStatus, summary="Configuration Status")
async def system_status() -> SystemStatus:
    """Report which backends are configured.

    Without the hosted backend the service still runs, with persistence
    in local-only mode, so that is reported as degraded rather than down.
    """
    settings = get_settings()
    remote = is_remote_configured(settings.supabase_url, settings.supabase_anon_key.get_secret_value())
    return SystemStatus(
        status=HealthStatus.HEALTHY if remote else HealthStatus.DEGRADED,
        version=__version__,
        environment=settings.environment,
        remote_configured=remote,
        email_configured=bool(settings.resend_api_key.get_secret_value()),
        hook_secret_configured=bool(settings.send_email_hook_secret.get_secret_value()),
        cache_dir=str(settings.cache_dir),
    )
