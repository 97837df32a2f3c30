"""FastAPI application configuration and setup.

Main entry point for the HTTP API with CORS, middleware, rate limiting
and error handling.
"""

import logging
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from nested import __version__
from nested.api.rate_limit import MAX_REQUEST_BODY_BYTES, limiter
from nested.api.routes import api_router, hooks_router
from nested.exceptions import (
    ConfigurationError,
    NestedError,
    RemoteStoreError,
    ValidationError,
    WebhookVerificationError,
)
from nested.logging_config import configure_logging
from nested.remote import close_remote_clients
from nested.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Context variable for correlation ID (async-safe)
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_app: FastAPI | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging on startup; drop backend clients on shutdown."""
    configure_logging()
    yield
    await close_remote_clients()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Optional settings override (uses get_settings() if not provided)

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Nested",
        description="Persistence and email services for the Nested student project network",
        version=__version__,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_get_allowed_origins(settings),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.middleware("http")(_body_size_limit_middleware)
    app.middleware("http")(_correlation_middleware)

    app.include_router(api_router, prefix="/api/v1")
    app.include_router(hooks_router)

    _register_exception_handlers(app, settings)

    return app


def _get_allowed_origins(settings: Settings) -> list[str]:
    """Allowed CORS origins.

    Priority:
    1. Explicit ALLOWED_ORIGINS env var (comma-separated)
    2. Environment-based defaults
    """
    if settings.allowed_origins:
        return [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    if settings.environment in ("development", "testing"):
        return ["*"]
    return [settings.site_url]


async def _body_size_limit_middleware(request: Request, call_next):
    """Reject requests whose declared body exceeds MAX_REQUEST_BODY_BYTES."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_BODY_BYTES:
        return JSONResponse(
            status_code=413,
            content={
                "error": {
                    "code": 413,
                    "message": f"Request body too large. Maximum size is {MAX_REQUEST_BODY_BYTES} bytes.",
                    "type": "request_too_large",
                }
            },
        )
    return await call_next(request)


async def _correlation_middleware(request: Request, call_next):
    """Generate or propagate X-Correlation-ID."""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def _status_for(exc: NestedError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, WebhookVerificationError):
        return 401
    if isinstance(exc, ConfigurationError):
        return 500
    if isinstance(exc, RemoteStoreError):
        return 502
    return 500


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(NestedError)
    async def nested_error_handler(request: Request, exc: NestedError) -> JSONResponse:
        """Handle application errors with correlation ID."""
        correlation_id = exc.correlation_id or get_correlation_id() or str(uuid.uuid4())
        error_type = exc.__class__.__name__.replace("Error", "_error").lower()
        status_code = _status_for(exc)

        logger.error(
            "Nested error %s (correlation_id=%s)",
            error_type,
            correlation_id,
            exc_info=exc,
        )

        message = str(exc) if settings.debug else f"An error occurred. Correlation ID: {correlation_id}"
        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "code": status_code,
                    "message": message,
                    "type": error_type,
                    "correlation_id": correlation_id,
                }
            },
            headers={"X-Correlation-ID": correlation_id},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent format."""
        correlation_id = get_correlation_id() or str(uuid.uuid4())
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": exc.status_code,
                    "message": exc.detail,
                    "type": "http_error",
                    "correlation_id": correlation_id,
                }
            },
            headers={"X-Correlation-ID": correlation_id},
        )


def get_app() -> FastAPI:
    """Get or create the singleton FastAPI application."""
    global _app
    if _app is None:
        _app = create_app()
    return _app


# For uvicorn: "nested.api.main:app" builds the app on first access
def __getattr__(name: str) -> Any:
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
