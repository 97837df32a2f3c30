"""API route registration."""

from fastapi import APIRouter

from nested.api.routes.email import router as email_router
from nested.api.routes.lookups import router as lookups_router
from nested.api.routes.system import router as system_router

# Versioned API
api_router = APIRouter()
api_router.include_router(system_router, tags=["System"])
api_router.include_router(lookups_router)

# Hooks are called by the auth backend at a fixed path
hooks_router = APIRouter()
hooks_router.include_router(email_router)

__all__ = ["api_router", "hooks_router"]
