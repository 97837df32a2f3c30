"""Username and email availability checks used during sign-up."""

from fastapi import APIRouter, Depends, Request

from nested.api.deps import get_profile_service
from nested.api.rate_limit import LOOKUP_LIMIT, limiter
from nested.api.schemas import AvailabilityResponse
from nested.services import ProfileService

router = APIRouter(prefix="/lookups", tags=["Lookups"])


@router.get("/usernames/{username}", response_model=AvailabilityResponse)
@limiter.limit(LOOKUP_LIMIT)
async def check_username(
    request: Request,
    username: str,
    service: ProfileService = Depends(get_profile_service),
) -> AvailabilityResponse:
    result = await service.check_username(username)
    return AvailabilityResponse(
        value=username,
        status=result.status.value,
        available=result.available,
        error=result.error.value if result.error else None,
        message=result.message,
    )


@router.get("/emails/{email}", response_model=AvailabilityResponse)
@limiter.limit(LOOKUP_LIMIT)
async def check_email(
    request: Request,
    email: str,
    service: ProfileService = Depends(get_profile_service),
) -> AvailabilityResponse:
    result = await service.check_email(email)
    return AvailabilityResponse(
        value=email,
        status=result.status.value,
        available=result.available,
        error=result.error.value if result.error else None,
        message=result.message,
    )
