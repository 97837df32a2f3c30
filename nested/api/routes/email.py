"""Send-email hook endpoint.

Called by the auth backend (signed with Standard Webhooks headers) for
sign-up, recovery and similar emails, and by signed-in clients (bearer
token) for transactional emails.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from nested.api.deps import get_email_hook
from nested.api.rate_limit import EMAIL_HOOK_LIMIT, limiter
from nested.email import SendEmailHook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hooks", tags=["Hooks"])


@router.post("/send-email")
@limiter.limit(EMAIL_HOOK_LIMIT)
async def send_email(
    request: Request,
    hook: SendEmailHook = Depends(get_email_hook),
) -> JSONResponse:
    # Signature verification needs the body exactly as received
    body = await request.body()
    result = await hook.handle(body, request.headers)
    if result.status_code >= 400:
        logger.info("Send-email hook rejected request: %s", result.status_code)
    return JSONResponse(status_code=result.status_code, content=result.body)
