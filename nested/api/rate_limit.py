"""Per-client request limits for the HTTP surface.

One slowapi Limiter is shared by every route. Clients are keyed by IP.
``X-Forwarded-For`` is only honoured when the service is deployed
behind ``TRUSTED_PROXY_COUNT`` reverse proxies; otherwise the header is
client-controlled and ignored.

Tiers:
- Global default: 60/minute per client
- Username and email lookups: 30/minute
- Email hook: 30/minute, on top of the per-recipient send limits
"""

from slowapi import Limiter
from starlette.requests import Request

from nested.settings import get_settings

DEFAULT_LIMIT = "60/minute"
LOOKUP_LIMIT = "30/minute"
EMAIL_HOOK_LIMIT = "30/minute"

# Maximum request body size (bytes); enforced by middleware in main.py.
MAX_REQUEST_BODY_BYTES = 1_048_576  # 1 MB


def client_ip(request: Request, trusted_proxies: int | None = None) -> str:
    """The address a rate limit is charged to.

    With ``n`` trusted proxies, each appends the address it saw, so the
    client is the ``n``-th entry from the right of ``X-Forwarded-For``.
    Entries further left were supplied by the client and are ignored.

    Args:
        request: Incoming request
        trusted_proxies: Override for ``settings.trusted_proxy_count``
    """
    if trusted_proxies is None:
        trusted_proxies = get_settings().trusted_proxy_count

    if trusted_proxies > 0:
        forwarded = [
            part.strip()
            for part in request.headers.get("X-Forwarded-For", "").split(",")
            if part.strip()
        ]
        if forwarded:
            return forwarded[-min(trusted_proxies, len(forwarded))]

    if request.client:
        return request.client.host
    return "127.0.0.1"


limiter = Limiter(key_func=client_ip, default_limits=[DEFAULT_LIMIT])
