"""Base backend client with HTTP request handling and connection management.

Provides configuration checks, the shared ``httpx.AsyncClient``, header
construction and the mapping from HTTP outcomes to the exception
hierarchy the persistence layer relies on.
"""

import logging
import re
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field

from nested.exceptions import (
    RemoteConstraintError,
    RemoteStoreError,
    RemoteTransportError,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKERS = ("your-project", "your-anon-key", "placeholder")
HOSTED_DOMAIN = "supabase.co"

UNIQUE_VIOLATION = "23505"

_KEY_DETAIL_RE = re.compile(r"Key \((?:lower\()?(\w+)")
_CONSTRAINT_RE = re.compile(r'unique constraint "(\w+)"')


class RemoteStoreConfig(BaseModel):
    """Configuration for the backend client."""

    url: str = Field(..., description="Project URL, e.g. https://abc.supabase.co")
    api_key: str = Field(..., description="anon or service-role API key")
    timeout: int = Field(default=10, description="Request timeout in seconds")


def is_remote_configured(url: str | None, api_key: str | None) -> bool:
    """Check whether backend connection parameters look usable.

    Rejects missing or blank values, template placeholders, and URLs
    whose hostname is not a hosted project domain. No network I/O.
    """
    if not url or not api_key:
        return False
    if not url.strip() or not api_key.strip():
        return False
    if any(marker in url for marker in PLACEHOLDER_MARKERS):
        return False
    if any(marker in api_key for marker in PLACEHOLDER_MARKERS):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    return HOSTED_DOMAIN in parsed.hostname


def configuration_error(url: str | None, api_key: str | None) -> str:
    """Developer-facing explanation of why the backend is not configured."""
    missing = []
    if not url or not url.strip() or "your-project" in url:
        missing.append("SUPABASE_URL")
    if not api_key or not api_key.strip() or "your-anon-key" in api_key:
        missing.append("SUPABASE_ANON_KEY")
    if missing:
        return (
            f"Missing required environment variables: {', '.join(missing)}. "
            "Set them in .env or in the deployment environment."
        )
    return "Backend configuration is invalid. Check SUPABASE_URL and SUPABASE_ANON_KEY."


def _constraint_field(payload: dict[str, Any]) -> str | None:
    """Pull the offending column out of a Postgres unique-violation payload."""
    details = payload.get("details") or ""
    match = _KEY_DETAIL_RE.search(details)
    if match:
        return match.group(1)
    match = _CONSTRAINT_RE.search(payload.get("message") or "")
    if match:
        # <table>_<column>_key
        name = match.group(1).removesuffix("_key")
        _, _, column = name.partition("_")
        return column or None
    return None


def _error_payload(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {"message": response.text}
    return data if isinstance(data, dict) else {"message": str(data)}


class BaseRemoteClient:
    """Base HTTP client for the hosted backend.

    Handles connection management and HTTP requests. Table, lookup,
    storage and auth functionality is added via mixins.
    """

    def __init__(self, config: RemoteStoreConfig):
        self.config = config
        self._http_client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self.config.url.rstrip("/")

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the shared httpx.AsyncClient.

        Created lazily on first use and reused across requests.
        """
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.config.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=20,
                ),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release connections."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _headers(
        self,
        access_token: str | None = None,
        extra: dict[str, str] | None = None,
    ) -> dict[str, str]:
        headers = {
            "apikey": self.config.api_key,
            "Authorization": f"Bearer {access_token or self.config.api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        access_token: str | None = None,
        operation: str = "request",
    ) -> Any:
        """Make a request to the backend.

        Args:
            method: HTTP method
            path: API path (without base URL)
            json: JSON body
            params: Query parameters
            content: Raw body (storage uploads)
            headers: Extra headers
            access_token: User bearer token; the API key is used when absent
            operation: Label for logs and errors

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            RemoteTransportError: The backend could not be reached
            RemoteConstraintError: A uniqueness constraint rejected the write
            RemoteStoreError: Any other non-success response
        """
        client = self._get_http_client()
        try:
            response = await client.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(access_token, headers),
                json=json,
                params=params,
                content=content,
            )
        except httpx.TimeoutException as e:
            logger.warning("Backend %s timed out", operation)
            raise RemoteTransportError(f"{operation}: timeout", operation) from e
        except httpx.TransportError as e:
            logger.warning("Backend %s unreachable: %s", operation, type(e).__name__)
            raise RemoteTransportError(f"{operation}: connection failed", operation) from e

        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                # Proxies and captive portals answer 200 with HTML
                logger.warning("Backend %s returned a non-JSON body", operation)
                raise RemoteTransportError(f"{operation}: unexpected response body", operation) from e

        payload = _error_payload(response)
        code = payload.get("code")
        code = str(code) if code is not None else None
        message = payload.get("message") or payload.get("msg") or f"HTTP {response.status_code}"

        if code == UNIQUE_VIOLATION or (response.status_code == 409 and code is None):
            raise RemoteConstraintError(
                f"{operation}: {message}",
                field=_constraint_field(payload),
                operation=operation,
                details=payload,
                status_code=response.status_code,
                code=code or UNIQUE_VIOLATION,
            )

        logger.warning("Backend %s failed: HTTP %d %s", operation, response.status_code, message)
        raise RemoteStoreError(
            f"{operation}: {message}",
            operation,
            payload,
            status_code=response.status_code,
            code=code,
        )
