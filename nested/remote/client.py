"""Backend client facade.

Combines the table, lookup, storage and auth mixins over the shared
HTTP base. ``get_remote_client()`` returns ``None`` when the backend
is not configured; callers then run in local-only mode.
"""

import threading

from nested.remote.auth import AuthMixin
from nested.remote.base import BaseRemoteClient, RemoteStoreConfig, is_remote_configured
from nested.remote.lookups import LookupMixin
from nested.remote.records import RecordMixin
from nested.remote.storage import StorageMixin
from nested.settings import Settings, get_settings

__all__ = ["RemoteStoreClient", "close_remote_clients", "get_remote_client", "reset_remote_client"]


class RemoteStoreClient(BaseRemoteClient, RecordMixin, LookupMixin, StorageMixin, AuthMixin):
    """Typed client for the hosted backend.

    Usage:
        client = get_remote_client()
        if client is not None:
            profile = await client.get("profiles", user_id)
    """

    pass


_clients: dict[str, RemoteStoreClient] = {}
_client_lock = threading.Lock()


def get_remote_client(
    settings: Settings | None = None,
    *,
    service_role: bool = False,
) -> RemoteStoreClient | None:
    """Get the cached backend client, or None when not configured.

    Args:
        settings: Settings override (defaults to get_settings())
        service_role: Use the service-role key instead of the anon key
    """
    settings = settings or get_settings()
    key_secret = settings.supabase_service_role_key if service_role else settings.supabase_anon_key
    api_key = key_secret.get_secret_value()

    if not is_remote_configured(settings.supabase_url, api_key):
        return None

    cache_key = "service" if service_role else "anon"
    with _client_lock:
        client = _clients.get(cache_key)
        if client is None:
            client = RemoteStoreClient(
                RemoteStoreConfig(
                    url=settings.supabase_url,
                    api_key=api_key,
                    timeout=settings.remote_timeout_seconds,
                )
            )
            _clients[cache_key] = client
        return client


def reset_remote_client() -> None:
    """Drop cached clients so the next call re-reads configuration."""
    with _client_lock:
        _clients.clear()


async def close_remote_clients() -> None:
    """Close and drop cached clients, releasing pooled connections."""
    with _client_lock:
        clients = list(_clients.values())
        _clients.clear()
    for client in clients:
        await client.close()
