"""Hosted backend client (tables, lookups, object storage, auth)."""

from nested.remote.base import (
    BaseRemoteClient,
    RemoteStoreConfig,
    configuration_error,
    is_remote_configured,
)
from nested.remote.client import (
    RemoteStoreClient,
    close_remote_clients,
    get_remote_client,
    reset_remote_client,
)
from nested.remote.records import eq, ilike_any, in_
from nested.remote.storage import (
    ALLOWED_MIME_TYPES,
    Asset,
    AssetKind,
    bucket_for,
    is_data_uri,
    max_bytes_for,
    to_data_uri,
    validate_asset,
)

__all__ = [
    "ALLOWED_MIME_TYPES",
    "Asset",
    "AssetKind",
    "BaseRemoteClient",
    "RemoteStoreClient",
    "RemoteStoreConfig",
    "bucket_for",
    "close_remote_clients",
    "configuration_error",
    "eq",
    "get_remote_client",
    "ilike_any",
    "in_",
    "is_data_uri",
    "is_remote_configured",
    "max_bytes_for",
    "reset_remote_client",
    "to_data_uri",
    "validate_asset",
]
