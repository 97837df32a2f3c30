"""Durable per-user JSON cache on local disk."""

from nested.cache.local_store import (
    PROFILE_NAMESPACE,
    PROJECTS_NAMESPACE,
    LocalCacheStore,
    user_key,
)

__all__ = [
    "PROFILE_NAMESPACE",
    "PROJECTS_NAMESPACE",
    "LocalCacheStore",
    "user_key",
]
