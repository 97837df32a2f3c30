"""Dual-write persistence: backend first, local cache as mirror and fallback."""

from nested.persistence.assets import AssetCoordinator
from nested.persistence.autosave import Autosaver
from nested.persistence.bindings import (
    PROFILE_BINDING,
    PROJECT_BINDING,
    RecordBinding,
    normalize_profile_fields,
    normalize_project_fields,
    validate_model,
)
from nested.persistence.coordinator import UNSYNCED_FLAG, PersistenceCoordinator
from nested.persistence.migration import MigrationReport, migrate_cache_to_remote, writable_fields
from nested.persistence.results import (
    AssetResult,
    AssetStatus,
    FieldError,
    LoadResult,
    LoadSource,
    SaveResult,
    SaveStatus,
)

__all__ = [
    "PROFILE_BINDING",
    "PROJECT_BINDING",
    "UNSYNCED_FLAG",
    "AssetCoordinator",
    "AssetResult",
    "AssetStatus",
    "Autosaver",
    "FieldError",
    "LoadResult",
    "LoadSource",
    "MigrationReport",
    "PersistenceCoordinator",
    "RecordBinding",
    "SaveResult",
    "SaveStatus",
    "migrate_cache_to_remote",
    "normalize_profile_fields",
    "normalize_project_fields",
    "validate_model",
    "writable_fields",
]
