"""Tagged results returned across the persistence boundary.

Expected conditions (validation, conflicts, an unreachable backend)
come back as one of these values instead of an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class SaveStatus(str, Enum):
    SAVED = "saved"
    SAVED_LOCALLY_ONLY = "saved_locally_only"
    CONFLICT = "conflict"
    VALIDATION_FAILED = "validation_failed"
    NOT_AUTHENTICATED = "not_authenticated"
    NOT_AUTHORIZED = "not_authorized"
    # Operations with no local fallback (deletes, membership changes)
    REMOTE_UNAVAILABLE = "remote_unavailable"


class LoadSource(str, Enum):
    REMOTE = "remote"
    CACHE = "cache"
    ABSENT = "absent"


class AssetStatus(str, Enum):
    UPLOADED = "uploaded"
    INLINED = "inlined"
    REJECTED = "rejected"


@dataclass(frozen=True)
class FieldError:
    """A field that failed validation before any I/O."""

    kind: str
    field: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class SaveResult:
    status: SaveStatus
    record: dict[str, Any] | None = None
    field: str | None = None
    error_kind: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (SaveStatus.SAVED, SaveStatus.SAVED_LOCALLY_ONLY)

    @property
    def synced(self) -> bool:
        return self.status is SaveStatus.SAVED

    @classmethod
    def saved(cls, record: dict[str, Any] | None) -> SaveResult:
        return cls(SaveStatus.SAVED, record=record)

    @classmethod
    def saved_locally(cls, record: dict[str, Any] | None) -> SaveResult:
        return cls(SaveStatus.SAVED_LOCALLY_ONLY, record=record)

    @classmethod
    def conflict(cls, field: str | None, message: str | None = None) -> SaveResult:
        label = field or "value"
        return cls(
            SaveStatus.CONFLICT,
            field=field,
            error_kind=f"{label}_taken",
            message=message or f"{label.capitalize()} already taken",
        )

    @classmethod
    def validation_failed(cls, error: FieldError) -> SaveResult:
        return cls(
            SaveStatus.VALIDATION_FAILED,
            field=error.field,
            error_kind=error.kind,
            message=error.message,
        )

    @classmethod
    def not_authenticated(cls) -> SaveResult:
        return cls(SaveStatus.NOT_AUTHENTICATED, message="Not authenticated")

    @classmethod
    def not_authorized(cls, message: str = "Only the owner can change this record") -> SaveResult:
        return cls(SaveStatus.NOT_AUTHORIZED, message=message)

    @classmethod
    def remote_unavailable(cls, message: str | None = None) -> SaveResult:
        return cls(SaveStatus.REMOTE_UNAVAILABLE, message=message or "Backend unavailable")


@dataclass(frozen=True)
class LoadResult:
    source: LoadSource
    record: Any = None

    @property
    def found(self) -> bool:
        return self.source is not LoadSource.ABSENT

    @property
    def unsynced(self) -> bool:
        return isinstance(self.record, dict) and bool(self.record.get("unsynced"))

    @classmethod
    def remote(cls, record: Any) -> LoadResult:
        return cls(LoadSource.REMOTE, record)

    @classmethod
    def cached(cls, record: Any) -> LoadResult:
        return cls(LoadSource.CACHE, record)

    @classmethod
    def absent(cls) -> LoadResult:
        return cls(LoadSource.ABSENT)


@dataclass(frozen=True)
class AssetResult:
    status: AssetStatus
    url: str | None = None
    error_kind: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not AssetStatus.REJECTED
