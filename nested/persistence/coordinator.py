"""Dual-write persistence coordinator.

Writes go to the hosted backend first and are mirrored into the local
cache only once the backend confirms them. When the backend cannot be
reached (or is not configured at all) the write lands in the cache
alone, tagged ``unsynced``. Reads prefer the backend and fall back to
the cache.

Ordering within one call is strict: the remote attempt always finishes
before the cache is touched, so the cache never claims a remote state
that was not confirmed. A uniqueness conflict leaves the cache alone.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from nested.exceptions import RemoteConstraintError, RemoteStoreError
from nested.persistence.bindings import RecordBinding
from nested.persistence.results import FieldError, LoadResult, SaveResult
from nested.session import Session

if TYPE_CHECKING:
    from nested.cache import LocalCacheStore
    from nested.remote import RemoteStoreClient

logger = logging.getLogger(__name__)

UNSYNCED_FLAG = "unsynced"

# Fields that identify a conflict when the backend does not name the column
_CONFLICT_CANDIDATES = ("username", "email")


class PersistenceCoordinator:
    """Read/write one record type across the backend and the local cache.

    Args:
        binding: Table, cache layout and validation for the record type
        remote: Backend client, or None to run local-only
        cache: Local cache store
    """

    def __init__(
        self,
        binding: RecordBinding,
        remote: RemoteStoreClient | None,
        cache: LocalCacheStore,
    ) -> None:
        self.binding = binding
        self.remote = remote
        self.cache = cache

    def is_remote_configured(self) -> bool:
        """Whether calls may attempt network I/O at all."""
        return self.remote is not None

    # -- cache helpers ----------------------------------------------------------

    def cached(self, session: Session, key: str) -> dict[str, Any] | None:
        """The cached copy of one record, if this user has one."""
        if not session.is_authenticated:
            return None
        value = self.cache.read(self.binding.cache_key(session))
        if self.binding.collection:
            if not isinstance(value, list):
                return None
            for item in value:
                if isinstance(item, dict) and str(item.get("id")) == key:
                    return item
            return None
        if isinstance(value, dict) and str(value.get("id", key)) == key:
            return value
        return None

    def cached_all(self, session: Session) -> list[dict[str, Any]]:
        if not session.is_authenticated:
            return []
        value = self.cache.read(self.binding.cache_key(session))
        if self.binding.collection:
            return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []
        return [value] if isinstance(value, dict) else []

    def _write_cached(self, session: Session, key: str, record: dict[str, Any]) -> None:
        cache_key = self.binding.cache_key(session)
        if not self.binding.collection:
            self.cache.write(cache_key, record)
            return

        items = self.cached_all(session)
        for i, item in enumerate(items):
            if str(item.get("id")) == key:
                items[i] = record
                break
        else:
            items.insert(0, record)
        self.cache.write(cache_key, items)

    def _remove_cached(self, session: Session, key: str) -> None:
        if not session.is_authenticated:
            return
        cache_key = self.binding.cache_key(session)
        if not self.binding.collection:
            if self.cached(session, key) is not None:
                self.cache.remove(cache_key)
            return
        items = [item for item in self.cached_all(session) if str(item.get("id")) != key]
        self.cache.write(cache_key, items)

    def _save_locally(self, session: Session, key: str, fields: dict[str, Any]) -> SaveResult:
        existing = self.cached(session, key) or {}
        record = {**existing, **fields, "id": key, UNSYNCED_FLAG: True}
        self._write_cached(session, key, record)
        return SaveResult.saved_locally(record)

    def _conflict_field(self, fields: dict[str, Any]) -> str | None:
        for name in _CONFLICT_CANDIDATES:
            if name in fields:
                return name
        return None

    # -- public API -------------------------------------------------------------

    def validate(self, fields: dict[str, Any]) -> dict[str, Any] | FieldError:
        return self.binding.normalize(fields)

    async def save(
        self,
        session: Session,
        key: str,
        fields: dict[str, Any],
        *,
        system_fields: Mapping[str, Any] | None = None,
    ) -> SaveResult:
        """Upsert fields for the record identified by key.

        Args:
            session: Acting user
            key: Record primary key
            fields: User-supplied fields (validated before any I/O)
            system_fields: Trusted fields set by the caller (owner, derived
                counters); merged after validation

        Returns:
            SAVED with the backend record, SAVED_LOCALLY_ONLY with the cached
            record, CONFLICT, VALIDATION_FAILED, or NOT_AUTHENTICATED
        """
        if not session.is_authenticated:
            return SaveResult.not_authenticated()

        cleaned = self.validate(fields)
        if isinstance(cleaned, FieldError):
            logger.debug("Rejected %s write: %s on %s", self.binding.table, cleaned.kind, cleaned.field)
            return SaveResult.validation_failed(cleaned)

        payload = {**cleaned, **(system_fields or {})}

        if self.remote is None:
            return self._save_locally(session, key, payload)

        try:
            record = await self.remote.upsert(
                self.binding.table,
                key,
                payload,
                access_token=session.access_token,
            )
        except RemoteConstraintError as e:
            field = e.field or self._conflict_field(payload)
            logger.info("%s write rejected: %s already taken", self.binding.table, field)
            return SaveResult.conflict(field)
        except RemoteStoreError as e:
            logger.warning(
                "%s write for %s kept locally: %s",
                self.binding.table,
                key,
                e,
            )
            return self._save_locally(session, key, payload)

        if self.binding.owns(session, record):
            self._write_cached(session, key, record)
        return SaveResult.saved(record)

    async def save_local_only(self, session: Session, key: str, fields: dict[str, Any]) -> SaveResult:
        """Write fields to the cache alone, tagged unsynced. No validation."""
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        return self._save_locally(session, key, fields)

    def remember(self, session: Session, key: str, record: dict[str, Any]) -> None:
        """Overwrite the cached copy with a synced record (no unsynced tag)."""
        if session.is_authenticated:
            self._write_cached(session, key, {k: v for k, v in record.items() if k != UNSYNCED_FLAG})

    async def load(self, session: Session, key: str) -> LoadResult:
        """Read a record, preferring the backend.

        A backend hit overwrites the cached copy. A miss or any backend
        error falls back to whatever the cache holds.
        """
        if self.remote is not None:
            try:
                record = await self.remote.get(
                    self.binding.table,
                    key,
                    access_token=session.access_token,
                )
            except RemoteStoreError as e:
                logger.info("%s read for %s served from cache: %s", self.binding.table, key, e)
            else:
                if record is not None:
                    if self.binding.owns(session, record):
                        self._write_cached(session, key, record)
                    return LoadResult.remote(record)

        cached = self.cached(session, key)
        if cached is not None:
            return LoadResult.cached(cached)
        return LoadResult.absent()

    async def load_owned(self, session: Session, **select_kwargs: Any) -> LoadResult:
        """Read every record the user owns (collection bindings).

        A backend hit replaces the cached list, keeping records that only
        exist locally (unsynced). Falls back to the cached list.
        """
        if not session.is_authenticated:
            return LoadResult.absent()

        if self.remote is not None:
            try:
                rows = await self.remote.select(
                    self.binding.table,
                    filters={self.binding.owner_field: f"eq.{session.user_id}"},
                    access_token=session.access_token,
                    **select_kwargs,
                )
            except RemoteStoreError as e:
                logger.info("%s list served from cache: %s", self.binding.table, e)
            else:
                remote_ids = {str(row.get("id")) for row in rows}
                pending = [
                    item
                    for item in self.cached_all(session)
                    if item.get(UNSYNCED_FLAG) and str(item.get("id")) not in remote_ids
                ]
                merged = pending + rows
                if self.binding.collection:
                    self.cache.write(self.binding.cache_key(session), merged)
                return LoadResult.remote(merged)

        cached = self.cached_all(session)
        return LoadResult.cached(cached) if cached else LoadResult.absent()

    async def delete(self, session: Session, key: str, **filters: str) -> SaveResult:
        """Delete a record remotely, then drop the cached copy.

        Deletes do not fall back: if the backend is configured but
        unreachable, the cache is left as is and REMOTE_UNAVAILABLE is
        returned. In local-only mode only the cached copy is removed.
        """
        if not session.is_authenticated:
            return SaveResult.not_authenticated()

        if self.remote is None:
            self._remove_cached(session, key)
            return SaveResult.saved_locally(None)

        try:
            await self.remote.delete(
                self.binding.table,
                filters={"id": f"eq.{key}", **filters},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.warning("%s delete for %s failed: %s", self.binding.table, key, e)
            return SaveResult.remote_unavailable(str(e))

        self._remove_cached(session, key)
        return SaveResult.saved(None)
