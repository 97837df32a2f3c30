"""Nests: student communities anyone can join.

Backend only, like events. The owner is added as the first member when
a nest is created.
"""

from __future__ import annotations

import logging
from typing import Any

from nested.exceptions import RemoteStoreError
from nested.persistence import FieldError, LoadResult, SaveResult, validate_model
from nested.remote import RemoteStoreClient, eq, get_remote_client, ilike_any, in_
from nested.schema import NestUpdate
from nested.session import Session
from nested.settings import Settings, get_settings

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = ("name", "description")
BY_SIZE = "member_count.desc"
_OFFLINE = "Nests need the backend"


class NestService:
    """Create, manage and join nests.

    Args:
        remote: Backend client, or None for local-only mode
        settings: Settings override
    """

    def __init__(self, remote: RemoteStoreClient | None, settings: Settings | None = None) -> None:
        self.remote = remote
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> NestService:
        settings = settings or get_settings()
        return cls(get_remote_client(settings), settings)

    async def _select(
        self,
        filters: dict[str, str] | None,
        order: str,
        session: Session | None,
    ) -> list[dict[str, Any]]:
        if self.remote is None:
            return []
        try:
            return await self.remote.select(
                "nests",
                filters=filters,
                order=order,
                access_token=session.access_token if session else None,
            )
        except RemoteStoreError as e:
            logger.info("Nest listing failed: %s", e)
            return []

    async def list_all(self, *, session: Session | None = None) -> list[dict[str, Any]]:
        """Every nest, largest first."""
        return await self._select(None, BY_SIZE, session)

    async def search(self, query: str, *, session: Session | None = None) -> list[dict[str, Any]]:
        if not query.strip():
            return await self.list_all(session=session)
        return await self._select({"or": ilike_any(query, SEARCH_COLUMNS)}, BY_SIZE, session)

    async def my_nests(self, session: Session) -> list[dict[str, Any]]:
        """Nests the user owns, newest first."""
        if not session.is_authenticated:
            return []
        return await self._select({"owner_id": eq(session.user_id)}, "created_at.desc", session)

    async def joined_nests(self, session: Session) -> list[dict[str, Any]]:
        if not session.is_authenticated or self.remote is None:
            return []
        try:
            memberships = await self.remote.select(
                "nest_members",
                filters={"user_id": eq(session.user_id)},
                select="nest_id",
                access_token=session.access_token,
            )
            nest_ids = [m["nest_id"] for m in memberships if m.get("nest_id")]
            if not nest_ids:
                return []
            return await self.remote.select(
                "nests",
                filters={"id": in_(nest_ids)},
                order=BY_SIZE,
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.info("Joined nests for %s unavailable: %s", session.user_id, e)
            return []

    async def get(self, nest_id: str, *, session: Session | None = None) -> LoadResult:
        if self.remote is None:
            return LoadResult.absent()
        try:
            record = await self.remote.get(
                "nests", nest_id, access_token=session.access_token if session else None
            )
        except RemoteStoreError as e:
            logger.info("Nest %s unavailable: %s", nest_id, e)
            return LoadResult.absent()
        return LoadResult.remote(record) if record is not None else LoadResult.absent()

    async def get_with_members(self, nest_id: str, *, session: Session | None = None) -> LoadResult:
        """A nest plus its ``members`` with their profiles.

        A failed member lookup still returns the nest, with no members.
        """
        loaded = await self.get(nest_id, session=session)
        if not loaded.found:
            return loaded
        try:
            members = await self.remote.select(
                "nest_members",
                filters={"nest_id": eq(nest_id)},
                select="*,profiles(*)",
                access_token=session.access_token if session else None,
            )
        except RemoteStoreError as e:
            logger.info("Members of nest %s unavailable: %s", nest_id, e)
            members = []
        return LoadResult(loaded.source, {**loaded.record, "members": members})

    async def create(self, session: Session, fields: dict[str, Any]) -> SaveResult:
        """Create a nest owned by the session user, who becomes its first member."""
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if not fields.get("name"):
            return SaveResult.validation_failed(FieldError("missing", "name", "Nest name is required"))
        cleaned = validate_model(NestUpdate, fields)
        if isinstance(cleaned, FieldError):
            return SaveResult.validation_failed(cleaned)
        if self.remote is None:
            return SaveResult.remote_unavailable(_OFFLINE)

        try:
            nest = await self.remote.insert(
                "nests",
                {**cleaned, "owner_id": session.user_id, "member_count": 1},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.warning("Nest creation for %s failed: %s", session.user_id, e)
            return SaveResult.remote_unavailable(str(e))

        try:
            await self.remote.insert(
                "nest_members",
                {"nest_id": nest["id"], "user_id": session.user_id},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            # The nest exists; the owner can still join it explicitly
            logger.warning("Owner membership for nest %s not recorded: %s", nest.get("id"), e)
        return SaveResult.saved(nest)

    async def _owned(self, session: Session, nest_id: str) -> dict[str, Any] | SaveResult:
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if self.remote is None:
            return SaveResult.remote_unavailable(_OFFLINE)
        try:
            nest = await self.remote.get("nests", nest_id, access_token=session.access_token)
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        if nest is None or str(nest.get("owner_id")) != session.user_id:
            return SaveResult.not_authorized("Only the owner can change this nest")
        return nest

    async def update(self, session: Session, nest_id: str, fields: dict[str, Any]) -> SaveResult:
        cleaned = validate_model(NestUpdate, fields)
        if isinstance(cleaned, FieldError):
            return SaveResult.validation_failed(cleaned)
        nest = await self._owned(session, nest_id)
        if isinstance(nest, SaveResult):
            return nest
        try:
            rows = await self.remote.update(
                "nests",
                cleaned,
                filters={"id": eq(nest_id), "owner_id": eq(session.user_id)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(rows[0] if rows else {**nest, **cleaned})

    async def delete(self, session: Session, nest_id: str) -> SaveResult:
        nest = await self._owned(session, nest_id)
        if isinstance(nest, SaveResult):
            return nest
        try:
            await self.remote.delete(
                "nests",
                filters={"id": eq(nest_id), "owner_id": eq(session.user_id)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(None)

    async def _membership(self, session: Session, nest_id: str) -> dict[str, Any] | None:
        rows = await self.remote.select(
            "nest_members",
            filters={"nest_id": eq(nest_id), "user_id": eq(session.user_id)},
            limit=1,
            access_token=session.access_token,
        )
        return rows[0] if rows else None

    async def join(self, session: Session, nest_id: str) -> SaveResult:
        """Join a nest. Joining twice returns the existing membership."""
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if self.remote is None:
            return SaveResult.remote_unavailable(_OFFLINE)
        try:
            existing = await self._membership(session, nest_id)
            if existing is not None:
                return SaveResult.saved(existing)
            created = await self.remote.insert(
                "nest_members",
                {"nest_id": nest_id, "user_id": session.user_id},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.warning("Joining nest %s failed: %s", nest_id, e)
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(created)

    async def leave(self, session: Session, nest_id: str) -> SaveResult:
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if self.remote is None:
            return SaveResult.remote_unavailable(_OFFLINE)
        try:
            await self.remote.delete(
                "nest_members",
                filters={"nest_id": eq(nest_id), "user_id": eq(session.user_id)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(None)

    async def is_member(self, session: Session, nest_id: str) -> bool:
        if not session.is_authenticated or self.remote is None:
            return False
        try:
            return await self._membership(session, nest_id) is not None
        except RemoteStoreError as e:
            logger.info("Nest membership lookup failed: %s", e)
            return False

    async def is_owner(self, session: Session, nest_id: str) -> bool:
        if not session.is_authenticated or self.remote is None:
            return False
        try:
            nest = await self.remote.get(
                "nests", nest_id, select="owner_id", access_token=session.access_token
            )
        except RemoteStoreError as e:
            logger.info("Nest owner lookup failed: %s", e)
            return False
        return nest is not None and str(nest.get("owner_id")) == session.user_id
