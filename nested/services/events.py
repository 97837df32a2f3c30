"""Campus events and registrations.

Events live only on the backend. Without one, listings are empty and
writes answer REMOTE_UNAVAILABLE.
"""

from __future__ import annotations

import logging
from typing import Any

from nested.exceptions import RemoteStoreError
from nested.persistence import FieldError, LoadResult, SaveResult, validate_model
from nested.remote import RemoteStoreClient, eq, get_remote_client, ilike_any, in_
from nested.schema import Event, EventUpdate
from nested.session import Session
from nested.settings import Settings, get_settings

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = ("title", "description", "location")
_OFFLINE = "Events need the backend"


class EventService:
    """List, organize and register for events.

    Args:
        remote: Backend client, or None for local-only mode
        settings: Settings override
    """

    def __init__(self, remote: RemoteStoreClient | None, settings: Settings | None = None) -> None:
        self.remote = remote
        self.settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> EventService:
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
                "events",
                filters=filters,
                order=order,
                access_token=session.access_token if session else None,
            )
        except RemoteStoreError as e:
            logger.info("Event listing failed: %s", e)
            return []

    # -- listings -----------------------------------------------------------------

    async def list_all(self, *, session: Session | None = None) -> list[dict[str, Any]]:
        return await self._select(None, "date.asc", session)

    async def upcoming(self, *, session: Session | None = None) -> list[dict[str, Any]]:
        return await self._select({"is_past": eq(False)}, "date.asc", session)

    async def past(self, *, session: Session | None = None) -> list[dict[str, Any]]:
        """Past events, most recent first."""
        return await self._select({"is_past": eq(True)}, "date.desc", session)

    async def search(self, query: str, *, session: Session | None = None) -> list[dict[str, Any]]:
        """Events whose title, description or location match."""
        if not query.strip():
            return await self.list_all(session=session)
        return await self._select({"or": ilike_any(query, SEARCH_COLUMNS)}, "date.asc", session)

    async def my_organized(self, session: Session) -> list[dict[str, Any]]:
        if not session.is_authenticated:
            return []
        return await self._select({"organizer_id": eq(session.user_id)}, "date.asc", session)

    async def my_registered(self, session: Session) -> list[dict[str, Any]]:
        """Events the user has registered for."""
        if not session.is_authenticated or self.remote is None:
            return []
        try:
            registrations = await self.remote.select(
                "event_registrations",
                filters={"user_id": eq(session.user_id)},
                select="event_id",
                access_token=session.access_token,
            )
            event_ids = [r["event_id"] for r in registrations if r.get("event_id")]
            if not event_ids:
                return []
            return await self.remote.select(
                "events",
                filters={"id": in_(event_ids)},
                order="date.asc",
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.info("Registered events for %s unavailable: %s", session.user_id, e)
            return []

    # -- single events ------------------------------------------------------------

    async def get(self, event_id: str, *, session: Session | None = None) -> LoadResult:
        if self.remote is None:
            return LoadResult.absent()
        try:
            record = await self.remote.get(
                "events", event_id, access_token=session.access_token if session else None
            )
        except RemoteStoreError as e:
            logger.info("Event %s unavailable: %s", event_id, e)
            return LoadResult.absent()
        return LoadResult.remote(record) if record is not None else LoadResult.absent()

    async def get_with_registration(self, session: Session, event_id: str) -> LoadResult:
        """An event plus ``is_registered`` for the session user."""
        loaded = await self.get(event_id, session=session)
        if not loaded.found:
            return loaded
        registered = await self.is_registered(session, event_id)
        return LoadResult(loaded.source, {**loaded.record, "is_registered": registered})

    async def _organized(self, session: Session, event_id: str) -> dict[str, Any] | SaveResult:
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if self.remote is None:
            return SaveResult.remote_unavailable(_OFFLINE)
        try:
            event = await self.remote.get("events", event_id, access_token=session.access_token)
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        if event is None or str(event.get("organizer_id")) != session.user_id:
            return SaveResult.not_authorized("Only the organizer can change this event")
        return event

    # -- organizing ---------------------------------------------------------------

    async def create(self, session: Session, fields: dict[str, Any]) -> SaveResult:
        """Create an event organized by the session user."""
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if not fields.get("title"):
            return SaveResult.validation_failed(FieldError("missing", "title", "Event title is required"))
        cleaned = validate_model(EventUpdate, fields)
        if isinstance(cleaned, FieldError):
            return SaveResult.validation_failed(cleaned)
        if self.remote is None:
            return SaveResult.remote_unavailable(_OFFLINE)

        try:
            created = await self.remote.insert(
                "events",
                {"is_past": False, **cleaned, "organizer_id": session.user_id},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.warning("Event creation for %s failed: %s", session.user_id, e)
            return SaveResult.remote_unavailable(str(e))
        logger.info("User %s created event %s", session.user_id, created.get("id"))
        return SaveResult.saved(created)

    async def update(self, session: Session, event_id: str, fields: dict[str, Any]) -> SaveResult:
        """Edit an event. Only the organizer may do this."""
        cleaned = validate_model(EventUpdate, fields)
        if isinstance(cleaned, FieldError):
            return SaveResult.validation_failed(cleaned)
        event = await self._organized(session, event_id)
        if isinstance(event, SaveResult):
            return event
        try:
            rows = await self.remote.update(
                "events",
                cleaned,
                filters={"id": eq(event_id), "organizer_id": eq(session.user_id)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(rows[0] if rows else {**event, **cleaned})

    async def delete(self, session: Session, event_id: str) -> SaveResult:
        event = await self._organized(session, event_id)
        if isinstance(event, SaveResult):
            return event
        try:
            await self.remote.delete(
                "events",
                filters={"id": eq(event_id), "organizer_id": eq(session.user_id)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(None)

    # -- registration -------------------------------------------------------------

    async def _registration(self, session: Session, event_id: str) -> dict[str, Any] | None:
        rows = await self.remote.select(
            "event_registrations",
            filters={"event_id": eq(event_id), "user_id": eq(session.user_id)},
            limit=1,
            access_token=session.access_token,
        )
        return rows[0] if rows else None

    async def register(self, session: Session, event_id: str) -> SaveResult:
        """Register the user. Repeats return the existing registration.

        A full event (``attendees`` at ``max_attendees``) is refused with
        VALIDATION_FAILED, kind ``event_full``.
        """
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if self.remote is None:
            return SaveResult.remote_unavailable(_OFFLINE)

        try:
            existing = await self._registration(session, event_id)
            if existing is not None:
                return SaveResult.saved(existing)

            row = await self.remote.get("events", event_id, access_token=session.access_token)
            if row is None:
                return SaveResult.validation_failed(
                    FieldError("not_found", "event_id", "Event not found")
                )
            if Event.model_validate(row).is_full:
                return SaveResult.validation_failed(
                    FieldError("event_full", "event_id", "Event is at full capacity")
                )

            created = await self.remote.insert(
                "event_registrations",
                {"event_id": event_id, "user_id": session.user_id},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.warning("Registration for %s failed: %s", event_id, e)
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(created)

    async def unregister(self, session: Session, event_id: str) -> SaveResult:
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if self.remote is None:
            return SaveResult.remote_unavailable(_OFFLINE)
        try:
            await self.remote.delete(
                "event_registrations",
                filters={"event_id": eq(event_id), "user_id": eq(session.user_id)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(None)

    async def is_registered(self, session: Session, event_id: str) -> bool:
        if not session.is_authenticated or self.remote is None:
            return False
        try:
            return await self._registration(session, event_id) is not None
        except RemoteStoreError as e:
            logger.info("Registration lookup failed: %s", e)
            return False
