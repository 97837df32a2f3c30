"""Project listings and team membership."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from nested.cache import LocalCacheStore
from nested.exceptions import RemoteStoreError
from nested.persistence import (
    PROJECT_BINDING,
    AssetCoordinator,
    AssetResult,
    AssetStatus,
    FieldError,
    LoadResult,
    PersistenceCoordinator,
    SaveResult,
)
from nested.remote import Asset, AssetKind, RemoteStoreClient, eq, get_remote_client, ilike_any, in_
from nested.schema import MemberStatus, derive_spots_left
from nested.session import Session
from nested.settings import Settings, get_settings

logger = logging.getLogger(__name__)

WITH_MEMBERS = "*,team_members(*)"
SEARCH_COLUMNS = ("name", "description", "tagline")


@dataclass(frozen=True)
class Membership:
    joined: bool
    status: MemberStatus | None = None


def approved_members_only(project: dict[str, Any]) -> dict[str, Any]:
    """Hide pending join requests from a project read."""
    members = project.get("team_members")
    if isinstance(members, list):
        project = {
            **project,
            "team_members": [m for m in members if m.get("status") == MemberStatus.APPROVED.value],
        }
    return project


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


class ProjectService:
    """Create, edit, discover and join projects.

    Args:
        remote: Backend client, or None for local-only mode
        cache: Local cache store
        settings: Settings override
    """

    def __init__(
        self,
        remote: RemoteStoreClient | None,
        cache: LocalCacheStore,
        settings: Settings | None = None,
    ) -> None:
        self.remote = remote
        self.cache = cache
        self.settings = settings or get_settings()
        self.coordinator = PersistenceCoordinator(PROJECT_BINDING, remote, cache)
        self.assets = AssetCoordinator(remote, self.settings)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ProjectService:
        settings = settings or get_settings()
        return cls(get_remote_client(settings), LocalCacheStore(settings.cache_dir), settings)

    # -- owned projects -----------------------------------------------------------

    async def create(self, session: Session, fields: dict[str, Any]) -> SaveResult:
        """Create a project owned by the session user.

        The id and owner are assigned here; ``spots_left`` is derived from
        ``roles``.
        """
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if not fields.get("name"):
            return SaveResult.validation_failed(FieldError("missing", "name", "Project name is required"))

        project_id = str(uuid.uuid4())
        return await self.coordinator.save(
            session,
            project_id,
            fields,
            system_fields={
                "owner_id": session.user_id,
                "spots_left": derive_spots_left(fields.get("roles")),
            },
        )

    async def _owned(self, session: Session, project_id: str) -> dict[str, Any] | SaveResult:
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        loaded = await self.coordinator.load(session, project_id)
        if not loaded.found or not PROJECT_BINDING.owns(session, loaded.record):
            return SaveResult.not_authorized()
        return loaded.record

    async def update(self, session: Session, project_id: str, fields: dict[str, Any]) -> SaveResult:
        """Edit a project. Only the owner may do this."""
        owned = await self._owned(session, project_id)
        if isinstance(owned, SaveResult):
            return owned

        # Columns the insert half of the upsert requires
        system_fields: dict[str, Any] = {"owner_id": session.user_id}
        if "name" not in fields and owned.get("name"):
            system_fields["name"] = owned["name"]
        if "roles" in fields:
            system_fields["spots_left"] = derive_spots_left(fields["roles"])

        return await self.coordinator.save(session, project_id, fields, system_fields=system_fields)

    async def load(self, session: Session, project_id: str) -> LoadResult:
        loaded = await self.coordinator.load(session, project_id)
        if isinstance(loaded.record, dict):
            return LoadResult(loaded.source, approved_members_only(loaded.record))
        return loaded

    async def delete(self, session: Session, project_id: str) -> SaveResult:
        """Delete a project. Only the owner may do this."""
        owned = await self._owned(session, project_id)
        if isinstance(owned, SaveResult):
            return owned
        return await self.coordinator.delete(session, project_id, owner_id=eq(session.user_id))

    async def list_mine(self, session: Session) -> LoadResult:
        loaded = await self.coordinator.load_owned(session, select=WITH_MEMBERS, order="created_at.desc")
        if isinstance(loaded.record, list):
            return LoadResult(loaded.source, [approved_members_only(p) for p in loaded.record])
        return loaded

    async def update_icon(
        self, session: Session, project_id: str, asset: Asset | None
    ) -> tuple[AssetResult, SaveResult | None]:
        """Upload a project icon and point the project at it.

        Inline fallbacks are kept in the local cache only.
        """
        owned = await self._owned(session, project_id)
        if isinstance(owned, SaveResult):
            return AssetResult(AssetStatus.REJECTED, error_kind=owned.status.value), owned

        stored = await self.assets.save_asset(session, project_id, asset, AssetKind.PROJECT_ICON)
        if stored.status is AssetStatus.REJECTED:
            return stored, None
        if stored.status is AssetStatus.INLINED:
            saved = await self.coordinator.save_local_only(session, project_id, {"icon": stored.url})
        else:
            saved = await self.update(session, project_id, {"icon": stored.url})
        return stored, saved

    # -- discovery ----------------------------------------------------------------

    async def discover(
        self,
        category: str | None = None,
        *,
        limit: int | None = None,
        session: Session | None = None,
    ) -> list[dict[str, Any]]:
        """Published projects, newest first. Empty in local-only mode."""
        if self.remote is None:
            return []
        filters = {"publish_to_discover": eq(True)}
        if category:
            filters["category"] = eq(category)
        try:
            rows = await self.remote.select(
                "projects",
                filters=filters,
                select=WITH_MEMBERS,
                order="created_at.desc",
                limit=limit,
                access_token=session.access_token if session else None,
            )
        except RemoteStoreError as e:
            logger.info("Project discovery failed: %s", e)
            return []
        return [approved_members_only(row) for row in rows]

    async def search(self, query: str, *, session: Session | None = None) -> list[dict[str, Any]]:
        """Published projects whose name, description or tagline match."""
        if not query.strip():
            return await self.discover(session=session)
        if self.remote is None:
            return []
        try:
            rows = await self.remote.select(
                "projects",
                filters={"publish_to_discover": eq(True), "or": ilike_any(query, SEARCH_COLUMNS)},
                select=WITH_MEMBERS,
                order="created_at.desc",
                access_token=session.access_token if session else None,
            )
        except RemoteStoreError as e:
            logger.info("Project search failed: %s", e)
            return []
        return [approved_members_only(row) for row in rows]

    # -- membership ---------------------------------------------------------------

    async def _profile_summary(self, session: Session) -> dict[str, Any]:
        try:
            profile = await self.remote.get(
                "profiles",
                session.user_id,
                select="first_name,last_name,avatar,university",
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.info("Profile lookup for join request failed: %s", e)
            profile = None
        profile = profile or {}
        name = f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
        return {
            "name": name or "Team Member",
            "school": profile.get("university"),
            "image": profile.get("avatar"),
        }

    async def _membership_row(self, session: Session, project_id: str) -> dict[str, Any] | None:
        rows = await self.remote.select(
            "team_members",
            filters={"project_id": eq(project_id), "user_id": eq(session.user_id)},
            limit=1,
            access_token=session.access_token,
        )
        return rows[0] if rows else None

    async def join(
        self,
        session: Session,
        project_id: str,
        role: str | None = None,
        message: str | None = None,
    ) -> SaveResult:
        """Ask to join a project. Repeated requests return the existing one."""
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if not _is_uuid(project_id):
            return SaveResult.validation_failed(
                FieldError("invalid_project_id", "project_id", "Invalid project ID")
            )
        if self.remote is None:
            return SaveResult.remote_unavailable("Joining needs the backend")

        try:
            existing = await self._membership_row(session, project_id)
            if existing is not None:
                return SaveResult.saved(existing)

            row = {
                "project_id": project_id,
                "user_id": session.user_id,
                "role": role,
                "status": MemberStatus.PENDING.value,
                **await self._profile_summary(session),
            }
            if message:
                row["message"] = message
            created = await self.remote.insert("team_members", row, access_token=session.access_token)
        except RemoteStoreError as e:
            logger.warning("Join request for %s failed: %s", project_id, e)
            return SaveResult.remote_unavailable(str(e))

        logger.info("User %s requested to join %s", session.user_id, project_id)
        return SaveResult.saved(created)

    async def leave(self, session: Session, project_id: str) -> SaveResult:
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if self.remote is None:
            return SaveResult.remote_unavailable("Leaving needs the backend")
        try:
            await self.remote.delete(
                "team_members",
                filters={"project_id": eq(project_id), "user_id": eq(session.user_id)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(None)

    async def has_joined(self, session: Session, project_id: str) -> Membership:
        if not session.is_authenticated or self.remote is None or not _is_uuid(project_id):
            return Membership(False)
        try:
            row = await self._membership_row(session, project_id)
        except RemoteStoreError as e:
            logger.info("Membership lookup failed: %s", e)
            return Membership(False)
        if row is None:
            return Membership(False)
        return Membership(True, MemberStatus(row.get("status", MemberStatus.PENDING.value)))

    async def pending_requests(self, session: Session, project_id: str) -> list[dict[str, Any]]:
        """Join requests awaiting the owner's decision."""
        if self.remote is None:
            return []
        owned = await self._owned(session, project_id)
        if isinstance(owned, SaveResult):
            return []
        try:
            return await self.remote.select(
                "team_members",
                filters={"project_id": eq(project_id), "status": eq(MemberStatus.PENDING.value)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.info("Pending requests for %s unavailable: %s", project_id, e)
            return []

    async def _owned_request(self, session: Session, member_id: str) -> dict[str, Any] | SaveResult:
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        if self.remote is None:
            return SaveResult.remote_unavailable("Managing requests needs the backend")
        try:
            member = await self.remote.get("team_members", member_id, access_token=session.access_token)
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        if member is None:
            return SaveResult.not_authorized("Request not found")
        owned = await self._owned(session, str(member.get("project_id")))
        if isinstance(owned, SaveResult):
            return owned
        return member

    async def approve_request(self, session: Session, member_id: str) -> SaveResult:
        """Approve a pending join request on a project the user owns."""
        member = await self._owned_request(session, member_id)
        if isinstance(member, SaveResult):
            return member
        try:
            rows = await self.remote.update(
                "team_members",
                {"status": MemberStatus.APPROVED.value},
                filters={"id": eq(member_id)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(rows[0] if rows else {**member, "status": MemberStatus.APPROVED.value})

    async def reject_request(self, session: Session, member_id: str) -> SaveResult:
        """Reject (delete) a join request on a project the user owns."""
        member = await self._owned_request(session, member_id)
        if isinstance(member, SaveResult):
            return member
        try:
            await self.remote.delete(
                "team_members",
                filters={"id": eq(member_id)},
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            return SaveResult.remote_unavailable(str(e))
        return SaveResult.saved(None)

    async def list_joined(self, session: Session) -> list[dict[str, Any]]:
        """Projects the user is an approved member of."""
        if not session.is_authenticated or self.remote is None:
            return []
        try:
            memberships = await self.remote.select(
                "team_members",
                filters={"user_id": eq(session.user_id), "status": eq(MemberStatus.APPROVED.value)},
                select="project_id",
                access_token=session.access_token,
            )
            project_ids = [m["project_id"] for m in memberships if m.get("project_id")]
            if not project_ids:
                return []
            rows = await self.remote.select(
                "projects",
                filters={"id": in_(project_ids)},
                select=WITH_MEMBERS,
                access_token=session.access_token,
            )
        except RemoteStoreError as e:
            logger.info("Joined projects for %s unavailable: %s", session.user_id, e)
            return []
        return [approved_members_only(row) for row in rows]
