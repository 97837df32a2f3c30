"""Profile operations for the signed-in student."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from nested.cache import PROFILE_NAMESPACE, PROJECTS_NAMESPACE, LocalCacheStore, user_key
from nested.exceptions import RemoteStoreError
from nested.persistence import (
    PROFILE_BINDING,
    AssetCoordinator,
    AssetResult,
    AssetStatus,
    FieldError,
    LoadResult,
    PersistenceCoordinator,
    SaveResult,
)
from nested.remote import Asset, AssetKind, RemoteStoreClient, eq, get_remote_client
from nested.schema import Profile
from nested.session import Session
from nested.settings import Settings, get_settings
from nested.validation import (
    EmailErrorKind,
    UsernameError,
    email_error_message,
    username_error_message,
    validate_edu_email,
    validate_username_format,
)

logger = logging.getLogger(__name__)


class Availability(str, Enum):
    AVAILABLE = "available"
    TAKEN = "taken"
    INVALID = "invalid"
    # Backend not configured or not reachable
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class UsernameCheck:
    status: Availability
    error: UsernameError | None = None
    message: str | None = None

    @property
    def available(self) -> bool:
        return self.status is Availability.AVAILABLE


@dataclass(frozen=True)
class EmailCheck:
    status: Availability
    error: EmailErrorKind | None = None
    message: str | None = None

    @property
    def available(self) -> bool:
        return self.status is Availability.AVAILABLE


class ProfileService:
    """Load, save and manage the current user's profile.

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
        self.coordinator = PersistenceCoordinator(PROFILE_BINDING, remote, cache)
        self.assets = AssetCoordinator(remote, self.settings)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ProfileService:
        settings = settings or get_settings()
        return cls(get_remote_client(settings), LocalCacheStore(settings.cache_dir), settings)

    async def load(self, session: Session) -> LoadResult:
        if not session.is_authenticated:
            return LoadResult.absent()
        return await self.coordinator.load(session, session.user_id)

    async def save(self, session: Session, fields: dict[str, Any]) -> SaveResult:
        if not session.is_authenticated:
            return SaveResult.not_authenticated()
        return await self.coordinator.save(session, session.user_id, fields)

    async def update_avatar(
        self, session: Session, asset: Asset | None
    ) -> tuple[AssetResult, SaveResult | None]:
        """Upload a new avatar and point the profile at it.

        When the upload falls back to a data URI the profile is updated
        in the local cache only, so the inline image is never pushed to
        the backend by this call.

        Returns:
            The asset outcome, and the profile save outcome (None when the
            asset was rejected)
        """
        if not session.is_authenticated:
            rejected = AssetResult(AssetStatus.REJECTED, error_kind="not_authenticated")
            return rejected, SaveResult.not_authenticated()

        stored = await self.assets.save_asset(session, session.user_id, asset, AssetKind.AVATAR)
        if stored.status is AssetStatus.REJECTED:
            return stored, None
        if stored.status is AssetStatus.INLINED:
            saved = await self.coordinator.save_local_only(
                session, session.user_id, {"avatar": stored.url}
            )
        else:
            saved = await self.coordinator.save(session, session.user_id, {"avatar": stored.url})
        return stored, saved

    async def complete_onboarding(self, session: Session) -> SaveResult:
        """Mark onboarding done once university, fields and looking_for are set."""
        if not session.is_authenticated:
            return SaveResult.not_authenticated()

        loaded = await self.load(session)
        gaps = ["university", "fields", "looking_for"]
        if loaded.found:
            try:
                gaps = Profile.model_validate({"id": session.user_id, **loaded.record}).onboarding_gaps()
            except PydanticValidationError as e:
                logger.warning("Stored profile for %s is invalid: %s", session.user_id, e)

        if gaps:
            return SaveResult.validation_failed(
                FieldError(
                    "onboarding_incomplete",
                    gaps[0],
                    f"Complete these before finishing onboarding: {', '.join(gaps)}",
                )
            )
        return await self.coordinator.save(session, session.user_id, {"onboarding_completed": True})

    async def has_completed_onboarding(self, session: Session) -> bool:
        loaded = await self.load(session)
        return loaded.found and bool(loaded.record.get("onboarding_completed"))

    async def check_username(self, username: str | None) -> UsernameCheck:
        """Format rules first, then the backend lookup.

        Reserved or malformed names are answered locally without any
        network call.
        """
        error = validate_username_format(username)
        if error is not None:
            return UsernameCheck(Availability.INVALID, error, username_error_message(error))

        if self.remote is None:
            return UsernameCheck(Availability.UNKNOWN, message="Availability can't be checked offline")
        try:
            available = await self.remote.is_username_available(username)
        except RemoteStoreError as e:
            logger.info("Username lookup failed: %s", e)
            return UsernameCheck(Availability.UNKNOWN, message="Availability can't be checked right now")

        if available:
            return UsernameCheck(Availability.AVAILABLE)
        return UsernameCheck(Availability.TAKEN, message="Username is already taken")

    async def check_email(self, email: str | None) -> EmailCheck:
        """Campus email rules first, then whether an account already uses it."""
        result = validate_edu_email(email)
        if not result.valid:
            return EmailCheck(
                Availability.INVALID,
                result.error_kind,
                email_error_message(email, result.error_kind),
            )

        if self.remote is None:
            return EmailCheck(Availability.UNKNOWN)
        try:
            exists = await self.remote.check_email_exists(email)
        except RemoteStoreError as e:
            logger.info("Email lookup failed: %s", e)
            return EmailCheck(Availability.UNKNOWN)

        if exists:
            return EmailCheck(Availability.TAKEN, message="An account with this email already exists")
        return EmailCheck(Availability.AVAILABLE)

    async def delete_account(self, session: Session) -> SaveResult:
        """Delete the user's memberships, owned projects and profile.

        Rows are removed in dependency order. The user's cache entries are
        cleared only after the backend confirms, or straight away in
        local-only mode.
        """
        if not session.is_authenticated:
            return SaveResult.not_authenticated()

        if self.remote is not None:
            uid = session.user_id
            token = session.access_token
            try:
                await self.remote.delete("team_members", filters={"user_id": eq(uid)}, access_token=token)
                await self.remote.delete("projects", filters={"owner_id": eq(uid)}, access_token=token)
                await self.remote.delete("profiles", filters={"id": eq(uid)}, access_token=token)
            except RemoteStoreError as e:
                logger.warning("Account deletion for %s failed: %s", uid, e)
                return SaveResult.remote_unavailable(str(e))

        self.cache.remove(user_key(PROFILE_NAMESPACE, session.user_id))
        self.cache.remove(user_key(PROJECTS_NAMESPACE, session.user_id))
        logger.info("Deleted account data for %s", session.user_id)

        if self.remote is None:
            return SaveResult.saved_locally(None)
        return SaveResult.saved(None)

    async def list_profiles(
        self,
        university: str | None = None,
        limit: int = 50,
        offset: int = 0,
        *,
        session: Session | None = None,
    ) -> list[dict[str, Any]]:
        """Onboarded profiles, newest first. Empty in local-only mode."""
        if self.remote is None:
            return []
        filters = {"onboarding_completed": eq(True)}
        if university:
            filters["university"] = eq(university)
        try:
            return await self.remote.select(
                "profiles",
                filters=filters,
                order="created_at.desc",
                limit=limit,
                offset=offset,
                access_token=session.access_token if session else None,
            )
        except RemoteStoreError as e:
            logger.info("Profile listing failed: %s", e)
            return []
