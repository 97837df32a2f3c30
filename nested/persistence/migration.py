"""One-shot push of cached records to the backend.

Run explicitly by the user (e.g. ``nested migrate``) after working
offline. Records tagged ``unsynced`` are upserted; on success the
backend record replaces the cached copy, which clears the tag. There is
no background retry: a failed record stays tagged until the next run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from nested.persistence.coordinator import UNSYNCED_FLAG, PersistenceCoordinator
from nested.persistence.results import SaveStatus
from nested.remote.storage import is_data_uri
from nested.schema import ProfileUpdate, ProjectUpdate, derive_spots_left
from nested.session import Session

logger = logging.getLogger(__name__)

# Keys the backend owns or that only exist in the cache
SERVER_KEYS = frozenset(
    {"id", "created_at", "updated_at", UNSYNCED_FLAG, "team_members", "owner_id", "spots_left"}
)

# Image columns that may hold an inline data URI kept for the cache only
ASSET_KEYS = frozenset({"avatar", "icon"})


@dataclass
class MigrationReport:
    """Outcome of a migration pass."""

    profile_migrated: bool = False
    projects_migrated: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def inline_images(record: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in record.items() if k in ASSET_KEYS and is_data_uri(v)}


def writable_fields(record: dict[str, Any], model: type[BaseModel] | None = None) -> dict[str, Any]:
    """Strip server-managed keys from a cached record.

    When ``model`` is given, only keys it declares are kept. Inline
    images are dropped; they never leave the local cache.
    """
    allowed = set(model.model_fields) if model is not None else None
    return {
        k: v
        for k, v in record.items()
        if k not in SERVER_KEYS
        and (allowed is None or k in allowed)
        and not (k in ASSET_KEYS and is_data_uri(v))
    }


def _keep_inline_images(
    coordinator: PersistenceCoordinator,
    session: Session,
    key: str,
    cached: dict[str, Any],
    record: dict[str, Any] | None,
) -> None:
    inline = inline_images(cached)
    if inline and record is not None:
        coordinator.remember(session, key, {**record, **inline})


async def migrate_cache_to_remote(
    session: Session,
    profiles: PersistenceCoordinator,
    projects: PersistenceCoordinator,
) -> MigrationReport:
    """Push the user's unsynced cached profile and projects to the backend.

    Args:
        session: Authenticated user whose cache is migrated
        profiles: Coordinator bound to profiles
        projects: Coordinator bound to projects

    Returns:
        MigrationReport with per-record errors; never raises for remote
        failures
    """
    report = MigrationReport()

    if not session.is_authenticated:
        report.errors.append("Not authenticated")
        return report
    if not profiles.is_remote_configured():
        report.errors.append("Backend is not configured")
        return report

    profile = profiles.cached(session, session.user_id)
    if profile is not None and profile.get(UNSYNCED_FLAG):
        result = await profiles.save(session, session.user_id, writable_fields(profile, ProfileUpdate))
        if result.status is SaveStatus.SAVED:
            report.profile_migrated = True
            _keep_inline_images(profiles, session, session.user_id, profile, result.record)
        else:
            report.errors.append(f"profile: {result.status.value} ({result.message or result.error_kind})")

    for item in projects.cached_all(session):
        if not item.get(UNSYNCED_FLAG) or not item.get("id"):
            continue
        project_id = str(item["id"])
        fields = writable_fields(item, ProjectUpdate)
        result = await projects.save(
            session,
            project_id,
            fields,
            system_fields={
                "owner_id": session.user_id,
                "spots_left": derive_spots_left(fields.get("roles")),
            },
        )
        if result.status is SaveStatus.SAVED:
            report.projects_migrated += 1
            _keep_inline_images(projects, session, project_id, item, result.record)
        else:
            report.errors.append(
                f"project {project_id}: {result.status.value} ({result.message or result.error_kind})"
            )

    logger.info(
        "Migration for %s: profile=%s projects=%d errors=%d",
        session.user_id,
        report.profile_migrated,
        report.projects_migrated,
        len(report.errors),
    )
    return report
