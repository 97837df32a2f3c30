"""Unit tests for the dual-write persistence coordinator.

Covers write ordering, validation before I/O, conflict isolation,
the local fallback when the backend is down or unconfigured, and read
precedence.
"""

import pytest

from nested.cache import PROFILE_NAMESPACE, PROJECTS_NAMESPACE, user_key
from nested.persistence import (
    PROFILE_BINDING,
    PROJECT_BINDING,
    UNSYNCED_FLAG,
    LoadSource,
    PersistenceCoordinator,
    SaveStatus,
)
from nested.session import ANONYMOUS, Session


@pytest.fixture
def profiles(remote, cache):
    return PersistenceCoordinator(PROFILE_BINDING, remote, cache)


@pytest.fixture
def local_profiles(cache):
    return PersistenceCoordinator(PROFILE_BINDING, None, cache)


@pytest.fixture
def projects(remote, cache):
    return PersistenceCoordinator(PROJECT_BINDING, remote, cache)


def _profile_key(session):
    return user_key(PROFILE_NAMESPACE, session.user_id)


@pytest.mark.asyncio
class TestSave:
    async def test_requires_session(self, profiles, remote):
        result = await profiles.save(ANONYMOUS, "user-1", {"bio": "hi"})
        assert result.status is SaveStatus.NOT_AUTHENTICATED
        assert remote.calls == []

    async def test_saved_and_mirrored(self, profiles, remote, cache, session):
        result = await profiles.save(session, session.user_id, {"bio": "hello"})

        assert result.status is SaveStatus.SAVED
        assert result.synced
        assert remote.rows("profiles")["user-1"]["bio"] == "hello"
        assert cache.read(_profile_key(session)) == result.record
        assert UNSYNCED_FLAG not in result.record

    @pytest.mark.parametrize(
        ("fields", "kind", "field"),
        [
            ({"username": "ab"}, "too_short", "username"),
            ({"username": "admin"}, "reserved", "username"),
            ({"email": "ada@gmail.com"}, "non_edu_domain", "email"),
            ({"skills": [str(i) for i in range(8)]}, "too_long", "skills"),
            ({"bio": "x" * 161}, "string_too_long", "bio"),
            ({"looking_for": ["world-domination"]}, "enum", "looking_for"),
            ({"unknown_field": 1}, "extra_forbidden", "unknown_field"),
        ],
    )
    async def test_validation_fails_before_any_io(self, profiles, remote, cache, session, fields, kind, field):
        result = await profiles.save(session, session.user_id, fields)

        assert result.status is SaveStatus.VALIDATION_FAILED
        assert result.error_kind == kind
        assert result.field == field
        assert remote.calls == []
        assert cache.read(_profile_key(session)) is None

    async def test_normalizes_username_and_email(self, profiles, remote, session):
        result = await profiles.save(session, session.user_id, {"username": " Ada.L ", "email": "Ada@NYU.edu"})

        assert result.record["username"] == "ada.l"
        assert result.record["email"] == "ada@nyu.edu"

    async def test_idempotent(self, profiles, remote, cache, session):
        first = await profiles.save(session, session.user_id, {"bio": "same"})
        second = await profiles.save(session, session.user_id, {"bio": "same"})

        assert first.record == second.record
        assert len(remote.rows("profiles")) == 1
        assert cache.read(_profile_key(session)) == second.record

    async def test_partial_writes_merge(self, profiles, session):
        await profiles.save(session, session.user_id, {"bio": "hi"})
        result = await profiles.save(session, session.user_id, {"university": "Pace University"})
        assert result.record["bio"] == "hi"
        assert result.record["university"] == "Pace University"

    async def test_conflict_leaves_cache_untouched(self, profiles, remote, cache, session):
        remote.rows("profiles")["someone-else"] = {"id": "someone-else", "username": "ada"}
        await profiles.save(session, session.user_id, {"bio": "before"})
        before = cache.read(_profile_key(session))

        result = await profiles.save(session, session.user_id, {"username": "ADA"})

        assert result.status is SaveStatus.CONFLICT
        assert result.field == "username"
        assert result.error_kind == "username_taken"
        assert cache.read(_profile_key(session)) == before

    async def test_transport_failure_saves_locally(self, profiles, remote, cache, session, offline):
        remote.fail = offline

        result = await profiles.save(session, session.user_id, {"bio": "offline"})

        assert result.status is SaveStatus.SAVED_LOCALLY_ONLY
        assert result.ok and not result.synced
        cached = cache.read(_profile_key(session))
        assert cached["bio"] == "offline"
        assert cached[UNSYNCED_FLAG] is True
        assert cached["id"] == session.user_id

    async def test_server_error_saves_locally(self, profiles, remote, session, server_error):
        remote.fail = server_error
        result = await profiles.save(session, session.user_id, {"bio": "x"})
        assert result.status is SaveStatus.SAVED_LOCALLY_ONLY

    async def test_local_fallback_merges_over_cached_record(self, profiles, remote, session, offline):
        await profiles.save(session, session.user_id, {"bio": "hi", "university": "Pace University"})
        remote.fail = offline

        result = await profiles.save(session, session.user_id, {"bio": "changed"})

        assert result.record["university"] == "Pace University"
        assert result.record["bio"] == "changed"

    async def test_unconfigured_backend_never_attempts_io(self, local_profiles, cache, session):
        result = await local_profiles.save(session, session.user_id, {"bio": "local"})

        assert result.status is SaveStatus.SAVED_LOCALLY_ONLY
        assert cache.read(_profile_key(session))["bio"] == "local"
        assert local_profiles.is_remote_configured() is False

    async def test_save_local_only_skips_backend(self, profiles, remote, cache, session):
        result = await profiles.save_local_only(session, session.user_id, {"avatar": "data:image/png;base64,AA=="})

        assert result.status is SaveStatus.SAVED_LOCALLY_ONLY
        assert remote.calls == []
        assert cache.read(_profile_key(session))["avatar"].startswith("data:")

    async def test_system_fields_bypass_validation(self, projects, remote, session):
        result = await projects.save(
            session,
            "p1",
            {"name": "Nest"},
            system_fields={"owner_id": session.user_id, "spots_left": 2},
        )
        assert result.record["owner_id"] == session.user_id
        assert result.record["spots_left"] == 2

    async def test_caller_cannot_set_spots_left(self, projects, remote, session):
        result = await projects.save(session, "p1", {"name": "Nest", "spots_left": 99})
        assert result.status is SaveStatus.VALIDATION_FAILED
        assert result.field == "spots_left"
        assert remote.calls == []


@pytest.mark.asyncio
class TestLoad:
    async def test_remote_wins_over_stale_cache(self, profiles, remote, cache, session):
        cache.write(_profile_key(session), {"id": session.user_id, "bio": "stale"})
        remote.rows("profiles")[session.user_id] = {"id": session.user_id, "bio": "fresh"}

        result = await profiles.load(session, session.user_id)

        assert result.source is LoadSource.REMOTE
        assert result.record["bio"] == "fresh"
        assert cache.read(_profile_key(session))["bio"] == "fresh"

    async def test_missing_remote_falls_back_to_cache(self, profiles, cache, session):
        cache.write(_profile_key(session), {"id": session.user_id, "bio": "cached"})
        result = await profiles.load(session, session.user_id)
        assert result.source is LoadSource.CACHE
        assert result.record["bio"] == "cached"

    async def test_remote_error_falls_back_to_cache(self, profiles, remote, cache, session, offline):
        cache.write(_profile_key(session), {"id": session.user_id, "bio": "cached"})
        remote.fail = offline
        result = await profiles.load(session, session.user_id)
        assert result.source is LoadSource.CACHE

    async def test_undecodable_cache_reads_as_absent(self, profiles, remote, cache, session, offline):
        cache.write(_profile_key(session), {"id": session.user_id})
        cache._path(_profile_key(session)).write_bytes(b"\xff\xfe{not utf8")
        remote.fail = offline

        loaded = await profiles.load(session, session.user_id)

        assert loaded.source is LoadSource.ABSENT

    async def test_absent(self, profiles, session):
        result = await profiles.load(session, session.user_id)
        assert result.source is LoadSource.ABSENT
        assert not result.found

    async def test_other_users_record_not_mirrored(self, profiles, remote, cache, session, other_session):
        remote.rows("profiles")[other_session.user_id] = {"id": other_session.user_id, "bio": "theirs"}

        result = await profiles.load(session, other_session.user_id)

        assert result.source is LoadSource.REMOTE
        assert cache.read(_profile_key(session)) is None

    async def test_cache_is_per_user(self, local_profiles, session, other_session):
        await local_profiles.save(session, session.user_id, {"bio": "mine"})
        result = await local_profiles.load(other_session, other_session.user_id)
        assert result.source is LoadSource.ABSENT


@pytest.mark.asyncio
class TestScenarios:
    async def test_fresh_user_save_then_load(self, profiles, remote, cache, session):
        assert cache.keys() == []

        saved = await profiles.save(session, session.user_id, {"university": "NYU"})
        loaded = await profiles.load(session, session.user_id)

        assert saved.status is SaveStatus.SAVED
        assert loaded.source is LoadSource.REMOTE
        assert loaded.record["university"] == "NYU"
        assert loaded.record["id"] == session.user_id

    async def test_recovery_needs_one_explicit_save(self, profiles, remote, session, offline):
        remote.fail = offline
        first = await profiles.save(session, session.user_id, {"bio": "written offline"})
        loaded = await profiles.load(session, session.user_id)
        assert first.status is SaveStatus.SAVED_LOCALLY_ONLY
        assert loaded.record["bio"] == "written offline"

        remote.fail = None
        remote.calls.clear()
        assert remote.rows("profiles") == {}

        retried = await profiles.save(session, session.user_id, {"bio": "written offline"})

        assert retried.status is SaveStatus.SAVED
        assert remote.calls == [("upsert", "profiles")]

    async def test_reserved_username_never_reaches_backend(self, profiles, remote, session):
        result = await profiles.save(session, session.user_id, {"username": "nested"})

        assert result.status is SaveStatus.VALIDATION_FAILED
        assert result.error_kind == "reserved"
        assert remote.calls == []

    async def test_offline_save_then_offline_load(self, profiles, remote, session, offline):
        remote.fail = offline
        saved = await profiles.save(session, session.user_id, {"bio": "written offline"})
        loaded = await profiles.load(session, session.user_id)

        assert saved.status is SaveStatus.SAVED_LOCALLY_ONLY
        assert loaded.source is LoadSource.CACHE
        assert loaded.record["bio"] == "written offline"
        assert loaded.unsynced

    async def test_username_claim_race(self, remote, cache, session, other_session):
        coordinator = PersistenceCoordinator(PROFILE_BINDING, remote, cache)

        first = await coordinator.save(session, session.user_id, {"username": "ada"})
        second = await coordinator.save(other_session, other_session.user_id, {"username": "Ada"})

        assert first.status is SaveStatus.SAVED
        assert second.status is SaveStatus.CONFLICT
        assert cache.read(user_key(PROFILE_NAMESPACE, other_session.user_id)) is None

    async def test_back_online_remote_replaces_local_copy(self, profiles, remote, cache, session, offline):
        remote.fail = offline
        await profiles.save(session, session.user_id, {"bio": "offline"})
        remote.fail = None
        remote.rows("profiles")[session.user_id] = {"id": session.user_id, "bio": "server"}

        loaded = await profiles.load(session, session.user_id)

        assert loaded.source is LoadSource.REMOTE
        assert loaded.record == {"id": session.user_id, "bio": "server"}
        assert not loaded.unsynced


@pytest.mark.asyncio
class TestCollections:
    async def test_project_list_cache_keeps_one_copy_per_record(self, projects, cache, session):
        system = {"owner_id": session.user_id, "spots_left": 0}
        await projects.save(session, "p1", {"name": "One"}, system_fields=system)
        await projects.save(session, "p1", {"name": "One again"}, system_fields=system)
        await projects.save(session, "p2", {"name": "Two"}, system_fields=system)

        items = cache.read(user_key(PROJECTS_NAMESPACE, session.user_id))
        assert sorted(i["id"] for i in items) == ["p1", "p2"]
        assert projects.cached(session, "p1")["name"] == "One again"

    async def test_load_owned_keeps_unsynced_local_records(self, projects, remote, session, offline):
        system = {"owner_id": session.user_id, "spots_left": 0}
        await projects.save(session, "p1", {"name": "Synced"}, system_fields=system)
        remote.fail = offline
        await projects.save(session, "p2", {"name": "Local"}, system_fields=system)
        remote.fail = None

        result = await projects.load_owned(session)

        assert result.source is LoadSource.REMOTE
        assert {p["id"] for p in result.record} == {"p1", "p2"}

    async def test_load_owned_falls_back_to_cache(self, projects, remote, session, offline):
        await projects.save(session, "p1", {"name": "A"}, system_fields={"owner_id": session.user_id})
        remote.fail = offline
        result = await projects.load_owned(session)
        assert result.source is LoadSource.CACHE
        assert [p["id"] for p in result.record] == ["p1"]

    async def test_delete_removes_cached_copy(self, projects, remote, session):
        await projects.save(session, "p1", {"name": "A"}, system_fields={"owner_id": session.user_id})
        result = await projects.delete(session, "p1")
        assert result.status is SaveStatus.SAVED
        assert projects.cached(session, "p1") is None
        assert remote.rows("projects") == {}

    async def test_delete_does_not_fall_back(self, projects, remote, session, offline):
        await projects.save(session, "p1", {"name": "A"}, system_fields={"owner_id": session.user_id})
        remote.fail = offline
        result = await projects.delete(session, "p1")
        assert result.status is SaveStatus.REMOTE_UNAVAILABLE
        assert projects.cached(session, "p1") is not None

    async def test_delete_local_only(self, cache, session):
        coordinator = PersistenceCoordinator(PROJECT_BINDING, None, cache)
        await coordinator.save(session, "p1", {"name": "A"}, system_fields={"owner_id": session.user_id})
        result = await coordinator.delete(session, "p1")
        assert result.status is SaveStatus.SAVED_LOCALLY_ONLY
        assert coordinator.cached(session, "p1") is None


def test_sessions_compare_by_value():
    assert Session(user_id="a") == Session(user_id="a")
    assert not ANONYMOUS.is_authenticated
