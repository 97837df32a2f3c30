"""Shared test fixtures for Nested.

Provides settings, a temporary cache, sessions and an in-memory
stand-in for the hosted backend.
"""

import copy
from pathlib import Path
from typing import Any

import pytest
from pydantic import SecretStr

from nested.exceptions import RemoteConstraintError, RemoteStoreError, RemoteTransportError
from nested.session import Session
from nested.settings import Settings

HOOK_SECRET = "v1,whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"


# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with a configured backend and a per-test cache dir."""
    return Settings(
        environment="testing",
        debug=True,
        supabase_url="https://abcdefgh.supabase.co",
        supabase_anon_key=SecretStr("anon-key"),
        supabase_service_role_key=SecretStr("service-key"),
        cache_dir=tmp_path / "cache",
        resend_api_key=SecretStr("re_test"),
        send_email_hook_secret=SecretStr(HOOK_SECRET),
        autosave_debounce_seconds=0.01,
    )


@pytest.fixture
def mock_settings(test_settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Make get_settings() return test settings everywhere."""
    import nested.settings

    nested.settings.get_settings.cache_clear()
    monkeypatch.setattr(nested.settings, "get_settings", lambda: test_settings)
    for module in (
        "nested.cache.local_store",
        "nested.remote.client",
        "nested.remote.storage",
        "nested.persistence.assets",
        "nested.services.profiles",
        "nested.services.projects",
        "nested.services.events",
        "nested.services.nests",
        "nested.email.validation",
        "nested.email.templates",
        "nested.email.rate_limit",
        "nested.email.sender",
        "nested.email.hook",
        "nested.logging_config",
        "nested.api.main",
        "nested.api.rate_limit",
        "nested.api.deps",
        "nested.api.routes.system",
        "nested.cli.main",
    ):
        monkeypatch.setattr(f"{module}.get_settings", lambda: test_settings, raising=False)
    return test_settings


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Drop cached clients and settings between tests."""
    from nested.remote import reset_remote_client
    from nested.settings import get_settings

    yield
    reset_remote_client()
    get_settings.cache_clear()


# =============================================================================
# SESSIONS AND CACHE
# =============================================================================


@pytest.fixture
def session() -> Session:
    return Session(user_id="user-1", access_token="token-1", email="ada@nyu.edu")


@pytest.fixture
def other_session() -> Session:
    return Session(user_id="user-2", access_token="token-2")


@pytest.fixture
def cache(tmp_path: Path):
    from nested.cache import LocalCacheStore

    return LocalCacheStore(tmp_path / "cache")


# =============================================================================
# BACKEND
# =============================================================================


class InMemoryRemote:
    """Table-level stand-in for RemoteStoreClient.

    Rows live in ``tables``; ``unique`` lists case-insensitive unique
    columns per table. Set ``fail`` to an exception instance to make
    every call raise it. ``calls`` records (method, table) pairs.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.unique: dict[str, tuple[str, ...]] = {"profiles": ("username", "email")}
        self.fail: Exception | None = None
        self.calls: list[tuple[str, str]] = []
        self.users: dict[str, dict[str, Any]] = {}
        self.uploads: list[tuple[str, str]] = []
        self.base_url = "https://abcdefgh.supabase.co"

    def _enter(self, method: str, table: str) -> None:
        self.calls.append((method, table))
        if self.fail is not None:
            raise self.fail

    def rows(self, table: str) -> dict[str, dict[str, Any]]:
        return self.tables.setdefault(table, {})

    @staticmethod
    def _matches(row: dict[str, Any], filters: dict[str, str] | None) -> bool:
        for column, expr in (filters or {}).items():
            if column == "or":
                continue
            op, _, value = expr.partition(".")
            actual = row.get(column)
            if op == "eq":
                if isinstance(actual, bool):
                    actual = str(actual).lower()
                if str(actual) != value:
                    return False
            elif op == "in":
                if str(actual) not in value.strip("()").split(","):
                    return False
        return True

    async def get(self, table, key, *, key_column="id", select="*", access_token=None):
        self._enter("get", table)
        for row in self.rows(table).values():
            if str(row.get(key_column)) == str(key):
                return copy.deepcopy(row)
        return None

    async def select(self, table, *, filters=None, select="*", order=None, limit=None, offset=None,
                     access_token=None):
        self._enter("select", table)
        found = [copy.deepcopy(r) for r in self.rows(table).values() if self._matches(r, filters)]
        if "team_members(" in select:
            members = list(self.rows("team_members").values())
            for row in found:
                row["team_members"] = [copy.deepcopy(m) for m in members if m.get("project_id") == row["id"]]
        return found[:limit] if limit else found

    async def upsert(self, table, key, fields, *, key_column="id", access_token=None):
        self._enter("upsert", table)
        rows = self.rows(table)
        for column in self.unique.get(table, ()):
            value = fields.get(column)
            if value is None:
                continue
            for other_key, row in rows.items():
                if other_key != key and str(row.get(column, "")).lower() == str(value).lower():
                    raise RemoteConstraintError("duplicate key", field=column, code="23505", status_code=409)
        row = {**rows.get(key, {}), **copy.deepcopy(fields), key_column: key}
        rows[key] = row
        return copy.deepcopy(row)

    async def insert(self, table, fields, *, access_token=None):
        self._enter("insert", table)
        row = {"id": f"{table}-{len(self.rows(table)) + 1}", **copy.deepcopy(fields)}
        self.rows(table)[row["id"]] = row
        return copy.deepcopy(row)

    async def update(self, table, fields, *, filters, access_token=None):
        self._enter("update", table)
        updated = []
        for row in self.rows(table).values():
            if self._matches(row, filters):
                row.update(copy.deepcopy(fields))
                updated.append(copy.deepcopy(row))
        return updated

    async def delete(self, table, *, filters, access_token=None):
        self._enter("delete", table)
        rows = self.rows(table)
        for key in [k for k, r in rows.items() if self._matches(r, filters)]:
            del rows[key]

    async def is_username_available(self, username):
        self._enter("rpc", "is_username_available")
        taken = {str(r.get("username", "")).lower() for r in self.rows("profiles").values()}
        return username.strip().lower() not in taken

    async def check_email_exists(self, email):
        self._enter("rpc", "check_email_exists")
        return any(str(r.get("email", "")).lower() == email.strip().lower() for r in self.rows("profiles").values())

    async def upload_asset(self, bucket, owner_key, asset, *, max_bytes, prefix="", access_token=None):
        self._enter("upload", bucket)
        from nested.remote import validate_asset

        validate_asset(asset, max_bytes)
        path = f"{prefix}{owner_key}-1.{asset.extension}"
        self.uploads.append((bucket, path))
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    async def get_user(self, access_token):
        self._enter("get_user", "auth")
        return self.users.get(access_token)


@pytest.fixture
def remote() -> InMemoryRemote:
    return InMemoryRemote()


@pytest.fixture
def offline() -> RemoteTransportError:
    return RemoteTransportError("profiles.upsert: connection failed", "profiles.upsert")


@pytest.fixture
def server_error() -> RemoteStoreError:
    return RemoteStoreError("boom", "profiles.upsert", status_code=500)
