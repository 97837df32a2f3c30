"""Filesystem-backed key-value cache.

The durable local copy of records the app works with when the backend
is unreachable or unconfigured. Each key is one JSON file under
``{base_dir}/``; writes go through a temp file and an atomic replace.

Reads never raise: a missing, unreadable or malformed entry reads as
absent. Writes never raise either; failures are logged.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from nested.settings import get_settings

logger = logging.getLogger(__name__)

PROFILE_NAMESPACE = "nested_user_profile"
PROJECTS_NAMESPACE = "nested_user_projects"

_SUFFIX = ".json"


def user_key(namespace: str, user_id: str) -> str:
    """Cache key for one user's copy of a namespace."""
    return f"{namespace}:{user_id}"


class LocalCacheStore:
    """JSON key-value store on the local filesystem.

    Args:
        base_dir: Directory holding the cache files.
            Defaults to ``settings.cache_dir``.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else get_settings().cache_dir

    def _path(self, key: str) -> Path:
        if not key:
            raise ValueError("Cache key must be non-empty")
        return self.base_dir / f"{quote(key, safe='')}{_SUFFIX}"

    # -- raw string interface -------------------------------------------------

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            logger.warning("Cache entry %s is not valid UTF-8: %s", key, e)
            return None
        except OSError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error("Cache write failed for %s: %s", key, e)

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Cache remove failed for %s: %s", key, e)

    # -- JSON interface -------------------------------------------------------

    def read(self, key: str) -> Any | None:
        """Decoded JSON value for key, or None if absent or malformed."""
        raw = self.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding malformed cache entry: %s", key)
            return None

    def write(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, default=str))

    def remove(self, key: str) -> None:
        self.remove_item(key)

    def keys(self) -> list[str]:
        if not self.base_dir.exists():
            return []
        return sorted(
            unquote(p.name.removesuffix(_SUFFIX))
            for p in self.base_dir.iterdir()
            if p.is_file() and p.name.endswith(_SUFFIX)
        )

    def clear(self) -> None:
        for key in self.keys():
            self.remove_item(key)


__all__ = [
    "PROFILE_NAMESPACE",
    "PROJECTS_NAMESPACE",
    "LocalCacheStore",
    "user_key",
]
