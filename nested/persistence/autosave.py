"""Debounced autosave for form edits.

Edits arriving within the debounce window are merged and saved once
the window passes without a new edit. A new edit restarts the window.
Saves already sent to the backend are never aborted; the backend's
upsert settles the last write.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from nested.persistence.coordinator import PersistenceCoordinator
from nested.persistence.results import SaveResult
from nested.session import Session

logger = logging.getLogger(__name__)


class Autosaver:
    """Coalesce edits to one record into debounced saves.

    Args:
        coordinator: Where saves go
        session: Acting user
        key: Record primary key
        delay: Quiet period in seconds before a save is issued
    """

    def __init__(
        self,
        coordinator: PersistenceCoordinator,
        session: Session,
        key: str,
        delay: float,
    ) -> None:
        self.coordinator = coordinator
        self.session = session
        self.key = key
        self.delay = delay
        self.last_result: SaveResult | None = None
        self._pending: dict[str, Any] = {}
        self._timer: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def schedule(self, fields: dict[str, Any]) -> None:
        """Queue an edit and restart the debounce window.

        Must be called from a running event loop.
        """
        self._pending.update(fields)
        self._cancel_timer()
        task = asyncio.get_running_loop().create_task(self._fire_later())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._timer = task

    async def flush(self) -> SaveResult | None:
        """Save any pending edit now."""
        self._cancel_timer()
        return await self._save_pending()

    def cancel(self) -> None:
        """Drop the pending edit without saving it."""
        self._cancel_timer()
        self._pending = {}

    async def drain(self) -> None:
        """Wait for the pending window and any in-flight save to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _fire_later(self) -> None:
        await asyncio.sleep(self.delay)
        # From here on the save is in flight and is not cancelled by new edits
        self._timer = None
        await self._save_pending()

    async def _save_pending(self) -> SaveResult | None:
        if not self._pending:
            return None
        fields, self._pending = self._pending, {}
        result = await self.coordinator.save(self.session, self.key, fields)
        self.last_result = result
        logger.debug("Autosaved %s for %s: %s", sorted(fields), self.key, result.status.value)
        return result
