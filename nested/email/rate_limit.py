"""Per-recipient hourly send limits for outbound email.

Backed by the ``limits`` moving-window strategy over in-memory storage,
the same engine the API's request limiter runs on. A send is checked
before delivery and only counted once the provider accepts it.
"""

from __future__ import annotations

import logging

from limits import RateLimitItemPerHour
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from nested.email.validation import rate_limit_for
from nested.settings import Settings, get_settings

logger = logging.getLogger(__name__)

NAMESPACE = "nested-email"


class EmailRateLimiter:
    """Count sends per (identifier, email kind) in a one hour window.

    Args:
        settings: Settings override (per-kind limits)
        storage: ``limits`` storage backend; in-memory by default
    """

    def __init__(self, settings: Settings | None = None, storage: MemoryStorage | None = None) -> None:
        self.settings = settings or get_settings()
        self.storage = storage or MemoryStorage()
        self._strategy = MovingWindowRateLimiter(self.storage)

    def _item(self, kind: str) -> RateLimitItemPerHour:
        return RateLimitItemPerHour(rate_limit_for(kind, self.settings), namespace=NAMESPACE)

    def allow(self, identifier: str, kind: str) -> bool:
        """Whether one more send fits in the current window."""
        allowed = self._strategy.test(self._item(kind), kind, identifier)
        if not allowed:
            logger.warning("Email rate limit reached for %s (%s)", identifier, kind)
        return allowed

    def record(self, identifier: str, kind: str) -> None:
        """Count a completed send."""
        self._strategy.hit(self._item(kind), kind, identifier)

    def remaining(self, identifier: str, kind: str) -> int:
        stats = self._strategy.get_window_stats(self._item(kind), kind, identifier)
        return stats.remaining

    def reset(self) -> None:
        self.storage.reset()
