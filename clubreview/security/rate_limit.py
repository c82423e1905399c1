"""Per-admin, per-action rate limiting backed by the ``limits`` library."""

from __future__ import annotations

import time
from typing import Mapping

from limits import parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter


class AdminRateLimiter:
    """Moving-window counters keyed by (admin id, action kind).

    Storage comes from a ``limits`` URI: ``memory://`` keeps counters in this
    process, ``redis://...`` shares them between instances.
    """

    fallback_kind = 'view'

    def __init__(self, storage_uri: str, limits_by_kind: Mapping[str, str]):
        self.storage = storage_from_string(storage_uri)
        self.strategy = MovingWindowRateLimiter(self.storage)
        self.items = {kind: parse(value) for kind, value in limits_by_kind.items()}
        if self.fallback_kind not in self.items:
            self.items[self.fallback_kind] = parse('200/minute')

    def _item(self, kind: str):
        return self.items.get(kind, self.items[self.fallback_kind])

    def hit(self, admin_id: str, kind: str) -> bool:
        """Count one call; False when the window is already full."""
        return self.strategy.hit(self._item(kind), str(admin_id), kind)

    def retry_after(self, admin_id: str, kind: str) -> int:
        stats = self.strategy.get_window_stats(self._item(kind), str(admin_id), kind)
        return max(1, int(stats.reset_time - time.time()) + 1)

    def remaining(self, admin_id: str, kind: str) -> int:
        return self.strategy.get_window_stats(self._item(kind), str(admin_id), kind).remaining


__all__ = ['AdminRateLimiter']
