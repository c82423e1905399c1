"""Keyed query cache for admin dashboards built on ``AdminApiClient``."""

from __future__ import annotations

import threading
from typing import Any, Callable, Hashable

Key = tuple[Hashable, ...]

_MISSING = object()


class ClubApprovalKeys:
    """Cache keys for review data; every key starts with ``root``."""

    root: Key = ('club-applications',)

    @classmethod
    def applications(cls, filters: dict[str, Any] | None = None) -> Key:
        if filters is None:
            return cls.root + ('list',)
        return cls.root + ('list', tuple(sorted(filters.items())))

    @classmethod
    def detail(cls, club_id: str) -> Key:
        return cls.root + ('detail', club_id)

    @classmethod
    def history(cls, club_id: str) -> Key:
        return cls.root + ('history', club_id)

    @classmethod
    def stats(cls) -> Key:
        return cls.root + ('stats',)


class QueryCache:
    """Values by key, with optional loaders used to refetch after invalidation.

    ``invalidate(prefix)`` drops every entry whose key starts with ``prefix``
    and reloads the ones that have a registered loader.
    """

    def __init__(self):
        self._entries: dict[Key, Any] = {}
        self._loaders: dict[Key, Callable[[], Any]] = {}
        self._lock = threading.RLock()

    def get(self, key: Key, default: Any = None) -> Any:
        with self._lock:
            return self._entries.get(key, default)

    def has(self, key: Key) -> bool:
        with self._lock:
            return key in self._entries

    def set(self, key: Key, value: Any) -> None:
        with self._lock:
            self._entries[key] = value

    def delete(self, key: Key) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def register(self, key: Key, loader: Callable[[], Any]) -> None:
        with self._lock:
            self._loaders[key] = loader

    def fetch(self, key: Key) -> Any:
        """Return the cached value, loading it first if absent."""
        with self._lock:
            value = self._entries.get(key, _MISSING)
            loader = self._loaders.get(key)
        if value is not _MISSING:
            return value
        if loader is None:
            return None
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, prefix: Key) -> list[Key]:
        """Drop entries under ``prefix`` and refetch those with loaders."""
        size = len(prefix)
        with self._lock:
            stale = [key for key in self._entries if key[:size] == prefix]
            stale += [key for key in self._loaders if key[:size] == prefix and key not in stale]
            for key in stale:
                self._entries.pop(key, None)
            loaders = {key: self._loaders[key] for key in stale if key in self._loaders}

        for key, loader in loaders.items():
            self.set(key, loader())
        return stale


__all__ = ['ClubApprovalKeys', 'QueryCache']
