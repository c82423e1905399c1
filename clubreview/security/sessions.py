"""Last-activity tracking for admin sessions."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

import redis


class SessionStore(ABC):
    """Per-session last-activity timestamps plus invalidation tombstones."""

    @abstractmethod
    def last_activity(self, session_key: str) -> float | None:
        """Return the last activity time, or None for a session never seen."""

    @abstractmethod
    def touch(self, session_key: str, now: float) -> None:
        ...

    @abstractmethod
    def invalidate(self, session_key: str) -> None:
        """Forget the session; it stays invalid until a new credential is issued."""

    @abstractmethod
    def is_invalidated(self, session_key: str) -> bool:
        ...


class MemorySessionStore(SessionStore):
    """In-process store; only correct for a single application instance."""

    def __init__(self):
        self._activity: dict[str, float] = {}
        self._invalidated: set[str] = set()
        self._lock = threading.Lock()

    def last_activity(self, session_key):
        with self._lock:
            return self._activity.get(session_key)

    def touch(self, session_key, now):
        with self._lock:
            self._activity[session_key] = now

    def invalidate(self, session_key):
        with self._lock:
            self._activity.pop(session_key, None)
            self._invalidated.add(session_key)

    def is_invalidated(self, session_key):
        with self._lock:
            return session_key in self._invalidated


class RedisSessionStore(SessionStore):
    """Store shared by every instance pointing at the same Redis."""

    prefix = 'clubreview:session'
    key_ttl = 30 * 24 * 3600

    def __init__(self, redis_url: str):
        self.redis_conn = redis.from_url(redis_url)

    def _key(self, session_key: str, suffix: str) -> str:
        return f"{self.prefix}:{session_key}:{suffix}"

    def last_activity(self, session_key):
        value = self.redis_conn.get(self._key(session_key, 'activity'))
        return float(value) if value is not None else None

    def touch(self, session_key, now):
        self.redis_conn.set(self._key(session_key, 'activity'), now, ex=self.key_ttl)

    def invalidate(self, session_key):
        pipe = self.redis_conn.pipeline()
        pipe.delete(self._key(session_key, 'activity'))
        pipe.set(self._key(session_key, 'revoked'), 1, ex=self.key_ttl)
        pipe.execute()

    def is_invalidated(self, session_key):
        return bool(self.redis_conn.exists(self._key(session_key, 'revoked')))


def session_store_from_uri(uri: str) -> SessionStore:
    if uri.startswith(('redis://', 'rediss://', 'unix://')):
        return RedisSessionStore(uri)
    return MemorySessionStore()


__all__ = ['SessionStore', 'MemorySessionStore', 'RedisSessionStore', 'session_store_from_uri']
