"""
In-memory TTL cache for parsed flat files and rendered responses.

Process-local and unsynchronized. Every caller runs on one thread: the
migration CLI, and the HTTP routes, which are ``async def`` and so stay on
the event loop. No lock is taken. Expired entries are pruned inline
whenever a write pushes the size over ``max_entries``; there is no
background sweeper.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Tuple
import logging
import time

logger = logging.getLogger(__name__)

_MISSING = object()


class ResponseCache:
    """TTL memo keyed by string, e.g. ``json_blogs.json``."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def _is_fresh(self, stored_at: float, now: float) -> bool:
        return now - stored_at < self.ttl_seconds

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        value, stored_at = entry
        if self._is_fresh(stored_at, self._clock()):
            return value
        return default

    def set(self, key: str, value: Any) -> Any:
        self._entries[key] = (value, self._clock())
        if len(self._entries) > self.max_entries:
            self.prune()
        return value

    def prune(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [k for k, (_, ts) in self._entries.items() if not self._is_fresh(ts, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cache prune: evicted {len(expired)} expired entries, {len(self._entries)} live")
        return len(expired)

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def get_or_set(self, key: str, factory: Callable[[], Any]) -> Any:
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = factory()
        if value is not None:
            self.set(key, value)
        return value
