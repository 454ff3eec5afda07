"""
CacheStore - In-process cache of the last good payload per resource key.

Features:
- Whole-entry replacement on every write
- TTL freshness checks against an injectable clock
- Entries of any age stay readable for stale fallback

There is no eviction: the set of resource keys is small and fixed, and the
store lives only as long as the process.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    stored_at: datetime
    rate_limited: bool = False

    def age(self, now: datetime) -> timedelta:
        """Time elapsed since the entry was stored."""
        return max(now - self.stored_at, timedelta(0))


class CacheStore:
    """
    Async-safe key to CacheEntry map.

    Usage:
        cache = CacheStore()

        if await cache.is_fresh("lawsuits", timedelta(minutes=5)):
            entry = await cache.get("lawsuits")
            return entry.data

        data = await fetch_data()
        await cache.set("lawsuits", data)
    """

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        debug: bool = False,
    ):
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._clock = clock or datetime.now
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    def now(self) -> datetime:
        return self._clock()

    async def get(self, key: str) -> CacheEntry[Any] | None:
        """Return the entry for ``key`` regardless of age."""
        async with self._lock:
            entry = self._entries.get(key)

        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {key}")
        else:
            self._stats.hits += 1
            self._log(f"HIT: {key}")
        return entry

    async def set(self, key: str, data: Any, rate_limited: bool = False) -> CacheEntry[Any]:
        """Replace the entry for ``key``, stamped with the current time."""
        entry = CacheEntry(data=data, stored_at=self.now(), rate_limited=rate_limited)
        async with self._lock:
            self._entries[key] = entry
        self._stats.writes += 1
        self._log(f"SET: {key}")
        return entry

    async def mark_rate_limited(self, key: str) -> CacheEntry[Any] | None:
        """Flag the entry for ``key`` as served during an upstream failure."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            entry = replace(entry, rate_limited=True)
            self._entries[key] = entry
        self._log(f"RATE LIMITED: {key}")
        return entry

    async def is_fresh(self, key: str, ttl: timedelta) -> bool:
        """True iff an entry exists and is younger than ``ttl``."""
        async with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return False
        return self.now() - entry.stored_at < ttl

    def age(self, entry: CacheEntry[Any]) -> timedelta:
        return entry.age(self.now())

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._entries)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheStore] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    size: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "size": self.size,
        }
