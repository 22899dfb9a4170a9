"""
TTL cache for profile lookups.

Instances are created by whoever owns the data (a session, the metadata
service) and passed in explicitly; expiry is checked on read and entries are
dropped with ``invalidate()`` when the owner knows they changed. Concurrent
``get_or_fetch()`` calls for the same key share a single fetch.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheEntry(Generic[T]):
    """Cached value with its insertion time.

    Attributes:
        value: The cached value
        cached_at: Monotonic time the value was stored
        ttl_seconds: Time-to-live in seconds
    """

    def __init__(self, value: T, ttl_seconds: float):
        self.value = value
        self.cached_at = time.monotonic()
        self.ttl_seconds = ttl_seconds

    @property
    def age_seconds(self) -> float:
        return time.monotonic() - self.cached_at

    @property
    def is_expired(self) -> bool:
        return self.age_seconds > self.ttl_seconds


class TTLCache(Generic[T]):
    """Keyed cache with a fixed time-to-live.

    Example:
        >>> cache = TTLCache(ttl_seconds=300, name="profiles")
        >>> profile = await cache.get_or_fetch("liz", lambda: fetch_profile("liz"))
        >>> cache.invalidate("liz")
    """

    def __init__(self, ttl_seconds: float, name: str = "cache"):
        """Initialize the cache.

        Args:
            ttl_seconds: Entry time-to-live in seconds
            name: Label used in log messages
        """
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._entries: Dict[Hashable, CacheEntry[T]] = {}
        self._in_flight: Dict[Hashable, "asyncio.Future[T]"] = {}
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def get(self, key: Hashable) -> Optional[T]:
        """Cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.is_expired:
            del self._entries[key]
            self._misses += 1
            logger.debug(f"{self.name} cache EXPIRED: {key} (age {entry.age_seconds:.1f}s)")
            return None
        self._hits += 1
        return entry.value

    def set(self, key: Hashable, value: T) -> None:
        self._entries[key] = CacheEntry(value, self.ttl_seconds)

    def invalidate(self, key: Hashable) -> bool:
        """Drop one entry.

        Returns:
            True if an entry was removed
        """
        if self._entries.pop(key, None) is None:
            return False
        self._invalidations += 1
        logger.debug(f"{self.name} cache INVALIDATED: {key}")
        return True

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        self._invalidations += count
        logger.debug(f"{self.name} cache cleared ({count} entries)")

    async def get_or_fetch(self, key: Hashable, fetcher: Callable[[], Awaitable[T]]) -> T:
        """Cached value, fetching it on a miss.

        Concurrent callers for the same missing key await one fetch. A failed
        fetch is not cached and its exception reaches every waiter.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug(f"{self.name} cache joining in-flight fetch: {key}")
            return await asyncio.shield(pending)

        future: "asyncio.Future[T]" = asyncio.ensure_future(fetcher())
        self._in_flight[key] = future
        try:
            value = await asyncio.shield(future)
        finally:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]
        if value is not None:
            self.set(key, value)
        return value

    def __contains__(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage."""
        total = self._hits + self._misses
        if total == 0:
            return 0.0
        return (self._hits / total) * 100

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate_pct": round(self.hit_rate, 2),
            "invalidations": self._invalidations,
            "entries": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
        }
