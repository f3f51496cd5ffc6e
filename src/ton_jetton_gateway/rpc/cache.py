"""TTL-based caching for RPC responses."""

import threading
import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel


class CacheStats(BaseModel):
    """
    Point-in-time view of the cache.

    Attributes
    ----------
    entries : int
        Number of stored entries, including ones that expired but were not read since

    """

    entries: int


class CacheEntry:
    """
    Cache entry with TTL support.

    Parameters
    ----------
    value : Any
        Cached value
    ttl : float
        Time-to-live in seconds
    created_at : float
        Clock reading when the value was stored

    """

    __slots__ = ("created_at", "ttl", "value")

    def __init__(self, value: Any, ttl: float, created_at: float) -> None:
        self.value = value
        self.ttl = ttl
        self.created_at = created_at

    def is_expired(self, now: float) -> bool:
        """
        Check if cache entry has expired.

        Parameters
        ----------
        now : float
            Current clock reading

        Returns
        -------
        bool
            True if expired, False otherwise

        """
        return (now - self.created_at) > self.ttl


class RPCCache:
    """
    In-memory cache for RPC responses with per-key TTL.

    Expired entries are dropped lazily when read; ``cleanup_expired`` sweeps
    the whole map on demand.

    Parameters
    ----------
    default_ttl : float
        Default time-to-live in seconds for cache entries
    clock : Callable[[], float]
        Monotonic time source, injectable for tests

    """

    def __init__(self, default_ttl: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """
        Get cached value if it exists and hasn't expired.

        Parameters
        ----------
        key : str
            Cache key

        Returns
        -------
        Any | None
            Cached value if found and valid, None otherwise

        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                return None

            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """
        Store value in cache, replacing any existing entry for the key.

        Parameters
        ----------
        key : str
            Cache key
        value : Any
            Value to cache
        ttl : float | None
            Time-to-live in seconds. Uses default_ttl if None.

        """
        if ttl is None:
            ttl = self.default_ttl
        entry = CacheEntry(value, ttl, self._clock())
        with self._lock:
            self._cache[key] = entry

    def invalidate(self, key: str) -> None:
        """Remove a single entry; missing keys are ignored."""
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            self._cache.clear()

    def cleanup_expired(self) -> int:
        """
        Remove all expired entries from cache.

        Returns
        -------
        int
            Number of entries removed

        """
        with self._lock:
            now = self._clock()
            expired_keys = [key for key, entry in self._cache.items() if entry.is_expired(now)]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)

    def stats(self) -> CacheStats:
        """Return a snapshot of the cache size."""
        with self._lock:
            return CacheStats(entries=len(self._cache))

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
