"""Time-bounded result cache for governed calls.

Entries are expired lazily on lookup; ``cleanup_expired`` can be called
periodically to sweep entries nobody asks for any more, and an optional
``max_entries`` bound evicts the oldest insertion when the cache is full.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

Clock = Callable[[], float]


@dataclass
class _CacheEntry:
    """Internal cache entry with insertion timestamp."""

    key: str
    value: Any
    inserted_at: float

    def is_expired(self, now: float, ttl: float) -> bool:
        """Check if the entry has outlived the TTL."""
        return now - self.inserted_at >= ttl


class TTLCache:
    """In-memory key/value cache with a fixed time-to-live.

    Safe to share between threads and asyncio tasks. Values are stored as-is
    (no serialization), so callers must not mutate cached results.

    Example:
        >>> cache = TTLCache(ttl=300)
        >>> cache.set("campaigns_act_1", [...])
        >>> cache.get("campaigns_act_1")
    """

    def __init__(
        self,
        ttl: float,
        max_entries: int = 0,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl: Time-to-live of every entry in seconds.
            max_entries: Maximum number of entries kept; 0 means unbounded.
            clock: Monotonic time source in seconds.
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._data: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Retrieve a value from the cache.

        Args:
            key: The cache key to look up.

        Returns:
            The cached value, or None if not found or expired. Expired
            entries are removed.
        """
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock(), self.ttl):
                del self._data[key]
                return None
            return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store a value, overwriting any previous entry for the key.

        Args:
            key: The cache key.
            value: The value to store.
        """
        with self._lock:
            self._data.pop(key, None)
            self._data[key] = _CacheEntry(key=key, value=value, inserted_at=self._clock())
            if self.max_entries:
                while len(self._data) > self.max_entries:
                    self._data.popitem(last=False)

    def delete(self, key: str) -> None:
        """Remove a value from the cache if present."""
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        """Clear all entries from the cache."""
        with self._lock:
            self._data.clear()

    def cleanup_expired(self) -> int:
        """Remove all expired entries from the cache.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired_keys = [
                key for key, entry in self._data.items() if entry.is_expired(now, self.ttl)
            ]
            for key in expired_keys:
                del self._data[key]
            return len(expired_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
