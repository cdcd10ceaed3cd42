"""In-memory TTL cache for whole-dataset aggregates.

Totals are expensive (several DISTINCT scans over every indexed date) and
change only when a date is (re)indexed.  The service caches them with a
short TTL and calls ``invalidate()`` after every index write.

A value computed while an index write was in flight must not be stored
after that write's invalidation, so writers capture ``generation`` before
computing and pass it to ``set``; a stale generation makes ``set`` a no-op.
"""

import threading
import time
from typing import Any


class TTLCache:
    """Thread-safe TTL cache with generation-based invalidation.

    Usage::

        cache = TTLCache(ttl_seconds=60)
        gen = cache.generation
        value = compute_totals()
        cache.set("totals", value, generation=gen)
        cache.get("totals")        # value, until expiry or invalidate()
    """

    def __init__(self, maxsize: int = 16, ttl_seconds: float = 60.0) -> None:
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        self._entries: dict[Any, tuple[Any, float]] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, key: Any) -> Any | None:
        """Cached value for *key*, or ``None`` if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and time.monotonic() <= entry[1]:
                return entry[0]
            if entry is not None:
                del self._entries[key]
            return None

    def set(self, key: Any, value: Any, generation: int | None = None) -> bool:
        """Store *value*; returns False when *generation* is out of date."""
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            if key not in self._entries and len(self._entries) >= self._maxsize:
                # Drop whatever expires first
                del self._entries[min(self._entries, key=lambda k: self._entries[k][1])]
            self._entries[key] = (value, time.monotonic() + self._ttl)
            return True

    def invalidate(self) -> None:
        """Drop every entry and start a new generation."""
        with self._lock:
            self._entries.clear()
            self._generation += 1

