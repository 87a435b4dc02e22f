"""
In-memory lookup caches for the auth manager.

Each cache is a small TTL map guarded by one lock, so reads, updates and
``clear()`` never interleave: a clear is fully before or fully after any
concurrent lookup.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class LookupCache(Generic[V]):
    """
    Time-bounded key -> value cache with bulk invalidation.

    Args:
        name: Cache name, used in log messages (``"users-hugegraph"``).
        expire_seconds: Lifetime of an entry from the moment it is stored.
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        name: str,
        expire_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.expire_seconds = expire_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[V]:
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                self.misses += 1
                return None
            stored_at, value = item
            if self._clock() - stored_at >= self.expire_seconds:
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return value

    def update(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        if count:
            logger.debug(f"Cleared {count} entries from cache '{self.name}'")

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(
                1 for stored_at, _ in self._entries.values()
                if now - stored_at < self.expire_seconds
            )
