"""
Named, scoped write locks.

Locks are identified by ``(graph, group, key)`` -- e.g. the project with id
``p1`` in graph ``hugegraph`` -- and are re-entrant for the owning thread.

Usage::

    with locks.lock_writes("hugegraph", "project", project_id):
        ...  # read-modify-write the project
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

logger = logging.getLogger(__name__)

LockKey = Tuple[str, str, str]


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        # Threads holding or waiting for the lock
        self.users = 0


class LockManager:
    """
    Registry handing out one re-entrant lock per name.

    A name is only registered while some thread holds or waits for its
    lock, so the registry does not grow with every project ever touched.
    """

    def __init__(self):
        self._locks: Dict[LockKey, _LockEntry] = {}
        self._guard = threading.Lock()

    def __len__(self):
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: LockKey) -> _LockEntry:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _LockEntry()
            entry.users += 1
            return entry

    def _checkin(self, key: LockKey, entry: _LockEntry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def lock_writes(self, graph: str, group: str, key: str) -> Iterator[None]:
        """Hold the write lock for ``key`` for the duration of the block."""
        name = (graph, group, str(key))
        entry = self._checkout(name)
        try:
            entry.lock.acquire()
            logger.debug(f"Locked {group} '{key}' in graph '{graph}'")
            try:
                yield
            finally:
                entry.lock.release()
                logger.debug(f"Unlocked {group} '{key}' in graph '{graph}'")
        finally:
            self._checkin(name, entry)

    def is_locked(self, graph: str, group: str, key: str) -> bool:
        """True if some thread other than the caller holds the lock."""
        with self._guard:
            entry = self._locks.get((graph, group, str(key)))
            if entry is None:
                return False
            if entry.lock.acquire(blocking=False):
                entry.lock.release()
                return False
            return True


# Process-wide registry for convenient import
locks = LockManager()
