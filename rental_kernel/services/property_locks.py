"""
PropertyLockRegistry -- in-process mutual exclusion per property id.

The database row lock (``SELECT ... FOR UPDATE``) serializes writers across
processes on PostgreSQL; SQLite has no row locks, so calls within one
process also take the per-key ``threading.Lock`` held here.  Locks are
created on first use and kept for the life of the registry.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class PropertyLockRegistry:
    """Hands out one re-entrant lock per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self.lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Shared by every RentalLedgerService that is not given its own registry.
DEFAULT_LOCK_REGISTRY = PropertyLockRegistry()
