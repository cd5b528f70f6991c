"""
Per-key in-process locks for stock counters that live outside the database.
"""
import threading
from contextlib import contextmanager
from typing import Hashable


class KeyedLocks:
    """One mutex per key, so unrelated products never contend."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable):
        """
        Hold the lock for ``key`` for the duration of the block.

        Usage:
            with locks.hold(product_id):
                # compare and decrement
                pass
        """
        lock = self._lock_for(key)
        with lock:
            yield
