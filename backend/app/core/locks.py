"""
Per-key mutual exclusion for request threads and scheduler threads in one process.

Transitions on one appointment id, and availability writes for one (provider, day), must not
interleave. Entries are reference counted and dropped when the last holder leaves so the map
stays bounded by the number of keys in use.
"""
import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                _, users = self._locks[key]
                if users <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Process-wide: every request thread and every expiry job must see the same locks
appointment_locks = KeyedLocks()
availability_locks = KeyedLocks()
