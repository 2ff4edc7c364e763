import threading
from contextlib import contextmanager


class KeyedLocks:
    """
    Per-key mutual exclusion for stores that cannot block concurrent writers
    to the same row (SQLite ignores SELECT ... FOR UPDATE).

    One registry is created per app and handed to every ledger, so requests
    served by different threads contend on the same lock for the same key.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}
        self._waiters = {}

    @contextmanager
    def hold(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._waiters[key] = self._waiters.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def __len__(self):
        with self._guard:
            return len(self._locks)
