import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class RecordLocks:
    """
    Per-record re-entrant locks.

    Held by record services across the local write and the enqueue, and by
    the sync processor while it patches a row, so the two never interleave
    on the same record.
    """

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, record_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(record_id)
            if lock is None:
                lock = self._locks[record_id] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, record_id: str) -> Iterator[None]:
        lock = self._lock_for(record_id)
        with lock:
            yield
