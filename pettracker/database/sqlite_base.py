"""
Shared SQLite plumbing for the local store, the sync queue and the settings.
"""

import sqlite3
import threading
from typing import Optional


class SQLiteBacked:
    """
    Base class owning one SQLite connection guarded by a lock.

    Subclasses create their schema in ``_init_database``. A path of
    ``":memory:"`` gives a private in-memory database (useful for testing);
    any other path is a file that survives process restarts.
    """

    DEFAULT_DB_PATH = "pettracker.db"

    def __init__(self, db_path: Optional[str] = None):
        """
        Args:
            db_path: Path to the SQLite database file. If None, uses default.
        """
        self.db_path = db_path or self.DEFAULT_DB_PATH
        self._lock = threading.RLock()
        self._is_memory = self.db_path == ":memory:"
        self._conn: Optional[sqlite3.Connection] = None
        with self._lock:
            self._init_database()

    def _init_database(self) -> None:
        raise NotImplementedError

    def _get_connection(self) -> sqlite3.Connection:
        """Get the database connection, opening it on first use."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            if not self._is_memory:
                self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def close(self) -> None:
        """Close the open connection, if any."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
