"""
Local record store.

Records live in one SQLite table keyed by (collection, id) and are stored as
JSON documents. Every single-record operation runs in its own transaction;
nothing here spans more than one record.
"""

import json
import logging
from typing import Callable, List, Optional

from pettracker.models.records import DomainRecord, model_for

from .sqlite_base import SQLiteBacked

logger = logging.getLogger(__name__)


class LocalStore(SQLiteBacked):
    """
    Embedded key-value store organised into named record collections.

    This class provides:
    - Upsert / get / delete of typed records by local id
    - Full scans and predicate queries per collection
    - Lookup by remote id for reconciling pulled pages
    """

    def _init_database(self) -> None:
        """Initialize the SQLite database schema."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS records (
                collection TEXT NOT NULL,
                id TEXT NOT NULL,
                remote_id TEXT,
                data TEXT NOT NULL,
                updated_at TEXT,
                PRIMARY KEY (collection, id)
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_records_remote_id
            ON records(collection, remote_id)
        """)
        conn.commit()

    def put(self, collection: str, record: DomainRecord) -> DomainRecord:
        """
        Insert or overwrite a record by id.

        Args:
            collection: Name of the record collection
            record: The record to store; ``record.id`` must be set

        Returns:
            The stored record
        """
        if not record.id:
            raise ValueError("Cannot store a record without an id")
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                INSERT OR REPLACE INTO records (collection, id, remote_id, data, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (collection, record.id, record.remote_id,
                 json.dumps(record.to_dict()), record.updated_at)
            )
            conn.commit()
        return record

    def get(self, collection: str, record_id: str) -> Optional[DomainRecord]:
        """Return the record, or None when it does not exist."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT data FROM records WHERE collection = ? AND id = ?",
                (collection, record_id)
            ).fetchone()
        return self._load(collection, row['data']) if row else None

    def get_by_remote_id(self, collection: str, remote_id: str) -> Optional[DomainRecord]:
        """Return the record mapped to a remote page, or None."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT data FROM records WHERE collection = ? AND remote_id = ?",
                (collection, remote_id)
            ).fetchone()
        return self._load(collection, row['data']) if row else None

    def delete(self, collection: str, record_id: str) -> None:
        """Remove a record by id. Deleting a missing record is not an error."""
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                "DELETE FROM records WHERE collection = ? AND id = ?",
                (collection, record_id)
            )
            conn.commit()

    def get_all(self, collection: str) -> List[DomainRecord]:
        """Return every record in a collection, in no particular order."""
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT data FROM records WHERE collection = ?",
                (collection,)
            ).fetchall()
        return [self._load(collection, row['data']) for row in rows]

    def query(self, collection: str, predicate: Callable[[DomainRecord], bool]) -> List[DomainRecord]:
        """Return every record for which ``predicate`` is true (a filtered scan)."""
        return [record for record in self.get_all(collection) if predicate(record)]

    def count(self, collection: str) -> int:
        """Number of records in a collection."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS count FROM records WHERE collection = ?",
                (collection,)
            ).fetchone()
        return row['count']

    def clear(self, collection: str) -> int:
        """
        Remove every record in a collection.

        Returns:
            Number of records deleted
        """
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute("DELETE FROM records WHERE collection = ?", (collection,))
            conn.commit()
        logger.debug(f"Cleared {cursor.rowcount} records from {collection}")
        return cursor.rowcount

    @staticmethod
    def _load(collection: str, data: str) -> DomainRecord:
        return model_for(collection).from_dict(json.loads(data))
