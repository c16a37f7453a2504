"""
Durable outbox of pending record operations.

Every local mutation appends one entry here. Entries are replayed against the
remote API in insertion order and removed only once the remote side has
confirmed them, so the queue survives process restarts and connectivity loss.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from pettracker.database.sqlite_base import SQLiteBacked
from pettracker.models.sync_entry import EntryStatus, Operation, SyncQueueEntry

logger = logging.getLogger(__name__)


class SyncQueue(SQLiteBacked):
    """
    SQLite-based ordered log of pending operations.

    This class provides:
    - Persistent storage of create/update/delete entries
    - FIFO order by insertion sequence, never reordered
    - Thread-safe operations
    - Dead-lettering of entries that keep failing
    """

    _COLUMNS = (
        "seq, op_id, operation, collection, record_id, payload, attempts, "
        "last_error, created_at, status, last_attempt_at"
    )

    def _init_database(self) -> None:
        """Initialize the SQLite database schema."""
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS sync_queue (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                op_id TEXT NOT NULL UNIQUE,
                operation TEXT NOT NULL,
                collection TEXT NOT NULL,
                record_id TEXT NOT NULL,
                payload TEXT NOT NULL,
                attempts INTEGER DEFAULT 0,
                last_error TEXT DEFAULT '',
                created_at TEXT NOT NULL,
                status TEXT DEFAULT 'pending',
                last_attempt_at TEXT
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_sync_queue_record
            ON sync_queue(record_id)
        """)
        conn.commit()

    def add(self, entry: SyncQueueEntry) -> SyncQueueEntry:
        """
        Append an entry to the end of the log.

        A new operation id is assigned and the attempt count and last error
        are reset, whatever the entry carried.

        Args:
            entry: The operation to enqueue

        Returns:
            The stored entry with ``op_id`` and ``seq`` filled in
        """
        entry.op_id = uuid.uuid4().hex
        entry.attempts = 0
        entry.last_error = ""
        entry.status = EntryStatus.PENDING
        entry.last_attempt_at = None
        entry.created_at = datetime.now(timezone.utc).isoformat()
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                """
                INSERT INTO sync_queue
                    (op_id, operation, collection, record_id, payload, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (entry.op_id, entry.operation.value, entry.collection, entry.record_id,
                 json.dumps(entry.payload), entry.created_at)
            )
            conn.commit()
            entry.seq = cursor.lastrowid
        logger.debug(f"Queued {entry.operation.value} {entry.collection}/{entry.record_id} as {entry.op_id}")
        return entry

    def drain(self, include_failed: bool = True) -> List[SyncQueueEntry]:
        """
        Read the current entries in insertion order without consuming them.

        Args:
            include_failed: Whether dead-lettered entries are included

        Returns:
            List of queue entries, oldest first
        """
        query = f"SELECT {self._COLUMNS} FROM sync_queue"
        params: tuple = ()
        if not include_failed:
            query += " WHERE status = ?"
            params = (EntryStatus.PENDING.value,)
        query += " ORDER BY seq ASC"
        with self._lock:
            rows = self._get_connection().execute(query, params).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get(self, op_id: str) -> Optional[SyncQueueEntry]:
        with self._lock:
            row = self._get_connection().execute(
                f"SELECT {self._COLUMNS} FROM sync_queue WHERE op_id = ?",
                (op_id,)
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def entries_for_record(self, record_id: str) -> List[SyncQueueEntry]:
        """Entries targeting one record, oldest first."""
        with self._lock:
            rows = self._get_connection().execute(
                f"SELECT {self._COLUMNS} FROM sync_queue WHERE record_id = ? ORDER BY seq ASC",
                (record_id,)
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def deleted_remote_ids(self, collection: str) -> Set[str]:
        """Remote ids named by queued deletes (pending or failed) in a collection."""
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT payload FROM sync_queue WHERE operation = ? AND collection = ?",
                (Operation.DELETE.value, collection)
            ).fetchall()
        remote_ids = (json.loads(row['payload']).get('remote_id') for row in rows)
        return {remote_id for remote_id in remote_ids if remote_id}

    def remove(self, op_id: str) -> None:
        """
        Remove an entry after it was applied remotely.

        Args:
            op_id: The operation id of the entry
        """
        with self._lock:
            conn = self._get_connection()
            conn.execute("DELETE FROM sync_queue WHERE op_id = ?", (op_id,))
            conn.commit()

    def update(self, entry: SyncQueueEntry) -> None:
        """
        Persist attempts, last error, status and payload of an entry.

        The entry keeps its position in the log.
        """
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                UPDATE sync_queue
                SET attempts = ?,
                    last_error = ?,
                    status = ?,
                    last_attempt_at = ?,
                    payload = ?
                WHERE op_id = ?
                """,
                (entry.attempts, entry.last_error, entry.status.value,
                 entry.last_attempt_at, json.dumps(entry.payload), entry.op_id)
            )
            conn.commit()

    def mark_failed(self, op_id: str, error: str) -> None:
        """
        Record a failed attempt on an entry.

        Args:
            op_id: The operation id of the entry
            error: The error message from the failed attempt
        """
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                UPDATE sync_queue
                SET attempts = attempts + 1,
                    last_error = ?,
                    last_attempt_at = ?
                WHERE op_id = ?
                """,
                (error, datetime.now(timezone.utc).isoformat(), op_id)
            )
            conn.commit()

    def count_pending(self) -> int:
        """
        Get the count of entries still waiting to be sent.

        Returns:
            Number of pending entries
        """
        return self._count(EntryStatus.PENDING)

    def count_failed(self) -> int:
        """Number of dead-lettered entries."""
        return self._count(EntryStatus.FAILED)

    def count(self) -> int:
        """Number of entries in the log, whatever their status."""
        with self._lock:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS count FROM sync_queue"
            ).fetchone()
        return row['count']

    def reset_failed(self) -> int:
        """
        Return dead-lettered entries to the pending state.

        Returns:
            Number of entries reset
        """
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                "UPDATE sync_queue SET status = ? WHERE status = ?",
                (EntryStatus.PENDING.value, EntryStatus.FAILED.value)
            )
            conn.commit()
        if cursor.rowcount:
            logger.info(f"Reset {cursor.rowcount} failed entries to pending")
        return cursor.rowcount

    def clear(self) -> int:
        """
        Clear all entries from the queue.

        Returns:
            Number of entries deleted
        """
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute("DELETE FROM sync_queue")
            conn.commit()
        return cursor.rowcount

    def _count(self, status: EntryStatus) -> int:
        with self._lock:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS count FROM sync_queue WHERE status = ?",
                (status.value,)
            ).fetchone()
        return row['count']

    @staticmethod
    def _row_to_entry(row: Any) -> SyncQueueEntry:
        payload: Dict[str, Any] = json.loads(row['payload'])
        return SyncQueueEntry(
            operation=row['operation'],
            collection=row['collection'],
            record_id=row['record_id'],
            payload=payload,
            op_id=row['op_id'],
            attempts=row['attempts'],
            last_error=row['last_error'] or "",
            created_at=row['created_at'],
            status=row['status'],
            last_attempt_at=row['last_attempt_at'],
            seq=row['seq'],
        )
