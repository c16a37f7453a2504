"""
Base record service.

Record services are the only writers to the local store. Each mutation writes
the record and then appends exactly one sync queue entry, both under the
record's lock so the pair is never interleaved with another writer.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Type

from pettracker.database.local_store import LocalStore
from pettracker.database.record_locks import RecordLocks
from pettracker.errors import NotFoundError, ValidationError
from pettracker.models.records import DomainRecord, generate_id, utc_now
from pettracker.models.sync_entry import Operation, SyncQueueEntry
from pettracker.sync.sync_queue import SyncQueue

logger = logging.getLogger(__name__)

# Bookkeeping fields owned by the service, never taken from caller data
PROTECTED_FIELDS = frozenset({'id', 'created_at', 'updated_at', 'synced', 'remote_id'})


class RecordService:
    """CRUD for one record collection, coupled to the sync queue."""

    COLLECTION = ""
    MODEL: Type[DomainRecord] = DomainRecord

    def __init__(self, store: LocalStore, queue: SyncQueue, locks: Optional[RecordLocks] = None):
        self.store = store
        self.queue = queue
        self.locks = locks or RecordLocks()

    def _build(self, data: Dict[str, Any]) -> DomainRecord:
        try:
            record = self.MODEL.from_dict(data)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid {self.COLLECTION} record: {e}") from e
        missing = record.missing_fields()
        if missing:
            raise ValidationError(f"Missing required field(s) for {self.COLLECTION}: {', '.join(missing)}")
        return record

    def _enqueue(self, operation: Operation, record_id: str, payload: Dict[str, Any]) -> SyncQueueEntry:
        return self.queue.add(SyncQueueEntry(
            operation=operation,
            collection=self.COLLECTION,
            record_id=record_id,
            payload=payload,
        ))

    def create(self, data: Dict[str, Any]) -> DomainRecord:
        """
        Create a record locally and queue it for the remote API.

        Args:
            data: Entity fields; bookkeeping fields are ignored

        Returns:
            The stored record, with ``synced`` False and no remote id

        Raises:
            ValidationError: A required field is missing or a value is invalid
        """
        record = self._build({k: v for k, v in data.items() if k not in PROTECTED_FIELDS})
        now = utc_now()
        record.id = generate_id()
        record.created_at = now
        record.updated_at = now

        with self.locks.hold(record.id):
            self.store.put(self.COLLECTION, record)
            self._enqueue(Operation.CREATE, record.id, record.to_dict())

        logger.debug(f"Created {self.COLLECTION}/{record.id}")
        return record

    def update(self, record_id: str, patch: Dict[str, Any]) -> DomainRecord:
        """
        Merge ``patch`` into an existing record and queue the new snapshot.

        Raises:
            NotFoundError: No record with this id
            ValidationError: The merged record is invalid
        """
        with self.locks.hold(record_id):
            current = self.store.get(self.COLLECTION, record_id)
            if current is None:
                raise NotFoundError(self.COLLECTION, record_id)

            merged = current.to_dict()
            merged.update({k: v for k, v in patch.items() if k not in PROTECTED_FIELDS})
            record = self._build(merged)
            record.updated_at = utc_now()
            record.synced = False

            self.store.put(self.COLLECTION, record)
            self._enqueue(Operation.UPDATE, record_id, record.to_dict())

        logger.debug(f"Updated {self.COLLECTION}/{record_id}")
        return record

    def delete(self, record_id: str) -> bool:
        """
        Delete a record locally and queue the remote delete.

        The queued entry carries the record's remote id, or None when the
        record never reached the remote API.

        Returns:
            True if a record was deleted, False if it did not exist
        """
        with self.locks.hold(record_id):
            current = self.store.get(self.COLLECTION, record_id)
            if current is None:
                return False
            self._enqueue(Operation.DELETE, record_id, {'remote_id': current.remote_id})
            self.store.delete(self.COLLECTION, record_id)

        logger.debug(f"Deleted {self.COLLECTION}/{record_id}")
        return True

    def get(self, record_id: str) -> Optional[DomainRecord]:
        """Read one record straight from the local store; None when absent."""
        return self.store.get(self.COLLECTION, record_id)

    def get_all(self) -> List[DomainRecord]:
        """Every record of this collection, no queue interaction."""
        return self.store.get_all(self.COLLECTION)

    def query(self, predicate: Callable[[Any], bool]) -> List[DomainRecord]:
        """Records of this collection matching ``predicate``."""
        return self.store.query(self.COLLECTION, predicate)
