"""
Sync processor: replays the outbox against the remote API.

Entries are applied one at a time in queue order. A failed entry is kept
(with its attempt count and last error) and the drain moves on to the next
record, so one poisoned entry never starves the rest of the queue.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

from pettracker.config.app_config import RemoteConfig, SyncConfig
from pettracker.database.local_store import LocalStore
from pettracker.database.record_locks import RecordLocks
from pettracker.errors import RemoteError, SyncError
from pettracker.models.records import (
    CARE_ITEMS,
    CONTACTS,
    EVENT_TYPES,
    EVENTS,
    PETS,
    generate_id,
    model_for,
    utc_now,
)
from pettracker.models.sync_entry import EntryStatus, Operation, SyncQueueEntry

from .properties import RELATION_TARGETS, from_remote_page, to_remote_properties
from .remote_gateway import RemoteGateway
from .sync_queue import SyncQueue

logger = logging.getLogger(__name__)

# Referenced collections first, so relations resolve to local ids
PULL_ORDER = (EVENT_TYPES, PETS, CONTACTS, CARE_ITEMS, EVENTS)


@dataclass
class DrainResult:
    """Outcome counters for one pass over the queue."""
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False


@dataclass
class PullResult:
    """Outcome counters for one reconciliation pass."""
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    errors: int = 0


@dataclass
class SyncResult:
    drain: DrainResult
    pull: Optional[PullResult] = None


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else [value]


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SyncProcessor:
    """
    Drains the sync queue and reconciles remote changes into the local store.

    This class provides:
    - ``drain`` for pushing queued operations, strictly sequentially
    - ``pull`` for last-write-wins reconciliation of remote pages
    - ``sync`` running both, one cycle at a time
    """

    def __init__(
        self,
        store: LocalStore,
        queue: SyncQueue,
        gateway: RemoteGateway,
        remote_config: RemoteConfig,
        sync_config: Optional[SyncConfig] = None,
        locks: Optional[RecordLocks] = None,
    ):
        self.store = store
        self.queue = queue
        self.gateway = gateway
        self.remote_config = remote_config
        self.sync_config = sync_config or SyncConfig()
        self.locks = locks or RecordLocks()
        self._drain_lock = threading.Lock()
        self._cycle_lock = threading.Lock()

    def pending_count(self) -> int:
        """Number of queue entries still waiting to reach the remote API."""
        return self.queue.count_pending()

    # Push

    def drain(self, stop_event: Optional[threading.Event] = None) -> DrainResult:
        """
        Apply every pending queue entry in insertion order.

        Once an entry for a record fails, later entries for the same record
        are skipped for the rest of this drain so they are never applied out
        of order. Dead-lettered entries block their record the same way.

        Args:
            stop_event: When set, the drain stops before the next entry

        Returns:
            Counters describing the pass

        Raises:
            ConfigurationError: Proxy URL or credential missing
        """
        self.remote_config.validate()
        result = DrainResult()

        with self._drain_lock:
            entries = self.queue.drain()
            blocked: Set[str] = set()

            for index, entry in enumerate(entries):
                if stop_event is not None and stop_event.is_set():
                    result.cancelled = True
                    logger.info("Drain cancelled between entries")
                    break

                if entry.status == EntryStatus.FAILED:
                    blocked.add(entry.record_id)
                    continue
                if entry.record_id in blocked:
                    result.skipped += 1
                    logger.debug(f"Skipping {entry.op_id}: earlier entry for {entry.record_id} not applied")
                    continue

                result.processed += 1
                try:
                    self._apply(entry, entries[index + 1:])
                except SyncError as e:
                    self._record_failure(entry, e)
                    blocked.add(entry.record_id)
                    result.failed += 1
                except Exception as e:
                    logger.exception(f"Unexpected error applying {entry.op_id}: {e}")
                    self._record_failure(entry, e)
                    blocked.add(entry.record_id)
                    result.failed += 1
                else:
                    self.queue.remove(entry.op_id)
                    result.succeeded += 1

        if result.processed or result.skipped:
            logger.info(
                f"Drain finished: {result.succeeded} succeeded, {result.failed} failed, "
                f"{result.skipped} skipped"
            )
        return result

    def _apply(self, entry: SyncQueueEntry, later: List[SyncQueueEntry]) -> None:
        logger.debug(f"Applying {entry.operation.value} {entry.collection}/{entry.record_id}")
        if entry.operation == Operation.CREATE:
            self._apply_create(entry, later)
        elif entry.operation == Operation.UPDATE:
            self._apply_update(entry)
        else:
            self._apply_delete(entry)

    def _apply_create(self, entry: SyncQueueEntry, later: List[SyncQueueEntry]) -> None:
        properties = self._remote_properties(entry)
        current = self.store.get(entry.collection, entry.record_id)

        if current is not None and current.remote_id:
            # Replayed after the page was already created; never create twice
            self.gateway.update_page(current.remote_id, properties)
            remote_id = current.remote_id
        else:
            data_source_id = self.remote_config.data_source_for(entry.collection)
            page = self.gateway.create_page(data_source_id, properties)
            remote_id = page.get('id')
            if not remote_id:
                raise RemoteError("Create response did not include a page id")

        with self.locks.hold(entry.record_id):
            self._mark_synced(entry, remote_id)
            self._propagate_remote_id(entry, remote_id, later)

    def _apply_update(self, entry: SyncQueueEntry) -> None:
        current = self.store.get(entry.collection, entry.record_id)
        remote_id = (current.remote_id if current is not None else None) or entry.remote_id
        if not remote_id:
            raise SyncError(f"No remote id for {entry.collection}/{entry.record_id}")

        self.gateway.update_page(remote_id, self._remote_properties(entry))
        self._mark_synced(entry, remote_id)

    def _apply_delete(self, entry: SyncQueueEntry) -> None:
        remote_id = entry.remote_id
        if not remote_id:
            logger.debug(f"{entry.collection}/{entry.record_id} never reached the remote API, nothing to delete")
            return
        try:
            self.gateway.archive_page(remote_id)
        except RemoteError as e:
            if e.status != 404:
                raise
            logger.info(f"Remote page {remote_id} already gone, treating delete as applied")

    def _remote_properties(self, entry: SyncQueueEntry) -> Dict[str, Any]:
        """Remote properties for a snapshot, with relations pointing at remote page ids."""
        data = dict(entry.payload)
        for attr, target in RELATION_TARGETS.get(entry.collection, {}).items():
            value = data.get(attr)
            if not value:
                continue
            resolved = [r for r in (self._remote_ref(target, i) for i in _as_list(value)) if r]
            data[attr] = resolved if isinstance(value, list) else next(iter(resolved), None)
        return to_remote_properties(entry.collection, data)

    def _remote_ref(self, target: str, record_id: str) -> Optional[str]:
        referenced = self.store.get(target, record_id)
        if referenced is not None:
            if not referenced.remote_id:
                raise SyncError(f"Referenced {target}/{record_id} has not been synced yet")
            return referenced.remote_id
        if self.store.get_by_remote_id(target, record_id) is not None:
            return record_id
        logger.debug(f"Dropping reference to missing {target}/{record_id}")
        return None

    def _to_local_refs(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Point relation fields of pulled data at local ids where the target is known."""
        for attr, target in RELATION_TARGETS.get(collection, {}).items():
            value = data.get(attr)
            if not value:
                continue
            local_ids = []
            for remote_id in _as_list(value):
                referenced = self.store.get_by_remote_id(target, remote_id)
                local_ids.append(referenced.id if referenced is not None else remote_id)
            data[attr] = local_ids if isinstance(value, list) else local_ids[0]
        return data

    def _mark_synced(self, entry: SyncQueueEntry, remote_id: str) -> None:
        """Patch the local row after the remote side confirmed the entry."""
        with self.locks.hold(entry.record_id):
            record = self.store.get(entry.collection, entry.record_id)
            if record is None:
                return
            if not record.remote_id:
                record.remote_id = remote_id
            if record.updated_at == entry.payload.get('updated_at'):
                record.synced = True
            self.store.put(entry.collection, record)

    def _propagate_remote_id(
        self,
        entry: SyncQueueEntry,
        remote_id: str,
        later: Iterable[SyncQueueEntry],
    ) -> None:
        """
        Copy a new remote id into every other queued entry for the record.

        Entries are re-read from the queue, so an entry enqueued while the
        create was in flight (a delete that saw no remote id) is patched too.
        The in-memory copies this drain still has to apply are kept in step.
        Callers hold the record lock.
        """
        patched = set()
        for other in self.queue.entries_for_record(entry.record_id):
            if other.op_id == entry.op_id or other.remote_id:
                continue
            other.payload['remote_id'] = remote_id
            self.queue.update(other)
            patched.add(other.op_id)
        for other in later:
            if other.op_id in patched:
                other.payload['remote_id'] = remote_id

    def _record_failure(self, entry: SyncQueueEntry, error: Exception) -> None:
        entry.attempts += 1
        entry.last_error = str(error) or error.__class__.__name__
        entry.last_attempt_at = utc_now()
        if entry.attempts >= self.sync_config.max_entry_attempts:
            entry.status = EntryStatus.FAILED
            logger.warning(
                f"Entry {entry.op_id} for {entry.collection}/{entry.record_id} failed "
                f"{entry.attempts} times, moved to failed: {entry.last_error}"
            )
        else:
            logger.warning(
                f"Entry {entry.op_id} for {entry.collection}/{entry.record_id} kept in queue "
                f"(attempt {entry.attempts}): {entry.last_error}"
            )
        self.queue.update(entry)

    # Pull

    def pull(self, collections: Optional[Iterable[str]] = None) -> PullResult:
        """
        Reconcile remote pages into the local store, last write wins.

        Archived pages delete their local row, unknown pages are inserted,
        and known pages overwrite the local row only when the remote edit is
        newer. Rows with operations still queued are left alone, and so are
        pages whose local record was deleted while its archive is still
        queued. A collection whose query fails is counted in ``errors`` and
        the pull moves on to the next one.

        Raises:
            ConfigurationError: Proxy URL or credential missing
        """
        self.remote_config.validate()
        result = PullResult()

        for collection in collections or PULL_ORDER:
            data_source_id = self.remote_config.data_sources.get(collection)
            if not data_source_id:
                logger.debug(f"No data source for {collection}, skipping pull")
                continue
            try:
                self._pull_collection(collection, data_source_id, result)
            except SyncError as e:
                result.errors += 1
                logger.warning(f"Pull of {collection} failed, continuing with the next collection: {e}")

        logger.info(
            f"Pull finished: {result.inserted} inserted, {result.updated} updated, "
            f"{result.deleted} deleted"
        )
        return result

    def _pull_collection(self, collection: str, data_source_id: str, result: PullResult) -> None:
        deleted = self.queue.deleted_remote_ids(collection)
        for page in self._iter_pages(data_source_id):
            if page.get('id') in deleted:
                # Deleted locally, the archive is still queued
                result.unchanged += 1
                continue
            try:
                self._reconcile(collection, page, result)
            except (TypeError, ValueError) as e:
                result.errors += 1
                logger.warning(f"Could not reconcile {collection} page {page.get('id')}: {e}")

    def _iter_pages(self, data_source_id: str) -> Iterator[Dict]:
        cursor: Optional[str] = None
        while True:
            response = self.gateway.query_data_source(data_source_id, start_cursor=cursor)
            yield from response.get('results') or []
            cursor = response.get('next_cursor')
            if not response.get('has_more') or not cursor:
                return

    def _reconcile(self, collection: str, page: Dict, result: PullResult) -> None:
        remote_id = page.get('id')
        if not remote_id:
            return
        local = self.store.get_by_remote_id(collection, remote_id)
        archived = bool(page.get('archived') or page.get('in_trash'))

        if local is None:
            if archived:
                result.unchanged += 1
                return
            data = self._to_local_refs(collection, from_remote_page(collection, page))
            record = model_for(collection).from_dict(data)
            record.id = generate_id()
            record.created_at = page.get('created_time') or utc_now()
            record.synced = True
            self.store.put(collection, record)
            result.inserted += 1
            return

        with self.locks.hold(local.id):
            if self.queue.entries_for_record(local.id):
                result.unchanged += 1
                return
            if archived:
                self.store.delete(collection, local.id)
                result.deleted += 1
                return

            remote_time = _parse_timestamp(page.get('last_edited_time'))
            local_time = _parse_timestamp(local.updated_at)
            if local_time is not None and (remote_time is None or remote_time <= local_time):
                result.unchanged += 1
                return

            merged = local.to_dict()
            merged.update(self._to_local_refs(collection, from_remote_page(collection, page)))
            record = model_for(collection).from_dict(merged)
            record.synced = True
            self.store.put(collection, record)
            result.updated += 1

    # Cycle

    def sync(self, stop_event: Optional[threading.Event] = None) -> Optional[SyncResult]:
        """
        Run one drain followed by a pull.

        Returns:
            The cycle outcome, or None when another cycle is already running
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Sync already in progress, skipping")
            return None
        try:
            drained = self.drain(stop_event)
            pulled = None
            if self.sync_config.pull_enabled and not drained.cancelled:
                pulled = self.pull()
            return SyncResult(drain=drained, pull=pulled)
        finally:
            self._cycle_lock.release()
