"""
Registry mapping collection names to their record service.
"""

from typing import Dict, Iterator, Optional

from pettracker.database.local_store import LocalStore
from pettracker.database.record_locks import RecordLocks
from pettracker.sync.sync_queue import SyncQueue

from .base_service import RecordService
from .care_items import CareItemService
from .contacts import ContactService
from .event_types import EventTypeService
from .events import EventService
from .pets import PetService


class ServiceRegistry:
    """Builds one service per collection, sharing the store, queue and locks."""

    def __init__(self, store: LocalStore, queue: SyncQueue, locks: Optional[RecordLocks] = None):
        self.locks = locks or RecordLocks()
        self.events = EventService(store, queue, self.locks)
        self.pets = PetService(store, queue, self.locks, events=self.events)
        self.contacts = ContactService(store, queue, self.locks)
        self.care_items = CareItemService(store, queue, self.locks)
        self.event_types = EventTypeService(store, queue, self.locks)
        self._by_collection: Dict[str, RecordService] = {
            service.COLLECTION: service
            for service in (self.events, self.pets, self.contacts, self.care_items, self.event_types)
        }

    def get(self, collection: str) -> RecordService:
        """
        Return the service for a collection.

        Raises:
            KeyError: No service handles this collection
        """
        try:
            return self._by_collection[collection]
        except KeyError:
            raise KeyError(f"No service registered for collection: {collection}") from None

    def __iter__(self) -> Iterator[RecordService]:
        return iter(self._by_collection.values())
