"""Models package for the pet tracker sync engine."""

from .records import (
    CARE_ITEMS,
    CONTACTS,
    EVENT_TYPES,
    EVENTS,
    PETS,
    CareItem,
    Contact,
    DomainRecord,
    Event,
    EventStatus,
    EventType,
    Pet,
)
from .sync_entry import EntryStatus, Operation, SyncQueueEntry

__all__ = [
    'CARE_ITEMS', 'CONTACTS', 'EVENT_TYPES', 'EVENTS', 'PETS',
    'CareItem', 'Contact', 'DomainRecord', 'Event', 'EventStatus', 'EventType', 'Pet',
    'EntryStatus', 'Operation', 'SyncQueueEntry',
]
