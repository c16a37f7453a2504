"""
Event records, including day-based stamp tracking.
"""

import logging
from enum import Enum
from typing import List

from pettracker.models.records import EVENT_TYPES, EVENTS, Event, EventStatus

from .base_service import RecordService

logger = logging.getLogger(__name__)


class ToggleResult(str, Enum):
    CREATED = "created"
    REMOVED = "removed"

    @property
    def created(self) -> bool:
        return self is ToggleResult.CREATED


def _day(value: str) -> str:
    """Calendar day (YYYY-MM-DD) of an ISO date or datetime string."""
    return (value or "")[:10]


class EventService(RecordService):
    """Events logged against one or more pets."""

    COLLECTION = EVENTS
    MODEL = Event

    def get_for_pet(self, pet_id: str) -> List[Event]:
        return self.query(lambda e: pet_id in e.pet_ids)

    def get_for_date_range(self, start_date: str, end_date: str) -> List[Event]:
        """
        Events starting between two dates.

        Both bounds are whole days: a timed event on ``end_date`` is included.
        """
        start, end = _day(start_date), _day(end_date)
        return self.query(lambda e: bool(e.start_date) and start <= _day(e.start_date) <= end)

    def get_recent(self, limit: int = 10) -> List[Event]:
        """Most recent events first, by start date."""
        events = sorted(self.get_all(), key=lambda e: e.start_date, reverse=True)
        return events[:limit]

    def find_stamps(self, pet_id: str, event_type_id: str, date: str) -> List[Event]:
        day = _day(date)
        return self.query(
            lambda e: pet_id in e.pet_ids
            and e.event_type_id == event_type_id
            and _day(e.start_date) == day
        )

    def get_stamps(self, pet_id: str, event_type_id: str, start_date: str, end_date: str) -> List[Event]:
        """Stamp events of one type for a pet within a date range."""
        return [
            e for e in self.get_for_date_range(start_date, end_date)
            if pet_id in e.pet_ids and e.event_type_id == event_type_id
        ]

    def toggle_stamp(self, pet_id: str, event_type_id: str, date: str) -> ToggleResult:
        """
        Flip the stamp for (pet, event type, day).

        An existing stamp is deleted; otherwise a completed event is created
        for that day, titled after the event type. Calling twice with the
        same arguments returns to the original state.

        Returns:
            ToggleResult.CREATED or ToggleResult.REMOVED
        """
        day = _day(date)
        with self.locks.hold(f"stamp:{pet_id}:{event_type_id}:{day}"):
            existing = self.find_stamps(pet_id, event_type_id, day)
            if existing:
                for event in existing:
                    self.delete(event.id)
                logger.debug(f"Removed stamp {event_type_id} for pet {pet_id} on {day}")
                return ToggleResult.REMOVED

            event_type = self.store.get(EVENT_TYPES, event_type_id)
            self.create({
                'title': getattr(event_type, 'name', None) or 'Event',
                'pet_ids': [pet_id],
                'event_type_id': event_type_id,
                'start_date': day,
                'status': EventStatus.COMPLETED,
                'source': 'Manual',
            })
            logger.debug(f"Created stamp {event_type_id} for pet {pet_id} on {day}")
            return ToggleResult.CREATED
