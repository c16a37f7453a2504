"""
Pet records.
"""

import logging
from typing import List, Optional

from pettracker.models.records import EVENT_TYPES, PETS, Event, Pet

from .base_service import RecordService
from .events import EventService

logger = logging.getLogger(__name__)


class PetService(RecordService):
    """Pets, plus the event-aware operations on them."""

    COLLECTION = PETS
    MODEL = Pet

    def __init__(self, store, queue, locks=None, events: Optional[EventService] = None):
        super().__init__(store, queue, locks)
        self.events = events or EventService(store, queue, self.locks)

    def get_active(self) -> List[Pet]:
        return self.query(lambda p: p.status == "Active")

    def delete_with_events(self, pet_id: str) -> bool:
        """
        Delete a pet together with every event that references it.

        Each event is deleted through the event service, so every removal
        queues its own delete entry ahead of the pet's.

        Returns:
            True if the pet existed
        """
        if self.get(pet_id) is None:
            return False
        events = self.events.get_for_pet(pet_id)
        for event in events:
            self.events.delete(event.id)
        logger.info(f"Deleting pet {pet_id} with {len(events)} events")
        return self.delete(pet_id)

    def _weight_event_type_id(self) -> Optional[str]:
        for event_type in self.store.get_all(EVENT_TYPES):
            if event_type.category == "Weight" or "weight" in (event_type.name or "").lower():
                return event_type.id
        return None

    def get_weight_history(self, pet_id: str, limit: int = 10) -> List[Event]:
        """Weight events with a value for a pet, newest first."""
        weight_type_id = self._weight_event_type_id()
        if not weight_type_id:
            return []
        events = self.events.query(
            lambda e: pet_id in e.pet_ids and e.event_type_id == weight_type_id and e.value is not None
        )
        events.sort(key=lambda e: e.start_date, reverse=True)
        return events[:limit]

    def get_latest_weight(self, pet_id: str) -> Optional[Event]:
        history = self.get_weight_history(pet_id, limit=1)
        return history[0] if history else None
