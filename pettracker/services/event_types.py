import logging
from typing import List, Optional

from pettracker.models.records import EVENT_TYPES, EventType

from .base_service import RecordService

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPES = [
    {'name': 'Medication Given', 'category': 'Medication', 'tracking_mode': 'Stamp',
     'default_icon': 'pill', 'default_color': 'blue'},
    {'name': 'Symptom', 'category': 'Symptom', 'tracking_mode': 'Stamp', 'uses_severity': True,
     'default_icon': 'alert-circle', 'default_color': 'red'},
    {'name': 'Vet Visit', 'category': 'Vet Visit', 'tracking_mode': 'Timed',
     'default_icon': 'stethoscope', 'default_color': 'purple'},
    {'name': 'Walk', 'category': 'Activity', 'tracking_mode': 'Timed',
     'default_icon': 'footprints', 'default_color': 'green'},
    {'name': 'Weight', 'category': 'Weight', 'tracking_mode': 'Stamp',
     'default_icon': 'scale', 'default_color': 'orange'},
    {'name': 'Vaccine', 'category': 'Vaccine', 'tracking_mode': 'Stamp',
     'default_icon': 'syringe', 'default_color': 'teal'},
]


class EventTypeService(RecordService):
    """Kinds of event (walk, medication, weight...) and their defaults."""

    COLLECTION = EVENT_TYPES
    MODEL = EventType

    def get_by_name(self, name: str) -> Optional[EventType]:
        """Case-insensitive lookup by name."""
        wanted = name.strip().lower()
        matches = self.query(lambda t: (t.name or "").strip().lower() == wanted)
        return matches[0] if matches else None

    def create_defaults(self) -> List[EventType]:
        """
        Create the built-in event types that do not exist yet.

        Returns:
            The event types created by this call
        """
        created = []
        for data in DEFAULT_EVENT_TYPES:
            if self.get_by_name(data['name']) is None:
                created.append(self.create(data))
        if created:
            logger.info(f"Created {len(created)} default event types")
        return created
