"""
Record services: the only writers to the local store.
"""

from .base_service import RecordService
from .care_items import CareItemService
from .contacts import ContactService
from .event_types import EventTypeService
from .events import EventService, ToggleResult
from .pets import PetService
from .service_registry import ServiceRegistry
from .stamp_debouncer import StampDebouncer

__all__ = [
    'RecordService', 'PetService', 'EventService', 'ContactService', 'CareItemService',
    'EventTypeService', 'ServiceRegistry', 'StampDebouncer', 'ToggleResult',
]
