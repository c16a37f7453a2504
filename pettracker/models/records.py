"""
Domain record types stored in the local store.

Every record carries the same bookkeeping fields (local id, timestamps,
synced flag, remote id); entity fields are declared explicitly with their
defaults. References between entities are plain id values.
"""

import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

PETS = "pets"
EVENTS = "events"
EVENT_TYPES = "eventTypes"
CONTACTS = "contacts"
CARE_ITEMS = "careItems"

CONTACT_ROLES = ("Vet", "Groomer", "Sitter", "Breeder", "Emergency", "Other")


def generate_id() -> str:
    """Generate a new opaque local identifier."""
    return str(uuid.uuid4())


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class EventStatus(str, Enum):
    COMPLETED = "Completed"
    PLANNED = "Planned"
    SCHEDULED = "Scheduled"
    MISSED = "Missed"


@dataclass
class DomainRecord:
    """Fields shared by every record collection."""

    COLLECTION: ClassVar[str] = ""
    REQUIRED: ClassVar[Tuple[str, ...]] = ()

    id: str = ""
    created_at: str = ""
    updated_at: str = ""
    synced: bool = False
    remote_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainRecord":
        """Build a record from a dict, ignoring keys the type does not declare."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED if not getattr(self, name)]


@dataclass
class Pet(DomainRecord):
    COLLECTION: ClassVar[str] = PETS
    REQUIRED: ClassVar[Tuple[str, ...]] = ("name",)

    name: str = ""
    species: Optional[str] = None
    breed: str = ""
    sex: Optional[str] = None
    birth_date: Optional[str] = None
    adoption_date: Optional[str] = None
    status: str = "Active"
    microchip_id: str = ""
    tags: List[str] = field(default_factory=list)
    notes: str = ""
    target_weight_min: Optional[float] = None
    target_weight_max: Optional[float] = None
    weight_unit: str = "lb"
    color: str = "#8b7b8e"
    is_primary: bool = False
    primary_vet_id: Optional[str] = None
    related_contact_ids: List[str] = field(default_factory=list)


@dataclass
class Event(DomainRecord):
    COLLECTION: ClassVar[str] = EVENTS
    REQUIRED: ClassVar[Tuple[str, ...]] = ("start_date",)

    title: str = "Event"
    pet_ids: List[str] = field(default_factory=list)
    event_type_id: Optional[str] = None
    care_item_id: Optional[str] = None
    start_date: str = ""
    end_date: Optional[str] = None
    status: EventStatus = EventStatus.COMPLETED
    severity_level_id: Optional[str] = None
    value: Optional[float] = None
    unit: Optional[str] = None
    duration: Optional[float] = None
    notes: str = ""
    tags: List[str] = field(default_factory=list)
    source: str = "Manual"
    provider_id: Optional[str] = None
    cost: Optional[float] = None
    cost_category: Optional[str] = None
    cost_currency: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.status, EventStatus):
            self.status = EventStatus(self.status)
        if isinstance(self.pet_ids, str):
            self.pet_ids = [self.pet_ids]


@dataclass
class EventType(DomainRecord):
    COLLECTION: ClassVar[str] = EVENT_TYPES
    REQUIRED: ClassVar[Tuple[str, ...]] = ("name",)

    name: str = ""
    category: Optional[str] = None
    tracking_mode: Optional[str] = None
    uses_severity: bool = False
    default_color: Optional[str] = None
    default_icon: str = ""
    default_tags: List[str] = field(default_factory=list)
    default_unit: Optional[str] = None


@dataclass
class Contact(DomainRecord):
    COLLECTION: ClassVar[str] = CONTACTS
    REQUIRED: ClassVar[Tuple[str, ...]] = ("name",)

    name: str = ""
    role: Optional[str] = None
    phone: str = ""
    email: str = ""
    address: str = ""
    notes: str = ""
    related_pet_ids: List[str] = field(default_factory=list)


@dataclass
class CareItem(DomainRecord):
    COLLECTION: ClassVar[str] = CARE_ITEMS
    REQUIRED: ClassVar[Tuple[str, ...]] = ("name",)

    name: str = ""
    type: str = "Medication"
    default_dose: str = ""
    default_unit: Optional[str] = None
    default_route: Optional[str] = None
    linked_event_type_id: Optional[str] = None
    related_pet_ids: List[str] = field(default_factory=list)
    active_start: Optional[str] = None
    active_end: Optional[str] = None
    notes: str = ""
    active: bool = True


COLLECTION_MODELS: Dict[str, Type[DomainRecord]] = {
    model.COLLECTION: model for model in (Pet, Event, EventType, Contact, CareItem)
}


def model_for(collection: str) -> Type[DomainRecord]:
    """Return the record class for a collection name."""
    try:
        return COLLECTION_MODELS[collection]
    except KeyError:
        raise KeyError(f"Unknown collection: {collection}") from None
