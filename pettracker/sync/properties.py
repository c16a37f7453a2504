"""
Conversion between local records and remote page properties.

The remote API stores each record as a page whose ``properties`` map a
display name to a typed value (title, rich_text, select, relation, ...).
Builders produce those values from Python values; extractors read them back.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pettracker.models.records import (
    CARE_ITEMS,
    CONTACTS,
    EVENT_TYPES,
    EVENTS,
    PETS,
)

logger = logging.getLogger(__name__)


# Builders

def title(text: Optional[str]) -> Dict[str, Any]:
    return {'title': [{'type': 'text', 'text': {'content': text or ''}}]}


def rich_text(text: Optional[str]) -> Dict[str, Any]:
    return {'rich_text': [{'type': 'text', 'text': {'content': text or ''}}]}


def number(value: Optional[float]) -> Dict[str, Any]:
    return {'number': None if value is None else float(value)}


def select(name: Optional[str]) -> Dict[str, Any]:
    return {'select': {'name': name} if name else None}


def multi_select(names: Optional[Iterable[str]]) -> Dict[str, Any]:
    return {'multi_select': [{'name': name} for name in (names or [])]}


def date(start: Optional[str], end: Optional[str] = None) -> Dict[str, Any]:
    return {'date': {'start': start, 'end': end} if start else None}


def checkbox(checked: Any) -> Dict[str, Any]:
    return {'checkbox': bool(checked)}


def relation(ids: Any) -> Dict[str, Any]:
    if not isinstance(ids, (list, tuple)):
        ids = [ids]
    return {'relation': [{'id': i} for i in ids if i]}


# Extractors

def get_title(prop: Optional[dict]) -> str:
    parts = (prop or {}).get('title') or []
    return parts[0].get('plain_text', '') if parts else ''


def get_rich_text(prop: Optional[dict]) -> str:
    parts = (prop or {}).get('rich_text') or []
    return parts[0].get('plain_text', '') if parts else ''


def get_number(prop: Optional[dict]) -> Optional[float]:
    return (prop or {}).get('number')


def get_select(prop: Optional[dict]) -> Optional[str]:
    value = (prop or {}).get('select')
    return value.get('name') if value else None


def get_multi_select(prop: Optional[dict]) -> List[str]:
    return [item['name'] for item in (prop or {}).get('multi_select') or []]


def get_date(prop: Optional[dict]) -> Optional[str]:
    value = (prop or {}).get('date')
    return value.get('start') if value else None


def get_date_end(prop: Optional[dict]) -> Optional[str]:
    value = (prop or {}).get('date')
    return value.get('end') if value else None


def get_checkbox(prop: Optional[dict]) -> bool:
    return bool((prop or {}).get('checkbox'))


def get_relation(prop: Optional[dict]) -> List[str]:
    return [item['id'] for item in (prop or {}).get('relation') or []]


def get_first_relation(prop: Optional[dict]) -> Optional[str]:
    ids = get_relation(prop)
    return ids[0] if ids else None


def _single_relation(value: Optional[str]) -> Dict[str, Any]:
    return relation([value] if value else [])


_NULLABLE = {'remote_id', 'updated_at'}

# Relation fields per collection and the collection they point into
RELATION_TARGETS: Dict[str, Dict[str, str]] = {
    PETS: {'primary_vet_id': CONTACTS, 'related_contact_ids': CONTACTS},
    EVENTS: {
        'pet_ids': PETS,
        'event_type_id': EVENT_TYPES,
        'care_item_id': CARE_ITEMS,
        'provider_id': CONTACTS,
    },
    CONTACTS: {'related_pet_ids': PETS},
    CARE_ITEMS: {'linked_event_type_id': EVENT_TYPES, 'related_pet_ids': PETS},
}

# (remote property name, builder, local field, extractor)
FieldMap = List[Tuple[str, Callable[[Any], dict], str, Callable[[Optional[dict]], Any]]]

FIELD_MAPS: Dict[str, FieldMap] = {
    PETS: [
        ('Name', title, 'name', get_title),
        ('Species', select, 'species', get_select),
        ('Breed', rich_text, 'breed', get_rich_text),
        ('Sex', select, 'sex', get_select),
        ('Birth Date', date, 'birth_date', get_date),
        ('Adoption Date', date, 'adoption_date', get_date),
        ('Status', select, 'status', get_select),
        ('Microchip ID', rich_text, 'microchip_id', get_rich_text),
        ('Tags', multi_select, 'tags', get_multi_select),
        ('Notes', rich_text, 'notes', get_rich_text),
        ('Target Weight Min', number, 'target_weight_min', get_number),
        ('Target Weight Max', number, 'target_weight_max', get_number),
        ('Weight Unit', select, 'weight_unit', get_select),
        ('Color', rich_text, 'color', get_rich_text),
        ('Is Primary', checkbox, 'is_primary', get_checkbox),
        ('Primary Vet', _single_relation, 'primary_vet_id', get_first_relation),
        ('Related Contacts', relation, 'related_contact_ids', get_relation),
    ],
    EVENTS: [
        ('Title', title, 'title', get_title),
        ('Pet(s)', relation, 'pet_ids', get_relation),
        ('Event Type', _single_relation, 'event_type_id', get_first_relation),
        ('Care Item', _single_relation, 'care_item_id', get_first_relation),
        ('Status', select, 'status', get_select),
        ('Severity Level', _single_relation, 'severity_level_id', get_first_relation),
        ('Value', number, 'value', get_number),
        ('Unit', select, 'unit', get_select),
        ('Duration', number, 'duration', get_number),
        ('Notes', rich_text, 'notes', get_rich_text),
        ('Tags', multi_select, 'tags', get_multi_select),
        ('Source', select, 'source', get_select),
        ('Provider', _single_relation, 'provider_id', get_first_relation),
        ('Cost', number, 'cost', get_number),
        ('Cost Category', select, 'cost_category', get_select),
        ('Cost Currency', select, 'cost_currency', get_select),
    ],
    EVENT_TYPES: [
        ('Name', title, 'name', get_title),
        ('Category', select, 'category', get_select),
        ('Tracking Mode', select, 'tracking_mode', get_select),
        ('Uses Severity', checkbox, 'uses_severity', get_checkbox),
        ('Default Color', select, 'default_color', get_select),
        ('Default Icon', rich_text, 'default_icon', get_rich_text),
        ('Default Tags', multi_select, 'default_tags', get_multi_select),
        ('Default Unit', select, 'default_unit', get_select),
    ],
    CONTACTS: [
        ('Name', title, 'name', get_title),
        ('Role', select, 'role', get_select),
        ('Phone', rich_text, 'phone', get_rich_text),
        ('Email', rich_text, 'email', get_rich_text),
        ('Address', rich_text, 'address', get_rich_text),
        ('Notes', rich_text, 'notes', get_rich_text),
        ('Related Pets', relation, 'related_pet_ids', get_relation),
    ],
    CARE_ITEMS: [
        ('Name', title, 'name', get_title),
        ('Type', select, 'type', get_select),
        ('Default Dose', rich_text, 'default_dose', get_rich_text),
        ('Default Unit', select, 'default_unit', get_select),
        ('Default Route', select, 'default_route', get_select),
        ('Linked Event Type', _single_relation, 'linked_event_type_id', get_first_relation),
        ('Related Pets', relation, 'related_pet_ids', get_relation),
        ('Active Start', date, 'active_start', get_date),
        ('Active End', date, 'active_end', get_date),
        ('Notes', rich_text, 'notes', get_rich_text),
        ('Active', checkbox, 'active', get_checkbox),
    ],
}


def to_remote_properties(collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the remote ``properties`` object for a record snapshot.

    Args:
        collection: Record collection name
        data: Record fields as stored in a queue payload

    Returns:
        Mapping of remote property name to typed value
    """
    field_map = FIELD_MAPS.get(collection)
    if field_map is None:
        logger.warning(f"No property mapping for collection: {collection}")
        return {}
    properties = {name: build(data.get(attr)) for name, build, attr, _ in field_map}
    if collection == EVENTS:
        properties['Start Date'] = date(data.get('start_date'), data.get('end_date'))
        properties['Client Updated At'] = date(data.get('updated_at'))
    return properties


def from_remote_page(collection: str, page: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read record fields out of a remote page.

    The returned dict carries ``remote_id`` and ``updated_at`` (the page's
    last edit time) in addition to the mapped fields.
    """
    props = page.get('properties') or {}
    data: Dict[str, Any] = {
        'remote_id': page.get('id'),
        'updated_at': page.get('last_edited_time'),
    }
    field_map = FIELD_MAPS.get(collection)
    if field_map is None:
        logger.warning(f"No extraction mapping for collection: {collection}")
        return data
    for name, _, attr, extract in field_map:
        data[attr] = extract(props.get(name))
    if collection == EVENTS:
        data['start_date'] = get_date(props.get('Start Date')) or ''
        data['end_date'] = get_date_end(props.get('Start Date'))
    # Empty selects fall back to the record defaults
    return {k: v for k, v in data.items() if v is not None or k in _NULLABLE}
