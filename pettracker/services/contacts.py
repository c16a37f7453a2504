from typing import List

from pettracker.models.records import CONTACTS, Contact

from .base_service import RecordService


class ContactService(RecordService):
    """Vets, groomers, sitters and other people linked to pets."""

    COLLECTION = CONTACTS
    MODEL = Contact

    def get_by_role(self, role: str) -> List[Contact]:
        return self.query(lambda c: c.role == role)

    def get_for_pet(self, pet_id: str) -> List[Contact]:
        return self.query(lambda c: pet_id in c.related_pet_ids)
