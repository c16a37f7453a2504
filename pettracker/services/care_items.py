from datetime import date
from typing import List, Optional

from pettracker.models.records import CARE_ITEMS, CareItem

from .base_service import RecordService


class CareItemService(RecordService):
    """Medications, supplements and other care items."""

    COLLECTION = CARE_ITEMS
    MODEL = CareItem

    def get_active(self, on_date: Optional[str] = None) -> List[CareItem]:
        """
        Care items flagged active whose active window covers ``on_date``.

        Args:
            on_date: ISO date, defaults to today
        """
        day = (on_date or date.today().isoformat())[:10]

        def is_active(item: CareItem) -> bool:
            if not item.active:
                return False
            if item.active_start and item.active_start[:10] > day:
                return False
            if item.active_end and item.active_end[:10] < day:
                return False
            return True

        return self.query(is_active)

    def get_for_pet(self, pet_id: str) -> List[CareItem]:
        return self.query(lambda i: pet_id in i.related_pet_ids)
