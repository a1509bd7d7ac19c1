# File: catalogsync/repositories/shipping_profile_repository.py

from typing import Optional

from sqlalchemy.orm import Session

from catalogsync.db.models.enums import ShippingProfileType
from catalogsync.db.models.product import ShippingProfile
from catalogsync.repositories.base_repository import BaseRepository


class ShippingProfileRepository(BaseRepository[ShippingProfile]):
    def __init__(self, session: Session):
        super().__init__(session, ShippingProfile)

    def find_default(self) -> Optional[ShippingProfile]:
        return self.find_one_by(type=ShippingProfileType.DEFAULT.value)

    def find_by_name(
        self, name: Optional[str] = None, profile_type: Optional[str] = None
    ) -> Optional[ShippingProfile]:
        """First profile with this name and/or type, None if neither is given."""
        filters = {}
        if name:
            filters["name"] = name
        if profile_type:
            filters["type"] = profile_type
        return self.find_one_by(**filters) if filters else None
