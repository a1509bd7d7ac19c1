# File: catalogsync/services/shipping_profile_service.py

from typing import Optional
import logging

from sqlalchemy.orm import Session

from catalogsync.db.models.enums import ShippingProfileType
from catalogsync.db.models.product import ShippingProfile
from catalogsync.repositories.shipping_profile_repository import ShippingProfileRepository
from catalogsync.services.base_service import BaseService

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_NAME = "Default Shipping Profile"


class ShippingProfileService(BaseService[ShippingProfile]):
    """Service for shipping profiles; imported products get the default one."""

    def __init__(self, session: Session, repository: Optional[ShippingProfileRepository] = None):
        super().__init__(session, repository=repository or ShippingProfileRepository(session))

    def retrieve_default(self) -> Optional[ShippingProfile]:
        return self.repository.find_default()

    def retrieve_by_name(
        self, name: Optional[str] = None, profile_type: Optional[str] = None
    ) -> Optional[ShippingProfile]:
        return self.repository.find_by_name(name, profile_type)

    def create_default(self) -> ShippingProfile:
        """
        Return the default shipping profile, creating it if there is none.

        Returns:
            The default shipping profile
        """
        with self.transaction():
            profile = self.retrieve_default()
            if profile:
                return profile

            profile = self.repository.create(
                {"name": DEFAULT_PROFILE_NAME, "type": ShippingProfileType.DEFAULT.value}
            )
            logger.info(f"Created default shipping profile {profile.id}")
            return profile
