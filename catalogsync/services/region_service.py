# File: catalogsync/services/region_service.py

from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from catalogsync.core.exceptions import ValidationException
from catalogsync.db.models.product import Region
from catalogsync.repositories.region_repository import RegionRepository
from catalogsync.services.base_service import BaseService

logger = logging.getLogger(__name__)


class RegionService(BaseService[Region]):
    """Service for selling regions."""

    def __init__(self, session: Session, repository: Optional[RegionRepository] = None):
        super().__init__(session, repository=repository or RegionRepository(session))

    def create(self, data: Dict[str, Any]) -> Region:
        """
        Create a region.

        Args:
            data: Region name and currency code

        Returns:
            The created region

        Raises:
            ValidationException: If name or currency code is missing
        """
        errors = {}
        if not data.get("name"):
            errors["name"] = ["Region name is required"]
        if not data.get("currency_code"):
            errors["currency_code"] = ["Currency code is required"]
        if errors:
            raise ValidationException("Invalid region data", errors)

        with self.transaction():
            region = self.repository.create(
                {"name": data["name"], "currency_code": str(data["currency_code"]).lower()}
            )
            self._log_operation("create", "Region", region.id)
            return region

    def retrieve_by_name(self, name: str) -> Optional[Region]:
        return self.repository.find_by_name(name)
