# File: catalogsync/repositories/region_repository.py

from typing import Optional

from sqlalchemy.orm import Session

from catalogsync.db.models.product import Region
from catalogsync.repositories.base_repository import BaseRepository


class RegionRepository(BaseRepository[Region]):
    """Repository for selling regions."""

    def __init__(self, session: Session):
        super().__init__(session, Region)

    def find_by_name(self, name: str) -> Optional[Region]:
        return self.find_one_by(name=name)
