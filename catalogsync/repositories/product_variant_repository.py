# File: catalogsync/repositories/product_variant_repository.py

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from catalogsync.db.models.product import (
    Product,
    ProductOption,
    ProductVariant,
)
from catalogsync.repositories.base_repository import BaseRepository


class ProductVariantRepository(BaseRepository[ProductVariant]):
    """Repository for product variants."""

    def __init__(self, session: Session):
        super().__init__(session, ProductVariant)

    def get_with_relations(self, variant_id: str) -> Optional[ProductVariant]:
        """Variant with its prices and option values loaded."""
        stmt = (
            select(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .options(
                selectinload(ProductVariant.prices),
                selectinload(ProductVariant.options),
            )
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_sku(self, sku: str) -> Optional[ProductVariant]:
        return self.find_one_by(sku=sku)


class ProductOptionRepository(BaseRepository[ProductOption]):
    """Repository for product option groups."""

    def __init__(self, session: Session):
        super().__init__(session, ProductOption)

    def find_by_title(
        self, title: str, product_handle: Optional[str] = None
    ) -> Optional[ProductOption]:
        """
        Find an option group by title.

        Args:
            title: Option title
            product_handle: Restrict the lookup to one product's options

        Returns:
            The first matching option, or None
        """
        stmt = select(ProductOption).where(ProductOption.title == title)
        if product_handle:
            stmt = stmt.join(Product, Product.id == ProductOption.product_id).where(
                Product.handle == product_handle
            )
        stmt = stmt.order_by(ProductOption.rank).limit(1)
        return self.session.execute(stmt).scalars().first()
