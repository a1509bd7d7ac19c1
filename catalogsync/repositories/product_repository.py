# File: catalogsync/repositories/product_repository.py

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, load_only, selectinload

from catalogsync.db.models.product import (
    Product,
    ProductCollection,
    ProductTag,
    ProductType,
)
from catalogsync.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Columns searched by the free-text "q" filter
SEARCHABLE_FIELDS = ("title", "subtitle", "handle", "description")


class ProductRepository(BaseRepository[Product]):
    """
    Repository for Product entity operations.

    Provides listing with the filter/relations/order configuration used by
    the export jobs, and lookups by handle used by the import jobs.
    """

    def __init__(self, session: Session):
        super().__init__(session, Product)

    def find_by_handle(
        self, handle: str, relations: Optional[Iterable[str]] = None
    ) -> Optional[Product]:
        """
        Retrieve a product by its handle.

        Args:
            handle: Product handle
            relations: Dotted relation paths to eager load

        Returns:
            The product or None
        """
        stmt = select(Product).where(Product.handle == handle)
        stmt = stmt.options(*self._loader_options(relations or []))
        return self.session.execute(stmt).scalars().first()

    def list_products(
        self,
        filterable_fields: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        take: Optional[int] = None,
        order: Optional[Dict[str, str]] = None,
        relations: Optional[Iterable[str]] = None,
        select_fields: Optional[Iterable[str]] = None,
    ) -> List[Product]:
        """
        List products matching the filters, ordered and paginated.

        Args:
            filterable_fields: Field filters (scalar equality, list membership,
                "q" free-text search, "tags" by tag value)
            skip: Number of products to skip
            take: Maximum number of products to return
            order: Mapping of column name to "ASC"/"DESC"
            relations: Dotted relation paths to eager load
            select_fields: Product columns loaded up front; the others load
                on first access

        Returns:
            List of products
        """
        stmt = self._apply_product_filters(select(Product), filterable_fields or {})
        stmt = stmt.order_by(*self._order_clauses(order))
        stmt = stmt.options(*self._loader_options(relations or []))
        stmt = stmt.options(*self._select_options(select_fields))
        stmt = stmt.offset(skip or 0)
        if take is not None:
            stmt = stmt.limit(take)
        return list(self.session.execute(stmt).scalars().all())

    def count_products(self, filterable_fields: Optional[Dict[str, Any]] = None) -> int:
        stmt = select(func.count(Product.id)).select_from(Product)
        stmt = self._apply_product_filters(stmt, filterable_fields or {})
        return self.session.execute(stmt).scalar_one()

    def _apply_product_filters(self, stmt, filterable_fields: Dict[str, Any]):
        columns = Product.__table__.columns.keys()

        for key, value in filterable_fields.items():
            if value is None:
                continue

            if key == "q":
                search_term = f"%{value}%"
                stmt = stmt.where(
                    or_(*[getattr(Product, field).ilike(search_term) for field in SEARCHABLE_FIELDS])
                )
            elif key == "tags":
                values = value if isinstance(value, (list, tuple, set)) else [value]
                stmt = stmt.where(Product.tags.any(ProductTag.value.in_(list(values))))
            elif key in columns:
                column = getattr(Product, key)
                if isinstance(value, (list, tuple, set)):
                    stmt = stmt.where(column.in_(list(value)))
                else:
                    stmt = stmt.where(column == value)
            else:
                logger.warning(f"Ignoring unsupported product filter '{key}'")

        return stmt

    @staticmethod
    def _order_clauses(order: Optional[Dict[str, str]]) -> List[Any]:
        clauses = []
        for field, direction in (order or {"created_at": "DESC"}).items():
            column = getattr(Product, field, None)
            if column is None or field not in Product.__table__.columns.keys():
                logger.warning(f"Ignoring unsupported product order field '{field}'")
                continue
            clauses.append(column.desc() if str(direction).upper() == "DESC" else column.asc())
        # Stable paging needs a unique tie-breaker
        clauses.append(Product.id.asc())
        return clauses

    @staticmethod
    def _select_options(fields: Optional[Iterable[str]]) -> List[Any]:
        if not fields:
            return []

        columns = Product.__table__.columns.keys()
        selected = []
        for field in fields:
            if field == "id":
                continue
            if field not in columns:
                logger.warning(f"Ignoring unsupported product field '{field}'")
                continue
            selected.append(getattr(Product, field))

        return [load_only(Product.id, *selected)] if selected else []

    @staticmethod
    def _loader_options(relations: Iterable[str]) -> List[Any]:
        """
        Translate dotted relation paths ("variants.prices.region") into
        selectinload options.
        """
        options = []
        for path in relations:
            entity = Product
            loader = None
            for part in path.split("."):
                attr = getattr(entity, part, None)
                prop = getattr(attr, "property", None)
                if prop is None or not hasattr(prop, "mapper"):
                    logger.warning(f"Ignoring unknown relation '{path}' on {Product.__name__}")
                    loader = None
                    break
                loader = selectinload(attr) if loader is None else loader.selectinload(attr)
                entity = prop.mapper.class_
            if loader is not None:
                options.append(loader)
        return options


class ProductCollectionRepository(BaseRepository[ProductCollection]):
    def __init__(self, session: Session):
        super().__init__(session, ProductCollection)

    def find_by_handle(self, handle: str) -> Optional[ProductCollection]:
        return self.find_one_by(handle=handle)


class ProductTypeRepository(BaseRepository[ProductType]):
    def __init__(self, session: Session):
        super().__init__(session, ProductType)

    def upsert_type(self, value: str) -> ProductType:
        """Return the type with this value, creating it if needed."""
        existing = self.find_one_by(value=value)
        if existing:
            return existing
        return self.create({"value": value})


class ProductTagRepository(BaseRepository[ProductTag]):
    def __init__(self, session: Session):
        super().__init__(session, ProductTag)

    def upsert_tags(self, tags: List[Dict[str, Any]]) -> List[ProductTag]:
        """
        Resolve tag records ({"value": ...}) to tag entities, creating
        the ones that do not exist yet.
        """
        values = [str(tag["value"]).strip() for tag in tags if tag.get("value")]
        values = [value for value in values if value]
        if not values:
            return []

        stmt = select(ProductTag).where(ProductTag.value.in_(values))
        existing = {tag.value: tag for tag in self.session.execute(stmt).scalars().all()}

        result = []
        for value in dict.fromkeys(values):
            tag = existing.get(value)
            if tag is None:
                tag = self.create({"value": value})
                existing[value] = tag
            result.append(tag)
        return result
