"""
Initializes the models package for SQLAlchemy declarative base.

This file imports all model classes and enums into the
`catalogsync.db.models` namespace. This ensures that SQLAlchemy's metadata
is populated with all table definitions when `Base.metadata.create_all()`
is called.
"""

# Import the Base for declarative models
from catalogsync.db.models.base import Base, AbstractBase, generate_entity_id

from catalogsync.db.models.enums import (
    BatchJobStatus,
    OperationType,
    ProductStatus,
    ShippingProfileType,
)

# Import Core Models
from catalogsync.db.models.product import (
    Image,
    MoneyAmount,
    Product,
    ProductCollection,
    ProductOption,
    ProductOptionValue,
    ProductTag,
    ProductType,
    ProductVariant,
    Region,
    ShippingProfile,
    product_tag_links,
)
from catalogsync.db.models.batch_job import BatchJob

__all__ = [
    "Base",
    "AbstractBase",
    "generate_entity_id",
    "BatchJobStatus",
    "OperationType",
    "ProductStatus",
    "ShippingProfileType",
    "Image",
    "MoneyAmount",
    "Product",
    "ProductCollection",
    "ProductOption",
    "ProductOptionValue",
    "ProductTag",
    "ProductType",
    "ProductVariant",
    "Region",
    "ShippingProfile",
    "product_tag_links",
    "BatchJob",
]
