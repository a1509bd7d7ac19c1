# File: catalogsync/db/models/product.py
"""
Defines the catalog models: products, their options, variants and prices.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from catalogsync.db.models.base import AbstractBase, Base, TimestampMixin
from catalogsync.db.models.enums import ProductStatus, ShippingProfileType


product_tag_links = Table(
    "product_tag_links",
    Base.metadata,
    Column("product_id", String(64), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("product_tag_id", String(64), ForeignKey("product_tags.id", ondelete="CASCADE"), primary_key=True),
)


class Region(AbstractBase, TimestampMixin):
    """A selling region; region prices are keyed by it."""

    __tablename__ = "regions"
    id_prefix = "reg"

    name = Column(String(255), nullable=False, index=True)
    currency_code = Column(String(3), nullable=False)


class ShippingProfile(AbstractBase, TimestampMixin):
    __tablename__ = "shipping_profiles"
    id_prefix = "sp"

    name = Column(String(255), nullable=False)
    type = Column(String(32), nullable=False, default=ShippingProfileType.CUSTOM.value)


class ProductCollection(AbstractBase, TimestampMixin):
    __tablename__ = "product_collections"
    id_prefix = "pcol"

    title = Column(String(255), nullable=False)
    handle = Column(String(255), unique=True, nullable=True)

    products = relationship("Product", back_populates="collection")


class ProductType(AbstractBase, TimestampMixin):
    __tablename__ = "product_types"
    id_prefix = "ptyp"

    value = Column(String(255), unique=True, nullable=False)


class ProductTag(AbstractBase, TimestampMixin):
    __tablename__ = "product_tags"
    id_prefix = "ptag"

    value = Column(String(255), nullable=False, index=True)


class Product(AbstractBase, TimestampMixin):
    """
    Represents a catalog product.

    The handle is the natural key used by the CSV import to group
    variant rows under one product.
    """

    __tablename__ = "products"
    id_prefix = "prod"

    handle = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=True)
    subtitle = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default=ProductStatus.DRAFT.value)
    thumbnail = Column(String(1024), nullable=True)
    weight = Column(Float, nullable=True)
    length = Column(Float, nullable=True)
    width = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    hs_code = Column(String(64), nullable=True)
    origin_country = Column(String(64), nullable=True)
    mid_code = Column(String(64), nullable=True)
    material = Column(String(255), nullable=True)
    discountable = Column(Boolean, nullable=False, default=True)
    external_id = Column(String(255), nullable=True)

    profile_id = Column(String(64), ForeignKey("shipping_profiles.id"), nullable=True)
    collection_id = Column(String(64), ForeignKey("product_collections.id"), nullable=True)
    type_id = Column(String(64), ForeignKey("product_types.id"), nullable=True)

    profile = relationship("ShippingProfile")
    collection = relationship("ProductCollection", back_populates="products")
    type = relationship("ProductType")
    tags = relationship("ProductTag", secondary=product_tag_links, order_by="ProductTag.value")

    options = relationship(
        "ProductOption",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductOption.rank",
    )
    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.variant_rank",
    )
    images = relationship(
        "Image",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="Image.rank",
    )


class Image(AbstractBase, TimestampMixin):
    __tablename__ = "images"
    id_prefix = "img"

    url = Column(String(1024), nullable=False)
    rank = Column(Integer, nullable=False, default=0)
    product_id = Column(String(64), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)

    product = relationship("Product", back_populates="images")


class ProductOption(AbstractBase, TimestampMixin):
    """An option group of a product, e.g. "Size"."""

    __tablename__ = "product_options"
    id_prefix = "opt"

    title = Column(String(255), nullable=False)
    rank = Column(Integer, nullable=False, default=0)
    product_id = Column(String(64), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)

    product = relationship("Product", back_populates="options")
    values = relationship("ProductOptionValue", back_populates="option")


class ProductVariant(AbstractBase, TimestampMixin):
    __tablename__ = "product_variants"
    id_prefix = "variant"

    product_id = Column(String(64), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=True)
    sku = Column(String(255), unique=True, nullable=True)
    barcode = Column(String(255), unique=True, nullable=True)
    inventory_quantity = Column(Integer, nullable=False, default=0)
    allow_backorder = Column(Boolean, nullable=False, default=False)
    manage_inventory = Column(Boolean, nullable=False, default=True)
    weight = Column(Float, nullable=True)
    length = Column(Float, nullable=True)
    width = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    hs_code = Column(String(64), nullable=True)
    origin_country = Column(String(64), nullable=True)
    mid_code = Column(String(64), nullable=True)
    material = Column(String(255), nullable=True)
    variant_rank = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="variants")
    prices = relationship(
        "MoneyAmount",
        back_populates="variant",
        cascade="all, delete-orphan",
        order_by="MoneyAmount.created_at",
    )
    options = relationship(
        "ProductOptionValue",
        back_populates="variant",
        cascade="all, delete-orphan",
    )


class ProductOptionValue(AbstractBase, TimestampMixin):
    """The value a variant takes for one option group, e.g. "XL"."""

    __tablename__ = "product_option_values"
    id_prefix = "optval"

    value = Column(String(255), nullable=False)
    option_id = Column(String(64), ForeignKey("product_options.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(String(64), ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False)

    option = relationship("ProductOption", back_populates="values")
    variant = relationship("ProductVariant", back_populates="options")


class MoneyAmount(AbstractBase, TimestampMixin):
    """
    A variant price.

    Region prices carry ``region_id`` and the region's currency;
    plain prices carry only ``currency_code``.
    """

    __tablename__ = "money_amounts"
    id_prefix = "ma"

    currency_code = Column(String(3), nullable=True)
    amount = Column(Integer, nullable=False)
    variant_id = Column(String(64), ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False)
    region_id = Column(String(64), ForeignKey("regions.id"), nullable=True)

    variant = relationship("ProductVariant", back_populates="prices")
    region = relationship("Region")
