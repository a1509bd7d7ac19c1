# File: catalogsync/services/export_columns.py

"""
Columns of the product export.

Static columns use the same names as the import schema so an export can be
imported back. Dynamic columns are sized from the shape discovered while
pre-processing the export job; the full column list is an immutable tuple
built once per job.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from catalogsync.db.models.product import MoneyAmount, Product, ProductVariant
from catalogsync.schemas.batch_job import ExportPriceColumn, ExportShape

PRODUCT = "product"
VARIANT = "variant"


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class ExportColumnDescriptor:
    name: str
    accessor: Callable[[Any], str]
    entity_name: str

    def __post_init__(self):
        if self.entity_name not in (PRODUCT, VARIANT):
            raise ValueError(f"Unknown entity '{self.entity_name}' for column '{self.name}'")

    def value(self, product: Product, variant: ProductVariant) -> str:
        return self.accessor(product if self.entity_name == PRODUCT else variant)


def _attr(entity_name: str, name: str, path: str) -> ExportColumnDescriptor:
    """Descriptor reading a dotted attribute path, e.g. "collection.handle"."""

    def accessor(entity: Any) -> str:
        value = entity
        for part in path.split("."):
            value = getattr(value, part, None)
            if value is None:
                return ""
        return format_value(value)

    return ExportColumnDescriptor(name=name, accessor=accessor, entity_name=entity_name)


def _tags(product: Product) -> str:
    return ",".join(tag.value for tag in product.tags or [])


STATIC_COLUMNS: Tuple[ExportColumnDescriptor, ...] = (
    _attr(PRODUCT, "Product id", "id"),
    _attr(PRODUCT, "Product Handle", "handle"),
    _attr(PRODUCT, "Product Title", "title"),
    _attr(PRODUCT, "Product Subtitle", "subtitle"),
    _attr(PRODUCT, "Product Description", "description"),
    _attr(PRODUCT, "Product Status", "status"),
    _attr(PRODUCT, "Product Thumbnail", "thumbnail"),
    _attr(PRODUCT, "Product Weight", "weight"),
    _attr(PRODUCT, "Product Length", "length"),
    _attr(PRODUCT, "Product Width", "width"),
    _attr(PRODUCT, "Product Height", "height"),
    _attr(PRODUCT, "Product HS Code", "hs_code"),
    _attr(PRODUCT, "Product Origin Country", "origin_country"),
    _attr(PRODUCT, "Product Mid Code", "mid_code"),
    _attr(PRODUCT, "Product Material", "material"),
    _attr(PRODUCT, "Product Collection Title", "collection.title"),
    _attr(PRODUCT, "Product Collection Handle", "collection.handle"),
    _attr(PRODUCT, "Product Type", "type.value"),
    ExportColumnDescriptor(name="Product Tags", accessor=_tags, entity_name=PRODUCT),
    _attr(PRODUCT, "Product Discountable", "discountable"),
    _attr(PRODUCT, "Product External ID", "external_id"),
    _attr(PRODUCT, "Product Profile Name", "profile.name"),
    _attr(PRODUCT, "Product Profile Type", "profile.type"),
    _attr(VARIANT, "Variant id", "id"),
    _attr(VARIANT, "Variant Title", "title"),
    _attr(VARIANT, "Variant SKU", "sku"),
    _attr(VARIANT, "Variant Barcode", "barcode"),
    _attr(VARIANT, "Variant Inventory Quantity", "inventory_quantity"),
    _attr(VARIANT, "Variant Allow backorder", "allow_backorder"),
    _attr(VARIANT, "Variant Manage inventory", "manage_inventory"),
    _attr(VARIANT, "Variant Weight", "weight"),
    _attr(VARIANT, "Variant Length", "length"),
    _attr(VARIANT, "Variant Width", "width"),
    _attr(VARIANT, "Variant Height", "height"),
    _attr(VARIANT, "Variant HS Code", "hs_code"),
    _attr(VARIANT, "Variant Origin Country", "origin_country"),
    _attr(VARIANT, "Variant Mid Code", "mid_code"),
    _attr(VARIANT, "Variant Material", "material"),
)


def option_columns(count: int) -> List[ExportColumnDescriptor]:
    columns = []
    for i in range(count):

        def option_name(product: Product, i: int = i) -> str:
            options = product.options or []
            return format_value(options[i].title) if i < len(options) else ""

        def option_value(variant: ProductVariant, i: int = i) -> str:
            # The value of the variant for the i-th option of its product
            options = variant.product.options or []
            if i >= len(options):
                return ""
            value = next((ov for ov in variant.options or [] if ov.option_id == options[i].id), None)
            return format_value(value.value) if value else ""

        columns.append(ExportColumnDescriptor(f"Option {i + 1} Name", option_name, PRODUCT))
        columns.append(ExportColumnDescriptor(f"Option {i + 1} Value", option_value, VARIANT))
    return columns


def image_columns(count: int) -> List[ExportColumnDescriptor]:
    columns = []
    for i in range(count):

        def image_url(product: Product, i: int = i) -> str:
            images = product.images or []
            return format_value(images[i].url) if i < len(images) else ""

        columns.append(ExportColumnDescriptor(f"Image {i + 1} Url", image_url, PRODUCT))
    return columns


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


def currency_price_matcher(column: ExportPriceColumn) -> Callable[[MoneyAmount], bool]:
    """A plain price (no region) in the column's currency."""

    def matches(price: MoneyAmount) -> bool:
        return (
            price.region_id is None
            and price.currency_code is not None
            and _lower(price.currency_code) == _lower(column.currency_code)
        )

    return matches


def region_price_matcher(column: ExportPriceColumn) -> Callable[[MoneyAmount], bool]:
    """A price of the column's region, matched on region name and id."""

    def matches(price: MoneyAmount) -> bool:
        region = price.region
        return (
            region is not None
            and _lower(region.name) == _lower(column.region.name)
            and _lower(region.id) == _lower(column.region.id)
        )

    return matches


def price_columns(prices: List[ExportPriceColumn]) -> List[ExportColumnDescriptor]:
    """
    One column per distinct price key: "Price <CODE>" for currency prices,
    "Price <Region name> [<CODE>]" for region prices.
    """
    columns = []
    used_names = set()

    for column in prices:
        code = (column.currency_code or "").upper()
        if column.region:
            name = f"Price {column.region.name} [{code}]"
            matcher = region_price_matcher(column)
        else:
            name = f"Price {code}"
            matcher = currency_price_matcher(column)

        # Regions sharing a name are told apart by id
        if name in used_names and column.region:
            name = f"{name} ({column.region.id})"
        used_names.add(name)

        def price_amount(variant: ProductVariant, matcher=matcher) -> str:
            price = next((p for p in variant.prices or [] if matcher(p)), None)
            return format_value(price.amount) if price else ""

        columns.append(ExportColumnDescriptor(name, price_amount, VARIANT))
    return columns


def build_export_columns(shape: Optional[ExportShape]) -> Tuple[ExportColumnDescriptor, ...]:
    """
    Full, ordered column list of an export: static columns, then option
    name/value pairs, image urls and prices sized from the shape.
    """
    shape = shape or ExportShape()
    return (
        STATIC_COLUMNS
        + tuple(option_columns(shape.dynamicOptionColumnCount))
        + tuple(image_columns(shape.dynamicImageColumnCount))
        + tuple(price_columns(shape.prices))
    )


def build_product_variant_lines(
    product: Product, columns: Tuple[ExportColumnDescriptor, ...]
) -> List[List[str]]:
    """One line of values per variant of the product."""
    return [[column.value(product, variant) for column in columns] for variant in product.variants]
