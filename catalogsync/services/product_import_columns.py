# File: catalogsync/services/product_import_columns.py

"""
Column schema of the product import CSV.

Static columns map onto ``product.*`` and ``variant.*`` paths; the
repeating groups (options, prices, images) are folded into lists by the
reducers below. Reducers never mutate the row they are given.
"""

from typing import Any, Dict, List, Optional
import re

from catalogsync.services.csv_parser_service import (
    ColumnDescriptor,
    CsvSchema,
    ParserContext,
)

OPTION_NAME_PATTERN = re.compile(r"^Option (\d+) Name$")
OPTION_VALUE_PATTERN = re.compile(r"^Option (\d+) Value$")
PRICE_REGION_PATTERN = re.compile(r"^Price (.+) \[([A-Z]{2,4})\]$")
PRICE_CURRENCY_PATTERN = re.compile(r"^Price ([A-Z]{2,4})$")
IMAGE_URL_PATTERN = re.compile(r"^Image (\d+) Url$")

TRUE_VALUES = {"true", "1", "yes"}
FALSE_VALUES = {"false", "0", "no"}


# --- Transforms ---


def parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"expected one of {sorted(TRUE_VALUES | FALSE_VALUES)}")


def parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        number = float(value)
        if not number.is_integer():
            raise ValueError("expected a whole number")
        return int(number)


def parse_float(value: str) -> float:
    return float(value)


def split_tags(value: str) -> List[Dict[str, str]]:
    """'a, b' -> [{"value": "a"}, {"value": "b"}]"""
    return [{"value": tag.strip()} for tag in f"{value}".split(",") if tag.strip()]


# --- Reducers ---


def _append(row: Dict[str, Any], key: str, item: Any) -> Dict[str, Any]:
    """Copy of row with item appended to the list under key."""
    items = list(row.get(key) or [])
    if item is not None:
        items.append(item)
    return {**row, key: items}


def reduce_option_name(
    row: Dict[str, Any], column: str, value: Optional[str], context: ParserContext
) -> Dict[str, Any]:
    return _append(row, "product.options", {"title": value} if value is not None else None)


def reduce_option_value(
    row: Dict[str, Any], column: str, value: Optional[str], context: ParserContext
) -> Dict[str, Any]:
    if value is None:
        return _append(row, "variant.options", None)

    # Sibling "Option N Name" read from the raw line, wherever it sits
    title_column = column[: -len("Value")] + "Name"
    return _append(
        row, "variant.options", {"value": value, "_title": context.line.get(title_column)}
    )


def reduce_region_price(
    row: Dict[str, Any], column: str, value: Optional[str], context: ParserContext
) -> Dict[str, Any]:
    if value is None:
        return _append(row, "variant.prices", None)

    region_name = PRICE_REGION_PATTERN.search(column).group(1)
    return _append(row, "variant.prices", {"amount": value, "regionName": region_name})


def reduce_currency_price(
    row: Dict[str, Any], column: str, value: Optional[str], context: ParserContext
) -> Dict[str, Any]:
    if value is None:
        return _append(row, "variant.prices", None)

    currency_code = PRICE_CURRENCY_PATTERN.search(column).group(1)
    return _append(row, "variant.prices", {"amount": value, "currency_code": currency_code})


def reduce_image_url(
    row: Dict[str, Any], column: str, value: Optional[str], context: ParserContext
) -> Dict[str, Any]:
    return _append(row, "product.images", value)


PRODUCT_IMPORT_SCHEMA = CsvSchema(
    columns=(
        # Product
        ColumnDescriptor("Product id", map_to="product.id"),
        ColumnDescriptor("Product Handle", map_to="product.handle", required=True),
        ColumnDescriptor("Product Title", map_to="product.title"),
        ColumnDescriptor("Product Subtitle", map_to="product.subtitle"),
        ColumnDescriptor("Product Description", map_to="product.description"),
        ColumnDescriptor("Product Status", map_to="product.status", transform=str.lower),
        ColumnDescriptor("Product Thumbnail", map_to="product.thumbnail"),
        ColumnDescriptor("Product Weight", map_to="product.weight", transform=parse_float),
        ColumnDescriptor("Product Length", map_to="product.length", transform=parse_float),
        ColumnDescriptor("Product Width", map_to="product.width", transform=parse_float),
        ColumnDescriptor("Product Height", map_to="product.height", transform=parse_float),
        ColumnDescriptor("Product HS Code", map_to="product.hs_code"),
        ColumnDescriptor("Product Origin Country", map_to="product.origin_country"),
        ColumnDescriptor("Product Mid Code", map_to="product.mid_code"),
        ColumnDescriptor("Product Material", map_to="product.material"),
        # Collection
        ColumnDescriptor("Product Collection Title", map_to="product.collection.title"),
        ColumnDescriptor("Product Collection Handle", map_to="product.collection.handle"),
        # Type
        ColumnDescriptor("Product Type", map_to="product.type.value"),
        # Tags
        ColumnDescriptor("Product Tags", map_to="product.tags", transform=split_tags),
        ColumnDescriptor(
            "Product Discountable", map_to="product.discountable", transform=parse_bool
        ),
        ColumnDescriptor("Product External ID", map_to="product.external_id"),
        # Shipping profile
        ColumnDescriptor("Product Profile Name", map_to="product.profile.name"),
        ColumnDescriptor("Product Profile Type", map_to="product.profile.type"),
        # Variant
        ColumnDescriptor("Variant id", map_to="variant.id"),
        ColumnDescriptor("Variant Title", map_to="variant.title"),
        ColumnDescriptor("Variant SKU", map_to="variant.sku"),
        ColumnDescriptor("Variant Barcode", map_to="variant.barcode"),
        ColumnDescriptor(
            "Variant Inventory Quantity", map_to="variant.inventory_quantity", transform=parse_int
        ),
        ColumnDescriptor(
            "Variant Allow backorder", map_to="variant.allow_backorder", transform=parse_bool
        ),
        ColumnDescriptor(
            "Variant Manage inventory", map_to="variant.manage_inventory", transform=parse_bool
        ),
        ColumnDescriptor("Variant Weight", map_to="variant.weight", transform=parse_float),
        ColumnDescriptor("Variant Length", map_to="variant.length", transform=parse_float),
        ColumnDescriptor("Variant Width", map_to="variant.width", transform=parse_float),
        ColumnDescriptor("Variant Height", map_to="variant.height", transform=parse_float),
        ColumnDescriptor("Variant HS Code", map_to="variant.hs_code"),
        ColumnDescriptor("Variant Origin Country", map_to="variant.origin_country"),
        ColumnDescriptor("Variant Mid Code", map_to="variant.mid_code"),
        ColumnDescriptor("Variant Material", map_to="variant.material"),
        # Dynamic groups; region prices must be tried before currency prices
        ColumnDescriptor("Option Name", match=OPTION_NAME_PATTERN, reducer=reduce_option_name),
        ColumnDescriptor("Option Value", match=OPTION_VALUE_PATTERN, reducer=reduce_option_value),
        ColumnDescriptor("Price Region", match=PRICE_REGION_PATTERN, reducer=reduce_region_price),
        ColumnDescriptor(
            "Price Currency", match=PRICE_CURRENCY_PATTERN, reducer=reduce_currency_price
        ),
        ColumnDescriptor("Image Url", match=IMAGE_URL_PATTERN, reducer=reduce_image_url),
    )
)

# One example of each repeating group, appended to the import template
TEMPLATE_DYNAMIC_COLUMNS = (
    "Option 1 Name",
    "Option 1 Value",
    "Price EUR",
    "Price Europe [EUR]",
    "Image 1 Url",
)
