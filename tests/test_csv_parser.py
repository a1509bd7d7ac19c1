# tests/test_csv_parser.py
"""
Tests for the schema-driven CSV parser and the product import column schema.
"""

import io

import pytest

from catalogsync.core.exceptions import SchemaValidationException
from catalogsync.services.csv_parser_service import (
    ColumnDescriptor,
    CsvParser,
    CsvSchema,
    ParserContext,
)
from catalogsync.services.product_import_columns import (
    PRODUCT_IMPORT_SCHEMA,
    parse_bool,
    parse_int,
    reduce_option_name,
    reduce_option_value,
    split_tags,
)

HEADER = (
    "Product Handle,Product Title,Product Discountable,Product Tags,Variant SKU,"
    "Variant Inventory Quantity,Option 1 Name,Option 1 Value,Option 2 Name,Option 2 Value,"
    "Price DKK,Price Denmark [DKK],Image 1 Url,Image 2 Url"
)


def _csv(*lines):
    return io.StringIO("\n".join(lines) + "\n")


@pytest.fixture()
def parser():
    return CsvParser(PRODUCT_IMPORT_SCHEMA, delimiter=",")


def test_parse_builds_nested_row(parser):
    stream = _csv(
        HEADER,
        'shirt,Shirt,TRUE,"cotton, summer",SHIRT-S,10,Size,S,Color,Blue,110,120,'
        "http://img/1.png,http://img/2.png",
    )

    rows = list(parser.build_data(parser.parse(stream)))

    assert len(rows) == 1
    row = rows[0]
    assert row["product.handle"] == "shirt"
    assert row["product.title"] == "Shirt"
    assert row["product.discountable"] is True
    assert row["product.tags"] == [{"value": "cotton"}, {"value": "summer"}]
    assert row["variant.sku"] == "SHIRT-S"
    assert row["variant.inventory_quantity"] == 10
    assert row["product.options"] == [{"title": "Size"}, {"title": "Color"}]
    assert row["variant.options"] == [
        {"value": "S", "_title": "Size"},
        {"value": "Blue", "_title": "Color"},
    ]
    assert row["variant.prices"] == [
        {"amount": "110", "currency_code": "DKK"},
        {"amount": "120", "regionName": "Denmark"},
    ]
    assert row["product.images"] == ["http://img/1.png", "http://img/2.png"]


def test_parse_is_idempotent(parser):
    text = "\n".join(
        [
            HEADER,
            "shirt,Shirt,false,,SHIRT-S,1,Size,S,,,110,,,",
            "shirt,Shirt,false,,SHIRT-M,2,Size,M,,,120,,,",
        ]
    )

    first = list(parser.build_data(parser.parse(io.StringIO(text))))
    second = list(parser.build_data(parser.parse(io.StringIO(text))))

    assert first == second
    assert [row["variant.sku"] for row in first] == ["SHIRT-S", "SHIRT-M"]


def test_empty_cells_are_skipped(parser):
    stream = _csv(HEADER, "mug,,,,MUG-1,,,,,,50,,,")

    row = next(parser.build_data(parser.parse(stream)))

    assert "product.title" not in row
    assert "variant.inventory_quantity" not in row
    assert row["product.options"] == []
    assert row["variant.options"] == []
    assert row["variant.prices"] == [{"amount": "50", "currency_code": "DKK"}]
    assert row["product.images"] == []


def test_short_lines_are_padded(parser):
    stream = _csv("Product Handle,Product Title,Variant SKU", "mug")

    row = next(parser.build_data(parser.parse(stream)))

    assert row == {"product.handle": "mug"}


def test_blank_lines_are_skipped_and_line_numbers_kept(parser):
    stream = _csv("Product Handle,Variant Inventory Quantity", "", "mug,abc")

    with pytest.raises(SchemaValidationException) as exc_info:
        list(parser.build_data(parser.parse(stream)))

    assert exc_info.value.details == {"column": "Variant Inventory Quantity", "line": 3}


def test_unknown_header_is_rejected(parser):
    stream = _csv("Product Handle,Product Colour", "mug,red")

    with pytest.raises(SchemaValidationException) as exc_info:
        list(parser.parse(stream))

    assert exc_info.value.details["column"] == "Product Colour"


def test_descriptor_name_of_dynamic_column_is_not_a_header(parser):
    with pytest.raises(SchemaValidationException):
        list(parser.parse(_csv("Product Handle,Price Region", "mug,10")))


def test_missing_required_column_is_rejected(parser):
    with pytest.raises(SchemaValidationException) as exc_info:
        list(parser.parse(_csv("Product Title", "Mug")))

    assert exc_info.value.details["column"] == "Product Handle"


def test_duplicate_header_is_rejected(parser):
    with pytest.raises(SchemaValidationException):
        list(parser.parse(_csv("Product Handle,Product Handle", "a,b")))


def test_missing_required_value_is_rejected(parser):
    stream = _csv("Product Handle,Product Title", ",Mug")

    with pytest.raises(SchemaValidationException) as exc_info:
        list(parser.build_data(parser.parse(stream)))

    assert exc_info.value.details == {"column": "Product Handle", "line": 2}


def test_too_many_values_are_rejected(parser):
    with pytest.raises(SchemaValidationException):
        list(parser.parse(_csv("Product Handle", "mug,extra")))


def test_empty_file_is_rejected(parser):
    with pytest.raises(SchemaValidationException):
        list(parser.parse(io.StringIO("")))


def test_invalid_boolean_is_rejected(parser):
    stream = _csv("Product Handle,Product Discountable", "mug,maybe")

    with pytest.raises(SchemaValidationException) as exc_info:
        list(parser.build_data(parser.parse(stream)))

    assert exc_info.value.details["column"] == "Product Discountable"


def test_status_is_lowercased(parser):
    stream = _csv("Product Handle,Product Status", "mug,Published")

    row = next(parser.build_data(parser.parse(stream)))

    assert row["product.status"] == "published"


def test_parse_is_lazy(parser):
    lines = iter([HEADER, "shirt,,,,A,,,,,,,,,", "shirt,,,,B,,,,,,,,,"])

    rows = parser.build_data(parser.parse(lines))
    first = next(rows)

    assert first["variant.sku"] == "A"
    assert next(lines) == "shirt,,,,B,,,,,,,,,"


def test_custom_delimiter():
    parser = CsvParser(PRODUCT_IMPORT_SCHEMA, delimiter=";")

    row = next(parser.build_data(parser.parse(_csv("Product Handle;Product Title", "mug;Mug"))))

    assert row == {"product.handle": "mug", "product.title": "Mug"}


def test_region_price_is_matched_before_currency_price():
    descriptor = PRODUCT_IMPORT_SCHEMA.resolve("Price Europe [EUR]")
    assert descriptor.name == "Price Region"

    descriptor = PRODUCT_IMPORT_SCHEMA.resolve("Price EUR")
    assert descriptor.name == "Price Currency"

    assert PRODUCT_IMPORT_SCHEMA.resolve("Price eur") is None


def test_reducers_do_not_mutate_their_input():
    context = ParserContext(line={"Option 1 Name": "Size"}, line_number=2)
    row = {"product.options": [{"title": "Color"}]}

    new_row = reduce_option_name(row, "Option 1 Name", "Size", context)

    assert row == {"product.options": [{"title": "Color"}]}
    assert new_row["product.options"] == [{"title": "Color"}, {"title": "Size"}]

    new_row = reduce_option_value(row, "Option 1 Value", "L", context)
    assert new_row["variant.options"] == [{"value": "L", "_title": "Size"}]
    assert "variant.options" not in row


def test_transforms():
    assert parse_bool("Yes") is True
    assert parse_bool("0") is False
    assert parse_int("3") == 3
    assert parse_int("3.0") == 3
    with pytest.raises(ValueError):
        parse_int("3.5")
    assert split_tags(" a ,, b") == [{"value": "a"}, {"value": "b"}]


def test_column_descriptor_needs_one_kind():
    with pytest.raises(ValueError):
        ColumnDescriptor("Nothing")

    with pytest.raises(ValueError):
        ColumnDescriptor("Both", map_to="x", match="^y$", reducer=reduce_option_name)

    with pytest.raises(ValueError):
        ColumnDescriptor("Half", match="^y$")


def test_schema_rejects_duplicate_names():
    with pytest.raises(ValueError):
        CsvSchema(columns=(ColumnDescriptor("A", map_to="a"), ColumnDescriptor("A", map_to="b")))
