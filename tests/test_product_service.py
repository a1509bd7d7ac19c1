# tests/test_product_service.py
"""
Tests for the product and product variant services.
"""

import logging

import pytest
from sqlalchemy import inspect

from catalogsync.core.exceptions import (
    DuplicateEntityException,
    EntityNotFoundException,
    InvalidDataException,
    ValidationException,
)
from catalogsync.schemas.batch_job import ListConfig


@pytest.fixture()
def products(factory):
    return factory.get_product_service()


@pytest.fixture()
def variants(factory):
    return factory.get_product_variant_service()


def test_handle_defaults_to_slugified_title(products, default_profile):
    product = products.create({"title": "Leather Wallet, Brown"})

    assert product.handle == "leather-wallet-brown"
    assert product.profile_id == default_profile.id


def test_duplicate_handle_is_rejected(products):
    products.create({"handle": "mug"})

    with pytest.raises(DuplicateEntityException):
        products.create({"handle": "mug", "title": "Another mug"})


def test_handle_or_title_is_required(products):
    with pytest.raises(ValidationException):
        products.create({"subtitle": "No name"})


def test_invalid_status_is_rejected(products):
    with pytest.raises(ValidationException):
        products.create({"handle": "mug", "status": "archived"})


def test_tags_type_and_collection_are_reused(products):
    first = products.create(
        {
            "handle": "a",
            "tags": [{"value": "summer"}],
            "type": {"value": "Apparel"},
            "collection": {"title": "Tops", "handle": "tops"},
        }
    )
    second = products.create(
        {
            "handle": "b",
            "tags": [{"value": "summer"}, {"value": "sale"}],
            "type": {"value": "Apparel"},
            "collection": {"handle": "tops"},
        }
    )

    assert second.type.id == first.type.id
    assert second.collection.id == first.collection.id
    assert second.collection.title == "Tops"
    assert {tag.value for tag in second.tags} == {"summer", "sale"}
    assert first.tags[0].id in {tag.id for tag in second.tags}


def test_update_adds_missing_options_and_replaces_images(products):
    product = products.create(
        {"handle": "shirt", "options": [{"title": "Size"}], "images": ["http://img/1.png"]}
    )
    size_id = product.options[0].id

    product = products.update(
        product.id,
        {"title": "Shirt", "options": [{"title": "Size"}, {"title": "Color"}], "images": ["http://img/2.png"]},
    )

    assert product.title == "Shirt"
    assert [option.title for option in product.options] == ["Size", "Color"]
    assert product.options[0].id == size_id
    assert [image.url for image in product.images] == ["http://img/2.png"]


def test_update_rejects_taken_handle(products):
    products.create({"handle": "a"})
    b = products.create({"handle": "b"})

    with pytest.raises(DuplicateEntityException):
        products.update(b.id, {"handle": "a"})


def test_retrieve_by_handle(products):
    products.create({"handle": "mug"})

    assert products.retrieve_by_handle("mug").handle == "mug"
    with pytest.raises(EntityNotFoundException):
        products.retrieve_by_handle("cup")


def test_list_filters_and_pages(products):
    products.create({"handle": "a", "title": "Red shirt", "status": "published", "tags": [{"value": "sale"}]})
    products.create({"handle": "b", "title": "Blue shirt", "status": "draft"})
    products.create({"handle": "c", "title": "Mug", "status": "published"})

    config = ListConfig(order={"handle": "ASC"}, take=10)

    assert [p.handle for p in products.list({"status": "published"}, config)] == ["a", "c"]
    assert [p.handle for p in products.list({"q": "shirt"}, config)] == ["a", "b"]
    assert [p.handle for p in products.list({"tags": "sale"}, config)] == ["a"]
    assert [p.handle for p in products.list({"handle": ["b", "c"]}, config)] == ["b", "c"]

    page, count = products.list_and_count({}, {"skip": 1, "take": 1, "order": {"handle": "DESC"}})
    assert [p.handle for p in page] == ["b"]
    assert count == 3


def test_variant_needs_one_value_per_option(products, variants):
    product = products.create({"handle": "shirt", "options": [{"title": "Size"}, {"title": "Color"}]})

    with pytest.raises(InvalidDataException):
        variants.create(
            product, {"sku": "S", "options": [{"value": "S", "option_id": product.options[0].id}]}
        )

    with pytest.raises(InvalidDataException):
        variants.create(product, {"sku": "S", "options": [{"value": "S", "_title": "Size"}]})


def test_variant_title_and_rank(products, variants):
    product = products.create({"handle": "shirt", "options": [{"title": "Size"}, {"title": "Color"}]})
    size, color = product.options

    first = variants.create(
        product,
        {"options": [{"value": "S", "option_id": size.id}, {"value": "Blue", "option_id": color.id}]},
    )
    second = variants.create(
        product.id,
        {
            "title": "Large red",
            "options": [{"value": "L", "option_id": size.id}, {"value": "Red", "option_id": color.id}],
        },
    )

    assert first.title == "S / Blue"
    assert (first.variant_rank, second.variant_rank) == (0, 1)
    assert second.title == "Large red"


def test_duplicate_sku_is_rejected(products, variants):
    product = products.create({"handle": "mug"})
    variants.create(product, {"sku": "MUG-1"})

    with pytest.raises(DuplicateEntityException):
        variants.create(product, {"sku": "MUG-1"})


def test_price_amount_must_be_integer(products, variants):
    product = products.create({"handle": "mug"})

    with pytest.raises(InvalidDataException):
        variants.create(product, {"sku": "MUG-1", "prices": [{"amount": "10", "currency_code": "eur"}]})

    with pytest.raises(InvalidDataException):
        variants.create(product, {"sku": "MUG-1", "prices": [{"amount": 10}]})


def test_region_price_takes_region_currency(factory, products, variants):
    region = factory.get_region_service().create({"name": "Denmark", "currency_code": "DKK"})
    product = products.create({"handle": "mug"})

    variant = variants.create(product, {"sku": "MUG-1", "prices": [{"amount": 75, "region_id": region.id}]})

    assert [(price.amount, price.currency_code) for price in variant.prices] == [(75, "dkk")]

    variant = variants.update(variant.id, {"prices": [{"amount": 80, "region_id": region.id}]})
    assert [price.amount for price in variant.prices] == [80]


def test_list_loads_selected_fields(db_session, products):
    products.create({"handle": "mug", "title": "Mug"})
    db_session.expire_all()

    [product] = products.list({}, ListConfig(select=["handle", "unknown"]))

    unloaded = inspect(product).unloaded
    assert "handle" not in unloaded
    assert "title" in unloaded
    assert product.title == "Mug"


@pytest.fixture()
def gift_profile(factory):
    profiles = factory.get_shipping_profile_service()
    with profiles.transaction():
        return profiles.repository.create({"name": "Gift Cards", "type": "gift_card"})


def test_profile_is_resolved_by_name_and_type(products, default_profile, gift_profile):
    product = products.create(
        {
            "handle": "card",
            "profile_id": default_profile.id,
            "profile": {"name": "Gift Cards", "type": "gift_card"},
        }
    )
    assert product.profile_id == gift_profile.id

    product = products.update(
        product.id, {"profile": {"name": default_profile.name, "type": None}}
    )
    assert product.profile_id == default_profile.id


def test_unknown_profile_keeps_default(products, default_profile, caplog):
    with caplog.at_level(logging.WARNING, logger="catalogsync.services.product_service"):
        product = products.create({"handle": "mug", "profile": {"name": "Freight", "type": None}})

    assert product.profile_id == default_profile.id
    assert "Freight" in caplog.text
