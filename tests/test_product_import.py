# tests/test_product_import.py
"""
Tests for the product import job: classification of parsed rows, staging,
the transactional apply phases and progress checkpoints.
"""

import pytest

from catalogsync.core.exceptions import (
    ImportRowException,
    InvalidDataException,
    SchemaValidationException,
    ValidationException,
)
from catalogsync.db.models.enums import BatchJobStatus, OperationType
from catalogsync.repositories.product_repository import ProductRepository
from catalogsync.repositories.product_variant_repository import ProductVariantRepository
from catalogsync.services.product_import_service import (
    ImportProgress,
    transform_product_data,
    transform_variant_data,
)

IMPORT_HEADER = (
    "Product Handle,Product Title,Product Status,Product Tags,Product Collection Handle,"
    "Variant SKU,Variant Inventory Quantity,Option 1 Name,Option 1 Value,"
    "Price DKK,Price Denmark [DKK],Image 1 Url"
)


def _csv(*lines):
    return "\n".join(lines) + "\n"


@pytest.fixture()
def strategy(factory):
    return factory.get_product_import_strategy()


@pytest.fixture()
def denmark(factory):
    return factory.get_region_service().create({"name": "Denmark", "currency_code": "DKK"})


def _import(runner, file_storage, content):
    file_key = file_storage.store_file(content, "products.csv")
    job = runner.create({"type": "product-import", "context": {"fileKey": file_key}})
    return runner.run(job.id)


# --- Classification ---


def test_rows_are_classified_once_per_product(strategy, default_profile):
    rows = [
        {"product.handle": "shirt", "variant.sku": "SHIRT-S"},
        {"product.handle": "shirt", "variant.sku": "SHIRT-M"},
        {"product.handle": "mug", "product.id": "prod_1", "variant.id": "variant_1"},
    ]

    ops = strategy.get_import_instructions(rows)

    assert list(ops) == list(OperationType)
    assert [op["variant.sku"] for op in ops[OperationType.PRODUCT_CREATE]] == ["SHIRT-S"]
    assert [op["product.handle"] for op in ops[OperationType.PRODUCT_UPDATE]] == ["mug"]
    assert [op["variant.sku"] for op in ops[OperationType.VARIANT_CREATE]] == [
        "SHIRT-S",
        "SHIRT-M",
    ]
    assert [op["variant.id"] for op in ops[OperationType.VARIANT_UPDATE]] == ["variant_1"]
    assert ops[OperationType.PRODUCT_CREATE][0]["product.profile_id"] == default_profile.id
    assert "product.profile_id" not in rows[0]


def test_prices_are_region_or_currency_prices(strategy, denmark):
    rows = [
        {
            "product.handle": "shirt",
            "variant.prices": [
                {"amount": "110", "currency_code": "DKK"},
                {"amount": "120", "regionName": "Denmark"},
            ],
        }
    ]

    ops = strategy.get_import_instructions(rows)

    prices = ops[OperationType.VARIANT_CREATE][0]["variant.prices"]
    assert prices == [
        {"amount": 110, "currency_code": "DKK"},
        {"amount": 120, "region_id": denmark.id},
    ]
    assert rows[0]["variant.prices"][0]["amount"] == "110"


def test_unknown_region_is_rejected(strategy):
    rows = [{"product.handle": "shirt", "variant.prices": [{"amount": "1", "regionName": "Mars"}]}]

    with pytest.raises(InvalidDataException) as exc_info:
        strategy.get_import_instructions(rows)

    assert exc_info.value.details == {"region_name": "Mars"}


def test_parse_amount(strategy):
    assert strategy.parse_amount("110") == 110
    assert strategy.parse_amount(" 110.00 ") == 110
    assert strategy.parse_amount(7) == 7

    for value in ("12.5", "abc", "NaN", None):
        with pytest.raises(InvalidDataException):
            strategy.parse_amount(value)


def test_transform_row_data():
    row = {
        "product.handle": "shirt",
        "product.collection.handle": "tops",
        "product.options": [{"title": "Size"}],
        "variant.sku": "SHIRT-S",
        "variant.options": [{"value": "S", "_title": "Size"}],
    }

    assert transform_product_data(row) == {
        "handle": "shirt",
        "collection": {"handle": "tops"},
        "options": [{"title": "Size"}],
    }
    assert transform_variant_data(row) == {
        "sku": "SHIRT-S",
        "options": [{"value": "S", "_title": "Size"}],
        "product.handle": "shirt",
        "product.options": [{"title": "Size"}],
    }


def test_template_header_is_importable(strategy):
    template = strategy.build_template()

    assert template.endswith("\n")
    header = template.rstrip("\n").split(",")
    assert header[0] == "Product id"
    assert header[-5:] == [
        "Option 1 Name",
        "Option 1 Value",
        "Price EUR",
        "Price Europe [EUR]",
        "Image 1 Url",
    ]
    strategy.parser.validate_header(header)


def test_prepare_requires_file_key(strategy):
    with pytest.raises(ValidationException) as exc_info:
        strategy.prepare_batch_job_for_processing({"type": "product-import", "context": {}})

    assert "fileKey" in exc_info.value.details["validation_errors"]


# --- Pre-processing ---


def test_pre_process_stages_operations(factory, strategy, file_storage, staging_service):
    file_key = file_storage.store_file(
        _csv("Product Handle,Variant SKU", "shirt,SHIRT-S", "shirt,SHIRT-M", "mug,MUG-1"),
        "products.csv",
    )
    job = factory.get_batch_job_service().create(
        {"type": "product-import", "context": {"fileKey": file_key}}
    )

    strategy.pre_process_batch_job(job.id)

    assert factory.get_batch_job_service().retrieve(job.id).context["total"] == 5
    assert len(staging_service.get(job.id, OperationType.PRODUCT_CREATE)) == 2
    assert len(staging_service.get(job.id, OperationType.VARIANT_CREATE)) == 3
    assert staging_service.get(job.id, OperationType.PRODUCT_UPDATE) == []


def test_pre_process_reads_file_with_bom(factory, strategy, file_storage, staging_service):
    file_key = file_storage.store_file(
        "\ufeff" + _csv("Product Handle,Variant SKU", "mug,MUG-1"), "products.csv"
    )
    job = factory.get_batch_job_service().create(
        {"type": "product-import", "context": {"fileKey": file_key}}
    )

    strategy.pre_process_batch_job(job.id)

    assert staging_service.get(job.id, OperationType.PRODUCT_CREATE)[0]["product.handle"] == "mug"


# --- End to end ---


def test_import_end_to_end(runner, file_storage, db_session, staging_backend, denmark, default_profile):
    content = _csv(
        IMPORT_HEADER,
        'shirt,Shirt,published,"cotton, summer",tops,SHIRT-S,10,Size,S,100,110,http://img/1.png',
        'shirt,Shirt,published,"cotton, summer",tops,SHIRT-M,5,Size,M,100,120,http://img/1.png',
        "mug,Mug,draft,,,MUG-1,3,,,50,,",
    )

    job = _import(runner, file_storage, content)

    assert job.status == BatchJobStatus.COMPLETED.value
    assert job.context["total"] == 5
    assert job.context["progress"] == 5
    assert staging_backend.entries == {}

    products = ProductRepository(db_session)
    shirt = products.find_by_handle("shirt")
    assert shirt.title == "Shirt"
    assert shirt.status == "published"
    assert shirt.profile_id == default_profile.id
    assert shirt.collection.handle == "tops"
    assert [tag.value for tag in shirt.tags] == ["cotton", "summer"]
    assert [option.title for option in shirt.options] == ["Size"]
    assert [image.url for image in shirt.images] == ["http://img/1.png"]
    assert shirt.thumbnail == "http://img/1.png"
    assert [variant.sku for variant in shirt.variants] == ["SHIRT-S", "SHIRT-M"]

    small = shirt.variants[0]
    assert small.title == "S"
    assert small.inventory_quantity == 10
    assert [value.value for value in small.options] == ["S"]
    assert small.options[0].option_id == shirt.options[0].id

    region_price = next(price for price in small.prices if price.region_id)
    currency_price = next(price for price in small.prices if not price.region_id)
    assert (region_price.amount, region_price.region_id, region_price.currency_code) == (
        110,
        denmark.id,
        "dkk",
    )
    assert (currency_price.amount, currency_price.currency_code) == (100, "dkk")

    mug = products.find_by_handle("mug")
    assert mug.options == []
    assert [variant.sku for variant in mug.variants] == ["MUG-1"]
    assert [price.amount for price in mug.variants[0].prices] == [50]


def test_import_updates_existing_rows(runner, file_storage, db_session):
    _import(
        runner,
        file_storage,
        _csv("Product Handle,Variant SKU,Option 1 Name,Option 1 Value,Price DKK", "shirt,SHIRT-S,Size,S,100"),
    )
    shirt = ProductRepository(db_session).find_by_handle("shirt")
    variant = shirt.variants[0]

    job = _import(
        runner,
        file_storage,
        _csv(
            "Product id,Product Handle,Product Title,Variant id,Variant SKU,"
            "Option 1 Name,Option 1 Value,Price DKK,Price EUR",
            f"{shirt.id},shirt,New Shirt,{variant.id},SHIRT-S,Size,Small,150,20",
        ),
    )

    assert job.status == BatchJobStatus.COMPLETED.value
    db_session.expire_all()

    shirt = ProductRepository(db_session).find_by_handle("shirt")
    assert shirt.title == "New Shirt"
    assert len(shirt.variants) == 1

    variant = ProductVariantRepository(db_session).get_with_relations(variant.id)
    assert [value.value for value in variant.options] == ["Small"]
    assert sorted((price.currency_code, price.amount) for price in variant.prices) == [
        ("dkk", 150),
        ("eur", 20),
    ]


def test_classification_of_shared_handle_rows(factory, strategy, file_storage):
    file_key = file_storage.store_file(
        _csv(
            "Product Handle,Product Title,Variant SKU,Price DKK",
            "test-product-product-2,Test product,TP-1,110",
            "test-product-product-2,Test product,TP-2,120",
        ),
        "products.csv",
    )

    with file_storage.get_download_stream(file_key) as stream:
        rows = strategy.parser.build_data(strategy.parser.parse(stream))
        ops = strategy.get_import_instructions(rows)

    assert len(ops[OperationType.PRODUCT_CREATE]) == 1
    assert len(ops[OperationType.VARIANT_CREATE]) == 2
    assert ops[OperationType.PRODUCT_UPDATE] == []
    assert ops[OperationType.VARIANT_UPDATE] == []


# --- Failures ---


def test_failing_row_rolls_back_the_whole_import(runner, file_storage, db_session, staging_backend):
    content = _csv(
        "Product Handle,Variant SKU",
        "first,DUP-1",
        "second,DUP-1",
    )

    file_key = file_storage.store_file(content, "products.csv")
    job = runner.create({"type": "product-import", "context": {"fileKey": file_key}})

    with pytest.raises(ImportRowException) as exc_info:
        runner.run(job.id)

    assert exc_info.value.details["product_handle"] == "second"
    assert exc_info.value.details["variant_sku"] == "DUP-1"
    assert "product handle: second" in exc_info.value.message

    job = runner.batch_job_service.retrieve(job.id, refresh=True)
    assert job.status == BatchJobStatus.FAILED.value
    assert job.result["errors"][0]["code"] == "IMPORT_001"

    assert ProductRepository(db_session).count() == 0
    # Staged operations survive a failed run until they expire
    assert staging_backend.entries != {}


def test_unknown_region_fails_pre_processing(runner, file_storage, db_session):
    content = _csv("Product Handle,Variant SKU,Price Atlantis [EUR]", "mug,MUG-1,10")

    file_key = file_storage.store_file(content, "products.csv")
    job = runner.create({"type": "product-import", "context": {"fileKey": file_key}})

    with pytest.raises(InvalidDataException):
        runner.run(job.id)

    job = runner.batch_job_service.retrieve(job.id, refresh=True)
    assert job.status == BatchJobStatus.FAILED.value
    assert job.result["errors"][0]["code"] == "INVALID_DATA"
    assert job.pre_processed_at is None


def test_invalid_file_fails_pre_processing(runner, file_storage):
    file_key = file_storage.store_file(_csv("Product Title", "Mug"), "products.csv")
    job = runner.create({"type": "product-import", "context": {"fileKey": file_key}})

    with pytest.raises(SchemaValidationException):
        runner.run(job.id)

    job = runner.batch_job_service.retrieve(job.id, refresh=True)
    assert job.status == BatchJobStatus.FAILED.value
    assert job.result["errors"][0]["code"] == "CSV_001"


# --- Progress ---


class RecordingBatchJobService:
    def __init__(self):
        self.updates = []

    def update(self, job_id, data):
        self.updates.append((job_id, data))


def test_progress_checkpoints_every_batch():
    service = RecordingBatchJobService()
    progress = ImportProgress(service, "batch_1", batch_size=100)

    for _ in range(250):
        progress.advance()

    assert progress.processed == 250
    assert [data["context"]["progress"] for _, data in service.updates] == [100, 200]


def test_processing_checkpoints_and_finishes_at_total(runner, strategy, file_storage, monkeypatch):
    service = runner.batch_job_service
    recorded = []
    original_update = service.update

    def recording_update(job, data):
        context = data.get("context") or {}
        if "progress" in context:
            recorded.append(context["progress"])
        return original_update(job, data)

    monkeypatch.setattr(service, "update", recording_update)
    monkeypatch.setattr(strategy, "batch_size", 2)

    job = _import(
        runner,
        file_storage,
        _csv("Product Handle,Variant SKU", "a,A-1", "a,A-2", "b,B-1"),
    )

    assert job.status == BatchJobStatus.COMPLETED.value
    assert recorded == [2, 4, 5]
    assert job.context["progress"] == job.context["total"] == 5
