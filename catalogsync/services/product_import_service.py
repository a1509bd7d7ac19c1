# File: catalogsync/services/product_import_service.py

"""
Product import batch job.

Pre-processing parses the uploaded CSV, classifies every row into product
and variant create/update operations and stages them. Processing applies the
staged operations in one transaction, in dependency order: products before
variants, creates before updates.

Key features:
- Fail-fast: the first row that cannot be applied aborts the whole job
  with a diagnostic naming the row's product and variant
- Progress checkpoints every ``IMPORT_BATCH_SIZE`` applied rows
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Union
import csv
import io
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from catalogsync.core.config import settings
from catalogsync.core.exceptions import (
    ImportRowException,
    InvalidDataException,
    ValidationException,
)
from catalogsync.db.models.enums import OperationType
from catalogsync.db.models.product import Product
from catalogsync.repositories.product_repository import ProductRepository
from catalogsync.repositories.product_variant_repository import ProductOptionRepository
from catalogsync.repositories.region_repository import RegionRepository
from catalogsync.schemas.batch_job import BatchJobCreate, ImportJobContext
from catalogsync.services.batch_job_service import BatchJobService
from catalogsync.services.batch_job_strategy import AbstractBatchJobStrategy
from catalogsync.services.csv_parser_service import CsvParser
from catalogsync.services.file_storage_service import FileStorageService
from catalogsync.services.product_import_columns import (
    PRODUCT_IMPORT_SCHEMA,
    TEMPLATE_DYNAMIC_COLUMNS,
)
from catalogsync.services.product_service import ProductService
from catalogsync.services.product_variant_service import ProductVariantService
from catalogsync.services.shipping_profile_service import ShippingProfileService
from catalogsync.services.staging_service import ImportStagingService

logger = logging.getLogger(__name__)

ParsedRow = Dict[str, Any]


def _pick_prefixed(data: ParsedRow, prefix: str) -> Dict[str, Any]:
    """
    Keys starting with prefix, with the prefix removed; remaining dots nest,
    so "product.collection.handle" becomes {"collection": {"handle": ...}}.
    """
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if not key.startswith(prefix):
            continue
        path = key[len(prefix):].split(".")
        target = result
        for part in path[:-1]:
            target = target.setdefault(part, {})
        target[path[-1]] = value
    return result


def transform_product_data(data: ParsedRow) -> Dict[str, Any]:
    """Product create/update payload of a parsed row."""
    return _pick_prefixed(data, "product.")


def transform_variant_data(data: ParsedRow) -> Dict[str, Any]:
    """Variant create/update payload of a parsed row."""
    variant = _pick_prefixed(data, "variant.")
    # Keep track of the product the variant belongs to
    variant["product.handle"] = data.get("product.handle")
    variant["product.options"] = data.get("product.options")
    return variant


class ImportProgress:
    """Counts applied rows of one processing run and checkpoints periodically."""

    def __init__(self, batch_job_service: BatchJobService, batch_job_id: str, batch_size: int):
        self.batch_job_service = batch_job_service
        self.batch_job_id = batch_job_id
        self.batch_size = batch_size
        self.processed = 0

    def advance(self) -> None:
        self.processed += 1
        if self.processed % self.batch_size != 0:
            return

        logger.debug(f"Import {self.batch_job_id}: {self.processed} rows applied")
        self.batch_job_service.update(
            self.batch_job_id, {"context": {"progress": self.processed}}
        )


class ProductImportStrategy(AbstractBatchJobStrategy):
    """
    Batch job strategy importing products and variants from a CSV file.
    """

    identifier = "product-import-strategy"
    batch_type = "product-import"

    def __init__(
        self,
        session: Session,
        batch_job_service: BatchJobService,
        product_service: ProductService,
        product_variant_service: ProductVariantService,
        shipping_profile_service: ShippingProfileService,
        file_storage_service: FileStorageService,
        staging_service: ImportStagingService,
        parser: Optional[CsvParser] = None,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize the import strategy.

        Args:
            session: Database session shared with the services
            batch_job_service: Batch job store
            product_service: Product service
            product_variant_service: Product variant service
            shipping_profile_service: Shipping profile service
            file_storage_service: Source of the uploaded CSV files
            staging_service: Staging store between pre-processing and processing
            parser: CSV parser (defaults to the product import schema)
            batch_size: Rows between progress checkpoints
        """
        super().__init__(session, batch_job_service)
        self.product_service = product_service
        self.product_variant_service = product_variant_service
        self.shipping_profile_service = shipping_profile_service
        self.file_storage_service = file_storage_service
        self.staging_service = staging_service
        self.parser = parser or CsvParser(PRODUCT_IMPORT_SCHEMA)
        self.batch_size = batch_size or settings.IMPORT_BATCH_SIZE

        self.region_repository = RegionRepository(session)
        self.product_repository = ProductRepository(session)
        self.product_option_repository = ProductOptionRepository(session)

    # --- Job input ---

    def prepare_batch_job_for_processing(
        self, data: Union[BatchJobCreate, Dict[str, Any]]
    ) -> BatchJobCreate:
        """
        Check that the job context names the uploaded file.

        Raises:
            ValidationException: If the context has no fileKey
        """
        data = super().prepare_batch_job_for_processing(data)
        try:
            ImportJobContext(**data.context)
        except ValidationError as e:
            errors = {".".join(str(p) for p in err["loc"]): [err["msg"]] for err in e.errors()}
            raise ValidationException("Invalid product import context", errors)
        return data

    def build_template(self) -> str:
        """Header line of an import file, one example per repeating group."""
        columns = [column.name for column in PRODUCT_IMPORT_SCHEMA.static_columns]
        columns.extend(TEMPLATE_DYNAMIC_COLUMNS)

        output = io.StringIO()
        csv.writer(output, delimiter=self.parser.delimiter, lineterminator="\n").writerow(columns)
        return output.getvalue()

    # --- Classification ---

    def get_import_instructions(
        self, rows: Iterable[ParsedRow]
    ) -> Dict[OperationType, List[ParsedRow]]:
        """
        Group parsed rows into the four operation batches.

        Every row yields one variant operation; only the first row of each
        product handle yields a product operation.

        Args:
            rows: Parsed rows in file order

        Returns:
            Operation batches keyed by operation type, in file order

        Raises:
            InvalidDataException: If a price names an unknown region or
                has a malformed amount
        """
        shipping_profile = self.shipping_profile_service.retrieve_default()
        profile_id = shipping_profile.id if shipping_profile else None

        ops: Dict[OperationType, List[ParsedRow]] = {op: [] for op in OperationType}
        seen_products = set()

        for row in rows:
            row = dict(row)

            if row.get("variant.prices"):
                row["variant.prices"] = self.handle_variant_prices(row["variant.prices"])

            if row.get("variant.id"):
                ops[OperationType.VARIANT_UPDATE].append(row)
            else:
                ops[OperationType.VARIANT_CREATE].append(row)

            handle = row["product.handle"]
            if handle not in seen_products:
                seen_products.add(handle)
                row["product.profile_id"] = profile_id
                if row.get("product.id"):
                    ops[OperationType.PRODUCT_UPDATE].append(row)
                else:
                    ops[OperationType.PRODUCT_CREATE].append(row)

        return ops

    def handle_variant_prices(self, prices: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Turn parsed price entries into price records: region prices get the
        region id, the others keep their currency code.
        """
        records = []
        for price in prices:
            record: Dict[str, Any] = {"amount": self.parse_amount(price.get("amount"))}

            region_name = price.get("regionName")
            if region_name:
                region = self.region_repository.find_by_name(region_name)
                if region is None:
                    raise InvalidDataException(
                        f"Trying to set a price for a region {region_name} that doesn't exist",
                        {"region_name": region_name},
                    )
                record["region_id"] = region.id
            else:
                record["currency_code"] = price.get("currency_code")

            records.append(record)
        return records

    @staticmethod
    def parse_amount(value: Any) -> int:
        """
        Price amount in minor units.

        Raises:
            InvalidDataException: If the amount is not a whole number
        """
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidDataException(f"Invalid price amount '{value}'", {"amount": value})
        if not amount.is_finite() or amount != amount.to_integral_value():
            raise InvalidDataException(
                f"Price amount '{value}' must be a whole number of minor units",
                {"amount": value},
            )
        return int(amount)

    # --- Pre-processing ---

    def pre_process_batch_job(self, batch_job_id: str) -> None:
        """
        Parse the job's file, classify the rows and stage the operations.

        Args:
            batch_job_id: Job ID

        Raises:
            SchemaValidationException: If the file does not fit the import schema
            InvalidDataException: If a row references an unknown region
        """
        with self.transaction():
            batch_job = self.batch_job_service.retrieve(batch_job_id)
            file_key = (batch_job.context or {}).get("fileKey")
            if not file_key:
                raise InvalidDataException(
                    f"Batch job {batch_job_id} has no file to import", {"batch_job_id": batch_job_id}
                )

            logger.info(f"Pre-processing product import {batch_job_id} from {file_key}")
            with self.file_storage_service.get_download_stream(file_key) as stream:
                rows = self.parser.build_data(self.parser.parse(stream))
                ops = self.get_import_instructions(rows)

            self.staging_service.put_all(batch_job_id, ops)

            total = sum(len(batch) for batch in ops.values())
            self.batch_job_service.update(batch_job_id, {"context": {"total": total}})

            logger.info(
                f"Product import {batch_job_id}: "
                + ", ".join(f"{op.value}={len(batch)}" for op, batch in ops.items())
            )

    # --- Processing ---

    def process_job(self, batch_job_id: str) -> None:
        """
        Apply the staged operations in one transaction.

        Args:
            batch_job_id: Job ID

        Raises:
            ImportRowException: For the first row that cannot be applied
        """
        logger.info(f"Processing product import {batch_job_id}")

        with self.transaction():
            progress = ImportProgress(self.batch_job_service, batch_job_id, self.batch_size)

            self.create_products(batch_job_id, progress)
            self.update_products(batch_job_id, progress)
            self.create_variants(batch_job_id, progress)
            self.update_variants(batch_job_id, progress)

            self.finalize(batch_job_id)

        self.staging_service.clear(batch_job_id)
        logger.info(f"Product import {batch_job_id} applied {progress.processed} operations")

    def create_products(self, batch_job_id: str, progress: ImportProgress) -> None:
        for op in self.staging_service.get(batch_job_id, OperationType.PRODUCT_CREATE):
            try:
                self.product_service.create(transform_product_data(op))
            except Exception as e:
                self.handle_import_error(op, e)
            progress.advance()

    def update_products(self, batch_job_id: str, progress: ImportProgress) -> None:
        for op in self.staging_service.get(batch_job_id, OperationType.PRODUCT_UPDATE):
            try:
                self.product_service.update(op["product.id"], transform_product_data(op))
            except Exception as e:
                self.handle_import_error(op, e)
            progress.advance()

    def create_variants(self, batch_job_id: str, progress: ImportProgress) -> None:
        for op in self.staging_service.get(batch_job_id, OperationType.VARIANT_CREATE):
            try:
                handle = op.get("product.handle")
                product = self.product_repository.find_by_handle(
                    handle, relations=["variants", "variants.options", "options"]
                )
                if product is None:
                    raise InvalidDataException(
                        f"Product with handle {handle} does not exist", {"handle": handle}
                    )

                variant = transform_variant_data(op)
                variant["options"] = self.align_variant_options(product, op)

                self.product_variant_service.create(product, variant)
            except Exception as e:
                self.handle_import_error(op, e)
            progress.advance()

    def update_variants(self, batch_job_id: str, progress: ImportProgress) -> None:
        for op in self.staging_service.get(batch_job_id, OperationType.VARIANT_UPDATE):
            try:
                op = self.prepare_variant_options(op)
                self.product_variant_service.update(op["variant.id"], transform_variant_data(op))
            except Exception as e:
                self.handle_import_error(op, e)
            progress.advance()

    def align_variant_options(self, product: Product, op: ParsedRow) -> List[Dict[str, Any]]:
        """
        Attach option ids to a new variant's option values.

        A value belongs to the product option titled like the "Option N Name"
        cell next to its "Option N Value" cell.
        """
        options = []
        for value in op.get("variant.options") or []:
            title = value.get("_title")
            option = next((o for o in product.options if o.title == title), None)
            if option is None:
                raise InvalidDataException(
                    f"Option {title} does not exist on product {product.handle}",
                    {"handle": product.handle, "option": title},
                )
            options.append({**value, "option_id": option.id})
        return options

    def prepare_variant_options(self, op: ParsedRow) -> ParsedRow:
        """
        Copy of an update row whose option values carry the id of the
        option with the same title on the row's product.
        """
        options = []
        for value in op.get("variant.options") or []:
            option = self.product_option_repository.find_by_title(
                value["_title"], product_handle=op.get("product.handle")
            )
            if option is None:
                raise InvalidDataException(
                    f"Option {value['_title']} does not exist on product {op.get('product.handle')}",
                    {"option": value["_title"]},
                )
            options.append({**value, "option_id": option.id})

        return {**op, "variant.options": options}

    def finalize(self, batch_job_id: str) -> None:
        batch_job = self.batch_job_service.retrieve(batch_job_id)
        total = (batch_job.context or {}).get("total")
        self.batch_job_service.update(batch_job_id, {"context": {"progress": total}})

    def handle_import_error(self, row: ParsedRow, error: Exception) -> None:
        """
        Raise the diagnostic of a row that could not be applied.

        Raises:
            ImportRowException: Always
        """
        logger.error(
            f"Import row failed (product handle {row.get('product.handle')}, "
            f"variant sku {row.get('variant.sku')}): {str(error)}"
        )
        raise ImportRowException(
            product_id=row.get("product.id"),
            product_handle=row.get("product.handle"),
            variant_id=row.get("variant.id"),
            variant_sku=row.get("variant.sku"),
            original_error=str(error),
        ) from error
