# File: catalogsync/services/product_export_service.py

"""
Product export batch job.

Pre-processing pages through the products matching the job's filters and
records the export's shape: how many option and image columns are needed
and which price columns exist. Processing pages through the same products
again and writes one CSV line per variant, checkpointing after every page
and stopping early when the job is canceled.
"""

from typing import Any, Dict, Optional, Union
import csv
import logging

from sqlalchemy.orm import Session

from catalogsync.core.config import settings
from catalogsync.db.models.enums import BatchJobStatus
from catalogsync.schemas.batch_job import (
    BatchJobCreate,
    ExportJobContext,
    ExportPriceColumn,
    ExportPriceRegion,
    ExportRequest,
    ExportShape,
    ListConfig,
)
from catalogsync.services.batch_job_service import BatchJobService
from catalogsync.services.batch_job_strategy import AbstractBatchJobStrategy
from catalogsync.services.export_columns import (
    build_export_columns,
    build_product_variant_lines,
)
from catalogsync.services.file_storage_service import FileStorageService
from catalogsync.services.product_service import DEFAULT_PRODUCT_RELATIONS, ProductService
from catalogsync.utils.query_config import prepare_list_query

logger = logging.getLogger(__name__)


class ProductExportStrategy(AbstractBatchJobStrategy):
    """
    Batch job strategy exporting products and variants to a CSV file.
    """

    identifier = "product-export-strategy"
    batch_type = "product-export"

    def __init__(
        self,
        session: Session,
        batch_job_service: BatchJobService,
        product_service: ProductService,
        file_storage_service: FileStorageService,
        batch_size: Optional[int] = None,
        delimiter: Optional[str] = None,
        newline: Optional[str] = None,
        isolation_level: Optional[str] = settings.EXPORT_ISOLATION_LEVEL,
    ):
        """
        Initialize the export strategy.

        Args:
            session: Database session shared with the services
            batch_job_service: Batch job store
            product_service: Listing service paged through
            file_storage_service: Destination of the export file
            batch_size: Products per page when the job does not set one
            delimiter: Field separator
            newline: Line terminator
            isolation_level: Isolation level of the processing transaction,
                None to keep the connection default
        """
        super().__init__(session, batch_job_service)
        self.product_service = product_service
        self.file_storage_service = file_storage_service
        self.batch_size = batch_size or settings.EXPORT_BATCH_SIZE
        self.delimiter = delimiter or settings.EXPORT_DELIMITER
        self.newline = newline or settings.EXPORT_NEWLINE
        self.isolation_level = isolation_level

    def build_template(self) -> str:
        return ""

    def prepare_batch_job_for_processing(
        self, data: Union[BatchJobCreate, Dict[str, Any]]
    ) -> BatchJobCreate:
        """
        Turn request-level listing options of the context into a list config.

        limit/offset/order/fields/expand become ``list_config``; filters
        become ``filterable_fields``; any other context key is kept.
        """
        data = super().prepare_batch_job_for_processing(data)

        request = ExportRequest(**data.context)
        extra = {
            key: value
            for key, value in data.context.items()
            if key not in ExportRequest.model_fields
        }

        list_config = prepare_list_query(
            limit=request.limit,
            offset=request.offset,
            order=request.order,
            fields=request.fields,
            expand=request.expand,
            default_relations=DEFAULT_PRODUCT_RELATIONS,
            default_limit=self.batch_size,
        )

        data.context = {
            **extra,
            "list_config": list_config,
            "filterable_fields": request.filterable_fields,
        }
        return data

    # --- Shape discovery ---

    def pre_process_batch_job(self, batch_job_id: str) -> None:
        """
        Discover the shape of the export and store it in the job context.

        Args:
            batch_job_id: Job ID
        """
        with self.transaction():
            batch_job = self.batch_job_service.retrieve(batch_job_id)
            context = ExportJobContext(**(batch_job.context or {}))
            list_config = self._list_config(context)

            offset = list_config.skip
            limit = list_config.take or self.batch_size

            products, product_count = self.product_service.list_and_count(
                context.filterable_fields, self._page(list_config, offset, limit)
            )

            option_count = 0
            image_count = 0
            price_columns: Dict[Any, ExportPriceColumn] = {}

            while offset < product_count:
                if not products:
                    products = self.product_service.list(
                        context.filterable_fields, self._page(list_config, offset, limit)
                    )
                    if not products:
                        break

                for product in products:
                    option_count = max(option_count, len(product.options or []))
                    image_count = max(image_count, len(product.images or []))

                    for variant in product.variants or []:
                        for price in variant.prices or []:
                            column = self._price_column(price)
                            price_columns.setdefault(column.key(), column)

                offset += len(products)
                products = []

            shape = ExportShape(
                dynamicOptionColumnCount=option_count,
                dynamicImageColumnCount=image_count,
                prices=sorted(price_columns.values(), key=lambda c: c.sort_key()),
            )

            self.batch_job_service.update(
                batch_job, {"context": {"shape": shape.model_dump(exclude_none=True)}}
            )
            logger.info(
                f"Product export {batch_job_id}: {product_count} products, "
                f"{option_count} option columns, {image_count} image columns, "
                f"{len(shape.prices)} price columns"
            )

    @staticmethod
    def _price_column(price) -> ExportPriceColumn:
        region = price.region
        return ExportPriceColumn(
            currency_code=price.currency_code or (region.currency_code if region else None),
            region=ExportPriceRegion(name=region.name, id=region.id) if region else None,
        )

    # --- Streaming ---

    def process_job(self, batch_job_id: str) -> None:
        """
        Write the export file, resuming after the products already written.

        Args:
            batch_job_id: Job ID
        """
        state = {"count": 0, "advancement_count": 0}

        def progress() -> float:
            return state["advancement_count"] / state["count"] if state["count"] else 0.0

        def on_error(err: Exception) -> None:
            self.handle_processing_error(
                batch_job_id,
                err,
                {
                    "count": state["count"],
                    "advancement_count": state["advancement_count"],
                    "progress": progress(),
                },
            )

        def work() -> None:
            batch_job = self.batch_job_service.retrieve(batch_job_id)
            context = ExportJobContext(**(batch_job.context or {}))
            list_config = self._list_config(context)

            upload = self.file_storage_service.get_upload_stream_descriptor(
                name="product-export", ext="csv"
            )
            try:
                writer = csv.writer(
                    upload.write_stream, delimiter=self.delimiter, lineterminator=self.newline
                )
                columns = build_export_columns(context.shape)
                writer.writerow([column.name for column in columns])

                state["advancement_count"] = (batch_job.result or {}).get("advancement_count", 0)
                offset = list_config.skip + state["advancement_count"]
                limit = list_config.take or self.batch_size

                products, state["count"] = self.product_service.list_and_count(
                    context.filterable_fields, self._page(list_config, offset, limit)
                )

                while offset < state["count"]:
                    if not products:
                        products = self.product_service.list(
                            context.filterable_fields, self._page(list_config, offset, limit)
                        )
                        if not products:
                            break

                    for product in products:
                        writer.writerows(build_product_variant_lines(product, columns))

                    state["advancement_count"] += len(products)
                    offset += len(products)
                    products = []

                    self.batch_job_service.update(
                        batch_job_id,
                        {
                            "result": {
                                "file_key": upload.file_key,
                                "count": state["count"],
                                "advancement_count": state["advancement_count"],
                                "progress": progress(),
                            }
                        },
                    )

                    # Read through this export's own transaction: a cancel made in
                    # the same session shows up at once, a cancel committed by
                    # another session only once the isolation level lets it in
                    # (never under REPEATABLE READ or SERIALIZABLE).
                    batch_job = self.batch_job_service.retrieve(batch_job_id, refresh=True)
                    if batch_job.status == BatchJobStatus.CANCELED.value:
                        upload.close()
                        self.file_storage_service.delete(upload.file_key)
                        logger.info(
                            f"Product export {batch_job_id} canceled after "
                            f"{state['advancement_count']} products"
                        )
                        return
            finally:
                upload.close()

            file_key = upload.complete()
            self.batch_job_service.update(
                batch_job_id,
                {
                    "result": {
                        "file_key": file_key,
                        "count": state["count"],
                        "advancement_count": state["advancement_count"],
                        "progress": progress() if state["count"] else 1.0,
                    }
                },
            )
            logger.info(
                f"Product export {batch_job_id} wrote {state['advancement_count']} products "
                f"to {file_key}"
            )

        return self.atomic_phase(work, isolation_level=self.isolation_level, error_handler=on_error)

    def _list_config(self, context: ExportJobContext) -> ListConfig:
        list_config = context.list_config
        if not list_config.relations:
            list_config = list_config.model_copy(
                update={"relations": list(DEFAULT_PRODUCT_RELATIONS)}
            )
        return list_config

    @staticmethod
    def _page(list_config: ListConfig, skip: int, take: int) -> ListConfig:
        return list_config.model_copy(update={"skip": skip, "take": take})
