from catalogsync.schemas.batch_job import (
    BatchJobCreate,
    ExportJobContext,
    ExportJobResult,
    ExportPriceColumn,
    ExportPriceRegion,
    ExportRequest,
    ExportShape,
    ImportJobContext,
    ListConfig,
)
