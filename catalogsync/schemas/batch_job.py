# File: catalogsync/schemas/batch_job.py
"""
Pydantic schemas for batch job payloads.

Defines the shape of the JSON stored in ``BatchJob.context`` and
``BatchJob.result`` for the product import and export jobs.
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BatchJobCreate(BaseModel):
    """Input for creating a batch job."""

    type: str = Field(..., min_length=1, description="Batch job type, e.g. product-import")
    context: Dict[str, Any] = Field(default_factory=dict)
    dry_run: bool = False
    created_by: Optional[str] = None


# --- Import ---


class ImportJobContext(BaseModel):
    """Context of a product import job."""

    model_config = ConfigDict(extra="allow")

    fileKey: str = Field(..., min_length=1, description="Key of the uploaded CSV file")
    total: Optional[int] = Field(None, ge=0, description="Number of staged operations")
    progress: Optional[int] = Field(None, ge=0, description="Operations applied so far")


# --- Export ---


class ExportPriceRegion(BaseModel):
    name: str
    id: str


class ExportPriceColumn(BaseModel):
    """
    One distinct price column of an export.

    A column without ``region`` is a plain currency price; a column with
    ``region`` matches prices of that region only.
    """

    currency_code: Optional[str] = None
    region: Optional[ExportPriceRegion] = None

    @field_validator("currency_code")
    @classmethod
    def currency_code_upper(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    def key(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        """Value identity used to deduplicate columns."""
        if self.region:
            return (self.currency_code, self.region.name, self.region.id)
        return (self.currency_code, None, None)

    def sort_key(self) -> Tuple[int, str, str, str]:
        if self.region:
            return (1, self.region.name.lower(), self.region.id, self.currency_code or "")
        return (0, self.currency_code or "", "", "")


class ExportShape(BaseModel):
    """Variable-width part of an export's columns, discovered in pre-processing."""

    dynamicImageColumnCount: int = Field(0, ge=0)
    dynamicOptionColumnCount: int = Field(0, ge=0)
    prices: List[ExportPriceColumn] = Field(default_factory=list)


class ListConfig(BaseModel):
    """Listing configuration used to page through products."""

    model_config = ConfigDict(extra="allow")

    skip: int = Field(0, ge=0)
    take: Optional[int] = Field(None, gt=0)
    order: Optional[Dict[str, str]] = None
    select: Optional[List[str]] = None
    relations: List[str] = Field(default_factory=list)


class ExportJobContext(BaseModel):
    """Context of a product export job."""

    model_config = ConfigDict(extra="allow")

    list_config: ListConfig = Field(default_factory=ListConfig)
    filterable_fields: Dict[str, Any] = Field(default_factory=dict)
    shape: Optional[ExportShape] = None


class ExportJobResult(BaseModel):
    """Result of a product export job, updated after each written page."""

    model_config = ConfigDict(extra="allow")

    file_key: Optional[str] = None
    count: int = 0
    advancement_count: int = 0
    progress: float = 0.0


class ExportRequest(BaseModel):
    """Request-level options of an export, turned into a ListConfig."""

    model_config = ConfigDict(extra="allow")

    limit: Optional[int] = Field(None, gt=0)
    offset: Optional[int] = Field(None, ge=0)
    order: Optional[str] = None
    fields: Optional[str] = None
    expand: Optional[str] = None
    filterable_fields: Dict[str, Any] = Field(default_factory=dict)
