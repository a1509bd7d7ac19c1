# File: catalogsync/db/models/enums.py
"""
Enumerations shared by the CatalogSync models and services.
"""

from enum import Enum


class ProductStatus(str, Enum):
    DRAFT = "draft"
    PROPOSED = "proposed"
    PUBLISHED = "published"
    REJECTED = "rejected"


class ShippingProfileType(str, Enum):
    DEFAULT = "default"
    GIFT_CARD = "gift_card"
    CUSTOM = "custom"


class BatchJobStatus(str, Enum):
    """Lifecycle of a batch job, in the order a successful job walks it."""

    CREATED = "created"
    PRE_PROCESSED = "pre_processed"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


class OperationType(str, Enum):
    """Import operation batches staged between pre-processing and processing."""

    PRODUCT_CREATE = "PRODUCT_CREATE"
    PRODUCT_UPDATE = "PRODUCT_UPDATE"
    VARIANT_CREATE = "VARIANT_CREATE"
    VARIANT_UPDATE = "VARIANT_UPDATE"
