# File: catalogsync/core/exceptions.py

from typing import Dict, Any, List, Optional
from datetime import datetime


class CatalogSyncException(Exception):
    """Base exception for all CatalogSync errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize a CatalogSync exception.

        Args:
            message: Human-readable error message
            code: Optional machine-processable error code
            details: Additional error details
        """
        self.message = message
        self.code = code or "GENERIC_ERROR"  # Provide a default if None
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for job results and logs.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": datetime.now().isoformat(),
        }


# Domain-specific exceptions
class DomainException(CatalogSyncException):
    """Base exception for domain-related errors."""

    CODE_PREFIX = "DOMAIN_"


class EntityNotFoundException(DomainException):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} with ID {entity_id} not found",
            f"{self.CODE_PREFIX}001",
            {"entity_type": entity_type, "entity_id": entity_id},
        )


# Validation exceptions
class ValidationException(CatalogSyncException):
    """Raised when input validation fails."""

    def __init__(
        self, message: str, validation_errors: Optional[Dict[str, List[str]]] = None
    ):
        super().__init__(
            message, "VALIDATION_001", {"validation_errors": validation_errors or {}}
        )


class SchemaValidationException(CatalogSyncException):
    """Raised when a CSV file does not satisfy its column schema."""

    CODE_PREFIX = "CSV_"

    def __init__(
        self,
        message: str,
        column: Optional[str] = None,
        line: Optional[int] = None,
    ):
        details = {}
        if column is not None:
            details["column"] = column
        if line is not None:
            details["line"] = line
        super().__init__(message, f"{self.CODE_PREFIX}001", details)


class InvalidDataException(CatalogSyncException):
    """Raised when row data references something that is missing or malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "INVALID_DATA", details or {})


class ImportRowException(InvalidDataException):
    """
    Raised when a staged row fails while being applied.

    The message identifies the offending row so the whole job can be
    diagnosed from the job result alone.
    """

    def __init__(
        self,
        product_id: Any = None,
        product_handle: Any = None,
        variant_id: Any = None,
        variant_sku: Any = None,
        original_error: Optional[str] = None,
    ):
        message = (
            "Error while processing row with:\n"
            f"  product id: {product_id},\n"
            f"  product handle: {product_handle},\n"
            f"  variant id: {variant_id}\n"
            f"  variant sku: {variant_sku}"
        )
        details = {
            "product_id": product_id,
            "product_handle": product_handle,
            "variant_id": variant_id,
            "variant_sku": variant_sku,
        }
        if original_error:
            details["original_error"] = original_error
        super().__init__(message, details)
        self.code = "IMPORT_001"


# Business rule exceptions
class BusinessRuleException(CatalogSyncException):
    """Raised when a business rule or constraint is violated."""

    CODE_PREFIX = "BUSINESS_"

    def __init__(
        self,
        message: str,
        rule_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if rule_name:
            error_details["rule_name"] = rule_name
        super().__init__(message, f"{self.CODE_PREFIX}001", error_details)


class DuplicateEntityException(CatalogSyncException):
    """Raised when an attempt is made to create an entity that already exists."""

    def __init__(
        self,
        message: str = "Duplicate entity detected",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "DUPLICATE_ENTITY", details or {})


class InvalidStatusTransitionException(BusinessRuleException):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, message: str, allowed_transitions: Optional[List[str]] = None):
        details = {}
        if allowed_transitions is not None:
            details["allowed_transitions"] = allowed_transitions
        super().__init__(
            message, rule_name="INVALID_STATUS_TRANSITION", details=details
        )


# Batch job exceptions
class BatchJobException(CatalogSyncException):
    """Base exception for batch job errors."""

    CODE_PREFIX = "BATCH_JOB_"


class BatchJobStrategyNotFoundException(BatchJobException):
    """Raised when no strategy is registered for a batch job type."""

    def __init__(self, batch_type: str):
        super().__init__(
            f"Unable to find a batch job strategy with the type {batch_type}",
            f"{self.CODE_PREFIX}001",
            {"batch_type": batch_type},
        )


# Storage exceptions
class StorageException(CatalogSyncException):
    """Base exception for storage-related errors."""

    CODE_PREFIX = "STORAGE_"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, f"{self.CODE_PREFIX}001", details or {})


class FileStorageException(StorageException):
    """
    Exception raised for file storage-specific errors.
    """

    def __init__(
        self,
        message: str,
        file_key: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if file_key:
            error_details["file_key"] = file_key
        if operation:
            error_details["operation"] = operation
        super().__init__(message=message, details=error_details)
