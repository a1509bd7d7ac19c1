# File: catalogsync/services/service_factory.py
"""
Factory for creating service instances in CatalogSync.

This module provides a centralized factory for creating service instances,
ensuring consistent initialization and dependency injection. Every service
created by one factory shares its session, so they all join the same
transaction scope.
"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from catalogsync.core.config import Settings, settings as default_settings
from catalogsync.services.batch_job_runner import BatchJobRunner
from catalogsync.services.batch_job_service import BatchJobService
from catalogsync.services.file_storage_service import FileStorageService
from catalogsync.services.product_export_service import ProductExportStrategy
from catalogsync.services.product_import_service import ProductImportStrategy
from catalogsync.services.product_service import ProductService
from catalogsync.services.product_variant_service import ProductVariantService
from catalogsync.services.region_service import RegionService
from catalogsync.services.shipping_profile_service import ShippingProfileService
from catalogsync.services.staging_service import (
    ImportStagingService,
    StagingBackend,
    create_staging_backend,
)


class ServiceFactory:
    """
    Factory for creating service instances with proper dependencies.

    This factory ensures that services are created with consistent dependencies
    and provides a single point for service instantiation.
    """

    def __init__(
        self,
        session: Session,
        settings: Optional[Settings] = None,
        staging_backend: Optional[StagingBackend] = None,
        file_storage_service: Optional[FileStorageService] = None,
    ):
        """
        Initialize the service factory with dependencies.

        Args:
            session: Database session for persistence operations
            settings: Settings to use instead of the module settings
            staging_backend: Optional staging backend (defaults to the configured one)
            file_storage_service: Optional service for file storage operations
        """
        self.session = session
        self.settings = settings or default_settings
        self.staging_backend = staging_backend
        self.file_storage_service = file_storage_service

        # Service instance cache for singleton services
        self._service_instances: Dict[str, Any] = {}

    def _cached(self, key: str, builder):
        if key not in self._service_instances:
            self._service_instances[key] = builder()
        return self._service_instances[key]

    def get_batch_job_service(self) -> BatchJobService:
        return self._cached("batch_job_service", lambda: BatchJobService(self.session))

    def get_shipping_profile_service(self) -> ShippingProfileService:
        return self._cached(
            "shipping_profile_service", lambda: ShippingProfileService(self.session)
        )

    def get_region_service(self) -> RegionService:
        return self._cached("region_service", lambda: RegionService(self.session))

    def get_product_service(self) -> ProductService:
        return self._cached(
            "product_service",
            lambda: ProductService(
                self.session, shipping_profile_service=self.get_shipping_profile_service()
            ),
        )

    def get_product_variant_service(self) -> ProductVariantService:
        return self._cached(
            "product_variant_service", lambda: ProductVariantService(self.session)
        )

    def get_file_storage_service(self) -> FileStorageService:
        if self.file_storage_service is None:
            self.file_storage_service = FileStorageService(self.settings.FILE_STORAGE_PATH)
        return self.file_storage_service

    def get_staging_service(self) -> ImportStagingService:
        """
        Get the import staging service.

        Returns:
            ImportStagingService over the injected or configured backend
        """

        def build():
            backend = self.staging_backend or create_staging_backend(self.settings.STAGING_BACKEND)
            return ImportStagingService(
                backend,
                ttl=self.settings.STAGING_TTL,
                key_prefix=self.settings.STAGING_KEY_PREFIX,
            )

        return self._cached("staging_service", build)

    def get_product_import_strategy(self) -> ProductImportStrategy:
        return self._cached(
            "product_import_strategy",
            lambda: ProductImportStrategy(
                self.session,
                batch_job_service=self.get_batch_job_service(),
                product_service=self.get_product_service(),
                product_variant_service=self.get_product_variant_service(),
                shipping_profile_service=self.get_shipping_profile_service(),
                file_storage_service=self.get_file_storage_service(),
                staging_service=self.get_staging_service(),
                batch_size=self.settings.IMPORT_BATCH_SIZE,
            ),
        )

    def get_product_export_strategy(self) -> ProductExportStrategy:
        return self._cached(
            "product_export_strategy",
            lambda: ProductExportStrategy(
                self.session,
                batch_job_service=self.get_batch_job_service(),
                product_service=self.get_product_service(),
                file_storage_service=self.get_file_storage_service(),
                batch_size=self.settings.EXPORT_BATCH_SIZE,
                delimiter=self.settings.EXPORT_DELIMITER,
                newline=self.settings.EXPORT_NEWLINE,
                isolation_level=self.settings.EXPORT_ISOLATION_LEVEL,
            ),
        )

    def get_batch_job_runner(self) -> BatchJobRunner:
        """
        Get the batch job runner with every registered strategy.

        Returns:
            BatchJobRunner handling product imports and exports
        """
        return self._cached(
            "batch_job_runner",
            lambda: BatchJobRunner(
                self.get_batch_job_service(),
                [self.get_product_import_strategy(), self.get_product_export_strategy()],
            ),
        )
