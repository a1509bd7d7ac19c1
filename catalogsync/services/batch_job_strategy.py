# File: catalogsync/services/batch_job_strategy.py

"""
Base class of the batch job strategies.

A strategy implements one job type (``batch_type``). The runner calls
``prepare_batch_job_for_processing`` before the job is created, then
``pre_process_batch_job`` and, once the job is confirmed, ``process_job``.
"""

from typing import Any, Callable, Dict, Optional, TypeVar, Union
import logging

from sqlalchemy.orm import Session

from catalogsync.core.exceptions import CatalogSyncException
from catalogsync.schemas.batch_job import BatchJobCreate
from catalogsync.services.base_service import BaseService
from catalogsync.services.batch_job_service import BatchJobService

logger = logging.getLogger(__name__)

R = TypeVar("R")


class AbstractBatchJobStrategy(BaseService):
    """Shared plumbing of batch job strategies."""

    identifier: str = ""
    batch_type: str = ""

    def __init__(self, session: Session, batch_job_service: BatchJobService):
        super().__init__(session)
        self.batch_job_service = batch_job_service

    def prepare_batch_job_for_processing(
        self, data: Union[BatchJobCreate, Dict[str, Any]]
    ) -> BatchJobCreate:
        """Validate and normalize the job input before the job is created."""
        if isinstance(data, dict):
            data = BatchJobCreate(**data)
        return data

    def pre_process_batch_job(self, batch_job_id: str) -> None:
        """Optional pass run before the job is confirmed."""
        return None

    def process_job(self, batch_job_id: str) -> None:
        raise NotImplementedError("Subclasses must implement process_job")

    def build_template(self) -> str:
        raise NotImplementedError("Subclasses must implement build_template")

    def atomic_phase(
        self,
        work: Callable[[], R],
        isolation_level: Optional[str] = None,
        error_handler: Optional[Callable[[Exception], None]] = None,
    ) -> R:
        """
        Run work in a transaction scope.

        The error handler runs after the scope has rolled back, so what it
        writes survives; the error is re-raised afterwards.

        Args:
            work: Callable doing the job's work
            isolation_level: Optional isolation level of the transaction
            error_handler: Called with the error before it is re-raised

        Returns:
            What work returned
        """
        try:
            with self.transaction(isolation_level=isolation_level):
                return work()
        except Exception as e:
            if error_handler is not None:
                error_handler(e)
            raise

    def handle_processing_error(
        self, batch_job_id: str, err: Exception, result: Dict[str, Any]
    ) -> None:
        """
        Record a processing failure on the job and mark it failed.

        Args:
            batch_job_id: Job ID
            err: The error that stopped processing
            result: Partial result to keep (counts, progress)
        """
        error_record = self.error_record(err)
        logger.error(
            f"Batch job {batch_job_id} ({self.batch_type}) failed: {error_record['message']}"
        )

        with self.transaction():
            job = self.batch_job_service.retrieve(batch_job_id)
            errors = list((job.result or {}).get("errors") or [])
            errors.append(error_record)
            self.batch_job_service.update(job, {"result": {**result, "errors": errors}})
            self.batch_job_service.set_failed(batch_job_id)

    @staticmethod
    def error_record(err: Exception) -> Dict[str, Any]:
        """The {message, code, err} entry stored in a job's result errors."""
        if isinstance(err, CatalogSyncException):
            return {"message": err.message, "code": err.code, "err": err.to_dict()}
        return {"message": str(err), "code": "unknown", "err": repr(err)}
