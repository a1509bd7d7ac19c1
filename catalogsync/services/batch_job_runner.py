# File: catalogsync/services/batch_job_runner.py

"""
Drives batch jobs through their lifecycle.

    created -> pre_processed -> confirmed -> processing -> completed

Dry-run jobs stop after pre-processing until they are confirmed. A job that
raises is marked failed; a job canceled while processing stays canceled.
"""

from typing import Any, Dict, Iterable, Optional, Union
import logging

from catalogsync.core.exceptions import BatchJobStrategyNotFoundException
from catalogsync.db.models.batch_job import BatchJob
from catalogsync.db.models.enums import BatchJobStatus
from catalogsync.schemas.batch_job import BatchJobCreate
from catalogsync.services.batch_job_service import BatchJobService
from catalogsync.services.batch_job_strategy import AbstractBatchJobStrategy

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (
    BatchJobStatus.COMPLETED.value,
    BatchJobStatus.CANCELED.value,
    BatchJobStatus.FAILED.value,
)


class BatchJobRunner:
    """
    Resolves the strategy of a job by its type and runs its phases.
    """

    def __init__(
        self,
        batch_job_service: BatchJobService,
        strategies: Iterable[AbstractBatchJobStrategy],
    ):
        self.batch_job_service = batch_job_service
        self._strategies: Dict[str, AbstractBatchJobStrategy] = {
            strategy.batch_type: strategy for strategy in strategies
        }

    def resolve_strategy(self, batch_type: str) -> AbstractBatchJobStrategy:
        """
        Raises:
            BatchJobStrategyNotFoundException: If no strategy handles the type
        """
        strategy = self._strategies.get(batch_type)
        if strategy is None:
            raise BatchJobStrategyNotFoundException(batch_type)
        return strategy

    def create(self, data: Union[BatchJobCreate, Dict[str, Any]]) -> BatchJob:
        """
        Validate the input with the job type's strategy and create the job.

        Args:
            data: Job type, context, dry run flag and creator

        Returns:
            The created job
        """
        if isinstance(data, dict):
            data = BatchJobCreate(**data)

        strategy = self.resolve_strategy(data.type)
        data = strategy.prepare_batch_job_for_processing(data)
        return self.batch_job_service.create(data)

    def pre_process(self, batch_job_id: str) -> BatchJob:
        """
        Run the pre-processing phase, then confirm the job unless it is a
        dry run.

        Returns:
            The job after the phase
        """
        batch_job = self.batch_job_service.retrieve(batch_job_id)
        strategy = self.resolve_strategy(batch_job.type)
        dry_run = batch_job.dry_run

        try:
            strategy.pre_process_batch_job(batch_job_id)
        except Exception as e:
            self._fail(batch_job_id, strategy, e)
            raise

        batch_job = self.batch_job_service.set_pre_processed(batch_job_id)
        if not dry_run:
            batch_job = self.batch_job_service.confirm(batch_job_id)
        return batch_job

    def confirm(self, batch_job_id: str) -> BatchJob:
        return self.batch_job_service.confirm(batch_job_id)

    def cancel(self, batch_job_id: str) -> BatchJob:
        return self.batch_job_service.cancel(batch_job_id)

    def process(self, batch_job_id: str) -> BatchJob:
        """
        Run the processing phase of a confirmed job and complete it.

        Returns:
            The job after the phase; canceled if it was canceled meanwhile
        """
        batch_job = self.batch_job_service.retrieve(batch_job_id)
        strategy = self.resolve_strategy(batch_job.type)

        # Committed before processing starts, so processing opens a fresh
        # transaction with its own isolation level
        self.batch_job_service.set_processing(batch_job_id)

        try:
            strategy.process_job(batch_job_id)
        except Exception as e:
            self._fail(batch_job_id, strategy, e)
            raise

        batch_job = self.batch_job_service.retrieve(batch_job_id, refresh=True)
        if batch_job.status == BatchJobStatus.CANCELED.value:
            logger.info(f"Batch job {batch_job_id} was canceled while processing")
            return batch_job

        return self.batch_job_service.complete(batch_job_id)

    def run(self, batch_job_id: str) -> BatchJob:
        """
        Pre-process and, when the job is confirmed, process it.

        Returns:
            The job after the last phase run
        """
        batch_job = self.pre_process(batch_job_id)
        if batch_job.status != BatchJobStatus.CONFIRMED.value:
            logger.info(f"Batch job {batch_job_id} awaits confirmation (dry run)")
            return batch_job
        return self.process(batch_job_id)

    def _fail(
        self, batch_job_id: str, strategy: AbstractBatchJobStrategy, error: Exception
    ) -> Optional[BatchJob]:
        """Mark the job failed unless the strategy already did."""
        logger.error(f"Batch job {batch_job_id} failed: {str(error)}", exc_info=True)

        batch_job = self.batch_job_service.retrieve(batch_job_id, refresh=True)
        if batch_job.status in TERMINAL_STATUSES:
            return batch_job

        return self.batch_job_service.set_failed(batch_job_id, strategy.error_record(error))
