# File: catalogsync/services/batch_job_service.py

from typing import Any, Dict, Optional, Union
from datetime import datetime, timezone
import logging

from sqlalchemy.orm import Session

from catalogsync.core.exceptions import InvalidStatusTransitionException
from catalogsync.db.models.batch_job import BatchJob
from catalogsync.db.models.enums import BatchJobStatus
from catalogsync.repositories.batch_job_repository import BatchJobRepository
from catalogsync.schemas.batch_job import BatchJobCreate
from catalogsync.services.base_service import BaseService

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BatchJobStatus.CREATED.value: [
        BatchJobStatus.PRE_PROCESSED.value,
        BatchJobStatus.CANCELED.value,
        BatchJobStatus.FAILED.value,
    ],
    BatchJobStatus.PRE_PROCESSED.value: [
        BatchJobStatus.CONFIRMED.value,
        BatchJobStatus.CANCELED.value,
        BatchJobStatus.FAILED.value,
    ],
    BatchJobStatus.CONFIRMED.value: [
        BatchJobStatus.PROCESSING.value,
        BatchJobStatus.CANCELED.value,
        BatchJobStatus.FAILED.value,
    ],
    BatchJobStatus.PROCESSING.value: [
        BatchJobStatus.COMPLETED.value,
        BatchJobStatus.CANCELED.value,
        BatchJobStatus.FAILED.value,
    ],
    BatchJobStatus.COMPLETED.value: [],
    BatchJobStatus.CANCELED.value: [],
    BatchJobStatus.FAILED.value: [],
}

# Timestamp column stamped when a job enters a status
STATUS_TIMESTAMPS = {
    BatchJobStatus.PRE_PROCESSED.value: "pre_processed_at",
    BatchJobStatus.CONFIRMED.value: "confirmed_at",
    BatchJobStatus.PROCESSING.value: "processing_at",
    BatchJobStatus.COMPLETED.value: "completed_at",
    BatchJobStatus.CANCELED.value: "canceled_at",
    BatchJobStatus.FAILED.value: "failed_at",
}


class BatchJobService(BaseService[BatchJob]):
    """
    Service for the batch job records of imports and exports.

    Provides functionality for:
    - Creating and retrieving jobs
    - Merging updates into the job context and result
    - Walking the job through its status lifecycle
    """

    def __init__(self, session: Session, repository: Optional[BatchJobRepository] = None):
        super().__init__(session, repository=repository or BatchJobRepository(session))

    def create(self, data: Union[BatchJobCreate, Dict[str, Any]]) -> BatchJob:
        """
        Create a batch job in the created status.

        Args:
            data: Job type, context, dry run flag and creator

        Returns:
            The created job
        """
        if isinstance(data, dict):
            data = BatchJobCreate(**data)

        with self.transaction():
            job = self.repository.create(
                {
                    "type": data.type,
                    "context": dict(data.context),
                    "dry_run": data.dry_run,
                    "created_by": data.created_by,
                    "status": BatchJobStatus.CREATED.value,
                }
            )
            self._log_operation("create", "BatchJob", job.id, {"type": job.type})
            return job

    def retrieve(self, job_id: str, refresh: bool = False) -> BatchJob:
        """
        Get a job by ID.

        Args:
            job_id: Job ID
            refresh: Reload the row so changes made by other sessions are seen

        Returns:
            The job

        Raises:
            EntityNotFoundException: If the job does not exist
        """
        job = self.get_entity_or_404(job_id)
        if refresh:
            job = self.repository.refresh(job)
        return job

    def update(self, job: Union[BatchJob, str], data: Dict[str, Any]) -> BatchJob:
        """
        Update a job.

        ``context`` and ``result`` are merged key by key into the stored
        dictionaries; other keys replace the stored value.

        Args:
            job: Job or job ID
            data: Fields to update

        Returns:
            The updated job
        """
        with self.transaction():
            if isinstance(job, str):
                job = self.retrieve(job)

            for key, value in data.items():
                if key in ("context", "result"):
                    # Reassign so the JSON column is flagged as changed
                    merged = dict(getattr(job, key) or {})
                    merged.update(value or {})
                    setattr(job, key, merged)
                elif key in ("status", "id"):
                    raise ValueError(f"Batch job field '{key}' cannot be updated directly")
                else:
                    setattr(job, key, value)

            self.session.flush()
            return job

    def set_pre_processed(self, job_id: str) -> BatchJob:
        return self._transition(job_id, BatchJobStatus.PRE_PROCESSED)

    def confirm(self, job_id: str) -> BatchJob:
        return self._transition(job_id, BatchJobStatus.CONFIRMED)

    def set_processing(self, job_id: str) -> BatchJob:
        return self._transition(job_id, BatchJobStatus.PROCESSING)

    def complete(self, job_id: str) -> BatchJob:
        return self._transition(job_id, BatchJobStatus.COMPLETED)

    def cancel(self, job_id: str) -> BatchJob:
        return self._transition(job_id, BatchJobStatus.CANCELED)

    def set_failed(self, job_id: str, error: Optional[Dict[str, Any]] = None) -> BatchJob:
        """
        Mark a job as failed, optionally recording an error in its result.

        Args:
            job_id: Job ID
            error: Error record ({message, code, err}) appended to result.errors

        Returns:
            The failed job
        """
        with self.transaction():
            job = self.retrieve(job_id)
            if error is not None:
                errors = list((job.result or {}).get("errors") or [])
                errors.append(error)
                self.update(job, {"result": {"errors": errors}})
            return self._transition(job, BatchJobStatus.FAILED)

    def _transition(self, job: Union[BatchJob, str], new_status: BatchJobStatus) -> BatchJob:
        with self.transaction():
            if isinstance(job, str):
                job = self.retrieve(job)

            self._validate_status_transition(job.status, new_status.value)

            previous_status = job.status
            job.status = new_status.value
            setattr(job, STATUS_TIMESTAMPS[new_status.value], datetime.now(timezone.utc))
            self.session.flush()

            logger.info(f"Batch job {job.id} ({job.type}): {previous_status} -> {job.status}")
            return job

    @staticmethod
    def _validate_status_transition(current_status: str, new_status: str) -> None:
        """
        Validate that a status transition is allowed.

        Raises:
            InvalidStatusTransitionException: If transition is not allowed
        """
        allowed = ALLOWED_TRANSITIONS.get(current_status, [])
        if new_status not in allowed:
            raise InvalidStatusTransitionException(
                f"Cannot transition batch job from {current_status} to {new_status}",
                allowed_transitions=allowed,
            )
