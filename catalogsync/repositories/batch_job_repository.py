# File: catalogsync/repositories/batch_job_repository.py

from sqlalchemy.orm import Session

from catalogsync.db.models.batch_job import BatchJob
from catalogsync.repositories.base_repository import BaseRepository


class BatchJobRepository(BaseRepository[BatchJob]):
    """Repository for batch jobs."""

    def __init__(self, session: Session):
        super().__init__(session, BatchJob)

    def refresh(self, job: BatchJob) -> BatchJob:
        """Reload a job so status changes committed elsewhere are visible."""
        self.session.refresh(job)
        return job
