# File: catalogsync/db/models/batch_job.py
"""
Defines the BatchJob model that tracks import and export jobs.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, String

from catalogsync.db.models.base import AbstractBase, TimestampMixin
from catalogsync.db.models.enums import BatchJobStatus


class BatchJob(AbstractBase, TimestampMixin):
    """
    A long-running import or export job.

    ``context`` holds the inputs and what pre-processing discovered
    (file key, totals, export shape); ``result`` holds what processing
    produced (output file key, advancement, errors).
    """

    __tablename__ = "batch_jobs"
    id_prefix = "batch"

    type = Column(String(64), nullable=False, index=True)
    status = Column(String(32), nullable=False, default=BatchJobStatus.CREATED.value)
    created_by = Column(String(255), nullable=True)
    context = Column(JSON, nullable=False, default=dict)
    result = Column(JSON, nullable=True)
    dry_run = Column(Boolean, nullable=False, default=False)

    pre_processed_at = Column(DateTime, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    processing_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    canceled_at = Column(DateTime, nullable=True)
