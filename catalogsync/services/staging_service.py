# File: catalogsync/services/staging_service.py

"""
Staging store for product import jobs.

Pre-processing parses and classifies an uploaded file, then stages the
resulting operation batches here; processing reads them back later. Every
entry expires after a fixed time-to-live, and an absent or expired entry
reads back as an empty batch: "nothing staged" and "nothing to do" are the
same thing to callers.

Key features:
- Redis and in-memory backends behind one small interface
- One JSON entry per (job, operation type), skipped when the batch is empty
- Per-job clearing
"""

from typing import Any, Callable, Dict, List, Optional, Union
import json
import logging
import time

import redis

from catalogsync.core.config import settings
from catalogsync.db.models.enums import OperationType

logger = logging.getLogger(__name__)


class StagingEntry:
    """Represents a staged value with its expiry."""

    def __init__(self, value: str, ttl: Optional[int], now: float):
        """
        Initialize staging entry.

        Args:
            value: Serialized value
            ttl: Time to live in seconds (None for no expiration)
            now: Current time of the backend clock
        """
        self.value = value
        self.created_at = now
        self.expires_at = now + ttl if ttl is not None else None

    def is_expired(self, now: float) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class StagingBackend:
    """Base class for staging backends."""

    def get(self, key: str) -> Optional[str]:
        """Get a serialized value."""
        raise NotImplementedError("Subclasses must implement get")

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Set a serialized value with an optional TTL in seconds."""
        raise NotImplementedError("Subclasses must implement set")

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix; returns the number removed."""
        raise NotImplementedError("Subclasses must implement delete_prefix")


class MemoryStagingBackend(StagingBackend):
    """
    In-process staging backend.

    The clock is injectable so tests can expire entries without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.entries: Dict[str, StagingEntry] = {}
        self.clock = clock

    def get(self, key: str) -> Optional[str]:
        entry = self.entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self.clock()):
            del self.entries[key]
            return None

        return entry.value

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        self.entries[key] = StagingEntry(value, ttl, self.clock())
        return True

    def delete_prefix(self, prefix: str) -> int:
        keys_to_delete = [key for key in self.entries if key.startswith(prefix)]
        for key in keys_to_delete:
            del self.entries[key]
        return len(keys_to_delete)

    def remove_expired(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed
        """
        now = self.clock()
        expired = [key for key, entry in self.entries.items() if entry.is_expired(now)]
        for key in expired:
            del self.entries[key]
        return len(expired)


class RedisStagingBackend(StagingBackend):
    """Redis-based staging backend."""

    def __init__(self, redis_client: "redis.Redis"):
        """
        Initialize Redis staging backend.

        Args:
            redis_client: Redis client instance
        """
        self.redis = redis_client

    def get(self, key: str) -> Optional[str]:
        value = self.redis.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if ttl is not None:
            return bool(self.redis.set(key, value, ex=ttl))
        return bool(self.redis.set(key, value))

    def delete_prefix(self, prefix: str) -> int:
        keys = list(self.redis.scan_iter(match=f"{prefix}*"))
        if not keys:
            return 0
        return int(self.redis.delete(*keys))


def create_staging_backend(backend_type: Optional[str] = None) -> StagingBackend:
    """
    Create the staging backend configured in settings.

    Args:
        backend_type: "redis" or "memory"; defaults to settings.STAGING_BACKEND

    Returns:
        Staging backend instance
    """
    backend_type = (backend_type or settings.STAGING_BACKEND).lower()

    if backend_type == "memory":
        logger.info("Using in-memory staging backend")
        return MemoryStagingBackend()

    if backend_type == "redis":
        logger.info("Using redis staging backend")
        return RedisStagingBackend(redis.Redis.from_url(settings.REDIS_URL))

    raise ValueError(f"Unsupported staging backend: {backend_type}")


class ImportStagingService:
    """
    Stages import operation batches between pre-processing and processing.

    Provides functionality for:
    - Writing one expiring entry per non-empty operation batch
    - Reading a batch back, empty when absent or expired
    - Clearing every entry of a job
    """

    def __init__(
        self,
        backend: StagingBackend,
        ttl: Optional[int] = None,
        key_prefix: Optional[str] = None,
    ):
        """
        Initialize staging service.

        Args:
            backend: Staging backend
            ttl: Entry time to live in seconds (defaults to settings.STAGING_TTL)
            key_prefix: Key prefix (defaults to settings.STAGING_KEY_PREFIX)
        """
        self.backend = backend
        self.ttl = ttl if ttl is not None else settings.STAGING_TTL
        self.key_prefix = key_prefix or settings.STAGING_KEY_PREFIX

    def put(
        self,
        job_id: str,
        op_type: Union[OperationType, str],
        rows: List[Dict[str, Any]],
    ) -> bool:
        """
        Stage one operation batch.

        Args:
            job_id: Batch job ID
            op_type: Operation type
            rows: Parsed rows; nothing is written when empty

        Returns:
            True if an entry was written
        """
        if not rows:
            return False

        key = self._format_key(job_id, op_type)
        written = self.backend.set(key, json.dumps(rows), self.ttl)
        logger.debug(f"Staged {len(rows)} rows under {key}")
        return written

    def put_all(
        self,
        job_id: str,
        ops: Dict[Union[OperationType, str], List[Dict[str, Any]]],
    ) -> int:
        """
        Stage every operation batch of a job.

        Returns:
            Number of entries written
        """
        return sum(1 for op_type, rows in ops.items() if self.put(job_id, op_type, rows))

    def get(self, job_id: str, op_type: Union[OperationType, str]) -> List[Dict[str, Any]]:
        """
        Read one operation batch back.

        Args:
            job_id: Batch job ID
            op_type: Operation type

        Returns:
            The staged rows, or an empty list if absent or expired
        """
        value = self.backend.get(self._format_key(job_id, op_type))
        if value is None:
            return []
        return json.loads(value)

    def clear(self, job_id: str) -> int:
        """
        Remove every staged entry of a job.

        Returns:
            Number of entries removed
        """
        removed = self.backend.delete_prefix(f"{self.key_prefix}_{job_id}:")
        logger.debug(f"Cleared {removed} staged entries of job {job_id}")
        return removed

    def _format_key(self, job_id: str, op_type: Union[OperationType, str]) -> str:
        op = op_type.value if isinstance(op_type, OperationType) else str(op_type)
        return f"{self.key_prefix}_{job_id}:{op}"
