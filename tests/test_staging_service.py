# tests/test_staging_service.py
"""
Tests for the import staging store and its backends.
"""

import pytest

from catalogsync.db.models.enums import OperationType
from catalogsync.services.staging_service import (
    ImportStagingService,
    MemoryStagingBackend,
    RedisStagingBackend,
    create_staging_backend,
)


class FakeRedis:
    """Minimal stand-in for the redis client calls the backend makes."""

    def __init__(self):
        self.data = {}
        self.expirations = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value.encode("utf-8")
        self.expirations[key] = ex
        return True

    def scan_iter(self, match=None):
        prefix = match.rstrip("*")
        return [key for key in list(self.data) if key.startswith(prefix)]

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


ROWS = [{"product.handle": "shirt", "variant.sku": "SHIRT-S"}]


def test_put_and_get(staging_service, staging_backend):
    assert staging_service.put("batch_1", OperationType.PRODUCT_CREATE, ROWS) is True

    assert "pij_batch_1:PRODUCT_CREATE" in staging_backend.entries
    assert staging_service.get("batch_1", OperationType.PRODUCT_CREATE) == ROWS
    assert staging_service.get("batch_1", "PRODUCT_CREATE") == ROWS


def test_empty_batch_is_not_written(staging_service, staging_backend):
    assert staging_service.put("batch_1", OperationType.VARIANT_UPDATE, []) is False

    assert staging_backend.entries == {}
    assert staging_service.get("batch_1", OperationType.VARIANT_UPDATE) == []


def test_put_all_counts_written_entries(staging_service):
    ops = {op: [] for op in OperationType}
    ops[OperationType.PRODUCT_CREATE] = ROWS
    ops[OperationType.VARIANT_CREATE] = ROWS

    assert staging_service.put_all("batch_1", ops) == 2


def test_entries_expire(staging_service, clock):
    staging_service.put("batch_1", OperationType.PRODUCT_CREATE, ROWS)

    clock.advance(3599)
    assert staging_service.get("batch_1", OperationType.PRODUCT_CREATE) == ROWS

    clock.advance(1)
    assert staging_service.get("batch_1", OperationType.PRODUCT_CREATE) == []


def test_remove_expired(staging_backend, clock):
    staging_backend.set("a", "1", ttl=10)
    staging_backend.set("b", "2", ttl=None)

    clock.advance(10)

    assert staging_backend.remove_expired() == 1
    assert list(staging_backend.entries) == ["b"]


def test_clear_only_touches_one_job(staging_service):
    staging_service.put("batch_1", OperationType.PRODUCT_CREATE, ROWS)
    staging_service.put("batch_1", OperationType.VARIANT_CREATE, ROWS)
    staging_service.put("batch_10", OperationType.PRODUCT_CREATE, ROWS)

    assert staging_service.clear("batch_1") == 2

    assert staging_service.get("batch_1", OperationType.PRODUCT_CREATE) == []
    assert staging_service.get("batch_10", OperationType.PRODUCT_CREATE) == ROWS


def test_redis_backend():
    client = FakeRedis()
    service = ImportStagingService(RedisStagingBackend(client), ttl=3600, key_prefix="pij")

    service.put("batch_1", OperationType.PRODUCT_CREATE, ROWS)

    assert client.expirations["pij_batch_1:PRODUCT_CREATE"] == 3600
    assert service.get("batch_1", OperationType.PRODUCT_CREATE) == ROWS
    assert service.clear("batch_1") == 1
    assert client.data == {}


def test_create_staging_backend():
    assert isinstance(create_staging_backend("memory"), MemoryStagingBackend)
    assert isinstance(create_staging_backend("redis"), RedisStagingBackend)

    with pytest.raises(ValueError):
        create_staging_backend("memcached")
