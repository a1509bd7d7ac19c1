# tests/conftest.py
"""
Shared fixtures: an in-memory SQLite database, a memory staging backend with
a controllable clock and file storage in a temporary directory.
"""

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from catalogsync.db.models import Base
from catalogsync.db.session import create_db_engine
from catalogsync.services.file_storage_service import FileStorageService
from catalogsync.services.service_factory import ServiceFactory
from catalogsync.services.staging_service import ImportStagingService, MemoryStagingBackend


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def engine():
    db_engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=db_engine)
    yield db_engine
    Base.metadata.drop_all(bind=db_engine)
    db_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def staging_backend(clock):
    return MemoryStagingBackend(clock=clock)


@pytest.fixture()
def staging_service(staging_backend):
    return ImportStagingService(staging_backend, ttl=3600, key_prefix="pij")


@pytest.fixture()
def file_storage(tmp_path):
    return FileStorageService(str(tmp_path / "uploads"))


@pytest.fixture()
def factory(db_session, staging_backend, file_storage):
    return ServiceFactory(
        db_session, staging_backend=staging_backend, file_storage_service=file_storage
    )


@pytest.fixture()
def default_profile(factory):
    return factory.get_shipping_profile_service().create_default()


@pytest.fixture()
def export_strategy(factory):
    """Export strategy paging two products at a time on the connection default level."""
    from catalogsync.services.product_export_service import ProductExportStrategy

    return ProductExportStrategy(
        factory.session,
        batch_job_service=factory.get_batch_job_service(),
        product_service=factory.get_product_service(),
        file_storage_service=factory.get_file_storage_service(),
        batch_size=2,
        isolation_level=None,
    )


@pytest.fixture()
def runner(factory, export_strategy):
    from catalogsync.services.batch_job_runner import BatchJobRunner

    return BatchJobRunner(
        factory.get_batch_job_service(),
        [factory.get_product_import_strategy(), export_strategy],
    )
