"""
Database session management for CatalogSync.

Usage:
    from catalogsync.db.session import session_scope

    with session_scope() as session:
        factory = ServiceFactory(session)
        ...
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from catalogsync.core.config import settings
from catalogsync.db.models import Base

# Configure module logger
logger = logging.getLogger(__name__)


def create_db_engine(database_url: Optional[str] = None, **kwargs) -> Engine:
    """
    Create an engine for the configured database.

    SQLite connections get foreign keys enabled so cascades behave the
    same as on a server database.

    Args:
        database_url: Optional override of settings.DATABASE_URL
        **kwargs: Extra arguments forwarded to create_engine

    Returns:
        SQLAlchemy engine
    """
    url = database_url or settings.DATABASE_URL
    is_sqlite = url.startswith("sqlite")

    if is_sqlite:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args

    db_engine = create_engine(url, echo=settings.DATABASE_ECHO, **kwargs)

    if is_sqlite:

        @event.listens_for(db_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return db_engine


engine = create_db_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """Session for worker code; rolled back if the block raises."""
    db = (session_factory or SessionLocal)()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def verify_db_connection(db_engine: Optional[Engine] = None) -> bool:
    """Check that the database answers a trivial query."""
    try:
        with (db_engine or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {str(e)}")
        return False


def init_db(reset: bool = False, db_engine: Optional[Engine] = None) -> None:
    """
    Initialize the database schema.

    Args:
        reset: Whether to drop all tables first
        db_engine: Engine to use instead of the module engine
    """
    target = db_engine or engine
    logger.info("Initializing database schema...")

    if reset:
        logger.info("Dropping all tables for reset...")
        Base.metadata.drop_all(bind=target)

    Base.metadata.create_all(bind=target)
    logger.info(f"Database schema initialized with {len(Base.metadata.tables)} tables")
