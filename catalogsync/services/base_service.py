# File: catalogsync/services/base_service.py

from typing import TypeVar, Generic, Optional, Type, Dict, Any
from contextlib import contextmanager
from sqlalchemy.orm import Session
import logging

from catalogsync.core.exceptions import CatalogSyncException, EntityNotFoundException
from catalogsync.repositories.base_repository import BaseRepository

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Key in Session.info tracking how many transaction scopes are open
TRANSACTION_DEPTH_KEY = "catalogsync_transaction_depth"

# Dialects accepting only some of the standard levels, with the level used
# in place of the others
DIALECT_ISOLATION_LEVELS = {
    "sqlite": ({"READ UNCOMMITTED", "SERIALIZABLE"}, "SERIALIZABLE"),
}


class BaseService(Generic[T]):
    """
    Base service for all CatalogSync services.

    Provides common functionality including:
    - Transaction management shared by every service bound to a session
    - Error handling and standardization
    - Logging
    - Basic read operations
    """

    def __init__(
            self,
            session: Session,
            repository_class: Optional[Type[BaseRepository]] = None,
            repository: Optional[BaseRepository] = None,
    ):
        """
        Initialize service with dependencies.

        Args:
            session: Database session for persistence operations
            repository_class: Repository class to instantiate (optional if repository is provided)
            repository: Repository instance (optional if repository_class is provided)
        """
        self.session = session

        # Allow either repository instance or class to be provided
        if repository is not None:
            self.repository = repository
        elif repository_class is not None:
            self.repository = repository_class(session)
        else:
            # Subclasses may initialize repository directly
            self.repository = None

    @property
    def in_transaction(self) -> bool:
        return self.session.info.get(TRANSACTION_DEPTH_KEY, 0) > 0

    @contextmanager
    def transaction(self, isolation_level: Optional[str] = None):
        """
        Provide a transactional scope around operations.

        The outermost scope commits or rolls back; scopes opened inside it
        (by this or any other service sharing the session) join it.

        Args:
            isolation_level: Optional isolation level for the outermost scope

        Yields:
            None

        Raises:
            Exception: Any exception that occurs during transaction execution
        """
        depth = self.session.info.get(TRANSACTION_DEPTH_KEY, 0)

        if depth:
            self.session.info[TRANSACTION_DEPTH_KEY] = depth + 1
            try:
                yield
            finally:
                self.session.info[TRANSACTION_DEPTH_KEY] = depth
            return

        try:
            self.session.info[TRANSACTION_DEPTH_KEY] = 1
            if isolation_level:
                if self.session.in_transaction():
                    # The level can only be chosen before the first statement
                    logger.warning(
                        f"Session already in a transaction, isolation level "
                        f"{isolation_level} not applied"
                    )
                else:
                    self.session.connection(
                        execution_options={
                            "isolation_level": self.dialect_isolation_level(isolation_level)
                        }
                    )
            yield
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error(f"Transaction failed: {str(e)}", exc_info=True)

            transformed = self._transform_error(e)
            if transformed:
                raise transformed from e
            raise
        finally:
            self.session.info[TRANSACTION_DEPTH_KEY] = 0

    def dialect_isolation_level(self, isolation_level: str) -> str:
        """
        Isolation level the session's database accepts for the requested one.

        SQLite only knows READ UNCOMMITTED and SERIALIZABLE; other levels run
        as SERIALIZABLE there. Other databases get the level unchanged.

        Args:
            isolation_level: Requested isolation level

        Returns:
            The level to set on the connection
        """
        level = isolation_level.upper()
        dialect_name = self.session.get_bind().dialect.name
        if dialect_name not in DIALECT_ISOLATION_LEVELS:
            return level

        supported, fallback = DIALECT_ISOLATION_LEVELS[dialect_name]
        if level in supported:
            return level

        logger.info(
            f"Isolation level {level} not supported by {dialect_name}, using {fallback}"
        )
        return fallback

    def get_by_id(self, id: str) -> Optional[T]:
        """
        Get entity by ID.

        Args:
            id: Entity ID to retrieve

        Returns:
            Entity if found, None otherwise
        """
        return self.repository.get_by_id(id)

    def get_entity_or_404(self, id: str) -> T:
        """
        Get an entity by ID or raise EntityNotFoundException.

        Args:
            id: Entity ID to retrieve

        Returns:
            Entity if found

        Raises:
            EntityNotFoundException: If entity is not found
        """
        entity = self.get_by_id(id)
        if not entity:
            entity_name = self.repository.model.__name__ if self.repository else "Entity"
            raise EntityNotFoundException(entity_name, id)
        return entity

    def _log_operation(
            self,
            operation: str,
            entity_type: str,
            entity_id: Any = None,
            details: Dict[str, Any] = None,
    ) -> None:
        """
        Log an operation for auditing purposes.

        Args:
            operation: Operation name (create, update, delete, etc.)
            entity_type: Type of entity being operated on
            entity_id: Optional entity ID
            details: Optional operation details
        """
        log_data = {
            "operation": operation,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": details,
        }

        logger.debug(f"{operation.upper()} {entity_type} {entity_id}", extra=log_data)

    def _transform_error(self, error: Exception) -> Optional[CatalogSyncException]:
        """
        Transform generic exceptions to specific domain exceptions.

        Override this method in service subclasses to handle
        specific error cases.

        Args:
            error: The original exception

        Returns:
            Transformed domain exception, or None to re-raise original
        """
        return None
