# File: catalogsync/repositories/base_repository.py

from typing import Generic, TypeVar, Dict, Any, Optional, Type
from sqlalchemy.orm import Session
from sqlalchemy import select, func

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base repository class providing common CRUD operations for all entities using
    modern SQLAlchemy select() syntax.

    Repositories only flush; committing is left to the service transaction
    scope so that one batch job runs as one unit of work.

    Attributes:
        session (Session): The SQLAlchemy session for database operations
        model (Type[T]): The SQLAlchemy model class this repository manages
    """

    def __init__(self, session: Session, model: Optional[Type[T]] = None):
        """
        Initialize the repository with a database session and the specific model.

        Args:
            session (Session): SQLAlchemy database session
            model (Type[T]): The SQLAlchemy model class this repository manages.
                             Subclasses set it when not passed here.
        """
        self.session = session
        self.model = model

    def _get_model(self) -> Type[T]:
        """Ensures the model is set before use."""
        if self.model is None:
            raise TypeError(f"Repository model is not set for {self.__class__.__name__}")
        return self.model

    def _apply_filters(self, stmt, filters: Dict[str, Any]):
        model_class = self._get_model()
        for key, value in filters.items():
            if hasattr(model_class, key):
                stmt = stmt.where(getattr(model_class, key) == value)
        return stmt

    def get_by_id(self, id: str) -> Optional[T]:
        """
        Retrieve an entity by its primary key ID.

        Args:
            id (str): The primary key ID of the entity

        Returns:
            Optional[T]: The entity if found, None otherwise
        """
        model_class = self._get_model()
        stmt = select(model_class).where(getattr(model_class, "id") == id)
        return self.session.execute(stmt).scalar_one_or_none()

    def find_one_by(self, **filters) -> Optional[T]:
        """
        Retrieve the first entity matching field=value filters.

        Returns:
            Optional[T]: The entity if found, None otherwise
        """
        stmt = self._apply_filters(select(self._get_model()), filters).limit(1)
        return self.session.execute(stmt).scalars().first()

    def create(self, data: Dict[str, Any]) -> T:
        """
        Create a new entity.

        Args:
            data (Dict[str, Any]): Dictionary containing entity field values

        Returns:
            T: The created entity, flushed so its primary key is assigned
        """
        model_class = self._get_model()
        # Ensure only columns present in the model are passed to constructor
        model_columns = {c.name for c in model_class.__table__.columns}
        filtered_data = {k: v for k, v in data.items() if k in model_columns}

        entity = model_class(**filtered_data)
        self.session.add(entity)
        self.session.flush()
        return entity

    def update(self, id: str, data: Dict[str, Any]) -> Optional[T]:
        """
        Update an existing entity.

        Args:
            id (str): The primary key ID of the entity to update
            data (Dict[str, Any]): Dictionary containing the fields to update

        Returns:
            Optional[T]: The updated entity if found, None otherwise
        """
        entity = self.get_by_id(id)
        if not entity:
            return None

        for key, value in data.items():
            # Only plain columns; relationships are handled by services
            if key in entity.__table__.columns.keys():
                setattr(entity, key, value)

        self.session.flush()
        return entity

    def count(self, **filters) -> int:
        """
        Count entities matching the given filters.

        Args:
            **filters: Filters to apply (field=value pairs)

        Returns:
            int: Count of matching entities
        """
        model_class = self._get_model()
        stmt = select(func.count(getattr(model_class, "id"))).select_from(model_class)
        stmt = self._apply_filters(stmt, filters)
        return self.session.execute(stmt).scalar_one()
