# File: catalogsync/db/models/base.py
"""
Base models and mixins for the CatalogSync system.

This module provides the foundation for all database models in the system, including:
- Base SQLAlchemy model class
- Prefixed string identifiers shared by every catalog entity
- Timestamp mixin
"""

from datetime import datetime, timezone
from functools import partial
from typing import Any, ClassVar, Dict, Type, TypeVar
import uuid

from sqlalchemy import Column, DateTime, MetaData, String
from sqlalchemy.orm import declarative_base, declared_attr

# Create the SQLAlchemy base

Base = declarative_base(metadata=MetaData())


# Type variable for model classes
T = TypeVar("T", bound="AbstractBase")


def generate_entity_id(prefix: str) -> str:
    """
    Generate a prefixed identifier such as ``prod_3f2c...``.

    Args:
        prefix: Entity prefix

    Returns:
        New identifier
    """
    return f"{prefix}_{uuid.uuid4().hex}"


class TimestampMixin:
    """
    Mixin providing automatic timestamp functionality.

    Adds created_at and updated_at timestamps that are automatically
    maintained when records are created or updated.
    """

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class AbstractBase(Base):
    """
    Abstract base class for all model entities.

    Subclasses set ``id_prefix``; the primary key is generated from it
    when the row is first flushed.
    """

    __abstract__ = True

    id_prefix: ClassVar[str] = "ent"

    @declared_attr
    def id(cls):
        return Column(
            String(64), primary_key=True, default=partial(generate_entity_id, cls.id_prefix)
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the model instance to a dictionary.

        Returns:
            Dictionary representation of the model instance
        """
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            result[column.name] = value
        return result

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """
        Create a model instance from a dictionary.

        Args:
            data: Dictionary containing field values

        Returns:
            New model instance
        """
        return cls(
            **{k: v for k, v in data.items() if k in cls.__table__.columns.keys()}
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id}>"
