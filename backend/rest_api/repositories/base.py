"""
Base Repository implementation.
Provides common data access patterns over a synchronous Session.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.orm import Session


ModelT = TypeVar("ModelT")


class BaseRepository(ABC, Generic[ModelT]):
    """
    Abstract base repository with common operations.

    Subclasses must implement:
    - model: Return the SQLAlchemy model class
    """

    def __init__(self, db: Session):
        self._db = db

    @property
    @abstractmethod
    def model(self) -> type[ModelT]:
        """Return the SQLAlchemy model class."""
        ...

    def _base_query(self) -> Select:
        return select(self.model)

    def find_by_id(self, entity_id: Any) -> ModelT | None:
        """Find entity by primary key, or None."""
        query = self._base_query().where(self.model.id == entity_id)
        return self._db.scalar(query)
