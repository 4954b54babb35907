"""
Base Repository implementation.
Provides common data access patterns for all aggregates.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TypeVar, Generic, Sequence
from sqlalchemy.orm import Session
from sqlalchemy import Select, select, func

from shared.config.constants import Limits


ModelT = TypeVar("ModelT")


@dataclass
class RepositoryFilters:
    """Base filters for repository queries."""

    # Pagination
    limit: int = Limits.DEFAULT_PAGE_SIZE
    offset: int = 0
    max_limit: int = Limits.MAX_PAGE_SIZE

    def __post_init__(self):
        """Normalize pagination into a safe range."""
        self.limit = min(max(1, self.limit), self.max_limit)
        self.offset = max(0, self.offset)


class BaseRepository(ABC, Generic[ModelT]):
    """
    Abstract base repository with common operations.

    Subclasses must implement:
    - model: The SQLAlchemy model class
    - _base_query(): Base select with eager loading and default ordering
    - _apply_filters(): Entity-specific WHERE clauses
    """

    def __init__(self, db: Session):
        self._db = db

    @property
    @abstractmethod
    def model(self) -> type[ModelT]:
        """Return the SQLAlchemy model class."""
        ...

    @abstractmethod
    def _base_query(self) -> Select:
        """Return base query with eager loading and ordering."""
        ...

    @abstractmethod
    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        """Apply entity-specific filters to query."""
        ...

    def find_all(self, filters: RepositoryFilters | None = None) -> Sequence[ModelT]:
        """Find one page of entities matching filters."""
        filters = filters or RepositoryFilters()
        query = self._apply_filters(self._base_query(), filters)
        query = query.offset(filters.offset).limit(filters.limit)
        return self._db.execute(query).scalars().unique().all()

    def count(self, filters: RepositoryFilters | None = None) -> int:
        """Count entities matching filters, ignoring pagination."""
        filters = filters or RepositoryFilters()
        query = self._apply_filters(
            select(func.count()).select_from(self.model), filters
        )
        return self._db.scalar(query) or 0

    def find_by_id(self, entity_id: str) -> ModelT | None:
        query = self._base_query().where(self.model.id == entity_id)
        return self._db.scalar(query)

    def find_by_ids(self, entity_ids: list[str]) -> Sequence[ModelT]:
        """Find entities by IDs (order not guaranteed)."""
        if not entity_ids:
            return []
        query = self._base_query().where(self.model.id.in_(entity_ids))
        return self._db.execute(query).scalars().unique().all()

    def exists(self, entity_id: str) -> bool:
        query = (
            select(func.count())
            .select_from(self.model)
            .where(self.model.id == entity_id)
        )
        return (self._db.scalar(query) or 0) > 0

    def add(self, entity: ModelT) -> ModelT:
        """Stage entity for insert and flush so defaults are populated."""
        self._db.add(entity)
        self._db.flush()
        return entity
