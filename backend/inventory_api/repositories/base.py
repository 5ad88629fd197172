"""
Base Repository implementation.
Provides common data access patterns with tenant isolation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TypeVar, Generic, Sequence
from sqlalchemy.orm import Session
from sqlalchemy import Select, select, func

from inventory_shared.config.constants import Limits
from inventory_shared.config.settings import settings


ModelT = TypeVar("ModelT")


@dataclass
class RepositoryFilters:
    """Base filters for repository queries."""

    # Pagination
    limit: int = settings.default_per_page
    offset: int = 0

    # Soft delete (models with deleted_at only)
    include_deleted: bool = False

    # Search
    search: str | None = None

    def __post_init__(self):
        """Validate and normalize filters."""
        self.limit = min(max(1, self.limit), settings.max_per_page)
        self.offset = max(0, self.offset)
        if self.search:
            self.search = self.search.strip()[:Limits.MAX_SEARCH_TERM_LENGTH] or None


def escape_like_pattern(value: str) -> str:
    """
    Escape special characters in LIKE patterns.

    % and _ are wildcards in SQL LIKE; escaping them keeps a search term
    from turning into an unbounded scan.
    """
    if not value:
        return value
    value = value.replace("\\", "\\\\")
    value = value.replace("%", "\\%")
    value = value.replace("_", "\\_")
    return value


class BaseRepository(ABC, Generic[ModelT]):
    """
    Abstract base repository with common operations.

    Subclasses must implement:
    - model: The SQLAlchemy model class
    - _base_query(): Base query with eager loading
    - _apply_filters(): Entity-specific filters
    """

    def __init__(self, db: Session):
        self._db = db

    @property
    @abstractmethod
    def model(self) -> type[ModelT]:
        """Return the SQLAlchemy model class."""
        ...

    @abstractmethod
    def _base_query(self, tenant_id: int) -> Select:
        """
        Return base query with proper eager loading.
        Subclasses must implement this with selectinload/joinedload.
        """
        ...

    @abstractmethod
    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        """Apply entity-specific filters to query."""
        ...

    def _exclude_deleted(self, query: Select, include_deleted: bool) -> Select:
        if not include_deleted and hasattr(self.model, "deleted_at"):
            query = query.where(self.model.deleted_at.is_(None))
        return query

    def find_all(
        self,
        tenant_id: int,
        filters: RepositoryFilters | None = None,
    ) -> Sequence[ModelT]:
        """
        Find one page of entities matching filters.

        Args:
            tenant_id: Tenant ID for isolation
            filters: Optional filters

        Returns:
            List of entities
        """
        filters = filters or RepositoryFilters()
        query = self._base_query(tenant_id)
        query = self._exclude_deleted(query, filters.include_deleted)
        query = self._apply_filters(query, filters)
        query = query.offset(filters.offset).limit(filters.limit)

        return self._db.execute(query).scalars().unique().all()

    def count(
        self,
        tenant_id: int,
        filters: RepositoryFilters | None = None,
    ) -> int:
        """Count entities matching the same filters as find_all."""
        filters = filters or RepositoryFilters()

        query = select(self.model.id).where(self.model.tenant_id == tenant_id)
        query = self._exclude_deleted(query, filters.include_deleted)
        query = self._apply_filters(query, filters)

        return self._db.scalar(
            select(func.count()).select_from(query.order_by(None).subquery())
        ) or 0

    def find_by_id(
        self,
        entity_id: int,
        tenant_id: int,
        include_deleted: bool = False,
    ) -> ModelT | None:
        """
        Find entity by ID within a tenant.

        Returns:
            Entity or None
        """
        query = self._base_query(tenant_id).where(self.model.id == entity_id)
        query = self._exclude_deleted(query, include_deleted)
        return self._db.scalar(query)

    def find_by_ids(
        self,
        entity_ids: list[int],
        tenant_id: int,
        include_deleted: bool = False,
    ) -> Sequence[ModelT]:
        """
        Find entities by IDs within a tenant.

        Returns:
            List of entities (order not guaranteed)
        """
        if not entity_ids:
            return []

        query = self._base_query(tenant_id).where(self.model.id.in_(entity_ids))
        query = self._exclude_deleted(query, include_deleted)
        return self._db.execute(query).scalars().unique().all()
