"""
Page-based pagination for list endpoints.

Usage:
    from inventory_api.routers._common import Pagination, get_pagination

    @router.get("/products")
    def list_products(pagination: Pagination = Depends(get_pagination)):
        filters = ProductFilters(limit=pagination.limit, offset=pagination.offset)
        ...
        return {"items": items, "pagination": pagination.to_dict(total=count)}
"""

from dataclasses import dataclass
from typing import Any

from fastapi import Query

from inventory_shared.config.settings import settings


@dataclass
class Pagination:
    """
    Pagination parameters with validation.

    Attributes:
        page: 1-indexed page number
        per_page: Items per page (1 to max_per_page)
    """

    page: int = 1
    per_page: int = settings.default_per_page
    max_per_page: int = settings.max_per_page

    def __post_init__(self):
        """Validate and normalize values."""
        self.per_page = min(max(1, self.per_page), self.max_per_page)
        self.page = max(1, self.page)

    @property
    def limit(self) -> int:
        return self.per_page

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def to_dict(self, total: int) -> dict[str, Any]:
        """Pagination metadata for a response."""
        last_page = max(1, (total + self.per_page - 1) // self.per_page)
        return {
            "page": self.page,
            "per_page": self.per_page,
            "total": total,
            "last_page": last_page,
            "has_next": self.page < last_page,
            "has_prev": self.page > 1,
        }


def get_pagination(
    page: int = Query(default=1, ge=1, description="Page number"),
    per_page: int = Query(
        default=settings.default_per_page,
        ge=1,
        le=settings.max_per_page,
        description="Items per page",
    ),
) -> Pagination:
    """FastAPI dependency for pagination."""
    return Pagination(page=page, per_page=per_page)
