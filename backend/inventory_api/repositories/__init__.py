"""
Repositories: tenant-isolated data access with eager loading.
"""

from .base import BaseRepository, RepositoryFilters, escape_like_pattern
from .product import ProductRepository, ProductFilters, BranchProductRepository
from .branch import BranchRepository
from .sales import SaleRepository

__all__ = [
    "BaseRepository",
    "RepositoryFilters",
    "escape_like_pattern",
    "ProductRepository",
    "ProductFilters",
    "BranchProductRepository",
    "BranchRepository",
    "SaleRepository",
]
