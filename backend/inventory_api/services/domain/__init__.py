"""
Domain Services - application layer.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository (data access)
        ↓
    Model (entity)
"""

from .product_branch_service import (
    BranchOptions,
    BulkAssignResult,
    ProductBranchService,
    ReconcileResult,
)
from .product_service import ProductService
from .branch_service import BranchService

__all__ = [
    "BranchOptions",
    "BranchService",
    "BulkAssignResult",
    "ProductBranchService",
    "ProductService",
    "ReconcileResult",
]
