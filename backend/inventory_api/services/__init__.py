"""
Services module for business logic.

- branch_access: who may act on which branch
- branch_context: which branch a request operates in
- domain/: product and product-branch application services
- audit: audit trail rows written inside the caller's transaction

Usage:
    from inventory_api.services.domain import ProductService
    service = ProductService(db)
    product = service.get_product(product_id, user)
"""

from .base_service import BaseService
from .branch_access import BranchAccessService
from .branch_context import BranchContext, BranchContextService

__all__ = [
    "BaseService",
    "BranchAccessService",
    "BranchContext",
    "BranchContextService",
]
