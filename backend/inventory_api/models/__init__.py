"""
SQLAlchemy ORM Models Package.

- base: Base class, AuditMixin, SoftDeleteMixin
- tenant: Tenant, Branch
- user: User, UserBranch
- catalog: Category, Product, BranchProduct
- sales: Sale, SaleItem
- audit: AuditLog
"""

from .base import Base, AuditMixin, SoftDeleteMixin

from .tenant import Tenant, Branch

from .user import User, UserBranch

from .catalog import Category, Product, BranchProduct

from .sales import Sale, SaleItem

from .audit import AuditLog

__all__ = [
    "Base",
    "AuditMixin",
    "SoftDeleteMixin",
    "Tenant",
    "Branch",
    "User",
    "UserBranch",
    "Category",
    "Product",
    "BranchProduct",
    "Sale",
    "SaleItem",
    "AuditLog",
]
