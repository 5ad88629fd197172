"""
Multi-Tenancy Models: Tenant and Branch.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, JSON, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK, SoftDeleteMixin

if TYPE_CHECKING:
    from .user import User, UserBranch
    from .catalog import Product, BranchProduct


class Tenant(AuditMixin, Base):
    """
    A business subscribed to the platform (top-level tenant).
    All other entities belong to a tenant for complete data isolation.
    """

    __tablename__ = "tenant"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    branches: Mapped[list["Branch"]] = relationship(back_populates="tenant")
    users: Mapped[list["User"]] = relationship(back_populates="tenant")
    products: Mapped[list["Product"]] = relationship(back_populates="tenant")

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name='{self.name}', slug='{self.slug}')>"


class Branch(SoftDeleteMixin, AuditMixin, Base):
    """
    A physical location of a tenant (store, warehouse, workshop).

    ``is_active`` is the operational flag; ``deleted_at`` marks a soft-deleted
    branch. Branches are never hard-deleted.
    """

    __tablename__ = "branch"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)
    city: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(Text)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    settings: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)

    tenant: Mapped["Tenant"] = relationship(back_populates="branches")
    user_assignments: Mapped[list["UserBranch"]] = relationship(back_populates="branch")
    branch_products: Mapped[list["BranchProduct"]] = relationship(back_populates="branch")

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_branch_tenant_code"),
        Index("ix_branch_tenant_active", "tenant_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, code='{self.code}', tenant_id={self.tenant_id})>"
