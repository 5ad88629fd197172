"""
User and branch assignment models.

Both tables are owned by staff management; this service only reads them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_shared.config.constants import Roles, TENANT_ADMIN_ROLES

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .tenant import Tenant, Branch


class User(AuditMixin, Base):
    """
    A staff member of a tenant, or a platform super admin (no tenant).
    """

    __tablename__ = "app_user"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=True, index=True
    )
    email: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, default=Roles.STAFF)
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
        Index("ix_user_email", "email"),
    )

    tenant: Mapped[Optional["Tenant"]] = relationship(back_populates="users")
    branch_assignments: Mapped[list["UserBranch"]] = relationship(back_populates="user")

    @property
    def is_tenant_admin(self) -> bool:
        return self.role in TENANT_ADMIN_ROLES

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class UserBranch(Base):
    """
    Assigns a user to a branch. ``is_manager`` marks the branch manager.
    """

    __tablename__ = "user_branch"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, index=True
    )
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    is_manager: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user: Mapped["User"] = relationship(back_populates="branch_assignments")
    branch: Mapped["Branch"] = relationship(back_populates="user_assignments")

    __table_args__ = (
        UniqueConstraint("user_id", "branch_id", name="uq_user_branch"),
    )
