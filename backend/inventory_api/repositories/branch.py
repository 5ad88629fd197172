"""
Branch Repository - Data access for branches and user assignments.
"""

from typing import Sequence
from sqlalchemy import Select, func, select

from inventory_api.models import Branch, UserBranch
from .base import BaseRepository, RepositoryFilters, escape_like_pattern


class BranchRepository(BaseRepository[Branch]):
    """
    Repository for Branch entities.

    Default ordering puts the tenant default branch first, then by id.
    """

    @property
    def model(self) -> type[Branch]:
        return Branch

    def _base_query(self, tenant_id: int) -> Select:
        return (
            select(Branch)
            .where(Branch.tenant_id == tenant_id)
            .order_by(Branch.is_default.desc(), Branch.id)
        )

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        if filters.search:
            query = query.where(Branch.name.ilike(f"%{escape_like_pattern(filters.search)}%", escape="\\"))
        return query

    def get(self, branch_id: int) -> Branch | None:
        """Any branch by primary key, regardless of tenant or deletion."""
        return self._db.get(Branch, branch_id)

    def find_all_for_tenant(
        self,
        tenant_id: int,
        include_deleted: bool = False,
        active_only: bool = False,
    ) -> Sequence[Branch]:
        """Every branch of a tenant ordered default first, then by name."""
        query = (
            select(Branch)
            .where(Branch.tenant_id == tenant_id)
            .order_by(Branch.is_default.desc(), Branch.name, Branch.id)
        )
        query = self._exclude_deleted(query, include_deleted)
        if active_only:
            query = query.where(Branch.is_active.is_(True))
        return self._db.execute(query).scalars().all()

    def find_assigned_to_user(self, user_id: int) -> Sequence[Branch]:
        """
        Active, non-deleted branches explicitly assigned to a user.

        Ordered ``is_default DESC, id ASC`` so the first row is a stable
        fallback branch.
        """
        query = (
            select(Branch)
            .join(UserBranch, UserBranch.branch_id == Branch.id)
            .where(
                UserBranch.user_id == user_id,
                Branch.is_active.is_(True),
                Branch.deleted_at.is_(None),
            )
            .order_by(Branch.is_default.desc(), Branch.id)
        )
        return self._db.execute(query).scalars().all()

    def find_assignment(self, user_id: int, branch_id: int) -> UserBranch | None:
        return self._db.scalar(
            select(UserBranch).where(
                UserBranch.user_id == user_id,
                UserBranch.branch_id == branch_id,
            )
        )

    def assigned_branch_ids(self, user_id: int) -> set[int]:
        """Every branch id the user holds an assignment row for."""
        return set(
            self._db.execute(
                select(UserBranch.branch_id).where(UserBranch.user_id == user_id)
            ).scalars().all()
        )

    def code_exists(self, tenant_id: int, code: str, exclude_id: int | None = None) -> bool:
        """Branch codes are unique within a tenant, soft-deleted branches included."""
        query = select(func.count()).select_from(Branch).where(
            Branch.tenant_id == tenant_id,
            Branch.code == code,
        )
        if exclude_id is not None:
            query = query.where(Branch.id != exclude_id)
        return (self._db.scalar(query) or 0) > 0
