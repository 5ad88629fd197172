"""
Branch access authorization.

Decides whether a user may act on a branch. Rules are evaluated in order,
first match wins:

1. Super admins may access any branch.
2. A branch that does not exist is never accessible.
3. A branch of another tenant is never accessible.
4. Tenant admins (OWNER, ADMIN) may access every branch of their tenant.
5. Anyone else needs an explicit user-branch assignment.
"""

from typing import Sequence

from sqlalchemy.orm import Session

from inventory_api.models import Branch, User
from inventory_api.repositories import BranchRepository
from inventory_shared.config.logging import get_logger, audit_branch_access_event
from inventory_shared.utils.exceptions import BranchAccessError, NotFoundError

logger = get_logger(__name__)


class BranchAccessService:
    """Branch authorization checks and the branch lists derived from them."""

    def __init__(self, db: Session):
        self._db = db
        self._branches = BranchRepository(db)

    def _decide(self, user: User, branch_id: int) -> tuple[bool, str, Branch | None]:
        """Return (allowed, rule, branch)."""
        if user.is_super_admin:
            return True, "super_admin", self._branches.get(branch_id)

        branch = self._branches.get(branch_id)
        if branch is None:
            return False, "branch_not_found", None

        if branch.tenant_id != user.tenant_id:
            return False, "cross_tenant", branch

        if user.is_tenant_admin:
            return True, "tenant_admin", branch

        if self._branches.find_assignment(user.id, branch_id) is not None:
            return True, "assigned", branch

        return False, "not_assigned", branch

    def can_access_branch(self, user: User, branch_id: int) -> bool:
        allowed, _, _ = self._decide(user, branch_id)
        return allowed

    def require_branch_access(self, user: User, branch_id: int) -> Branch:
        """
        Return the branch if the user may act on it.

        Raises:
            NotFoundError: The branch id does not exist at all.
            BranchAccessError: The branch exists but the user may not use it.
        """
        allowed, rule, branch = self._decide(user, branch_id)
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        if not allowed:
            audit_branch_access_event(
                "BRANCH_ACCESS_DENIED",
                user_id=user.id,
                branch_id=branch_id,
                tenant_id=user.tenant_id,
                allowed=False,
                reason=rule,
            )
            raise BranchAccessError(branch_id, user_id=user.id, reason=rule)
        return branch

    def is_manager_of(self, user: User, branch_id: int) -> bool:
        assignment = self._branches.find_assignment(user.id, branch_id)
        return assignment is not None and assignment.is_manager

    def get_user_branches(self, user: User) -> Sequence[Branch]:
        """
        Branches the user can pick from.

        Tenant admins get every branch of their tenant, soft-deleted ones
        included, ordered default first then by name. Everyone else gets
        their assigned active branches.
        """
        if user.is_tenant_admin and user.tenant_id is not None:
            return self._branches.find_all_for_tenant(user.tenant_id, include_deleted=True)
        return self._branches.find_assigned_to_user(user.id)

    def get_accessible_branch_ids(self, user: User, tenant_id: int) -> set[int] | None:
        """
        Branch ids of ``tenant_id`` the user may access.

        Returns None when access is unrestricted within the tenant.
        """
        if user.is_super_admin or (user.is_tenant_admin and user.tenant_id == tenant_id):
            return None
        return self._branches.assigned_branch_ids(user.id)
