"""
Branch Service - branch listing and tenant-admin branch lifecycle.

A tenant always keeps exactly one default branch, and the default branch
is always active.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import update

from inventory_api.models import Branch, User
from inventory_api.repositories import BranchRepository
from inventory_api.services.audit import log_create, log_update, serialize_model
from inventory_api.services.base_service import BaseService
from inventory_api.services.branch_access import BranchAccessService
from inventory_api.services.branch_context import BranchContextService
from inventory_shared.config.logging import get_logger
from inventory_shared.utils.exceptions import DuplicateEntityError, ForbiddenError, ValidationError
from inventory_shared.utils.schemas import BranchCreate, BranchSummary, BranchUpdate

logger = get_logger(__name__)


class BranchService(BaseService):
    """Branch queries and updates. Every write invalidates the tenant branch cache."""

    def __init__(self, db, context: BranchContextService, access: BranchAccessService | None = None):
        super().__init__(db)
        self._context = context
        self._access = access or BranchAccessService(db)
        self._branches = BranchRepository(db)

    def list_branches(self, user: User) -> list[dict[str, Any]]:
        """
        Tenant admins get the tenant's active branches from the cache;
        everyone else gets their assigned branches.
        """
        if user.is_tenant_admin and user.tenant_id is not None:
            return self._context.get_tenant_branches(user.tenant_id)
        return [
            BranchSummary.model_validate(branch).model_dump()
            for branch in self._branches.find_assigned_to_user(user.id)
        ]

    def create_branch(self, body: BranchCreate, user: User) -> Branch:
        """Create an active, non-default branch in the caller's tenant."""
        if user.tenant_id is None:
            raise ForbiddenError("create branches without a tenant", user_id=user.id)

        with self.atomic("create branch", tenant_id=user.tenant_id):
            if self._branches.code_exists(user.tenant_id, body.code):
                raise DuplicateEntityError("Branch", "code", body.code, tenant_id=user.tenant_id)

            branch = Branch(
                tenant_id=user.tenant_id,
                **body.model_dump(),
                is_default=False,
                is_active=True,
            )
            branch.set_created_by(user.id, user.email)
            self._db.add(branch)
            self._db.flush()
            log_create(self._db, user, "branch", branch)

        self._context.clear_tenant_branch_cache(branch.tenant_id)
        logger.info("Branch created", branch_id=branch.id, code=branch.code, user_id=user.id)
        self._db.refresh(branch)
        return branch

    def update_branch(self, branch_id: int, body: BranchUpdate, user: User) -> Branch:
        """
        Update details and flags of a branch.

        Making a branch the default clears the flag on the tenant's other
        branches. The default flag can only move, never be cleared, and
        only an active branch can hold it.

        Raises:
            ValidationError: The change would leave the tenant without an
                active default branch, or the code is taken.
        """
        changes = body.model_dump(exclude_unset=True, exclude_none=True)

        with self.atomic("update branch", branch_id=branch_id):
            branch = self._access.require_branch_access(user, branch_id)
            self._check_update(branch, changes)
            old_values = serialize_model(branch)

            if changes.get("is_default"):
                self._db.execute(
                    update(Branch)
                    .where(Branch.tenant_id == branch.tenant_id, Branch.id != branch.id)
                    .values(is_default=False)
                )

            for key, value in changes.items():
                setattr(branch, key, value)
            branch.set_updated_by(user.id, user.email)

            self._db.flush()
            log_update(self._db, user, "branch", branch, old_values)

        self._context.clear_tenant_branch_cache(branch.tenant_id)
        logger.info("Branch updated", branch_id=branch_id, user_id=user.id, fields=sorted(changes))
        self._db.refresh(branch)
        return branch

    def deactivate_branch(self, branch_id: int, user: User) -> Branch:
        """Deactivate a branch. The default branch cannot be deactivated."""
        return self._set_active(branch_id, user, False)

    def activate_branch(self, branch_id: int, user: User) -> Branch:
        return self._set_active(branch_id, user, True)

    def _set_active(self, branch_id: int, user: User, active: bool) -> Branch:
        action = "activate branch" if active else "deactivate branch"
        with self.atomic(action, branch_id=branch_id):
            branch = self._access.require_branch_access(user, branch_id)
            if not active and branch.is_default:
                raise ValidationError(
                    "Cannot deactivate the default branch", field="is_active", branch_id=branch_id
                )
            if active and branch.is_deleted:
                raise ValidationError(
                    "Deleted branches cannot be activated", field="is_active", branch_id=branch_id
                )

            old_values = serialize_model(branch)
            branch.is_active = active
            branch.set_updated_by(user.id, user.email)
            self._db.flush()
            log_update(self._db, user, "branch", branch, old_values)

        self._context.clear_tenant_branch_cache(branch.tenant_id)
        logger.info("Branch active flag changed", branch_id=branch_id, is_active=active, user_id=user.id)
        self._db.refresh(branch)
        return branch

    def _check_update(self, branch: Branch, changes: dict[str, Any]) -> None:
        stays_active = changes.get("is_active", branch.is_active)

        if branch.is_default and changes.get("is_default") is False:
            raise ValidationError(
                "The default branch cannot be unset; make another branch the default instead",
                field="is_default", branch_id=branch.id,
            )
        if branch.is_default and not stays_active:
            raise ValidationError(
                "Cannot deactivate the default branch", field="is_active", branch_id=branch.id
            )
        if changes.get("is_default") and (branch.is_deleted or not stays_active):
            raise ValidationError(
                "Only an active branch can be the default", field="is_default", branch_id=branch.id
            )
        code = changes.get("code")
        if code is not None and self._branches.code_exists(branch.tenant_id, code, exclude_id=branch.id):
            raise DuplicateEntityError("Branch", "code", code, tenant_id=branch.tenant_id)
