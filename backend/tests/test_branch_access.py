"""
Tests for BranchAccessService - who may act on which branch.
"""

import logging

import pytest

from inventory_api.services import BranchAccessService
from inventory_shared.utils.exceptions import BranchAccessError, NotFoundError


@pytest.fixture
def access(db_session):
    return BranchAccessService(db_session)


class TestCanAccessBranch:
    def test_super_admin_reaches_any_tenant(self, access, super_admin, branches, foreign_branch):
        assert access.can_access_branch(super_admin, branches["main"].id)
        assert access.can_access_branch(super_admin, foreign_branch.id)

    def test_tenant_admin_reaches_every_own_branch(self, access, owner, branches):
        for branch in branches.values():
            assert access.can_access_branch(owner, branch.id)

    def test_tenant_admin_cannot_cross_tenants(self, access, owner, foreign_branch):
        assert not access.can_access_branch(owner, foreign_branch.id)

    def test_staff_needs_assignment(self, access, staff, branches):
        assert access.can_access_branch(staff, branches["south"].id)
        assert not access.can_access_branch(staff, branches["main"].id)
        assert not access.can_access_branch(staff, branches["north"].id)

    def test_missing_branch_is_never_accessible(self, access, owner, staff):
        assert not access.can_access_branch(owner, 999_999)
        assert not access.can_access_branch(staff, 999_999)

    def test_assignment_to_foreign_branch_does_not_grant_access(
        self, db_session, access, staff, foreign_branch
    ):
        from inventory_api.models import UserBranch

        db_session.add(UserBranch(user_id=staff.id, branch_id=foreign_branch.id))
        db_session.commit()

        assert not access.can_access_branch(staff, foreign_branch.id)


class TestRequireBranchAccess:
    def test_returns_branch_when_allowed(self, access, manager, branches):
        branch = access.require_branch_access(manager, branches["north"].id)
        assert branch.id == branches["north"].id

    def test_denial_raises_403_and_is_audited(self, access, staff, branches, caplog):
        with caplog.at_level(logging.WARNING, logger="security.audit"):
            with pytest.raises(BranchAccessError) as exc_info:
                access.require_branch_access(staff, branches["main"].id)

        assert exc_info.value.status_code == 403
        assert any("BRANCH_ACCESS_DENIED" in r.getMessage() for r in caplog.records)

    def test_unknown_branch_raises_404(self, access, owner):
        with pytest.raises(NotFoundError) as exc_info:
            access.require_branch_access(owner, 999_999)
        assert exc_info.value.status_code == 404


class TestBranchLists:
    def test_tenant_admin_sees_all_branches_default_first(self, access, owner, branches):
        result = access.get_user_branches(owner)
        assert [b.id for b in result][0] == branches["main"].id
        assert {b.id for b in result} == {b.id for b in branches.values()}

    def test_tenant_admin_list_includes_soft_deleted(self, db_session, access, owner, branches):
        branches["east"].soft_delete(owner.id, owner.email)
        db_session.commit()

        assert branches["east"].id in {b.id for b in access.get_user_branches(owner)}

    def test_staff_sees_only_active_assigned(self, db_session, access, manager, branches):
        branches["south"].is_active = False
        db_session.commit()

        assert [b.id for b in access.get_user_branches(manager)] == [branches["north"].id]

    def test_accessible_ids_unrestricted_for_admins(self, access, owner, super_admin, seed_tenant):
        assert access.get_accessible_branch_ids(owner, seed_tenant.id) is None
        assert access.get_accessible_branch_ids(super_admin, seed_tenant.id) is None

    def test_accessible_ids_for_staff(self, access, manager, branches, seed_tenant):
        assert access.get_accessible_branch_ids(manager, seed_tenant.id) == {
            branches["north"].id,
            branches["south"].id,
        }

    def test_is_manager_of(self, db_session, access, staff, branches):
        from inventory_api.models import UserBranch
        from sqlalchemy import select

        assignment = db_session.scalar(select(UserBranch).where(UserBranch.user_id == staff.id))
        assignment.is_manager = True
        db_session.commit()

        assert access.is_manager_of(staff, branches["south"].id)
        assert not access.is_manager_of(staff, branches["north"].id)
