"""
Tests for ProductBranchService - reconciling a product's branch set.

Tests cover:
- Set reconciliation (adds, removals, overrides)
- Removal guard (stock, sales history, last branch)
- Defaults for new branch rows
- Bulk assignment
- Per-branch read helpers
"""

from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from sqlalchemy import select

from inventory_api.models import BranchProduct
from inventory_api.services.domain import BranchOptions, ProductBranchService
from inventory_shared.utils.exceptions import (
    BranchAccessError,
    BranchRemovalError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def service(db_session):
    return ProductBranchService(db_session)


def _branch_ids(db_session, product):
    return set(
        db_session.execute(
            select(BranchProduct.branch_id).where(BranchProduct.product_id == product.id)
        ).scalars().all()
    )


class TestReconcile:
    def test_replaces_branch_set(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"], branches["north"], branches["south"]], stock=0)
        target = [branches["north"].id, branches["south"].id, branches["east"].id]

        result = service.reconcile_branches(product, target, BranchOptions(), owner)
        db_session.commit()

        assert result.added == [branches["east"].id]
        assert result.removed == [branches["main"].id]
        assert _branch_ids(db_session, product) == set(target)

    def test_second_run_changes_nothing(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"]])
        target = [branches["main"].id, branches["north"].id]
        options = BranchOptions(branch_stock={branches["north"].id: 4})

        service.reconcile_branches(product, target, options, owner)
        db_session.commit()
        second = service.reconcile_branches(product, target, options, owner)

        assert not second.changed

    def test_duplicate_ids_are_collapsed(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"]])
        north = branches["north"].id

        result = service.reconcile_branches(product, [north, north, branches["main"].id], BranchOptions(), owner)
        db_session.commit()

        assert result.added == [north]
        assert _branch_ids(db_session, product) == {branches["main"].id, north}

    def test_empty_target_is_rejected(self, service, owner, branches, make_product):
        product = make_product([branches["main"]])

        with pytest.raises(ValidationError) as exc_info:
            service.reconcile_branches(product, [], BranchOptions(), owner)

        assert "branch_ids" in exc_info.value.errors

    def test_foreign_and_missing_branches_are_invalid(self, service, owner, branches, foreign_branch, make_product):
        product = make_product([branches["main"]])

        with pytest.raises(ValidationError) as exc_info:
            service.reconcile_branches(product, [foreign_branch.id, 999_999], BranchOptions(), owner)

        assert exc_info.value.status_code == 422

    def test_soft_deleted_branch_is_invalid(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"]])
        branches["east"].soft_delete(owner.id, owner.email)
        db_session.commit()

        with pytest.raises(ValidationError):
            service.reconcile_branches(product, [branches["east"].id], BranchOptions(), owner)

    def test_inaccessible_branch_is_forbidden(self, service, staff, branches, make_product):
        product = make_product([branches["south"]])

        with pytest.raises(BranchAccessError):
            service.reconcile_branches(
                product, [branches["south"].id, branches["main"].id], BranchOptions(), staff
            )

    @given(
        start=st.sets(st.sampled_from(["main", "north", "south", "east"]), min_size=1),
        target=st.sets(st.sampled_from(["main", "north", "south", "east"]), min_size=1),
    )
    @settings(max_examples=40, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_result_matches_set_difference(
        self, db_session, service, owner, branches, make_product, start, target
    ):
        """Property: reconcile(T) leaves exactly T, adding T - S and removing S - T."""
        product = make_product([branches["main"]], stock=0)
        start_ids = {branches[name].id for name in start}
        target_ids = {branches[name].id for name in target}

        service.reconcile_branches(product, sorted(start_ids), BranchOptions(), owner)
        db_session.commit()
        result = service.reconcile_branches(product, sorted(target_ids), BranchOptions(), owner)
        db_session.commit()

        assert _branch_ids(db_session, product) == target_ids
        assert set(result.added) == target_ids - start_ids
        assert set(result.removed) == start_ids - target_ids
        assert not service.reconcile_branches(product, sorted(target_ids), BranchOptions(), owner).changed


class TestNewRowDefaults:
    def test_on_create_new_rows_copy_product_stock(self, db_session, service, owner, branches, make_product):
        product = make_product(stock=25, min_stock=5)

        service.reconcile_branches(product, [branches["main"].id], BranchOptions(), owner, on_create=True)
        db_session.commit()

        row = product.branch_products[0]
        assert row.stock_quantity == 25
        assert row.min_stock_level == 5
        assert row.selling_price is None

    def test_on_update_new_rows_start_empty(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"]], stock=25, min_stock=5)

        service.reconcile_branches(
            product, [branches["main"].id, branches["north"].id], BranchOptions(), owner
        )
        db_session.commit()

        row = next(r for r in product.branch_products if r.branch_id == branches["north"].id)
        assert row.stock_quantity == 0
        assert row.min_stock_level == 5
        assert row.effective_price == product.selling_price

    def test_explicit_values_win(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"]])
        north = branches["north"].id
        options = BranchOptions(
            branch_stock={north: 12},
            branch_min_stock={north: 3},
            branch_prices={north: Decimal("11.50")},
        )

        service.reconcile_branches(product, [branches["main"].id, north], options, owner)
        db_session.commit()

        row = next(r for r in product.branch_products if r.branch_id == north)
        assert (row.stock_quantity, row.min_stock_level, row.selling_price) == (12, 3, Decimal("11.50"))

    def test_overrides_apply_to_kept_rows(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"], branches["north"]], stock=10)
        options = BranchOptions(branch_stock={branches["north"].id: 3})

        result = service.reconcile_branches(
            product, [branches["main"].id, branches["north"].id], options, owner
        )
        db_session.commit()

        assert result.updated == [branches["north"].id]
        stocks = {r.branch_id: r.stock_quantity for r in product.branch_products}
        assert stocks == {branches["main"].id: 10, branches["north"].id: 3}


class TestRemovalGuard:
    def test_branch_with_sales_is_kept(self, db_session, service, owner, branches, make_product, record_sale):
        product = make_product([branches["main"], branches["north"]], stock=0)
        record_sale(product, branches["north"])

        with pytest.raises(BranchRemovalError) as exc_info:
            service.reconcile_branches(product, [branches["main"].id], BranchOptions(), owner)

        assert exc_info.value.status_code == 422
        assert "sales history" in exc_info.value.errors["branch_id"][0]

    def test_branch_with_stock_is_kept(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"], branches["north"]], stock=0)
        north_row = next(r for r in product.branch_products if r.branch_id == branches["north"].id)
        north_row.stock_quantity = 6
        db_session.commit()

        with pytest.raises(BranchRemovalError) as exc_info:
            service.remove_branches(product, [branches["north"].id], owner)

        assert exc_info.value.errors["current_stock"] == ["6"]
        assert "6 units in stock" in exc_info.value.errors["branch_id"][0]
        assert _branch_ids(db_session, product) == {branches["main"].id, branches["north"].id}

    def test_stock_in_one_branch_blocks_the_whole_set(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"], branches["north"], branches["south"]], stock=0)
        south_row = next(r for r in product.branch_products if r.branch_id == branches["south"].id)
        south_row.stock_quantity = 2
        db_session.commit()

        with pytest.raises(BranchRemovalError):
            service.reconcile_branches(product, [branches["main"].id], BranchOptions(), owner)

        db_session.rollback()
        assert _branch_ids(db_session, product) == {
            branches["main"].id,
            branches["north"].id,
            branches["south"].id,
        }

    def test_force_remove_overrides_stock_guard(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"], branches["north"]], stock=5)

        result = service.remove_branches(product, [branches["north"].id], owner, force=True)
        db_session.commit()

        assert result.removed == [branches["north"].id]

    def test_force_remove_overrides_sales_guard(self, db_session, service, owner, branches, make_product, record_sale):
        product = make_product([branches["main"], branches["north"]])
        record_sale(product, branches["north"])

        service.reconcile_branches(
            product, [branches["main"].id], BranchOptions(force_remove=True), owner
        )
        db_session.commit()

        assert _branch_ids(db_session, product) == {branches["main"].id}

    def test_last_branch_cannot_be_removed(self, service, owner, branches, make_product):
        product = make_product([branches["main"]])

        with pytest.raises(BranchRemovalError):
            service.remove_branches(product, [branches["main"].id], owner, force=True)

    def test_unassigned_ids_are_ignored(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"], branches["north"]], stock=0)

        result = service.remove_branches(product, [branches["north"].id, branches["east"].id], owner)
        db_session.commit()

        assert result.removed == [branches["north"].id]

    def test_remove_from_branch_rolls_back_on_refusal(
        self, db_session, service, owner, branches, make_product, record_sale
    ):
        product = make_product([branches["main"], branches["north"]], stock=0)
        record_sale(product, branches["north"])

        with pytest.raises(BranchRemovalError):
            service.remove_from_branch(product.id, branches["north"].id, owner)

        assert _branch_ids(db_session, product) == {branches["main"].id, branches["north"].id}

    def test_remove_from_unassigned_branch_is_404(self, service, owner, branches, make_product):
        product = make_product([branches["main"]])

        with pytest.raises(NotFoundError):
            service.remove_from_branch(product.id, branches["east"].id, owner)


class TestBulkAssign:
    def test_assigns_and_reports_skips(self, db_session, service, owner, branches, other_tenant, make_product):
        assigned_already = make_product([branches["main"]], name="Hammer")
        new = make_product([branches["north"]], name="Wrench")
        foreign = make_product(tenant=other_tenant, name="Foreign")

        result = service.bulk_assign_to_branch(
            [assigned_already.id, new.id, new.id, foreign.id, 999_999],
            branches["main"].id,
            owner,
        )

        assert result.assigned == 1
        assert result.skipped == 3
        reasons = {item["id"]: item["reason"] for item in result.to_dict()["details"]["skipped_products"]}
        assert reasons == {
            assigned_already.id: "Already assigned to branch",
            foreign.id: "Product not found",
            999_999: "Product not found",
        }

        row = db_session.scalar(
            select(BranchProduct).where(
                BranchProduct.product_id == new.id,
                BranchProduct.branch_id == branches["main"].id,
            )
        )
        assert row.stock_quantity == 0
        assert row.min_stock_level == new.min_stock_level
        assert row.selling_price is None

    def test_requires_branch_access(self, db_session, service, staff, branches, make_product):
        product = make_product([branches["south"]])

        with pytest.raises(BranchAccessError):
            service.bulk_assign_to_branch([product.id], branches["main"].id, staff)

        assert _branch_ids(db_session, product) == {branches["south"].id}

    def test_unknown_branch_is_404(self, service, owner, branches, make_product):
        product = make_product([branches["main"]])

        with pytest.raises(NotFoundError):
            service.bulk_assign_to_branch([product.id], 999_999, owner)


class TestRowUpdates:
    def test_partial_update_and_price_reset(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"]])
        main = branches["main"].id

        row = service.update_branch_assignment(product.id, main, {"selling_price": Decimal("12.00")}, owner)
        assert row.effective_price == Decimal("12.00")

        row = service.update_branch_assignment(product.id, main, {"selling_price": None, "stock_quantity": 40}, owner)
        assert row.selling_price is None
        assert row.stock_quantity == 40
        assert row.effective_price == product.selling_price

    def test_unassigned_row_is_404(self, service, owner, branches, make_product):
        product = make_product([branches["main"]])

        with pytest.raises(NotFoundError):
            service.update_branch_assignment(product.id, branches["north"].id, {"stock_quantity": 1}, owner)

    def test_assign_product_to_branches_keeps_existing_rows(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"]], stock=10)

        result = service.assign_product_to_branches(
            product.id,
            [branches["main"].id, branches["north"].id],
            BranchOptions(default_stock=6),
            owner,
        )

        assert result.added == [branches["north"].id]
        stocks = {r.branch_id: r.stock_quantity for r in product.branch_products}
        assert stocks == {branches["main"].id: 10, branches["north"].id: 6}


class TestReadHelpers:
    def test_effective_price_and_variance(self, db_session, service, owner, branches, make_product):
        product = make_product([branches["main"], branches["north"]], price="10.00")
        assert not service.has_price_variance(product)

        service.update_branch_assignment(product.id, branches["north"].id, {"selling_price": Decimal("12.00")}, owner)

        assert service.get_effective_price(product, branches["north"].id) == Decimal("12.00")
        assert service.get_effective_price(product, branches["main"].id) == Decimal("10.00")
        assert service.has_price_variance(product)

    def test_single_override_equal_to_default_is_no_variance(self, service, owner, branches, make_product):
        product = make_product([branches["main"]], price="10.00")
        service.update_branch_assignment(product.id, branches["main"].id, {"selling_price": Decimal("10.00")}, owner)

        assert not service.has_price_variance(product)

    def test_branch_details_limited_to_accessible(self, service, staff, branches, make_product):
        product = make_product([branches["main"], branches["south"]], stock=4)

        details = service.get_product_branch_details(product.id, staff)

        assert [b["branch_id"] for b in details["branches"]] == [branches["south"].id]
        assert details["total_stock"] == 4

    def test_available_branches_skip_inactive_and_deleted(self, db_session, service, owner, branches):
        branches["east"].is_active = False
        branches["north"].soft_delete(owner.id, owner.email)
        db_session.commit()

        ids = {b.id for b in service.get_available_branches_for_user(owner)}

        assert ids == {branches["main"].id, branches["south"].id}
