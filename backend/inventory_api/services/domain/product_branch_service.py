"""
Product-branch assignment service.

Owns every write to ``branch_product`` rows:

- reconcile_branches: bring a product's branch set to a target set
- assign_to_branches / remove_branches: incremental changes
- bulk_assign_to_branch: many products into one branch, skipping conflicts
- per-row stock and price updates

Removals are guarded: a branch that still holds stock of the product, or
where the product has sales history, is only removed with ``force_remove``,
and a product never loses its last branch.
The whole removal set is checked before any row is touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Sequence

from sqlalchemy.orm import Session

from inventory_api.models import Branch, BranchProduct, Product, User
from inventory_api.repositories import (
    BranchProductRepository,
    BranchRepository,
    ProductRepository,
    SaleRepository,
)
from inventory_api.services.base_service import BaseService
from inventory_api.services.branch_access import BranchAccessService
from inventory_shared.config.constants import SkipReason
from inventory_shared.config.logging import get_logger
from inventory_shared.utils.exceptions import (
    BranchRemovalError,
    NotFoundError,
    ValidationError,
)

logger = get_logger(__name__)


@dataclass
class BranchOptions:
    """
    Per-branch values supplied with an assignment request.

    ``branch_prices`` may map a branch to None, which resets that branch to
    the product's default price; a missing key leaves the price untouched.
    """

    branch_stock: dict[int, int] = field(default_factory=dict)
    branch_min_stock: dict[int, int] = field(default_factory=dict)
    branch_prices: dict[int, Decimal | None] = field(default_factory=dict)
    # Values for new rows without an explicit per-branch entry
    default_stock: int | None = None
    default_min_stock: int | None = None
    default_price: Decimal | None = None
    force_remove: bool = False


@dataclass
class ReconcileResult:
    added: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)
    updated: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.updated)

    def merge(self, other: "ReconcileResult") -> "ReconcileResult":
        return ReconcileResult(
            added=self.added + other.added,
            removed=self.removed + other.removed,
            updated=sorted(set(self.updated) | set(other.updated)),
        )


@dataclass
class BulkAssignResult:
    assigned: int = 0
    skipped: int = 0
    skipped_products: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "assigned": self.assigned,
            "skipped": self.skipped,
            "details": {"skipped_products": self.skipped_products},
        }


class ProductBranchService(BaseService):
    """Branch assignment rules for products."""

    def __init__(self, db: Session, access: BranchAccessService | None = None):
        super().__init__(db)
        self._access = access or BranchAccessService(db)
        self._branches = BranchRepository(db)
        self._products = ProductRepository(db)
        self._rows = BranchProductRepository(db)
        self._sales = SaleRepository(db)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_branch_selection(
        self,
        user: User,
        branch_ids: Iterable[int],
        tenant_id: int,
        field_name: str = "branch_ids",
    ) -> list[int]:
        """
        Validate a requested branch set, all or nothing.

        Returns the ids de-duplicated in request order.

        Raises:
            ValidationError: Empty set, or an id that is missing, deleted or
                belongs to another tenant.
            BranchAccessError: The user may not act on one of the branches.
        """
        ids = list(dict.fromkeys(branch_ids))
        if not ids:
            raise ValidationError("At least one branch must be selected", field=field_name)

        invalid = []
        for branch_id in ids:
            branch = self._branches.get(branch_id)
            if branch is None or branch.tenant_id != tenant_id or branch.is_deleted:
                invalid.append(branch_id)
        if invalid:
            raise ValidationError(
                "Invalid branch selected",
                field=field_name,
                invalid_branch_ids=invalid,
            )

        for branch_id in ids:
            self._access.require_branch_access(user, branch_id)

        return ids

    def _check_removals(self, product: Product, to_remove: Sequence[int], remaining: int, force: bool) -> None:
        """Refuse the whole removal set if any single removal is not allowed."""
        if not to_remove:
            return

        if remaining < 1:
            raise BranchRemovalError(
                "Cannot remove the product from its last branch",
                branch_id=to_remove[0],
                product_id=product.id,
            )

        if force:
            return

        stocked = {
            row.branch_id: row.stock_quantity
            for row in product.branch_products
            if row.branch_id in to_remove and row.stock_quantity > 0
        }
        if stocked:
            branch_id = min(stocked)
            raise BranchRemovalError(
                f"Cannot remove branch {branch_id}: it has {stocked[branch_id]} units in stock. "
                "Transfer or adjust the stock first, or use force_remove to override.",
                branch_id=branch_id,
                product_id=product.id,
                current_stock=stocked[branch_id],
                blocked_branch_ids=sorted(stocked),
            )

        sold = self._sales.branches_with_sales(product.id, to_remove)
        if sold:
            branch_id = min(sold)
            raise BranchRemovalError(
                f"Cannot remove branch {branch_id}: the product has sales history there. "
                "Use force_remove to override.",
                branch_id=branch_id,
                product_id=product.id,
                blocked_branch_ids=sorted(sold),
            )

    # =========================================================================
    # Row construction
    # =========================================================================

    def _new_row(
        self,
        product: Product,
        branch_id: int,
        options: BranchOptions,
        user: User | None,
        on_create: bool,
    ) -> BranchProduct:
        if branch_id in options.branch_stock:
            stock = options.branch_stock[branch_id]
        elif options.default_stock is not None:
            stock = options.default_stock
        else:
            stock = product.stock_quantity if on_create else 0

        if branch_id in options.branch_min_stock:
            min_stock = options.branch_min_stock[branch_id]
        elif options.default_min_stock is not None:
            min_stock = options.default_min_stock
        else:
            min_stock = product.min_stock_level

        if branch_id in options.branch_prices:
            price = options.branch_prices[branch_id]
        else:
            price = options.default_price

        row = BranchProduct(
            tenant_id=product.tenant_id,
            branch_id=branch_id,
            stock_quantity=max(0, stock),
            min_stock_level=max(0, min_stock),
            selling_price=price,
            is_active=True,
        )
        if user is not None:
            row.set_created_by(user.id, user.email)
        product.branch_products.append(row)
        return row

    @staticmethod
    def _apply_overrides(row: BranchProduct, options: BranchOptions) -> bool:
        """Apply explicit per-branch values to an existing row."""
        changed = False
        branch_id = row.branch_id
        if branch_id in options.branch_stock:
            value = max(0, options.branch_stock[branch_id])
            if row.stock_quantity != value:
                row.stock_quantity = value
                changed = True
        if branch_id in options.branch_min_stock:
            value = max(0, options.branch_min_stock[branch_id])
            if row.min_stock_level != value:
                row.min_stock_level = value
                changed = True
        if branch_id in options.branch_prices:
            value = options.branch_prices[branch_id]
            if row.selling_price != value:
                row.selling_price = value
                changed = True
        return changed

    # =========================================================================
    # Reconciliation (called inside the caller's transaction)
    # =========================================================================

    def reconcile_branches(
        self,
        product: Product,
        target_ids: Iterable[int],
        options: BranchOptions,
        user: User,
        on_create: bool = False,
    ) -> ReconcileResult:
        """
        Make the product's branch set equal ``target_ids``.

        New rows take stock, minimum stock and price from ``options``; without
        an explicit value a new row gets the product's stock on creation and
        zero on update. Rows for branches that stay assigned only change when
        ``options`` names them. Running the same request twice changes nothing
        the second time.
        """
        target = self.validate_branch_selection(user, target_ids, product.tenant_id)
        target_set = set(target)
        current = {row.branch_id: row for row in product.branch_products}

        to_add = [branch_id for branch_id in target if branch_id not in current]
        to_remove = sorted(set(current) - target_set)

        self._check_removals(product, to_remove, remaining=len(target_set), force=options.force_remove)

        result = ReconcileResult()
        for branch_id in to_remove:
            product.branch_products.remove(current[branch_id])
            result.removed.append(branch_id)

        for branch_id in to_add:
            self._new_row(product, branch_id, options, user, on_create=on_create)
            result.added.append(branch_id)

        for branch_id in sorted(target_set & set(current)):
            if self._apply_overrides(current[branch_id], options):
                result.updated.append(branch_id)

        self._db.flush()

        if result.changed:
            logger.info(
                "Product branches reconciled",
                product_id=product.id,
                added=result.added,
                removed=result.removed,
                updated=result.updated,
            )
        return result

    def assign_to_branches(
        self,
        product: Product,
        branch_ids: Iterable[int],
        options: BranchOptions,
        user: User,
        field_name: str = "branch_ids",
    ) -> ReconcileResult:
        """Add branches to a product, leaving existing rows untouched."""
        ids = self.validate_branch_selection(user, branch_ids, product.tenant_id, field_name)
        current = {row.branch_id for row in product.branch_products}

        result = ReconcileResult()
        for branch_id in ids:
            if branch_id in current:
                continue
            self._new_row(product, branch_id, options, user, on_create=False)
            result.added.append(branch_id)

        self._db.flush()
        return result

    def remove_branches(
        self,
        product: Product,
        branch_ids: Iterable[int],
        user: User,
        force: bool = False,
    ) -> ReconcileResult:
        """
        Remove branches from a product. Branches it is not assigned to are ignored.
        """
        ids = list(dict.fromkeys(branch_ids))
        for branch_id in ids:
            self._access.require_branch_access(user, branch_id)

        current = {row.branch_id: row for row in product.branch_products}
        to_remove = sorted(branch_id for branch_id in ids if branch_id in current)

        self._check_removals(product, to_remove, remaining=len(current) - len(to_remove), force=force)

        result = ReconcileResult()
        for branch_id in to_remove:
            product.branch_products.remove(current[branch_id])
            result.removed.append(branch_id)

        self._db.flush()
        return result

    def apply_branch_overrides(self, product: Product, options: BranchOptions) -> ReconcileResult:
        """Apply stock and price overrides to branches the product already has."""
        result = ReconcileResult()
        for row in product.branch_products:
            if self._apply_overrides(row, options):
                result.updated.append(row.branch_id)
        self._db.flush()
        return result

    # =========================================================================
    # Single-row operations (own transaction)
    # =========================================================================

    def _get_product(self, product_id: int, user: User) -> Product:
        product = self._products.find_by_id(product_id, user.tenant_id)
        if product is None:
            raise NotFoundError("Product", product_id, tenant_id=user.tenant_id)
        return product

    def _get_row(self, product: Product, branch_id: int) -> BranchProduct:
        row = self._rows.find(product.id, branch_id)
        if row is None:
            raise NotFoundError("Branch assignment", branch_id, product_id=product.id)
        return row

    def assign_product_to_branches(
        self,
        product_id: int,
        branch_ids: list[int],
        options: BranchOptions,
        user: User,
    ) -> ReconcileResult:
        with self.atomic("assign product to branches", product_id=product_id):
            product = self._get_product(product_id, user)
            return self.assign_to_branches(product, branch_ids, options, user)

    def remove_from_branch(self, product_id: int, branch_id: int, user: User, force: bool = False) -> None:
        with self.atomic("remove product from branch", product_id=product_id, branch_id=branch_id):
            product = self._get_product(product_id, user)
            self._access.require_branch_access(user, branch_id)
            self._get_row(product, branch_id)
            self.remove_branches(product, [branch_id], user, force=force)

    def update_branch_stock(self, row: BranchProduct, quantity: int) -> None:
        row.stock_quantity = max(0, quantity)

    def update_branch_price(self, row: BranchProduct, price: Decimal | None) -> None:
        row.selling_price = price

    def update_branch_assignment(
        self,
        product_id: int,
        branch_id: int,
        changes: dict[str, Any],
        user: User,
    ) -> BranchProduct:
        """
        Partially update one branch row.

        ``changes`` holds only the fields the client sent, so an explicit
        ``selling_price: null`` resets the row to the product default.
        """
        with self.atomic("update branch assignment", product_id=product_id, branch_id=branch_id):
            product = self._get_product(product_id, user)
            self._access.require_branch_access(user, branch_id)
            row = self._get_row(product, branch_id)

            if changes.get("stock_quantity") is not None:
                self.update_branch_stock(row, changes["stock_quantity"])
            if changes.get("min_stock_level") is not None:
                row.min_stock_level = max(0, changes["min_stock_level"])
            if "selling_price" in changes:
                self.update_branch_price(row, changes["selling_price"])
            if changes.get("is_active") is not None:
                row.is_active = changes["is_active"]
            row.set_updated_by(user.id, user.email)

        self._db.refresh(row)
        return row

    # =========================================================================
    # Bulk assignment
    # =========================================================================

    def bulk_assign_to_branch(self, product_ids: list[int], branch_id: int, user: User) -> BulkAssignResult:
        """
        Assign many products to one branch.

        Branch access is checked once. Products that do not exist in the
        tenant or are already assigned are reported as skipped; everything
        else is committed together.
        """
        with self.atomic("bulk assign products", branch_id=branch_id):
            branch = self._access.require_branch_access(user, branch_id)
            if branch.is_deleted:
                raise ValidationError("Invalid branch selected", field="branch_id", branch_id=branch_id)
            tenant_id = branch.tenant_id

            unique_ids = list(dict.fromkeys(product_ids))
            products = {p.id: p for p in self._products.find_by_ids(unique_ids, tenant_id)}
            already = self._rows.assigned_product_ids(branch_id, list(products))

            result = BulkAssignResult()
            for product_id in unique_ids:
                product = products.get(product_id)
                if product is None:
                    result.skipped_products.append(
                        {"id": product_id, "reason": SkipReason.PRODUCT_NOT_FOUND}
                    )
                    continue
                if product_id in already:
                    result.skipped_products.append(
                        {"id": product_id, "name": product.name, "reason": SkipReason.ALREADY_ASSIGNED}
                    )
                    continue

                row = BranchProduct(
                    tenant_id=tenant_id,
                    branch_id=branch_id,
                    product_id=product_id,
                    stock_quantity=0,
                    min_stock_level=product.min_stock_level,
                    selling_price=None,
                    is_active=True,
                )
                row.set_created_by(user.id, user.email)
                self._db.add(row)
                result.assigned += 1

            result.skipped = len(result.skipped_products)
            self._db.flush()

        logger.info(
            "Bulk branch assignment finished",
            branch_id=branch_id,
            assigned=result.assigned,
            skipped=result.skipped,
        )
        return result

    # =========================================================================
    # Read helpers
    # =========================================================================

    @staticmethod
    def get_effective_price(product: Product, branch_id: int) -> Decimal:
        """Branch override when present, otherwise the product's price."""
        for row in product.branch_products:
            if row.branch_id == branch_id and row.selling_price is not None:
                return row.selling_price
        return product.selling_price

    @staticmethod
    def has_price_variance(product: Product) -> bool:
        """
        True when branch prices disagree with each other, or the only branch
        override differs from the product default.
        """
        prices = {row.selling_price for row in product.branch_products if row.selling_price is not None}
        if len(prices) > 1:
            return True
        if len(prices) == 1:
            return next(iter(prices)) != product.selling_price
        return False

    @staticmethod
    def serialize_row(row: BranchProduct) -> dict[str, Any]:
        branch: Branch = row.branch
        return {
            "branch_id": row.branch_id,
            "branch_name": branch.name if branch else None,
            "branch_code": branch.code if branch else None,
            "stock_quantity": row.stock_quantity,
            "min_stock_level": row.min_stock_level,
            "selling_price": row.selling_price,
            "effective_price": row.effective_price,
            "is_active": row.is_active,
            "is_low_stock": row.is_low_stock,
        }

    def get_product_branch_details(self, product_id: int, user: User) -> dict[str, Any]:
        """Per-branch breakdown of a product, limited to branches the user can see."""
        product = self._get_product(product_id, user)
        accessible = self._access.get_accessible_branch_ids(user, product.tenant_id)

        rows = [
            row for row in sorted(product.branch_products, key=lambda r: r.branch_id)
            if accessible is None or row.branch_id in accessible
        ]

        return {
            "product_id": product.id,
            "product_name": product.name,
            "default_price": product.selling_price,
            "has_price_variance": self.has_price_variance(product),
            "branches": [self.serialize_row(row) for row in rows],
            "total_stock": sum(row.stock_quantity for row in rows),
        }

    def list_product_branches(self, product_id: int, user: User) -> list[dict[str, Any]]:
        return self.get_product_branch_details(product_id, user)["branches"]

    def get_available_branches_for_user(self, user: User) -> list[Branch]:
        """Active, non-deleted branches the user may assign products to."""
        return [
            branch for branch in self._access.get_user_branches(user)
            if branch.is_active and not branch.is_deleted
        ]
