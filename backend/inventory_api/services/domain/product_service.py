"""
Product Service - Catalog operations scoped by tenant and branch.

Creation and updates run in one transaction together with the branch
reconciliation, so a rejected branch change leaves the product untouched.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_api.models import Category, Product, User
from inventory_api.repositories import ProductFilters, ProductRepository, SaleRepository
from inventory_api.services.audit import log_create, log_delete, log_update, serialize_model
from inventory_api.services.base_service import BaseService
from inventory_api.services.branch_access import BranchAccessService
from inventory_api.services.branch_context import BranchContext
from inventory_api.services.domain.product_branch_service import (
    BranchOptions,
    ProductBranchService,
    ReconcileResult,
)
from inventory_shared.config.logging import get_logger
from inventory_shared.utils.exceptions import (
    DuplicateEntityError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from inventory_shared.utils.schemas import (
    ProductBranchOutput,
    ProductCreate,
    ProductOutput,
    ProductUpdate,
)

logger = get_logger(__name__)

# Request keys that drive branch assignment rather than product columns
_BRANCH_FIELDS = {
    "branch_ids",
    "branch_stock",
    "branch_min_stock",
    "branch_prices",
    "add_branches",
    "remove_branches",
    "force_remove",
}

# Product columns that may be cleared with an explicit null
_NULLABLE_FIELDS = {"category_id", "barcode", "description"}


class ProductService(BaseService):
    """Product CRUD plus branch-aware listing."""

    def __init__(self, db: Session, access: BranchAccessService | None = None):
        super().__init__(db)
        self._access = access or BranchAccessService(db)
        self._branch_service = ProductBranchService(db, self._access)
        self._products = ProductRepository(db)
        self._sales = SaleRepository(db)

    @property
    def branch_service(self) -> ProductBranchService:
        return self._branch_service

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def _tenant_id(user: User) -> int:
        if user.tenant_id is None:
            raise ForbiddenError("manage products without a tenant", user_id=user.id)
        return user.tenant_id

    def _get_product(self, product_id: int, tenant_id: int) -> Product:
        product = self._products.find_by_id(product_id, tenant_id)
        if product is None:
            raise NotFoundError("Product", product_id, tenant_id=tenant_id)
        return product

    def list_products(
        self,
        user: User,
        context: BranchContext,
        filters: ProductFilters,
    ) -> tuple[list[ProductOutput], int]:
        """
        One page of products plus the total count.

        With a branch in scope only products active in that branch are listed.
        """
        tenant_id = self._tenant_id(user)
        filters.branch_id = context.branch_id

        products = self._products.find_all(tenant_id, filters)
        total = self._products.count(tenant_id, filters)

        items = [
            self.to_output(product, context=context, include_branches=context.all_branches)
            for product in products
        ]
        return items, total

    def get_product(self, product_id: int, user: User) -> ProductOutput:
        product = self._get_product(product_id, self._tenant_id(user))
        return self.to_output(product, include_branches=True)

    def list_low_stock(self, user: User) -> list[ProductOutput]:
        """Products at or below their minimum stock level."""
        products = self._products.find_low_stock(self._tenant_id(user))
        return [self.to_output(product) for product in products]

    # =========================================================================
    # Create
    # =========================================================================

    def create_product(self, body: ProductCreate, user: User, context: BranchContext) -> ProductOutput:
        """
        Create a product and assign it to its branches.

        Branches come from ``branch_ids``; when omitted, the caller's active
        branch, then the first branch available to them.
        """
        tenant_id = self._tenant_id(user)
        data = body.model_dump(exclude=_BRANCH_FIELDS)

        with self.atomic("create product", sku=body.sku):
            self._validate_category(data.get("category_id"), tenant_id)
            if self._products.sku_exists(body.sku):
                raise DuplicateEntityError("Product", "sku", body.sku)

            branch_ids = self._resolve_creation_branches(body.branch_ids, user, context)

            product = Product(tenant_id=tenant_id, **data)
            product.set_created_by(user.id, user.email)
            self._db.add(product)
            self._db.flush()

            options = BranchOptions(
                branch_stock=body.branch_stock,
                branch_min_stock=body.branch_min_stock,
                branch_prices=body.branch_prices,
            )
            self._branch_service.reconcile_branches(product, branch_ids, options, user, on_create=True)

            log_create(
                self._db,
                user,
                "product",
                product,
                branch_ids=sorted(row.branch_id for row in product.branch_products),
            )

        logger.info("Product created", product_id=product.id, tenant_id=tenant_id, user_id=user.id)
        self._db.refresh(product)
        return self.to_output(product, include_branches=True)

    def _resolve_creation_branches(
        self,
        branch_ids: list[int] | None,
        user: User,
        context: BranchContext,
    ) -> list[int]:
        if branch_ids is not None:
            return branch_ids
        if context.branch_id is not None:
            return [context.branch_id]
        available = self._branch_service.get_available_branches_for_user(user)
        if available:
            return [available[0].id]
        raise ValidationError("At least one branch must be selected", field="branch_ids")

    # =========================================================================
    # Update
    # =========================================================================

    def update_product(self, product_id: int, body: ProductUpdate, user: User) -> ProductOutput:
        """
        Update product fields and its branch assignments atomically.

        The product row is locked for the duration of the transaction so
        concurrent edits of the same product's branches are serialized.
        """
        tenant_id = self._tenant_id(user)
        fields = body.model_dump(exclude_unset=True, exclude=_BRANCH_FIELDS)

        with self.atomic("update product", product_id=product_id):
            product = self._products.find_for_update(product_id, tenant_id)
            if product is None:
                raise NotFoundError("Product", product_id, tenant_id=tenant_id)

            old_values = serialize_model(product)
            old_values["branch_ids"] = sorted(row.branch_id for row in product.branch_products)

            if fields.get("category_id") is not None:
                self._validate_category(fields["category_id"], tenant_id)
            new_sku = fields.get("sku")
            if new_sku and new_sku != product.sku and self._products.sku_exists(new_sku, exclude_id=product.id):
                raise DuplicateEntityError("Product", "sku", new_sku)

            for key, value in fields.items():
                if value is None and key not in _NULLABLE_FIELDS:
                    continue
                setattr(product, key, value)

            result = self._update_branches(product, body, user)

            product.set_updated_by(user.id, user.email)
            self._db.flush()
            log_update(
                self._db,
                user,
                "product",
                product,
                old_values,
                branch_ids=sorted(row.branch_id for row in product.branch_products),
            )

        logger.info(
            "Product updated",
            product_id=product_id,
            user_id=user.id,
            added=result.added,
            removed=result.removed,
        )
        self._db.refresh(product)
        return self.to_output(product, include_branches=True)

    def _update_branches(self, product: Product, body: ProductUpdate, user: User) -> ReconcileResult:
        options = BranchOptions(
            branch_stock=body.branch_stock,
            branch_min_stock=body.branch_min_stock,
            branch_prices=body.branch_prices,
            force_remove=body.force_remove,
        )
        result = ReconcileResult()

        if body.branch_ids is not None:
            result = result.merge(
                self._branch_service.reconcile_branches(product, body.branch_ids, options, user)
            )
        if body.add_branches:
            result = result.merge(
                self._branch_service.assign_to_branches(
                    product, body.add_branches, options, user, field_name="add_branches"
                )
            )
        if body.remove_branches:
            result = result.merge(
                self._branch_service.remove_branches(
                    product, body.remove_branches, user, force=body.force_remove
                )
            )
        if body.branch_ids is None:
            result = result.merge(self._branch_service.apply_branch_overrides(product, options))

        return result

    # =========================================================================
    # Delete
    # =========================================================================

    def delete_product(self, product_id: int, user: User) -> None:
        """Hard delete a product that has never been sold."""
        tenant_id = self._tenant_id(user)

        with self.atomic("delete product", product_id=product_id):
            product = self._products.find_for_update(product_id, tenant_id)
            if product is None:
                raise NotFoundError("Product", product_id, tenant_id=tenant_id)

            if self._sales.product_has_sales(product.id):
                raise ValidationError(
                    "Cannot delete product with existing sales",
                    field="product",
                    product_id=product.id,
                )

            log_delete(self._db, user, "product", product)
            self._db.delete(product)

        logger.info("Product deleted", product_id=product_id, user_id=user.id)

    # =========================================================================
    # Validation / transformation
    # =========================================================================

    def _validate_category(self, category_id: int | None, tenant_id: int) -> None:
        if category_id is None:
            return
        category = self._db.scalar(
            select(Category).where(Category.id == category_id, Category.tenant_id == tenant_id)
        )
        if category is None:
            raise ValidationError("Invalid category selected", field="category_id", category_id=category_id)

    def to_output(
        self,
        product: Product,
        context: BranchContext | None = None,
        include_branches: bool = False,
    ) -> ProductOutput:
        rows = sorted(product.branch_products, key=lambda row: row.branch_id)

        extra: dict[str, Any] = {}
        if context is not None and context.branch_id is not None:
            row = next((r for r in rows if r.branch_id == context.branch_id), None)
            extra["branch_stock"] = row.stock_quantity if row else 0
            extra["is_low_stock_in_branch"] = row.is_low_stock if row else False
        if include_branches:
            extra["branches"] = [
                ProductBranchOutput(**ProductBranchService.serialize_row(row)) for row in rows
            ]

        return ProductOutput(
            id=product.id,
            tenant_id=product.tenant_id,
            category_id=product.category_id,
            category_name=product.category.name if product.category else None,
            name=product.name,
            sku=product.sku,
            barcode=product.barcode,
            description=product.description,
            cost_price=product.cost_price,
            selling_price=product.selling_price,
            stock_quantity=product.stock_quantity,
            min_stock_level=product.min_stock_level,
            unit=product.unit,
            tax_rate=product.tax_rate,
            is_active=product.is_active,
            is_spare_part=product.is_spare_part,
            branch_ids=[row.branch_id for row in rows],
            total_stock=sum(row.stock_quantity for row in rows),
            branch_count=len(rows),
            has_price_variance=ProductBranchService.has_price_variance(product),
            **extra,
        )
