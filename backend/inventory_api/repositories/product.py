"""
Product Repository - Data access for products and their branch rows.
Eager loading of branch rows prevents N+1 queries when annotating lists.
"""

from dataclasses import dataclass
from typing import Sequence
from sqlalchemy.orm import selectinload, joinedload
from sqlalchemy import Select, select, or_, func

from inventory_api.models import Product, BranchProduct
from .base import BaseRepository, RepositoryFilters, escape_like_pattern


@dataclass
class ProductFilters(RepositoryFilters):
    """Filters specific to products."""

    # Scope to products active in this branch; None means tenant-wide
    branch_id: int | None = None
    category_id: int | None = None
    low_stock: bool = False
    is_spare_part: bool | None = None


class ProductRepository(BaseRepository[Product]):
    """
    Repository for Product entities.

    Guarantees eager loading of:
    - branch_products -> branch
    - category
    """

    @property
    def model(self) -> type[Product]:
        return Product

    def _base_query(self, tenant_id: int) -> Select:
        return (
            select(Product)
            .where(Product.tenant_id == tenant_id)
            .options(
                selectinload(Product.branch_products)
                .joinedload(BranchProduct.branch)
            )
            .options(joinedload(Product.category))
            .order_by(Product.name, Product.id)
        )

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        """Apply product-specific filters."""
        if not isinstance(filters, ProductFilters):
            filters = ProductFilters(**filters.__dict__)

        if filters.branch_id is not None:
            query = query.join(
                BranchProduct,
                (BranchProduct.product_id == Product.id)
                & (BranchProduct.branch_id == filters.branch_id)
                & (BranchProduct.is_active.is_(True)),
            )
            if filters.low_stock:
                query = query.where(BranchProduct.stock_quantity <= BranchProduct.min_stock_level)
        elif filters.low_stock:
            query = query.where(Product.stock_quantity <= Product.min_stock_level)

        if filters.category_id:
            query = query.where(Product.category_id == filters.category_id)

        if filters.is_spare_part is not None:
            query = query.where(Product.is_spare_part.is_(filters.is_spare_part))

        if filters.search:
            search_term = f"%{escape_like_pattern(filters.search)}%"
            query = query.where(
                or_(
                    Product.name.ilike(search_term, escape="\\"),
                    Product.sku.ilike(search_term, escape="\\"),
                    Product.barcode.ilike(search_term, escape="\\"),
                )
            )

        return query

    def find_for_update(self, product_id: int, tenant_id: int) -> Product | None:
        """Load a product holding a row lock until the transaction ends."""
        return self._db.scalar(
            select(Product)
            .where(Product.id == product_id, Product.tenant_id == tenant_id)
            .with_for_update()
        )

    def find_low_stock(self, tenant_id: int) -> Sequence[Product]:
        """Active products at or below their minimum stock level."""
        query = (
            self._base_query(tenant_id)
            .where(
                Product.is_active.is_(True),
                Product.stock_quantity <= Product.min_stock_level,
            )
        )
        return self._db.execute(query).scalars().unique().all()

    def sku_exists(self, sku: str, exclude_id: int | None = None) -> bool:
        """SKUs are unique across all tenants."""
        query = select(func.count()).select_from(Product).where(Product.sku == sku)
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        return (self._db.scalar(query) or 0) > 0


class BranchProductRepository:
    """Data access for product-branch assignment rows."""

    def __init__(self, db):
        self._db = db

    def find(self, product_id: int, branch_id: int) -> BranchProduct | None:
        return self._db.scalar(
            select(BranchProduct).where(
                BranchProduct.product_id == product_id,
                BranchProduct.branch_id == branch_id,
            )
        )

    def assigned_product_ids(self, branch_id: int, product_ids: list[int]) -> set[int]:
        """Subset of product_ids already assigned to the branch."""
        if not product_ids:
            return set()
        return set(
            self._db.execute(
                select(BranchProduct.product_id).where(
                    BranchProduct.branch_id == branch_id,
                    BranchProduct.product_id.in_(product_ids),
                )
            ).scalars().all()
        )
