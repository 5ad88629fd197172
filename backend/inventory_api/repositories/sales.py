"""
Sales Repository - Read-only queries over the sales history.
"""

from sqlalchemy import select, exists
from sqlalchemy.orm import Session

from inventory_api.models import Sale, SaleItem


class SaleRepository:
    """Answers "has this product been sold (at this branch)?"."""

    def __init__(self, db: Session):
        self._db = db

    def product_has_sales(self, product_id: int) -> bool:
        return bool(
            self._db.scalar(
                select(exists().where(SaleItem.product_id == product_id))
            )
        )

    def branches_with_sales(self, product_id: int, branch_ids: set[int] | list[int]) -> set[int]:
        """Subset of branch_ids where the product appears in at least one sale."""
        if not branch_ids:
            return set()
        return set(
            self._db.execute(
                select(Sale.branch_id)
                .join(SaleItem, SaleItem.sale_id == Sale.id)
                .where(
                    SaleItem.product_id == product_id,
                    Sale.branch_id.in_(list(branch_ids)),
                )
                .distinct()
            ).scalars().all()
        )
