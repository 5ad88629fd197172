"""
Product endpoints.

Thin router that delegates to ProductService and ProductBranchService.
Static paths are declared before ``/products/{product_id}``.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inventory_api.models import User
from inventory_api.repositories import ProductFilters
from inventory_api.routers._common import (
    Pagination,
    get_branch_context,
    get_current_user,
    get_pagination,
)
from inventory_api.services import BranchContext
from inventory_api.services.domain import BranchOptions, ProductService
from inventory_shared.infrastructure.db import get_db
from inventory_shared.utils.schemas import (
    BranchAssignRequest,
    BranchOutput,
    BranchProductUpdate,
    BulkAssignRequest,
    BulkAssignResponse,
    MessageResponse,
    ProductBranchDetails,
    ProductBranchOutput,
    ProductCreate,
    ProductListResponse,
    ProductMutationResponse,
    ProductOutput,
    ProductUpdate,
)


router = APIRouter(prefix="/api/products", tags=["products"])


def _get_service(db: Session) -> ProductService:
    """Get ProductService instance."""
    return ProductService(db)


# =============================================================================
# Collection
# =============================================================================


@router.get("", response_model=ProductListResponse)
def list_products(
    search: str | None = None,
    category_id: int | None = None,
    low_stock: bool = False,
    is_spare_part: bool | None = None,
    pagination: Pagination = Depends(get_pagination),
    context: BranchContext = Depends(get_branch_context),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProductListResponse:
    """
    List products in the caller's branch context.

    ``branch_id=all`` (tenant admins only) lists every product with its
    full branch breakdown.
    """
    filters = ProductFilters(
        limit=pagination.limit,
        offset=pagination.offset,
        search=search,
        category_id=category_id,
        low_stock=low_stock,
        is_spare_part=is_spare_part,
    )
    items, total = _get_service(db).list_products(user, context, filters)
    return ProductListResponse(
        items=items,
        pagination=pagination.to_dict(total),
        branch_context=context.to_dict(),
    )


@router.post("", response_model=ProductMutationResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    body: ProductCreate,
    context: BranchContext = Depends(get_branch_context),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProductMutationResponse:
    product = _get_service(db).create_product(body, user, context)
    return ProductMutationResponse(message="Product created successfully", product=product)


@router.get("/low-stock", response_model=list[ProductOutput])
def list_low_stock(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[ProductOutput]:
    return _get_service(db).list_low_stock(user)


@router.get("/available-branches", response_model=list[BranchOutput])
def available_branches(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[BranchOutput]:
    """Branches the caller may assign products to."""
    branches = _get_service(db).branch_service.get_available_branches_for_user(user)
    return [BranchOutput.model_validate(branch) for branch in branches]


@router.post("/bulk-assign-branch", response_model=BulkAssignResponse)
def bulk_assign_branch(
    body: BulkAssignRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> BulkAssignResponse:
    """
    Assign many products to one branch.

    Unknown or already-assigned products are skipped and reported.
    """
    result = _get_service(db).branch_service.bulk_assign_to_branch(body.product_ids, body.branch_id, user)
    return BulkAssignResponse(
        success=True,
        message=f"{result.assigned} products assigned to branch, {result.skipped} skipped",
        data=result.to_dict(),
    )


# =============================================================================
# Single product
# =============================================================================


@router.get("/{product_id}", response_model=ProductOutput)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProductOutput:
    return _get_service(db).get_product(product_id, user)


@router.put("/{product_id}", response_model=ProductMutationResponse)
def update_product(
    product_id: int,
    body: ProductUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProductMutationResponse:
    """
    Update a product.

    ``branch_ids`` replaces the branch set, ``add_branches`` and
    ``remove_branches`` change it incrementally. Removing a branch that still
    holds stock or has sales history requires ``force_remove``.
    """
    product = _get_service(db).update_product(product_id, body, user)
    return ProductMutationResponse(message="Product updated successfully", product=product)


@router.delete("/{product_id}", response_model=MessageResponse)
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MessageResponse:
    _get_service(db).delete_product(product_id, user)
    return MessageResponse(message="Product deleted successfully")


@router.get("/{product_id}/branch-details", response_model=ProductBranchDetails)
def product_branch_details(
    product_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProductBranchDetails:
    """Per-branch stock and prices, limited to branches the caller can access."""
    details = _get_service(db).branch_service.get_product_branch_details(product_id, user)
    return ProductBranchDetails(**details)


# =============================================================================
# Branch rows of a product
# =============================================================================


@router.get("/{product_id}/branches", response_model=list[ProductBranchOutput])
def list_product_branches(
    product_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[ProductBranchOutput]:
    rows = _get_service(db).branch_service.list_product_branches(product_id, user)
    return [ProductBranchOutput(**row) for row in rows]


@router.post("/{product_id}/branches", response_model=ProductMutationResponse)
def assign_product_branches(
    product_id: int,
    body: BranchAssignRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProductMutationResponse:
    """Add the product to branches. Existing assignments are left as they are."""
    service = _get_service(db)
    options = BranchOptions(
        default_stock=body.stock_quantity,
        default_min_stock=body.min_stock_level,
        default_price=body.selling_price,
    )
    result = service.branch_service.assign_product_to_branches(product_id, body.branch_ids, options, user)
    return ProductMutationResponse(
        message=f"Product assigned to {len(result.added)} branches",
        product=service.get_product(product_id, user),
    )


@router.put("/{product_id}/branches/{branch_id}", response_model=ProductBranchOutput)
def update_product_branch(
    product_id: int,
    branch_id: int,
    body: BranchProductUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ProductBranchOutput:
    service = _get_service(db).branch_service
    row = service.update_branch_assignment(product_id, branch_id, body.model_dump(exclude_unset=True), user)
    return ProductBranchOutput(**service.serialize_row(row))


@router.delete("/{product_id}/branches/{branch_id}", response_model=MessageResponse)
def remove_product_branch(
    product_id: int,
    branch_id: int,
    force_remove: bool = Query(default=False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MessageResponse:
    _get_service(db).branch_service.remove_from_branch(product_id, branch_id, user, force=force_remove)
    return MessageResponse(message="Product removed from branch")
