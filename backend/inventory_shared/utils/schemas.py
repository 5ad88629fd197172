"""
Shared Pydantic schemas used across the application.
"""

from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from inventory_shared.config.constants import Limits, ProductDefaults


# =============================================================================
# Common Types
# =============================================================================

NonNegativeInt = Annotated[int, Field(ge=0)]
Money = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Branch Schemas
# =============================================================================


class BranchOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    name: str
    code: str
    address: str | None = None
    city: str | None = None
    phone: str | None = None
    email: str | None = None
    is_default: bool
    is_active: bool
    is_deleted: bool = False


class BranchSummary(BaseModel):
    """Compact branch entry used by branch pickers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str
    is_default: bool
    is_active: bool


class BranchCreate(BaseModel):
    """New branches start active and are never the default."""

    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=50)
    address: str | None = None
    city: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    email: EmailStr | None = None


class BranchUpdate(BaseModel):
    """Details and operational flags a tenant admin may change on a branch."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, min_length=1, max_length=50)
    address: str | None = None
    city: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    email: EmailStr | None = None
    is_active: bool | None = None
    is_default: bool | None = None


class BranchMutationResponse(BaseModel):
    message: str
    branch: BranchOutput


class SwitchBranchRequest(BaseModel):
    branch_id: int


class BranchContextOutput(BaseModel):
    """The resolved branch context of the caller."""

    branch_id: int | None
    all_branches: bool
    source: str
    branch: BranchOutput | None = None


class MyBranchesOutput(BaseModel):
    branches: list[BranchOutput]
    current_branch_id: int | None = None


# =============================================================================
# Product Schemas
# =============================================================================


class BranchAssignmentFields(BaseModel):
    """Per-branch values keyed by branch id."""

    branch_stock: dict[int, NonNegativeInt] = Field(default_factory=dict)
    branch_min_stock: dict[int, NonNegativeInt] = Field(default_factory=dict)
    # null resets the branch to the product's default price
    branch_prices: dict[int, Money | None] = Field(default_factory=dict)


class ProductCreate(BranchAssignmentFields):
    category_id: int | None = None
    name: str = Field(min_length=1, max_length=255)
    sku: str = Field(min_length=1, max_length=100)
    barcode: str | None = Field(default=None, max_length=100)
    description: str | None = None
    cost_price: Money
    selling_price: Money
    stock_quantity: NonNegativeInt
    min_stock_level: NonNegativeInt
    unit: str = Field(default=ProductDefaults.UNIT, min_length=1, max_length=50)
    tax_rate: Decimal = Field(default=Decimal(ProductDefaults.TAX_RATE), ge=0, le=100, decimal_places=2)
    is_active: bool = True
    is_spare_part: bool = False

    # Omitted: the caller's active branch, then their first available branch
    branch_ids: list[int] | None = None


class ProductUpdate(BranchAssignmentFields):
    """
    Partial update. ``branch_ids`` replaces the branch set; ``add_branches``
    and ``remove_branches`` change it incrementally.
    """

    category_id: int | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    sku: str | None = Field(default=None, min_length=1, max_length=100)
    barcode: str | None = Field(default=None, max_length=100)
    description: str | None = None
    cost_price: Money | None = None
    selling_price: Money | None = None
    stock_quantity: NonNegativeInt | None = None
    min_stock_level: NonNegativeInt | None = None
    unit: str | None = Field(default=None, min_length=1, max_length=50)
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100, decimal_places=2)
    is_active: bool | None = None
    is_spare_part: bool | None = None

    branch_ids: list[int] | None = None
    add_branches: list[int] | None = None
    remove_branches: list[int] | None = None
    force_remove: bool = False


class ProductBranchOutput(BaseModel):
    branch_id: int
    branch_name: str | None = None
    branch_code: str | None = None
    stock_quantity: int
    min_stock_level: int
    selling_price: Decimal | None = None
    effective_price: Decimal
    is_active: bool
    is_low_stock: bool


class ProductOutput(BaseModel):
    id: int
    tenant_id: int
    category_id: int | None = None
    category_name: str | None = None
    name: str
    sku: str
    barcode: str | None = None
    description: str | None = None
    cost_price: Decimal
    selling_price: Decimal
    stock_quantity: int
    min_stock_level: int
    unit: str
    tax_rate: Decimal
    is_active: bool
    is_spare_part: bool

    branch_ids: list[int] = Field(default_factory=list)
    total_stock: int = 0
    branch_count: int = 0
    has_price_variance: bool = False

    # Present when a single branch is in scope
    branch_stock: int | None = None
    is_low_stock_in_branch: bool | None = None

    # Present in detail views and tenant-wide ("all") listings
    branches: list[ProductBranchOutput] | None = None


class ProductMutationResponse(BaseModel):
    message: str
    product: ProductOutput


class ProductListResponse(BaseModel):
    items: list[ProductOutput]
    pagination: dict[str, Any]
    branch_context: dict[str, Any]


class ProductBranchDetails(BaseModel):
    product_id: int
    product_name: str
    default_price: Decimal
    has_price_variance: bool
    branches: list[ProductBranchOutput]
    total_stock: int


# =============================================================================
# Branch Assignment Schemas
# =============================================================================


class BulkAssignRequest(BaseModel):
    product_ids: list[int] = Field(min_length=1, max_length=Limits.MAX_BULK_PRODUCTS)
    branch_id: int


class BulkAssignResponse(BaseModel):
    success: bool = True
    message: str
    data: dict[str, Any]


class BranchAssignRequest(BaseModel):
    """Add a product to branches; existing assignments are left alone."""

    branch_ids: list[int]
    stock_quantity: NonNegativeInt | None = None
    min_stock_level: NonNegativeInt | None = None
    selling_price: Money | None = None


class BranchProductUpdate(BaseModel):
    stock_quantity: NonNegativeInt | None = None
    min_stock_level: NonNegativeInt | None = None
    selling_price: Money | None = None
    is_active: bool | None = None
