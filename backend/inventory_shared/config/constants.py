"""
Centralized constants for the backend application.

Usage:
    from inventory_shared.config.constants import Roles, TENANT_ADMIN_ROLES

    if user.role in TENANT_ADMIN_ROLES:
        ...
"""

from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """User role constants."""

    OWNER: Final[str] = "OWNER"
    ADMIN: Final[str] = "ADMIN"
    MANAGER: Final[str] = "MANAGER"
    STAFF: Final[str] = "STAFF"

    ALL: Final[list[str]] = [OWNER, ADMIN, MANAGER, STAFF]


# Roles that see every branch of their tenant without explicit assignment
TENANT_ADMIN_ROLES: Final[frozenset[str]] = frozenset({Roles.OWNER, Roles.ADMIN})


# =============================================================================
# Branch context
# =============================================================================


# Query value that asks for tenant-wide (unscoped) data
ALL_BRANCHES: Final[str] = "all"


class BranchContextSource:
    """Where the active branch of a request was resolved from."""

    REQUEST: Final[str] = "request"
    SESSION: Final[str] = "session"
    CACHE: Final[str] = "cache"
    ASSIGNMENT: Final[str] = "assignment"
    ALL: Final[str] = "all"
    NONE: Final[str] = "none"


class SkipReason:
    """Reasons reported for products skipped by a bulk assignment."""

    PRODUCT_NOT_FOUND: Final[str] = "Product not found"
    ALREADY_ASSIGNED: Final[str] = "Already assigned to branch"


# =============================================================================
# Products
# =============================================================================


class ProductDefaults:
    """Defaults applied when a product field is omitted."""

    UNIT: Final[str] = "piece"
    TAX_RATE: Final[str] = "15.00"


class Limits:
    """Input limits."""

    MAX_SEARCH_TERM_LENGTH: Final[int] = 100
    MAX_BULK_PRODUCTS: Final[int] = 500
