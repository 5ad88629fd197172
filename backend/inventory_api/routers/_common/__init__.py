"""
Common dependencies shared across routers.
"""

from .deps import (
    get_branch_context,
    get_branch_context_service,
    get_current_user,
    require_tenant_admin,
)
from .pagination import Pagination, get_pagination

__all__ = [
    "get_current_user",
    "require_tenant_admin",
    "get_branch_context_service",
    "get_branch_context",
    "Pagination",
    "get_pagination",
]
