"""
Request-scoped dependencies: the authenticated user and the branch context.

The branch context is resolved once per request here and passed to the
services as a value.
"""

from typing import Any

import redis
from fastapi import Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from inventory_api.models import User
from inventory_api.services import BranchContext, BranchContextService
from inventory_shared.config.constants import Roles
from inventory_shared.config.logging import get_logger, audit_auth_event
from inventory_shared.infrastructure.db import get_db
from inventory_shared.infrastructure.redis import get_redis_sync_client
from inventory_shared.security.auth import current_user_context, get_session_id
from inventory_shared.utils.exceptions import InsufficientRoleError

logger = get_logger(__name__)


def get_current_user(
    ctx: dict[str, Any] = Depends(current_user_context),
    db: Session = Depends(get_db),
) -> User:
    """
    Load the user named by the token.

    The token's tenant must still match the user's tenant, and the user
    must be active.
    """
    user = db.get(User, int(ctx["sub"]))
    if user is None or not user.is_active or user.tenant_id != ctx.get("tenant_id"):
        audit_auth_event("TOKEN_USER_REJECTED", user_id=ctx.get("sub"), success=False)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_tenant_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency that requires OWNER or ADMIN role (or a super admin)."""
    if not (user.is_super_admin or user.is_tenant_admin):
        raise InsufficientRoleError([Roles.OWNER, Roles.ADMIN], user_id=user.id)
    return user


def get_branch_context_service(
    ctx: dict[str, Any] = Depends(current_user_context),
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis_sync_client),
) -> BranchContextService:
    return BranchContextService(db, redis_client, session_id=get_session_id(ctx))


def get_branch_context(
    branch_id: str | None = Query(
        default=None,
        description="Branch id, or 'all' for every branch of the tenant",
    ),
    user: User = Depends(get_current_user),
    service: BranchContextService = Depends(get_branch_context_service),
) -> BranchContext:
    """Resolve the request's branch context."""
    return service.resolve(user, branch_id)
