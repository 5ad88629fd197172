"""
Branch context resolution.

Works out which branch a request operates in. The result is an explicit
``BranchContext`` value resolved once per request and handed to services,
instead of a global "current branch" lookup.

Resolution order, first hit wins:
1. ``branch_id`` request parameter (unless it is "all")
2. the session hash ``session:{sid}``, field ``active_branch_id``
3. the per-user cache entry ``user_{id}_active_branch``
4. the user's first assigned branch (written back to session and cache)
5. nothing: tenant-wide data

Stored values (2, 3) pointing at a deleted, inactive or no longer
accessible branch are dropped.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import redis
from sqlalchemy.orm import Session

from inventory_api.models import Branch, User
from inventory_api.repositories import BranchRepository
from inventory_api.services.branch_access import BranchAccessService
from inventory_shared.config.constants import ALL_BRANCHES, BranchContextSource
from inventory_shared.config.logging import get_logger, audit_branch_access_event
from inventory_shared.infrastructure.redis.constants import (
    ACTIVE_BRANCH_CACHE_TTL,
    SESSION_ACTIVE_BRANCH_FIELD,
    SESSION_TTL,
    TENANT_BRANCHES_CACHE_TTL,
    get_active_branch_cache_key,
    get_session_key,
    get_tenant_branches_cache_key,
)
from inventory_shared.utils.exceptions import ForbiddenError, NotFoundError, ValidationError

logger = get_logger(__name__)


@dataclass(frozen=True)
class BranchContext:
    """The branch a request is scoped to. ``branch_id=None`` means tenant-wide."""

    branch_id: int | None
    all_branches: bool = False
    source: str = BranchContextSource.NONE

    @property
    def is_scoped(self) -> bool:
        return self.branch_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch_id": self.branch_id,
            "all_branches": self.all_branches,
            "source": self.source,
        }


def _is_live(branch: Branch | None) -> bool:
    return branch is not None and not branch.is_deleted and branch.is_active


def _parse_branch_id(raw: Any) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class BranchContextService:
    """
    Reads and writes the active branch of a user.

    Redis holds derived state only. Read or write failures are logged and
    resolution falls through to the next source.
    """

    def __init__(
        self,
        db: Session,
        redis_client: redis.Redis | None,
        session_id: str | None = None,
        access: BranchAccessService | None = None,
    ):
        self._db = db
        self._redis = redis_client
        self._session_id = session_id
        self._access = access or BranchAccessService(db)
        self._branches = BranchRepository(db)

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(self, user: User, requested: str | None = None) -> BranchContext:
        """
        Resolve the active branch for this request.

        Raises:
            ValidationError: ``requested`` is neither an integer nor "all".
            ForbiddenError: "all" requested by a user who is not a tenant admin.
            BranchAccessError: ``requested`` names a branch the user cannot access.
            NotFoundError: ``requested`` names a deleted or inactive branch (staff only).
        """
        if requested is not None and requested.strip() != "":
            return self._resolve_requested(user, requested.strip())
        return self._resolve_stored(user, persist=True)

    def peek_current_branch_id(self, user: User) -> int | None:
        """The branch ``resolve`` would pick, leaving the session and cache untouched."""
        return self._resolve_stored(user, persist=False).branch_id

    def _resolve_stored(self, user: User, persist: bool) -> BranchContext:
        """
        Session, cache, then first assignment.

        With ``persist`` stale values are deleted and an assignment fallback
        is written back; without it nothing in Redis changes.
        """
        for source, reader in (
            (BranchContextSource.SESSION, self._read_session),
            (BranchContextSource.CACHE, self._read_cache),
        ):
            branch_id = reader(user)
            if branch_id is None:
                continue
            if self._is_usable(user, branch_id):
                return BranchContext(branch_id, source=source)
            if persist:
                logger.info(
                    "Discarding stale active branch",
                    user_id=user.id,
                    branch_id=branch_id,
                    source=source,
                )
                self._forget(user, source)

        assigned = self._branches.find_assigned_to_user(user.id)
        if assigned:
            branch_id = assigned[0].id
            if persist:
                self._store(user, branch_id)
            return BranchContext(branch_id, source=BranchContextSource.ASSIGNMENT)

        return BranchContext(None)

    def _is_usable(self, user: User, branch_id: int) -> bool:
        """A stored branch must still be live and accessible."""
        return _is_live(self._branches.get(branch_id)) and self._access.can_access_branch(user, branch_id)

    def _resolve_requested(self, user: User, requested: str) -> BranchContext:
        if requested.lower() == ALL_BRANCHES:
            if user.is_super_admin or user.is_tenant_admin:
                return BranchContext(None, all_branches=True, source=BranchContextSource.ALL)
            raise ForbiddenError("view data of all branches", user_id=user.id)

        branch_id = _parse_branch_id(requested)
        if branch_id is None:
            raise ValidationError(
                "The branch_id must be an integer or 'all'",
                field="branch_id",
                value=requested,
            )

        branch = self._access.require_branch_access(user, branch_id)
        # Deleted and inactive branches are hidden from staff
        if not _is_live(branch) and not (user.is_super_admin or user.is_tenant_admin):
            raise NotFoundError("Branch", branch_id, user_id=user.id)
        return BranchContext(branch_id, source=BranchContextSource.REQUEST)

    # =========================================================================
    # Explicit selection
    # =========================================================================

    def set_current_branch(self, user: User, branch_id: int) -> Branch:
        """
        Persist ``branch_id`` as the user's active branch.

        Raises:
            NotFoundError / BranchAccessError: see BranchAccessService.require_branch_access
            ValidationError: The branch is deleted or inactive.
        """
        branch = self._access.require_branch_access(user, branch_id)
        if not _is_live(branch):
            if not (user.is_super_admin or user.is_tenant_admin):
                raise NotFoundError("Branch", branch_id, user_id=user.id)
            raise ValidationError(
                "Only active branches can be selected",
                field="branch_id",
                branch_id=branch_id,
            )
        self._store(user, branch_id)
        audit_branch_access_event(
            "BRANCH_SWITCHED",
            user_id=user.id,
            branch_id=branch_id,
            tenant_id=user.tenant_id,
            allowed=True,
        )
        return branch

    def get_branch(self, branch_id: int) -> Branch | None:
        return self._branches.get(branch_id)

    def get_current_branch(self, user: User) -> Branch | None:
        context = self.resolve(user)
        if context.branch_id is None:
            return None
        return self.get_branch(context.branch_id)

    def clear_branch_context(self, user: User) -> None:
        self._forget(user, BranchContextSource.SESSION)
        self._forget(user, BranchContextSource.CACHE)

    # =========================================================================
    # Tenant branch list cache
    # =========================================================================

    def get_tenant_branches(self, tenant_id: int) -> list[dict[str, Any]]:
        """Active branches of a tenant, cached for 30 minutes."""
        key = get_tenant_branches_cache_key(tenant_id)
        if self._redis is not None:
            try:
                cached = self._redis.get(key)
                if cached:
                    return json.loads(cached)
            except redis.RedisError as e:
                logger.warning("Tenant branch cache read failed", tenant_id=tenant_id, error=str(e))

        branches = [
            {
                "id": b.id,
                "name": b.name,
                "code": b.code,
                "is_default": b.is_default,
                "is_active": b.is_active,
            }
            for b in self._branches.find_all_for_tenant(tenant_id, active_only=True)
        ]

        if self._redis is not None:
            try:
                self._redis.setex(key, TENANT_BRANCHES_CACHE_TTL, json.dumps(branches))
            except redis.RedisError as e:
                logger.warning("Tenant branch cache write failed", tenant_id=tenant_id, error=str(e))

        return branches

    def clear_tenant_branch_cache(self, tenant_id: int) -> None:
        if self._redis is None:
            return
        try:
            self._redis.delete(get_tenant_branches_cache_key(tenant_id))
        except redis.RedisError as e:
            logger.warning("Tenant branch cache invalidation failed", tenant_id=tenant_id, error=str(e))

    # =========================================================================
    # Session / cache access
    # =========================================================================

    def _read_session(self, user: User) -> int | None:
        if self._redis is None or not self._session_id:
            return None
        try:
            raw = self._redis.hget(get_session_key(self._session_id), SESSION_ACTIVE_BRANCH_FIELD)
        except redis.RedisError as e:
            logger.warning("Session read failed", user_id=user.id, error=str(e))
            return None
        return _parse_branch_id(raw)

    def _read_cache(self, user: User) -> int | None:
        if self._redis is None:
            return None
        try:
            raw = self._redis.get(get_active_branch_cache_key(user.id))
        except redis.RedisError as e:
            logger.warning("Active branch cache read failed", user_id=user.id, error=str(e))
            return None
        return _parse_branch_id(raw)

    def _store(self, user: User, branch_id: int) -> None:
        if self._redis is None:
            return
        try:
            if self._session_id:
                session_key = get_session_key(self._session_id)
                self._redis.hset(session_key, SESSION_ACTIVE_BRANCH_FIELD, branch_id)
                self._redis.expire(session_key, SESSION_TTL)
            self._redis.setex(get_active_branch_cache_key(user.id), ACTIVE_BRANCH_CACHE_TTL, branch_id)
        except redis.RedisError as e:
            logger.warning("Active branch write failed", user_id=user.id, branch_id=branch_id, error=str(e))

    def _forget(self, user: User, source: str) -> None:
        if self._redis is None:
            return
        try:
            if source == BranchContextSource.SESSION:
                if self._session_id:
                    self._redis.hdel(get_session_key(self._session_id), SESSION_ACTIVE_BRANCH_FIELD)
            else:
                self._redis.delete(get_active_branch_cache_key(user.id))
        except redis.RedisError as e:
            logger.warning("Active branch clear failed", user_id=user.id, source=source, error=str(e))
