"""
Redis constants and configuration.
Centralizes TTLs and key templates for the branch context stores.
"""

from inventory_shared.config.settings import settings

# =============================================================================
# TTL (Time To Live) Constants (in seconds)
# =============================================================================

ACTIVE_BRANCH_CACHE_TTL = settings.active_branch_cache_ttl  # 24 hours
TENANT_BRANCHES_CACHE_TTL = settings.tenant_branches_cache_ttl  # 30 minutes
SESSION_TTL = settings.session_ttl  # 8 hours


# =============================================================================
# Key Templates
# =============================================================================

ACTIVE_BRANCH_KEY_TEMPLATE = "user_{user_id}_active_branch"
TENANT_BRANCHES_KEY_TEMPLATE = "tenant_{tenant_id}_branches"
SESSION_KEY_TEMPLATE = "session:{session_id}"

# Field of the session hash that stores the selected branch
SESSION_ACTIVE_BRANCH_FIELD = "active_branch_id"


def get_active_branch_cache_key(user_id: int) -> str:
    """Per-user cache entry holding the last selected branch id."""
    return ACTIVE_BRANCH_KEY_TEMPLATE.format(user_id=user_id)


def get_tenant_branches_cache_key(tenant_id: int) -> str:
    """Cached JSON list of a tenant's active branches."""
    return TENANT_BRANCHES_KEY_TEMPLATE.format(tenant_id=tenant_id)


def get_session_key(session_id: str) -> str:
    """Hash holding the server-side state of one login session."""
    return SESSION_KEY_TEMPLATE.format(session_id=session_id)
