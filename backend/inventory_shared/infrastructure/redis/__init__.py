"""
Redis access for the branch context session and cache.
"""

from inventory_shared.infrastructure.redis.pool import (
    get_redis_sync_client,
    close_redis_sync_client,
)

__all__ = [
    "get_redis_sync_client",
    "close_redis_sync_client",
]
