"""
Health check endpoints.
"""

import redis
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_shared.config.settings import settings
from inventory_shared.infrastructure.db import get_db
from inventory_shared.infrastructure.redis import get_redis_sync_client


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "inventory-api",
        "environment": settings.environment,
    }


@router.get("/health/detailed")
def detailed_health_check(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis_sync_client),
):
    """
    Health check that verifies connectivity to the database and Redis.
    Returns 503 when a dependency is down.
    """
    checks = {
        "service": "inventory-api",
        "environment": settings.environment,
        "dependencies": {},
    }
    all_healthy = True

    try:
        db.execute(text("SELECT 1"))
        checks["dependencies"]["database"] = {"status": "healthy"}
    except SQLAlchemyError as e:
        checks["dependencies"]["database"] = {"status": "unhealthy", "error": type(e).__name__}
        all_healthy = False

    try:
        redis_client.ping()
        checks["dependencies"]["redis"] = {"status": "healthy"}
    except redis.RedisError as e:
        # Redis only holds derived branch context; the API keeps working without it
        checks["dependencies"]["redis"] = {"status": "unhealthy", "error": type(e).__name__}
        all_healthy = False

    checks["status"] = "healthy" if all_healthy else "degraded"

    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks
