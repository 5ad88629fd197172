"""
Inventory REST API main application.
Entry point for the FastAPI server.
"""

from fastapi import FastAPI

from inventory_api.core import (
    configure_cors,
    lifespan,
    register_exception_handlers,
    register_middlewares,
)
from inventory_api.routers.branches import router as branches_router
from inventory_api.routers.health import router as health_router
from inventory_api.routers.products import router as products_router
from inventory_shared.config.settings import settings


app = FastAPI(
    title="Branch Inventory API",
    description="Multi-tenant product catalog with per-branch stock and prices",
    version="0.1.0",
    lifespan=lifespan,
)

register_middlewares(app)
configure_cors(app)
register_exception_handlers(app)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(products_router)
app.include_router(branches_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inventory_api.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=True,
    )
