from marvelvault.api.catalog import router as catalog_router
from marvelvault.api.health import router as health_router
from marvelvault.api.migration import router as migration_router

__all__ = [
    "catalog_router",
    "health_router",
    "migration_router",
]
