"""
API routers package.
"""
from photolog.routers.health import router as health_router
from photolog.routers.maintenance import router as maintenance_router
from photolog.routers.photos import router as photos_router

__all__ = ["health_router", "maintenance_router", "photos_router"]
