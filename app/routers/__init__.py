"""API routers."""

from app.routers.distributors import router as distributors_router
from app.routers.regions import router as regions_router

__all__ = ["distributors_router", "regions_router"]
