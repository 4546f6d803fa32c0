"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.dependencies import set_region_catalog, set_registry
from app.logging_config import LoggingMiddleware, get_logger, metrics, setup_logging
from app.services.distributor_registry import DistributorConfigError, DistributorConfigLoader
from app.services.region_catalog import RegionLoadError, load_regions

settings = get_settings()

# Initialize structured logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown."""
    logger.info("application_starting", version="0.1.0", env=settings.app_env)

    try:
        catalog = load_regions(
            settings.regions_csv_path,
            has_header=settings.regions_csv_has_header,
            delimiter=settings.regions_csv_delimiter,
        )
    except RegionLoadError as e:
        logger.error("region_catalog_unavailable", source=e.source, error=e.message)
        raise
    set_region_catalog(catalog)

    try:
        registry = DistributorConfigLoader(settings.distributors_path).load()
    except DistributorConfigError as e:
        logger.error("distributor_config_unavailable", path=e.path, error=e.message)
        raise
    set_registry(registry)

    logger.info("application_started", regions=len(catalog), distributors=len(registry))
    yield

    logger.info("application_shutting_down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    # Import routers inside function to avoid circular imports
    from app.routers.distributors import router as distributors_router
    from app.routers.regions import router as regions_router

    app = FastAPI(
        title="Distributor Permissions",
        description="Resolves distributor authorization over a country/state/city region hierarchy",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Logging middleware (must be added first so it wraps all requests)
    app.add_middleware(LoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(regions_router)
    app.include_router(distributors_router)

    @app.get("/health", tags=["Health"])
    async def health_check() -> JSONResponse:
        """Health check endpoint."""
        checks = {
            "status": "healthy",
            "app": settings.app_name,
            "env": settings.app_env,
        }
        return JSONResponse(content=checks)

    @app.get("/metrics", tags=["Health"])
    async def get_metrics() -> JSONResponse:
        """In-memory permission check counters and load timings."""
        return JSONResponse(content=metrics.get_all_metrics())

    @app.get("/", include_in_schema=False)
    async def root():
        """Redirect root to API documentation."""
        from fastapi.responses import RedirectResponse

        return RedirectResponse(url="/docs")

    return app


# Create app instance
app = create_app()
