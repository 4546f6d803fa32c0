"""Shared dependencies for FastAPI dependency injection."""

from __future__ import annotations

from fastapi import Depends

from app.services.distributor_registry import DistributorRegistry
from app.services.permission_resolver import PermissionResolver
from app.services.region_catalog import RegionCatalog

# Initialized in main.py on startup
region_catalog: RegionCatalog | None = None
distributor_registry: DistributorRegistry | None = None


def set_region_catalog(catalog: RegionCatalog) -> None:
    """Set the region catalog (called from main.py on startup)."""
    global region_catalog
    region_catalog = catalog


def set_registry(registry: DistributorRegistry) -> None:
    """Set the distributor registry (called from main.py on startup)."""
    global distributor_registry
    distributor_registry = registry


def get_region_catalog() -> RegionCatalog:
    """Get region catalog dependency."""
    if region_catalog is None:
        raise RuntimeError("Region catalog not initialized")
    return region_catalog


def get_registry() -> DistributorRegistry:
    """Get distributor registry dependency."""
    if distributor_registry is None:
        raise RuntimeError("Distributor registry not initialized")
    return distributor_registry


def get_permission_resolver(
    catalog: RegionCatalog = Depends(get_region_catalog),
    registry: DistributorRegistry = Depends(get_registry),
) -> PermissionResolver:
    """Get a resolver bound to the current catalog and registry."""
    return PermissionResolver(catalog, registry)
