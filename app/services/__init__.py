"""Application services."""

from app.services.distributor_registry import (
    DistributorConfigError,
    DistributorConfigLoader,
    DistributorExistsError,
    DistributorNotFoundError,
    DistributorRegistry,
    HierarchyCycleError,
    RegistrySnapshot,
)
from app.services.permission_resolver import (
    DecisionReason,
    PermissionDecision,
    PermissionResolver,
    has_permission,
)
from app.services.region_catalog import RegionCatalog, RegionLoadError, load_regions

__all__ = [
    "DecisionReason",
    "DistributorConfigError",
    "DistributorConfigLoader",
    "DistributorExistsError",
    "DistributorNotFoundError",
    "DistributorRegistry",
    "HierarchyCycleError",
    "PermissionDecision",
    "PermissionResolver",
    "RegionCatalog",
    "RegionLoadError",
    "RegistrySnapshot",
    "has_permission",
    "load_regions",
]
