"""Domain models."""

from app.models.distributor import Distributor, Permissions, PermissionType
from app.models.region import Region, make_region_key

__all__ = [
    "Distributor",
    "PermissionType",
    "Permissions",
    "Region",
    "make_region_key",
]
