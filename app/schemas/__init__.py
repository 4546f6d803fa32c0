"""Pydantic schemas."""

from app.schemas.permissions import (
    DistributorCreate,
    DistributorListResponse,
    DistributorResponse,
    PermissionAssignRequest,
    PermissionDecisionResponse,
    RegionListResponse,
    RegionResponse,
)

__all__ = [
    "DistributorCreate",
    "DistributorListResponse",
    "DistributorResponse",
    "PermissionAssignRequest",
    "PermissionDecisionResponse",
    "RegionListResponse",
    "RegionResponse",
]
