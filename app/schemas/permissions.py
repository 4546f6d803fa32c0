"""Pydantic schemas for region and distributor permission endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models import Distributor, PermissionType, Region
from app.services.permission_resolver import DecisionReason, PermissionDecision


def _non_empty_fragments(values: list[str]) -> list[str]:
    cleaned = [value.strip().upper() for value in values]
    if any(not value for value in cleaned):
        raise ValueError("fragments must not be empty")
    return cleaned


# Region schemas
class RegionResponse(BaseModel):
    """A region from the reference catalog."""

    key: str = Field(description="Normalized CITY-STATE-COUNTRY key")
    country: str
    state: str
    city: str

    @classmethod
    def from_region(cls, region: Region) -> RegionResponse:
        return cls(key=region.key, country=region.country, state=region.state, city=region.city)


class RegionListResponse(BaseModel):
    """Response for region listing."""

    regions: list[RegionResponse]
    total: int


# Distributor schemas
class DistributorCreate(BaseModel):
    """Request to register a distributor."""

    name: str = Field(min_length=1, max_length=100, description="Unique distributor name")
    parent: Optional[str] = Field(default=None, description="Name of the parent distributor")
    inclusions: list[str] = Field(default_factory=list, description="Fragments that grant access")
    exclusions: list[str] = Field(default_factory=list, description="Fragments that deny access")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "DISTRIBUTOR2",
                "parent": "DISTRIBUTOR1",
                "inclusions": ["INDIA"],
                "exclusions": ["TAMILNADU-INDIA"],
            }
        }
    )

    @field_validator("inclusions", "exclusions")
    @classmethod
    def validate_fragments(cls, values: list[str]) -> list[str]:
        return _non_empty_fragments(values)


class DistributorResponse(BaseModel):
    """A registered distributor and its own rules."""

    name: str
    parent: Optional[str] = None
    inclusions: list[str]
    exclusions: list[str]

    @classmethod
    def from_distributor(cls, distributor: Distributor) -> DistributorResponse:
        return cls(
            name=distributor.name,
            parent=distributor.parent,
            inclusions=list(distributor.permissions.inclusions),
            exclusions=list(distributor.permissions.exclusions),
        )


class DistributorListResponse(BaseModel):
    """Response for distributor listing."""

    distributors: list[DistributorResponse]
    total: int


class PermissionAssignRequest(BaseModel):
    """Request to add one inclusion or exclusion fragment."""

    permission_type: PermissionType = Field(description="INCLUDE or EXCLUDE")
    fragment: str = Field(min_length=1, description="Region key fragment, e.g. KARNATAKA-INDIA")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "permission_type": "EXCLUDE",
                "fragment": "KARNATAKA-INDIA",
            }
        }
    )

    @field_validator("fragment")
    @classmethod
    def validate_fragment(cls, value: str) -> str:
        return _non_empty_fragments([value])[0]


class PermissionDecisionResponse(BaseModel):
    """Outcome of a permission check.

    ``reason`` distinguishes an unknown region (INVALID_REGION) from a
    legitimate denial (EXCLUDED or DEFAULT_DENY).
    """

    distributor: str
    region_key: str
    allowed: bool
    reason: DecisionReason
    resolved_by: Optional[str] = None
    matched_fragment: Optional[str] = None
    depth: int = 0

    @classmethod
    def from_decision(cls, decision: PermissionDecision) -> PermissionDecisionResponse:
        return cls(
            distributor=decision.distributor,
            region_key=decision.region_key,
            allowed=decision.allowed,
            reason=decision.reason,
            resolved_by=decision.resolved_by,
            matched_fragment=decision.matched_fragment,
            depth=decision.depth,
        )
