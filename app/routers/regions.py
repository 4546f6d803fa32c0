"""API endpoints for the region reference catalog."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.dependencies import get_region_catalog
from app.schemas.permissions import RegionListResponse, RegionResponse
from app.services.region_catalog import RegionCatalog

router = APIRouter(prefix="/api/v1/regions", tags=["Regions"])


@router.get("", response_model=RegionListResponse)
async def list_regions(
    country: Optional[str] = Query(default=None, description="Filter by country"),
    state: Optional[str] = Query(default=None, description="Filter by state"),
    catalog: RegionCatalog = Depends(get_region_catalog),
) -> RegionListResponse:
    """List known regions, optionally filtered by country and state."""
    regions = catalog.filter(country=country, state=state)
    return RegionListResponse(
        regions=[RegionResponse.from_region(r) for r in regions],
        total=len(regions),
    )


@router.get("/{region_key}", response_model=RegionResponse)
async def get_region(
    region_key: str,
    catalog: RegionCatalog = Depends(get_region_catalog),
) -> RegionResponse:
    """Get a single region by its normalized key."""
    region = catalog.get(region_key)
    if region is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Region not found: {region_key}",
        )
    return RegionResponse.from_region(region)
