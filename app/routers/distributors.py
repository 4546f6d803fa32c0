"""API endpoints for distributors and region permission checks."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_permission_resolver, get_registry
from app.schemas.permissions import (
    DistributorCreate,
    DistributorListResponse,
    DistributorResponse,
    PermissionAssignRequest,
    PermissionDecisionResponse,
)
from app.services.distributor_registry import (
    DistributorExistsError,
    DistributorNotFoundError,
    DistributorRegistry,
    HierarchyCycleError,
    distributor_from_payload,
)
from app.services.permission_resolver import PermissionResolver

router = APIRouter(prefix="/api/v1/distributors", tags=["Distributors"])


def _not_found(e: DistributorNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("", response_model=DistributorListResponse)
async def list_distributors(
    registry: DistributorRegistry = Depends(get_registry),
) -> DistributorListResponse:
    """List all registered distributors."""
    distributors = registry.list_distributors()
    return DistributorListResponse(
        distributors=[DistributorResponse.from_distributor(d) for d in distributors],
        total=len(distributors),
    )


@router.post("", response_model=DistributorResponse, status_code=status.HTTP_201_CREATED)
async def create_distributor(
    request: DistributorCreate,
    registry: DistributorRegistry = Depends(get_registry),
) -> DistributorResponse:
    """Register a distributor under an existing parent (or as a root)."""
    try:
        distributor = registry.register(distributor_from_payload(request.model_dump()))
    except DistributorExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except DistributorNotFoundError as e:
        raise _not_found(e) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    return DistributorResponse.from_distributor(distributor)


@router.get("/{name}", response_model=DistributorResponse)
async def get_distributor(
    name: str,
    registry: DistributorRegistry = Depends(get_registry),
) -> DistributorResponse:
    """Get a distributor and its own rules."""
    try:
        return DistributorResponse.from_distributor(registry.get(name))
    except DistributorNotFoundError as e:
        raise _not_found(e) from e


@router.post("/{name}/permissions", response_model=DistributorResponse)
async def assign_permission(
    name: str,
    request: PermissionAssignRequest,
    registry: DistributorRegistry = Depends(get_registry),
) -> DistributorResponse:
    """Add an inclusion or exclusion fragment to a distributor."""
    try:
        distributor = registry.assign_permission(name, request.permission_type, request.fragment)
    except DistributorNotFoundError as e:
        raise _not_found(e) from e

    return DistributorResponse.from_distributor(distributor)


@router.get("/{name}/permissions/{region_key}", response_model=PermissionDecisionResponse)
async def check_permission(
    name: str,
    region_key: str,
    registry: DistributorRegistry = Depends(get_registry),
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> PermissionDecisionResponse:
    """Check whether a distributor may operate in a region.

    An unknown region is not an error: the response carries
    ``allowed=false`` with ``reason=INVALID_REGION``.
    """
    try:
        distributor = registry.get(name)
        decision = resolver.evaluate(distributor, region_key)
    except DistributorNotFoundError as e:
        raise _not_found(e) from e
    except HierarchyCycleError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return PermissionDecisionResponse.from_decision(decision)
