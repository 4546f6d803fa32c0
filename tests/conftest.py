"""Shared fixtures for region permission tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from app.models import Distributor, Permissions
from app.services.distributor_registry import DistributorRegistry
from app.services.permission_resolver import PermissionResolver
from app.services.region_catalog import RegionCatalog, load_regions

CITIES_CSV = """UnitedStates,Illinois,Chicago
India,TamilNadu,Chennai
India,Karnataka,Bangalore
India,Karnataka,Hubli
"""


@pytest.fixture
def cities_csv(tmp_path: Path) -> Path:
    """Write the reference cities file to a temporary directory."""
    path = tmp_path / "cities.csv"
    path.write_text(CITIES_CSV, encoding="utf-8")
    return path


@pytest.fixture
def catalog(cities_csv: Path) -> RegionCatalog:
    """Region catalog loaded from the reference cities file."""
    return load_regions(cities_csv)


@pytest.fixture
def registry() -> DistributorRegistry:
    """Registry holding the three-level demo chain.

    DISTRIBUTOR3 -> DISTRIBUTOR2 -> DISTRIBUTOR1
    """
    registry = DistributorRegistry()
    registry.register(
        Distributor(
            name="DISTRIBUTOR1",
            permissions=Permissions(
                inclusions=("INDIA", "UNITEDSTATES"),
                exclusions=("KARNATAKA-INDIA", "CHENNAI-TAMILNADU-INDIA"),
            ),
        )
    )
    registry.register(
        Distributor(
            name="DISTRIBUTOR2",
            parent="DISTRIBUTOR1",
            permissions=Permissions(inclusions=("INDIA",), exclusions=("TAMILNADU-INDIA",)),
        )
    )
    registry.register(
        Distributor(
            name="DISTRIBUTOR3",
            parent="DISTRIBUTOR2",
            permissions=Permissions(inclusions=("HUBLI-KARNATAKA-INDIA",)),
        )
    )
    return registry


@pytest.fixture
def resolver(catalog: RegionCatalog, registry: DistributorRegistry) -> PermissionResolver:
    """Resolver over the demo catalog and registry."""
    return PermissionResolver(catalog, registry)
