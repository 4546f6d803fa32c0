"""Tests for region and distributor API endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.dependencies import get_region_catalog, get_registry
from app import main as main_module
from app.main import app, lifespan
from app.services.distributor_registry import DistributorConfigError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from app.services.distributor_registry import DistributorRegistry
    from app.services.region_catalog import RegionCatalog


@pytest.fixture
async def client(
    catalog: RegionCatalog, registry: DistributorRegistry
) -> AsyncGenerator[AsyncClient, None]:
    """API client with the demo catalog and registry injected."""
    app.dependency_overrides[get_region_catalog] = lambda: catalog
    app.dependency_overrides[get_registry] = lambda: registry
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class TestHealth:
    """Tests for service endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        """Test the health check."""
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_request_id_header(self, client: AsyncClient):
        """Test the logging middleware echoes the request ID."""
        response = await client.get("/health", headers={"x-request-id": "req-123"})

        assert response.headers["x-request-id"] == "req-123"

    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient):
        """Test counters are exposed after a permission check."""
        await client.get("/api/v1/distributors/DISTRIBUTOR1/permissions/NOWHERE-X-Y")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert response.json()["counters"]["permission_checks.invalid_region"] >= 1


class TestRegionsRouter:
    """Tests for /api/v1/regions."""

    @pytest.mark.asyncio
    async def test_list_regions(self, client: AsyncClient):
        """Test listing all regions."""
        response = await client.get("/api/v1/regions")

        data = response.json()
        assert response.status_code == 200
        assert data["total"] == 4
        assert data["regions"][0]["key"] == "BANGALORE-KARNATAKA-INDIA"

    @pytest.mark.asyncio
    async def test_list_regions_filtered(self, client: AsyncClient):
        """Test country and state filters."""
        response = await client.get(
            "/api/v1/regions", params={"country": "India", "state": "Karnataka"}
        )

        keys = [r["key"] for r in response.json()["regions"]]
        assert keys == ["BANGALORE-KARNATAKA-INDIA", "HUBLI-KARNATAKA-INDIA"]

    @pytest.mark.asyncio
    async def test_get_region(self, client: AsyncClient):
        """Test fetching one region."""
        response = await client.get("/api/v1/regions/HUBLI-KARNATAKA-INDIA")

        assert response.status_code == 200
        assert response.json() == {
            "key": "HUBLI-KARNATAKA-INDIA",
            "country": "India",
            "state": "Karnataka",
            "city": "Hubli",
        }

    @pytest.mark.asyncio
    async def test_get_unknown_region(self, client: AsyncClient):
        """Test 404 for an unknown key."""
        response = await client.get("/api/v1/regions/MUMBAI-MAHARASHTRA-INDIA")

        assert response.status_code == 404


class TestDistributorsRouter:
    """Tests for /api/v1/distributors."""

    @pytest.mark.asyncio
    async def test_list_distributors(self, client: AsyncClient):
        """Test listing registered distributors."""
        response = await client.get("/api/v1/distributors")

        data = response.json()
        assert data["total"] == 3
        assert [d["name"] for d in data["distributors"]] == [
            "DISTRIBUTOR1",
            "DISTRIBUTOR2",
            "DISTRIBUTOR3",
        ]

    @pytest.mark.asyncio
    async def test_get_distributor(self, client: AsyncClient):
        """Test fetching one distributor."""
        response = await client.get("/api/v1/distributors/DISTRIBUTOR2")

        assert response.json() == {
            "name": "DISTRIBUTOR2",
            "parent": "DISTRIBUTOR1",
            "inclusions": ["INDIA"],
            "exclusions": ["TAMILNADU-INDIA"],
        }

    @pytest.mark.asyncio
    async def test_get_unknown_distributor(self, client: AsyncClient):
        """Test 404 for an unknown distributor."""
        response = await client.get("/api/v1/distributors/NOBODY")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_create_distributor(self, client: AsyncClient, registry: DistributorRegistry):
        """Test registering a child distributor."""
        response = await client.post(
            "/api/v1/distributors",
            json={"name": "DISTRIBUTOR4", "parent": "DISTRIBUTOR3", "inclusions": ["chennai"]},
        )

        assert response.status_code == 201
        assert response.json()["inclusions"] == ["CHENNAI"]
        assert "DISTRIBUTOR4" in registry

    @pytest.mark.asyncio
    async def test_create_duplicate_distributor(self, client: AsyncClient):
        """Test 409 for a taken name."""
        response = await client.post("/api/v1/distributors", json={"name": "DISTRIBUTOR1"})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_create_with_unknown_parent(self, client: AsyncClient):
        """Test 404 when the parent does not exist."""
        response = await client.post(
            "/api/v1/distributors", json={"name": "ORPHAN", "parent": "GHOST"}
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_create_with_empty_fragment(self, client: AsyncClient):
        """Test empty fragments fail validation."""
        response = await client.post(
            "/api/v1/distributors", json={"name": "BAD", "exclusions": [" "]}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_normalizes_fragments(self, client: AsyncClient):
        """Test fragments are stripped and uppercased before storage."""
        response = await client.post(
            "/api/v1/distributors",
            json={
                "name": "D5",
                "parent": "DISTRIBUTOR1",
                "inclusions": [" hubli-karnataka-india "],
            },
        )
        check = await client.get("/api/v1/distributors/D5/permissions/HUBLI-KARNATAKA-INDIA")

        assert response.status_code == 201
        assert response.json()["inclusions"] == ["HUBLI-KARNATAKA-INDIA"]
        assert check.json()["allowed"] is True
        assert check.json()["resolved_by"] == "D5"

    @pytest.mark.asyncio
    async def test_assign_permission(self, client: AsyncClient):
        """Test adding an exclusion changes later decisions."""
        before = await client.get(
            "/api/v1/distributors/DISTRIBUTOR1/permissions/CHICAGO-ILLINOIS-UNITEDSTATES"
        )
        assign = await client.post(
            "/api/v1/distributors/DISTRIBUTOR1/permissions",
            json={"permission_type": "EXCLUDE", "fragment": "ILLINOIS-UNITEDSTATES"},
        )
        after = await client.get(
            "/api/v1/distributors/DISTRIBUTOR1/permissions/CHICAGO-ILLINOIS-UNITEDSTATES"
        )

        assert before.json()["allowed"] is True
        assert assign.status_code == 200
        assert "ILLINOIS-UNITEDSTATES" in assign.json()["exclusions"]
        assert after.json()["allowed"] is False
        assert after.json()["reason"] == "EXCLUDED"

    @pytest.mark.asyncio
    async def test_assign_invalid_type(self, client: AsyncClient):
        """Test 422 for an unknown permission type."""
        response = await client.post(
            "/api/v1/distributors/DISTRIBUTOR1/permissions",
            json={"permission_type": "ALLOW", "fragment": "INDIA"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_assign_unknown_distributor(self, client: AsyncClient):
        """Test 404 when assigning to an unknown distributor."""
        response = await client.post(
            "/api/v1/distributors/NOBODY/permissions",
            json={"permission_type": "INCLUDE", "fragment": "INDIA"},
        )

        assert response.status_code == 404


class TestPermissionCheck:
    """Tests for the permission decision endpoint."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("distributor", "region_key", "allowed"),
        [
            ("DISTRIBUTOR1", "CHICAGO-ILLINOIS-UNITEDSTATES", True),
            ("DISTRIBUTOR1", "CHENNAI-TAMILNADU-INDIA", False),
            ("DISTRIBUTOR1", "BANGALORE-KARNATAKA-INDIA", False),
            ("DISTRIBUTOR2", "CHENNAI-TAMILNADU-INDIA", False),
            ("DISTRIBUTOR3", "HUBLI-KARNATAKA-INDIA", True),
        ],
    )
    async def test_demo_queries(
        self, client: AsyncClient, distributor: str, region_key: str, allowed: bool
    ):
        """Test the demo chain decisions over HTTP."""
        response = await client.get(f"/api/v1/distributors/{distributor}/permissions/{region_key}")

        assert response.status_code == 200
        assert response.json()["allowed"] is allowed

    @pytest.mark.asyncio
    async def test_invalid_region_is_distinguishable(self, client: AsyncClient):
        """Test an unknown region reports INVALID_REGION rather than a plain deny."""
        response = await client.get(
            "/api/v1/distributors/DISTRIBUTOR1/permissions/MUMBAI-MAHARASHTRA-INDIA"
        )

        data = response.json()
        assert response.status_code == 200
        assert data["allowed"] is False
        assert data["reason"] == "INVALID_REGION"

    @pytest.mark.asyncio
    async def test_unknown_distributor(self, client: AsyncClient):
        """Test 404 for permission checks on unknown distributors."""
        response = await client.get(
            "/api/v1/distributors/NOBODY/permissions/HUBLI-KARNATAKA-INDIA"
        )

        assert response.status_code == 404


class TestStartup:
    """Tests for the application lifespan."""

    @pytest.mark.asyncio
    async def test_bad_distributor_config_fails_startup(
        self, cities_csv: Path, tmp_path: Path, monkeypatch
    ):
        """Test a malformed bootstrap file is logged and stops startup."""
        bootstrap = tmp_path / "distributors.json"
        bootstrap.write_text('[{"name": "D1"}]', encoding="utf-8")
        settings = main_module.settings.model_copy(
            update={"regions_csv_path": cities_csv, "distributors_path": bootstrap}
        )
        mock_logger = MagicMock()
        monkeypatch.setattr(main_module, "settings", settings)
        monkeypatch.setattr(main_module, "logger", mock_logger)

        with pytest.raises(DistributorConfigError):
            async with lifespan(app):
                pass

        event, kwargs = mock_logger.error.call_args.args[0], mock_logger.error.call_args.kwargs
        assert event == "distributor_config_unavailable"
        assert kwargs["path"] == str(bootstrap)
