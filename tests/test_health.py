"""Integration tests for health check endpoints."""

from httpx import AsyncClient

from docindex import __version__


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    async def test_health(self, client: AsyncClient) -> None:
        """Health reports status, version and an ISO timestamp."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert "T" in data["timestamp"]


class TestReadinessEndpoint:
    """Tests for /health/ready endpoint."""

    async def test_ready_with_empty_store(self, client: AsyncClient) -> None:
        response = await client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"] == {"config": "ok", "catalog": "ok"}
        assert data["collections"] == 0

    async def test_counts_collections(self, client: AsyncClient) -> None:
        await client.post(
            "/api/v1/collections/beans/documents",
            json={"documents": [{"_id": "a", "kind": "news"}]},
        )
        await client.post("/api/v1/commands", json={"createIndexes": "digests", "indexes": [{"key": {"kind": 1}}]})

        response = await client.get("/health/ready")
        assert response.json()["collections"] == 2


class TestLivenessEndpoint:
    """Tests for /health/live endpoint."""

    async def test_alive(self, client: AsyncClient) -> None:
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    async def test_metrics_exposed(self, client: AsyncClient) -> None:
        await client.get("/health/live")
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
