"""Integration tests for health and metrics endpoints."""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Request-ID"].startswith("req_")


@pytest.mark.asyncio
async def test_request_id_is_propagated(async_client: AsyncClient) -> None:
    response = await async_client.get("/health", headers={"X-Request-ID": "req_from_gateway"})

    assert response.headers["X-Request-ID"] == "req_from_gateway"


@pytest.mark.asyncio
async def test_metrics_exposed(async_client: AsyncClient) -> None:
    response = await async_client.get("/metrics/")

    assert response.status_code == 200
    assert "webhook_events_total" in response.text
