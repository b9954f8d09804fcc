"""Health, readiness and version endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest


@pytest.mark.asyncio
async def test_health(client) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_ready_with_memory_storage(client) -> None:
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"storage": "ok"}
    assert data["notifications"] == {
        "connections": 0,
        "pending_users": 0,
        "pending_notifications": 0,
        "catching_up": 0,
    }


@pytest.mark.asyncio
async def test_ready_degraded_when_storage_fails(client, app) -> None:
    app.state.storage.ping = AsyncMock(side_effect=ConnectionError("refused"))
    response = await client.get("/ready")
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["storage"].startswith("error:")


@pytest.mark.asyncio
async def test_version(client, settings) -> None:
    response = await client.get("/version")
    assert response.json() == {"version": settings.app_version, "environment": settings.environment}
