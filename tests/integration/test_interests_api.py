"""Interest catalog endpoint."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from recovery.interests.seed import INTEREST_SEED_DATA


class TestListInterests:
    @pytest.mark.asyncio
    async def test_empty_catalog(self, client) -> None:
        response = await client.get("/api/interests")
        assert response.status_code == 200
        assert response.json() == {"interests": []}

    @pytest.mark.asyncio
    async def test_public_and_grouped(self, client, app: FastAPI) -> None:
        storage = app.state.storage
        await storage.create_interest("Trauma Support", "Recovery")
        await storage.create_interest("Addiction Recovery", "Recovery")
        await storage.create_interest("Nutrition", "Health")

        response = await client.get("/api/interests")
        assert response.status_code == 200
        interests = response.json()["interests"]
        assert [(i["category"], i["name"]) for i in interests] == [
            ("Health", "Nutrition"),
            ("Recovery", "Addiction Recovery"),
            ("Recovery", "Trauma Support"),
        ]
        assert all(isinstance(i["id"], int) for i in interests)

    def test_startup_seeds_catalog(self, app: FastAPI) -> None:
        with TestClient(app) as tc:
            response = tc.get("/api/interests")
        assert response.status_code == 200
        names = {i["name"] for i in response.json()["interests"]}
        assert names == {i["name"] for i in INTEREST_SEED_DATA}

    def test_seeding_can_be_disabled(self, settings, app: FastAPI) -> None:
        app.state.settings = settings.model_copy(update={"seed_interests": False})
        with TestClient(app) as tc:
            response = tc.get("/api/interests")
        assert response.json() == {"interests": []}
