"""Shared test fixtures.

The app runs on in-memory storage with Redis disabled, and the request
clock is a mutable fixture so streak windows can be walked through.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

os.environ["RECOVERY_STORAGE_BACKEND"] = "memory"
os.environ["RECOVERY_REDIS_URL"] = ""

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from recovery.config import Settings  # noqa: E402
from recovery.dependencies import get_now  # noqa: E402
from recovery.main import create_app  # noqa: E402

TEST_PASSWORD = "Sober2024x"
T0 = datetime(2026, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


@dataclass
class Clock:
    now: datetime = T0

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@dataclass
class RegisteredUser:
    id: int
    username: str
    token: str
    headers: dict[str, str] = field(default_factory=dict)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        redis_url="",
        jwt_secret_key="test-secret-key-that-is-long-enough-for-hs256",
        log_format="console",
    )


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def app(settings: Settings, clock: Clock) -> FastAPI:
    application = create_app(settings)
    application.dependency_overrides[get_now] = lambda: clock.now
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app, no network."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register(client: AsyncClient) -> Callable[..., Awaitable[RegisteredUser]]:
    """Register a user over HTTP and return its id and bearer headers."""

    async def _register(username: str, **extra: Any) -> RegisteredUser:
        body = {
            "username": username,
            "display_name": extra.pop("display_name", username.title()),
            "email": f"{username}@example.com",
            "password": TEST_PASSWORD,
            **extra,
        }
        response = await client.post("/api/auth/register", json=body)
        assert response.status_code == 201, response.text
        data = response.json()
        token = data["access_token"]
        return RegisteredUser(
            id=data["user"]["id"],
            username=username,
            token=token,
            headers={"Authorization": f"Bearer {token}"},
        )

    return _register


@pytest_asyncio.fixture
async def alice(register: Callable[..., Awaitable[RegisteredUser]]) -> RegisteredUser:
    return await register("alice", interests=["running", "reading"], goals=["stay sober"])


@pytest_asyncio.fixture
async def bob(register: Callable[..., Awaitable[RegisteredUser]]) -> RegisteredUser:
    return await register("bob", interests=["running", "cooking"], goals=["stay sober"])


@pytest_asyncio.fixture
async def carol(register: Callable[..., Awaitable[RegisteredUser]]) -> RegisteredUser:
    return await register("carol", interests=["chess"])


@pytest_asyncio.fixture
async def active_match(client: AsyncClient, alice: RegisteredUser, bob: RegisteredUser) -> int:
    """Alice requested, Bob accepted. Returns the match id."""
    response = await client.post("/api/matches", json={"other_user_id": bob.id}, headers=alice.headers)
    assert response.status_code == 201, response.text
    match_id = response.json()["id"]
    response = await client.put(
        f"/api/matches/{match_id}/status", json={"status": "active"}, headers=bob.headers
    )
    assert response.status_code == 200, response.text
    return match_id


@pytest.fixture
def create_challenge(client: AsyncClient) -> Callable[..., Awaitable[dict[str, Any]]]:
    async def _create(user: RegisteredUser, match_id: int, **body: Any) -> dict[str, Any]:
        response = await client.post(
            "/api/challenges", json={"match_id": match_id, **body}, headers=user.headers
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create
