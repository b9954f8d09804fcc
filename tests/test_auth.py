"""Registration, login and token handling."""

from __future__ import annotations

import jwt
import pytest

from recovery.auth.jwt import create_access_token, token_user_id, verify_token
from recovery.auth.password import PasswordStrengthError, hash_password, validate_password_strength, verify_password
from recovery.config import Settings

PASSWORD = "Sober2024x"


def _body(**overrides) -> dict:
    return {
        "username": "dana",
        "display_name": "Dana",
        "email": "Dana@Example.com",
        "password": PASSWORD,
        **overrides,
    }


class TestPassword:
    def test_hash_and_verify(self):
        hashed = hash_password(PASSWORD)
        assert hashed.startswith("$argon2id$")
        assert verify_password(PASSWORD, hashed)
        assert not verify_password("wrong-pass-1", hashed)

    def test_corrupt_hash(self):
        assert not verify_password(PASSWORD, "not-a-hash")

    @pytest.mark.parametrize("password", ["short1", "onlyletters", "12345678", "   "])
    def test_weak_passwords(self, password):
        with pytest.raises(PasswordStrengthError):
            validate_password_strength(password)


class TestJwt:
    def test_round_trip(self, settings: Settings):
        token = create_access_token(42, settings)
        assert token_user_id(token, settings) == 42
        assert verify_token(token, settings)["iss"] == settings.jwt_issuer

    def test_wrong_secret(self, settings: Settings):
        token = create_access_token(42, settings)
        other = settings.model_copy(update={"jwt_secret_key": "another-secret-key-that-is-long-enough-too"})
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token, other)

    def test_expired(self, settings: Settings):
        expired = settings.model_copy(update={"jwt_access_token_expire_minutes": -1})
        token = create_access_token(42, expired)
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token, settings)


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_returns_token(self, client) -> None:
        response = await client.post("/api/auth/register", json=_body())
        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "dana@example.com"
        assert data["user"]["points"] == 0
        assert "password_hash" not in data["user"]

    @pytest.mark.asyncio
    async def test_duplicate_username(self, client) -> None:
        await client.post("/api/auth/register", json=_body())
        response = await client.post("/api/auth/register", json=_body(email="other@example.com"))
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client) -> None:
        await client.post("/api/auth/register", json=_body())
        response = await client.post("/api/auth/register", json=_body(username="dana2"))
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_weak_password(self, client) -> None:
        response = await client.post("/api/auth/register", json=_body(password="password"))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_email(self, client) -> None:
        response = await client.post("/api/auth/register", json=_body(email="not-an-email"))
        assert response.status_code == 400


class TestLogin:
    @pytest.mark.asyncio
    async def test_login(self, client) -> None:
        await client.post("/api/auth/register", json=_body())
        response = await client.post("/api/auth/login", json={"username": "dana", "password": PASSWORD})
        assert response.status_code == 200
        token = response.json()["access_token"]
        me = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["username"] == "dana"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client) -> None:
        await client.post("/api/auth/register", json=_body())
        response = await client.post("/api/auth/login", json={"username": "dana", "password": "Wrong1234"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self, client) -> None:
        response = await client.post("/api/auth/login", json={"username": "ghost", "password": PASSWORD})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token(self, client) -> None:
        response = await client.get("/api/users/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_missing_user(self, client, settings: Settings) -> None:
        token = create_access_token(999, settings)
        response = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"
