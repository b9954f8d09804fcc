"""HS256 access tokens.

Tokens carry the user id in ``sub`` and a ``type`` claim so only access
tokens are accepted by the API.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from recovery.config import Settings, get_settings


def create_access_token(user_id: int, settings: Settings | None = None) -> str:
    """Create an access token for ``user_id``."""
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or not an access token.
    """
    settings = settings or get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != "access":
        msg = f"Expected an access token, got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)
    return payload


def token_user_id(token: str, settings: Settings | None = None) -> int:
    """Return the user id named by a valid access token."""
    payload = verify_token(token, settings)
    try:
        return int(payload["sub"])
    except (KeyError, ValueError) as e:
        msg = "Token has no valid subject"
        raise jwt.InvalidTokenError(msg) from e
