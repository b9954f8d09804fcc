"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from recovery.auth.jwt import token_user_id
from recovery.config import Settings
from recovery.dependencies import get_app_settings, get_storage
from recovery.storage.base import Storage
from recovery.storage.records import User

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> User:
    """Verify the bearer token and load the user. 401 on any failure."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_id = token_user_id(credentials.credentials, settings)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user = await storage.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user
