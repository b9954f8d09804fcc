"""Authentication router: /api/auth/*."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException

from recovery.auth.jwt import create_access_token
from recovery.auth.password import PasswordStrengthError
from recovery.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from recovery.auth.service import authenticate_user, register_user
from recovery.config import Settings
from recovery.dependencies import get_app_settings, get_storage
from recovery.storage.base import Storage
from recovery.storage.records import User

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        display_name=user.display_name,
        email=user.email,
        bio=user.bio,
        interests=user.interests,
        goals=user.goals,
        experiences=user.experiences,
        profile_pic=user.profile_pic,
        points=user.points,
        created_at=user.created_at,
        last_active=user.last_active,
    )


def _issue_token(user: User, settings: Settings) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id, settings),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=user_response(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> TokenResponse:
    """Create an account and log it in."""
    try:
        user = await register_user(
            storage,
            username=body.username,
            display_name=body.display_name,
            email=body.email,
            password=body.password,
            bio=body.bio,
            interests=body.interests,
            goals=body.goals,
            experiences=body.experiences,
        )
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info("user_registered", user_id=user.id)
    return _issue_token(user, settings)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> TokenResponse:
    """Log in with username and password."""
    user = await authenticate_user(storage, body.username, body.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return _issue_token(user, settings)
