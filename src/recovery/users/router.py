"""User profile router: /api/users/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from recovery.auth.dependencies import get_current_user
from recovery.auth.router import user_response
from recovery.dependencies import get_storage
from recovery.storage.base import Storage
from recovery.storage.records import User
from recovery.users.schemas import AchievementResponse, ProfileUpdateRequest, UserResponse
from recovery.users.service import list_achievements, update_profile

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)) -> UserResponse:
    """Get own full profile."""
    return user_response(user)


@router.put("/me", response_model=UserResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> UserResponse:
    """Update display name, bio, interests, goals, experiences or picture."""
    updated = await update_profile(storage, user, body.model_dump(exclude_unset=True))
    return user_response(updated)


@router.get("/me/achievements", response_model=list[AchievementResponse])
async def get_my_achievements(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> list[AchievementResponse]:
    """Achievements earned by the caller, newest first."""
    achievements = await list_achievements(storage, user.id)
    return [
        AchievementResponse(
            id=a.id,
            type=a.type,
            title=a.title,
            description=a.description,
            points=a.points,
            earned_at=a.earned_at,
        )
        for a in achievements
    ]
