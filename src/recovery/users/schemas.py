"""Request/response schemas for user endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from recovery.auth.schemas import PublicUserResponse, UserResponse

__all__ = [
    "AchievementResponse",
    "ProfileUpdateRequest",
    "PublicUserResponse",
    "UserResponse",
]


class ProfileUpdateRequest(BaseModel):
    """Partial profile update. Omitted fields are left alone."""

    display_name: str | None = Field(None, min_length=1, max_length=64)
    bio: str | None = Field(None, max_length=2000)
    interests: list[str] | None = None
    goals: list[str] | None = None
    experiences: list[str] | None = None
    profile_pic: str | None = Field(None, max_length=2048)


class AchievementResponse(BaseModel):
    id: int
    type: str
    title: str
    description: str
    points: int
    earned_at: datetime | None = None
