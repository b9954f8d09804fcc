"""Request/response schemas for authentication and user profiles."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    display_name: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    bio: str | None = Field(None, max_length=2000)
    interests: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)
    experiences: list[str] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    """Full profile, returned only to its owner."""

    id: int
    username: str
    display_name: str
    email: str
    bio: str | None = None
    interests: list[str] = []
    goals: list[str] = []
    experiences: list[str] = []
    profile_pic: str | None = None
    points: int = 0
    created_at: datetime | None = None
    last_active: datetime | None = None


class PublicUserResponse(BaseModel):
    """What a partner or match candidate may see."""

    id: int
    username: str
    display_name: str
    bio: str | None = None
    interests: list[str] = []
    goals: list[str] = []
    experiences: list[str] = []
    profile_pic: str | None = None
    points: int = 0


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    user: UserResponse
