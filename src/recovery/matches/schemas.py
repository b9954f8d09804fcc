"""Request/response schemas for matching."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from recovery.auth.schemas import PublicUserResponse
from recovery.challenges.schemas import ChallengeResponse
from recovery.messages.schemas import MessageResponse
from recovery.storage.records import Match, User


class MatchRequest(BaseModel):
    other_user_id: int
    match_score: int = Field(0, ge=0, le=100)
    match_details: dict[str, Any] | None = None


class MatchStatusUpdate(BaseModel):
    status: Literal["active", "rejected"]


class MatchResponse(BaseModel):
    id: int
    user_id_1: int
    user_id_2: int
    match_score: int
    status: str
    match_details: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, match: Match) -> MatchResponse:
        return cls(
            id=match.id,
            user_id_1=match.user_id_1,
            user_id_2=match.user_id_2,
            match_score=match.match_score,
            status=match.status,
            match_details=match.match_details,
            created_at=match.created_at,
            updated_at=match.updated_at,
        )


class MatchWithUserResponse(MatchResponse):
    other_user: PublicUserResponse
    active_challenge: ChallengeResponse | None = None


class MatchDetailResponse(MatchResponse):
    other_user: PublicUserResponse
    challenges: list[ChallengeResponse] = []
    messages: list[MessageResponse] = []


class UnmatchResponse(BaseModel):
    success: bool = True
    message: str = "Match has been ended successfully"
    match: MatchResponse


class MatchRecommendation(BaseModel):
    """A candidate partner with a compatibility score out of 100."""

    user_id: int
    display_name: str
    profile_pic: str | None = None
    match_score: int
    shared_interests: list[str] = []
    member_since: datetime | None = None


def public_user(user: User) -> PublicUserResponse:
    return PublicUserResponse(
        id=user.id,
        username=user.username,
        display_name=user.display_name,
        bio=user.bio,
        interests=user.interests,
        goals=user.goals,
        experiences=user.experiences,
        profile_pic=user.profile_pic,
        points=user.points,
    )


class MatchMessagesResponse(BaseModel):
    """Conversation for a match, oldest first, with the match and partner."""

    messages: list[MessageResponse]
    match: MatchResponse
    other_user: PublicUserResponse
