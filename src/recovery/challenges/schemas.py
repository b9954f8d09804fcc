"""Request/response schemas for challenge endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from recovery.challenges.policy import display_steps
from recovery.storage.records import CHALLENGE_GENERIC, Challenge, ChallengeProgress
from recovery.users.schemas import AchievementResponse

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ChallengeCreateRequest(BaseModel):
    """Create a challenge for a match.

    Sobriety and check-in streak challenges get a default title, description
    and milestone count. Generic challenges must name a title and a target.
    """

    match_id: int
    challenge_type: Literal["generic", "days_sober", "check_in_streak"] = "generic"
    title: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, max_length=2000)
    total_steps: int | None = Field(None, ge=1, le=10000)
    frequency: Literal["daily", "weekly"] = "daily"
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def as_utc(cls, value: datetime | None) -> datetime | None:
        """Naive datetimes are taken as UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def check_generic_and_dates(self) -> ChallengeCreateRequest:
        if self.challenge_type == CHALLENGE_GENERIC:
            if not self.title:
                raise ValueError("Generic challenges require a title")
            if self.total_steps is None:
                raise ValueError("Generic challenges require total_steps")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProgressUpdateRequest(BaseModel):
    steps_completed: int = Field(..., ge=0)


class SobrietyUpdateRequest(BaseModel):
    days_sober: int = Field(..., ge=0, le=100000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ChallengeResponse(BaseModel):
    id: int
    match_id: int
    title: str
    description: str
    challenge_type: str
    total_steps: int
    status: str
    frequency: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_record(cls, challenge: Challenge) -> ChallengeResponse:
        return cls(
            id=challenge.id,
            match_id=challenge.match_id,
            title=challenge.title,
            description=challenge.description,
            challenge_type=challenge.challenge_type,
            total_steps=challenge.total_steps,
            status=challenge.status,
            frequency=challenge.frequency,
            start_date=challenge.start_date,
            end_date=challenge.end_date,
            created_at=challenge.created_at,
        )


class ProgressResponse(BaseModel):
    """Progress of one user. ``display_steps`` is what counts toward ``total_steps``."""

    challenge_id: int
    user_id: int
    steps_completed: int = 0
    milestone_level: int = 0
    display_steps: int = 0
    days_sober: int = 0
    last_sober_date: datetime | None = None
    current_streak: int = 0
    longest_streak: int = 0
    last_check_in: datetime | None = None
    last_updated: datetime | None = None

    @classmethod
    def build(
        cls, challenge: Challenge, user_id: int, progress: ChallengeProgress | None
    ) -> ProgressResponse:
        if progress is None:
            return cls(challenge_id=challenge.id, user_id=user_id)
        return cls(
            challenge_id=challenge.id,
            user_id=user_id,
            steps_completed=progress.steps_completed,
            milestone_level=progress.milestone_level,
            display_steps=display_steps(challenge.challenge_type, progress),
            days_sober=progress.days_sober,
            last_sober_date=progress.last_sober_date,
            current_streak=progress.current_streak,
            longest_streak=progress.longest_streak,
            last_check_in=progress.last_check_in,
            last_updated=progress.last_updated,
        )


class PartnerSummary(BaseModel):
    id: int
    display_name: str
    profile_pic: str | None = None


class MatchSummary(BaseModel):
    id: int
    match_score: int


class ProgressPair(BaseModel):
    user: ProgressResponse
    partner: ProgressResponse


class ChallengeDetailResponse(ChallengeResponse):
    """A challenge with its match, the partner and both users' progress."""

    match: MatchSummary
    partner: PartnerSummary
    progress: ProgressPair


class ChallengeListResponse(BaseModel):
    challenges: list[ChallengeDetailResponse]


class ProgressMutationResponse(BaseModel):
    progress: ProgressResponse
    challenge: ChallengeResponse
    achievement: AchievementResponse | None = None
    points_awarded: int = 0


class CheckInResponse(ProgressMutationResponse):
    outcome: Literal["started", "continued", "reset", "too_soon"]


class StreakSnapshot(BaseModel):
    user_id: int
    current_streak: int = 0
    longest_streak: int = 0
    last_check_in: datetime | None = None
    next_check_in_at: datetime | None = None
    expires_at: datetime | None = None


class StreakResponse(BaseModel):
    user: StreakSnapshot | None = None
    partner: StreakSnapshot | None = None
