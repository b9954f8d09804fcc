"""Plain records returned by every storage backend.

Field names match the ORM columns in ``recovery.db.models`` so rows can be
copied into records attribute by attribute.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

MatchStatus = Literal["pending", "active", "rejected", "ended"]
ChallengeType = Literal["generic", "days_sober", "check_in_streak"]
ChallengeStatus = Literal["active", "completed", "inactive"]

MATCH_PENDING = "pending"
MATCH_ACTIVE = "active"
MATCH_REJECTED = "rejected"
MATCH_ENDED = "ended"

CHALLENGE_GENERIC = "generic"
CHALLENGE_DAYS_SOBER = "days_sober"
CHALLENGE_CHECK_IN_STREAK = "check_in_streak"

CHALLENGE_ACTIVE = "active"
CHALLENGE_COMPLETED = "completed"
CHALLENGE_INACTIVE = "inactive"


@dataclass
class User:
    id: int
    username: str
    password_hash: str
    display_name: str
    email: str
    bio: str | None = None
    interests: list[str] = field(default_factory=list)
    goals: list[str] = field(default_factory=list)
    experiences: list[str] = field(default_factory=list)
    profile_pic: str | None = None
    points: int = 0
    created_at: datetime | None = None
    last_active: datetime | None = None


@dataclass
class Match:
    id: int
    user_id_1: int
    user_id_2: int
    match_score: int
    status: str
    match_details: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def involves(self, user_id: int) -> bool:
        return user_id in (self.user_id_1, self.user_id_2)

    def partner_of(self, user_id: int) -> int:
        """Return the other participant. Caller must check ``involves`` first."""
        return self.user_id_2 if self.user_id_1 == user_id else self.user_id_1


@dataclass
class Challenge:
    id: int
    match_id: int
    title: str
    description: str
    challenge_type: str
    total_steps: int
    status: str
    frequency: str = "daily"
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime | None = None


@dataclass
class ChallengeProgress:
    """Per-user, per-challenge counters.

    ``steps_completed`` is progress the user logged (or check-ins credited);
    ``milestone_level`` is the index of the highest milestone awarded.
    """

    id: int
    challenge_id: int
    user_id: int
    steps_completed: int = 0
    milestone_level: int = 0
    days_sober: int = 0
    last_sober_date: datetime | None = None
    current_streak: int = 0
    longest_streak: int = 0
    last_check_in: datetime | None = None
    last_updated: datetime | None = None


@dataclass
class Message:
    id: int
    match_id: int
    sender_id: int
    content: str
    sent_at: datetime | None = None
    is_read: bool = False


@dataclass
class Achievement:
    id: int
    user_id: int
    type: str
    title: str
    description: str
    points: int
    earned_at: datetime | None = None


@dataclass
class Interest:
    id: int
    name: str
    category: str
