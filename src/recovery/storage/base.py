"""Storage interface shared by the in-memory and database backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from recovery.challenges.policy import CheckInOutcome, Milestone
from recovery.storage.records import (
    Achievement,
    Challenge,
    ChallengeProgress,
    Interest,
    Match,
    Message,
    User,
)


@dataclass
class CheckInResult:
    progress: ChallengeProgress
    outcome: CheckInOutcome


@dataclass(frozen=True)
class AchievementGrant:
    """An achievement and the points that come with it."""

    type: str
    title: str
    description: str
    points: int

    @classmethod
    def from_milestone(cls, milestone: Milestone) -> AchievementGrant:
        return cls(
            type=milestone.achievement_type,
            title=milestone.title,
            description=milestone.description,
            points=milestone.points,
        )


class Storage(ABC):
    """Persistence for users, matches, challenges, progress, messages, achievements and the interest catalog.

    Progress mutations create the (challenge, user) record lazily when it is
    missing. No method validates that the challenge or user exists; callers
    check existence and authorization first.
    """

    def __init__(self, *, credit_early_steps: bool = True) -> None:
        self.credit_early_steps = credit_early_steps

    # --- Users ---

    @abstractmethod
    async def get_user(self, user_id: int) -> User | None: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> User | None: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    async def create_user(
        self,
        *,
        username: str,
        password_hash: str,
        display_name: str,
        email: str,
        bio: str | None = None,
        interests: list[str] | None = None,
        goals: list[str] | None = None,
        experiences: list[str] | None = None,
        profile_pic: str | None = None,
    ) -> User: ...

    @abstractmethod
    async def update_user(self, user_id: int, **fields: Any) -> User: ...

    @abstractmethod
    async def add_user_points(self, user_id: int, points: int) -> User: ...

    @abstractmethod
    async def list_users(self) -> list[User]: ...

    # --- Matches ---

    @abstractmethod
    async def get_match(self, match_id: int) -> Match | None: ...

    @abstractmethod
    async def get_user_matches(self, user_id: int) -> list[Match]: ...

    @abstractmethod
    async def find_existing_match(self, user_id_1: int, user_id_2: int) -> Match | None:
        """Find a match between two users in either direction."""

    @abstractmethod
    async def create_match(
        self,
        *,
        user_id_1: int,
        user_id_2: int,
        match_score: int,
        match_details: dict[str, Any] | None = None,
        status: str = "pending",
    ) -> Match: ...

    @abstractmethod
    async def update_match_status(self, match_id: int, status: str) -> Match: ...

    # --- Challenges ---

    @abstractmethod
    async def get_challenge(self, challenge_id: int) -> Challenge | None: ...

    @abstractmethod
    async def get_match_challenges(self, match_id: int) -> list[Challenge]: ...

    @abstractmethod
    async def get_user_challenges(self, match_ids: list[int]) -> list[Challenge]: ...

    @abstractmethod
    async def create_challenge(
        self,
        *,
        match_id: int,
        participant_ids: tuple[int, int],
        title: str,
        description: str,
        challenge_type: str,
        total_steps: int,
        frequency: str,
        start_date: datetime,
        end_date: datetime | None,
        now: datetime,
    ) -> Challenge:
        """Create a challenge and seed a zeroed progress record per participant."""

    @abstractmethod
    async def update_challenge_status(self, challenge_id: int, status: str) -> Challenge: ...

    # --- Progress ---

    @abstractmethod
    async def get_challenge_progress(self, challenge_id: int, user_id: int) -> ChallengeProgress | None: ...

    @abstractmethod
    async def create_challenge_progress(
        self, challenge_id: int, user_id: int, now: datetime
    ) -> ChallengeProgress:
        """Insert a zeroed record, or return the existing one."""

    @abstractmethod
    async def update_challenge_progress(
        self, challenge_id: int, user_id: int, steps_completed: int, now: datetime
    ) -> ChallengeProgress:
        """Overwrite ``steps_completed``. No clamping happens here."""

    @abstractmethod
    async def update_days_sober(
        self, challenge_id: int, user_id: int, days_sober: int, now: datetime
    ) -> ChallengeProgress: ...

    @abstractmethod
    async def reset_days_sober(self, challenge_id: int, user_id: int, now: datetime) -> ChallengeProgress: ...

    @abstractmethod
    async def record_check_in(self, challenge_id: int, user_id: int, now: datetime) -> CheckInResult: ...

    @abstractmethod
    async def get_check_in_streak(
        self, challenge_id: int, user_id: int, now: datetime
    ) -> ChallengeProgress | None:
        """Read streak state, zeroing and persisting a streak older than 36 hours."""

    @abstractmethod
    async def apply_milestone(
        self,
        challenge_id: int,
        user_id: int,
        milestone: Milestone,
        now: datetime,
        *,
        complete_challenge: bool = False,
    ) -> Achievement | None:
        """Record a milestone as one unit of work.

        Sets ``milestone_level``, creates the achievement, adds its points to
        the user and optionally marks the challenge completed. Either all of
        it happens or none of it does. Returns None without writing if the
        stored level already reached ``milestone.level``.
        """

    @abstractmethod
    async def complete_challenge(
        self,
        challenge_id: int,
        user_ids: list[int],
        grant: AchievementGrant,
        now: datetime,
    ) -> list[Achievement]:
        """Mark a challenge completed and award every user, atomically.

        Returns an empty list without writing anything if the challenge was
        already completed.
        """

    # --- Messages ---

    @abstractmethod
    async def get_match_messages(self, match_id: int) -> list[Message]: ...

    @abstractmethod
    async def get_recent_match_messages(self, match_id: int, limit: int) -> list[Message]: ...

    @abstractmethod
    async def create_message(self, *, match_id: int, sender_id: int, content: str, now: datetime) -> Message: ...

    @abstractmethod
    async def mark_messages_as_read(self, match_id: int, user_id: int) -> int:
        """Mark messages sent by the other participant as read. Returns count."""

    # --- Achievements ---

    @abstractmethod
    async def create_achievement(self, user_id: int, grant: AchievementGrant, now: datetime) -> Achievement: ...

    @abstractmethod
    async def get_user_achievements(self, user_id: int) -> list[Achievement]: ...

    # --- Interests ---

    @abstractmethod
    async def create_interest(self, name: str, category: str) -> Interest:
        """Add a catalog entry. An existing entry with the same name is returned unchanged."""

    @abstractmethod
    async def list_interests(self) -> list[Interest]:
        """All catalog entries, by category then name."""

    # --- Lifecycle ---

    async def ping(self) -> None:
        """Raise if the backend is unreachable."""

    async def close(self) -> None:
        """Release backend resources."""
