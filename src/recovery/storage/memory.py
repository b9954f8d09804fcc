"""Dict-backed storage for tests and local development.

Each method runs without awaiting anything in between its reads and writes,
so on a single event loop every call is atomic.
"""

from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from recovery.challenges.policy import (
    Milestone,
    apply_check_in,
    apply_days_sober,
    apply_sobriety_reset,
    apply_steps,
    expire_streak,
)
from recovery.clock import utcnow
from recovery.storage.base import AchievementGrant, CheckInResult, Storage
from recovery.storage.records import (
    CHALLENGE_ACTIVE,
    CHALLENGE_COMPLETED,
    Achievement,
    Challenge,
    ChallengeProgress,
    Interest,
    Match,
    Message,
    User,
)

logger = logging.getLogger(__name__)

_USER_FIELDS = {"display_name", "bio", "interests", "goals", "experiences", "profile_pic", "email", "last_active"}


def _copy_user(user: User) -> User:
    return replace(
        user,
        interests=list(user.interests),
        goals=list(user.goals),
        experiences=list(user.experiences),
    )


def _copy_match(match: Match) -> Match:
    return replace(match, match_details=copy.deepcopy(match.match_details))


class MemStorage(Storage):
    """In-process storage. Returned records are copies; mutate through the API."""

    def __init__(self, *, credit_early_steps: bool = True) -> None:
        super().__init__(credit_early_steps=credit_early_steps)
        self._users: dict[int, User] = {}
        self._matches: dict[int, Match] = {}
        self._challenges: dict[int, Challenge] = {}
        self._progress: dict[tuple[int, int], ChallengeProgress] = {}
        self._messages: dict[int, Message] = {}
        self._achievements: dict[int, Achievement] = {}
        self._interests: dict[str, Interest] = {}
        self._ids = {
            name: itertools.count(1)
            for name in ("user", "match", "challenge", "progress", "message", "achievement", "interest")
        }

    def _next_id(self, kind: str) -> int:
        return next(self._ids[kind])

    # --- Users ---

    async def get_user(self, user_id: int) -> User | None:
        user = self._users.get(user_id)
        return _copy_user(user) if user else None

    async def get_user_by_username(self, username: str) -> User | None:
        for user in self._users.values():
            if user.username == username:
                return _copy_user(user)
        return None

    async def get_user_by_email(self, email: str) -> User | None:
        for user in self._users.values():
            if user.email == email:
                return _copy_user(user)
        return None

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
    ) -> User:
        now = utcnow()
        user = User(
            id=self._next_id("user"),
            username=username,
            password_hash=password_hash,
            display_name=display_name,
            email=email,
            bio=bio,
            interests=list(interests or []),
            goals=list(goals or []),
            experiences=list(experiences or []),
            profile_pic=profile_pic,
            points=0,
            created_at=now,
            last_active=now,
        )
        self._users[user.id] = user
        return _copy_user(user)

    async def update_user(self, user_id: int, **fields: Any) -> User:
        user = self._require(self._users, user_id, "User")
        for key, value in fields.items():
            if key not in _USER_FIELDS:
                msg = f"Cannot update user field: {key}"
                raise ValueError(msg)
            setattr(user, key, list(value) if isinstance(value, list) else value)
        return _copy_user(user)

    async def add_user_points(self, user_id: int, points: int) -> User:
        user = self._require(self._users, user_id, "User")
        user.points += points
        return _copy_user(user)

    async def list_users(self) -> list[User]:
        return [_copy_user(u) for u in self._users.values()]

    # --- Matches ---

    async def get_match(self, match_id: int) -> Match | None:
        match = self._matches.get(match_id)
        return _copy_match(match) if match else None

    async def get_user_matches(self, user_id: int) -> list[Match]:
        return [_copy_match(m) for m in self._matches.values() if m.involves(user_id)]

    async def find_existing_match(self, user_id_1: int, user_id_2: int) -> Match | None:
        for match in self._matches.values():
            if {match.user_id_1, match.user_id_2} == {user_id_1, user_id_2}:
                return _copy_match(match)
        return None

    async def create_match(
        self,
        *,
        user_id_1: int,
        user_id_2: int,
        match_score: int,
        match_details: dict[str, Any] | None = None,
        status: str = "pending",
    ) -> Match:
        now = utcnow()
        match = Match(
            id=self._next_id("match"),
            user_id_1=user_id_1,
            user_id_2=user_id_2,
            match_score=match_score,
            match_details=copy.deepcopy(match_details),
            status=status,
            created_at=now,
            updated_at=now,
        )
        self._matches[match.id] = match
        return _copy_match(match)

    async def update_match_status(self, match_id: int, status: str) -> Match:
        match = self._require(self._matches, match_id, "Match")
        match.status = status
        match.updated_at = utcnow()
        return _copy_match(match)

    # --- Challenges ---

    async def get_challenge(self, challenge_id: int) -> Challenge | None:
        challenge = self._challenges.get(challenge_id)
        return replace(challenge) if challenge else None

    async def get_match_challenges(self, match_id: int) -> list[Challenge]:
        return [replace(c) for c in self._challenges.values() if c.match_id == match_id]

    async def get_user_challenges(self, match_ids: list[int]) -> list[Challenge]:
        wanted = set(match_ids)
        return [replace(c) for c in self._challenges.values() if c.match_id in wanted]

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
        challenge = Challenge(
            id=self._next_id("challenge"),
            match_id=match_id,
            title=title,
            description=description,
            challenge_type=challenge_type,
            total_steps=total_steps,
            status=CHALLENGE_ACTIVE,
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
            created_at=now,
        )
        self._challenges[challenge.id] = challenge
        for user_id in participant_ids:
            self._get_or_create_progress(challenge.id, user_id, now)
        return replace(challenge)

    async def update_challenge_status(self, challenge_id: int, status: str) -> Challenge:
        challenge = self._require(self._challenges, challenge_id, "Challenge")
        challenge.status = status
        return replace(challenge)

    # --- Progress ---

    def _get_or_create_progress(self, challenge_id: int, user_id: int, now: datetime) -> ChallengeProgress:
        key = (challenge_id, user_id)
        progress = self._progress.get(key)
        if progress is None:
            progress = ChallengeProgress(
                id=self._next_id("progress"),
                challenge_id=challenge_id,
                user_id=user_id,
                last_updated=now,
            )
            self._progress[key] = progress
        return progress

    async def get_challenge_progress(self, challenge_id: int, user_id: int) -> ChallengeProgress | None:
        progress = self._progress.get((challenge_id, user_id))
        return replace(progress) if progress else None

    async def create_challenge_progress(self, challenge_id: int, user_id: int, now: datetime) -> ChallengeProgress:
        return replace(self._get_or_create_progress(challenge_id, user_id, now))

    async def update_challenge_progress(
        self, challenge_id: int, user_id: int, steps_completed: int, now: datetime
    ) -> ChallengeProgress:
        progress = self._get_or_create_progress(challenge_id, user_id, now)
        apply_steps(progress, steps_completed, now)
        return replace(progress)

    async def update_days_sober(
        self, challenge_id: int, user_id: int, days_sober: int, now: datetime
    ) -> ChallengeProgress:
        progress = self._get_or_create_progress(challenge_id, user_id, now)
        apply_days_sober(progress, days_sober, now)
        return replace(progress)

    async def reset_days_sober(self, challenge_id: int, user_id: int, now: datetime) -> ChallengeProgress:
        progress = self._get_or_create_progress(challenge_id, user_id, now)
        apply_sobriety_reset(progress, now)
        return replace(progress)

    async def record_check_in(self, challenge_id: int, user_id: int, now: datetime) -> CheckInResult:
        progress = self._get_or_create_progress(challenge_id, user_id, now)
        outcome = apply_check_in(progress, now, credit_early_steps=self.credit_early_steps)
        return CheckInResult(progress=replace(progress), outcome=outcome)

    async def get_check_in_streak(self, challenge_id: int, user_id: int, now: datetime) -> ChallengeProgress | None:
        progress = self._progress.get((challenge_id, user_id))
        if progress is None:
            return None
        if expire_streak(progress, now):
            logger.info("Expired stale streak for challenge %s user %s", challenge_id, user_id)
        return replace(progress)

    async def apply_milestone(
        self,
        challenge_id: int,
        user_id: int,
        milestone: Milestone,
        now: datetime,
        *,
        complete_challenge: bool = False,
    ) -> Achievement | None:
        user = self._require(self._users, user_id, "User")
        challenge = self._require(self._challenges, challenge_id, "Challenge")
        progress = self._get_or_create_progress(challenge_id, user_id, now)
        if progress.milestone_level >= milestone.level:
            return None

        progress.milestone_level = milestone.level
        progress.last_updated = now
        achievement = self._add_achievement(user_id, AchievementGrant.from_milestone(milestone), now)
        user.points += milestone.points
        if complete_challenge:
            challenge.status = CHALLENGE_COMPLETED
        return replace(achievement)

    async def complete_challenge(
        self,
        challenge_id: int,
        user_ids: list[int],
        grant: AchievementGrant,
        now: datetime,
    ) -> list[Achievement]:
        challenge = self._require(self._challenges, challenge_id, "Challenge")
        if challenge.status == CHALLENGE_COMPLETED:
            return []
        users = [self._require(self._users, uid, "User") for uid in user_ids]

        challenge.status = CHALLENGE_COMPLETED
        awarded = []
        for user in users:
            awarded.append(replace(self._add_achievement(user.id, grant, now)))
            user.points += grant.points
        return awarded

    # --- Messages ---

    async def get_match_messages(self, match_id: int) -> list[Message]:
        messages = [m for m in self._messages.values() if m.match_id == match_id]
        return [replace(m) for m in sorted(messages, key=lambda m: (m.sent_at, m.id))]

    async def get_recent_match_messages(self, match_id: int, limit: int) -> list[Message]:
        messages = await self.get_match_messages(match_id)
        return list(reversed(messages))[:limit]

    async def create_message(self, *, match_id: int, sender_id: int, content: str, now: datetime) -> Message:
        message = Message(
            id=self._next_id("message"),
            match_id=match_id,
            sender_id=sender_id,
            content=content,
            sent_at=now,
            is_read=False,
        )
        self._messages[message.id] = message
        return replace(message)

    async def mark_messages_as_read(self, match_id: int, user_id: int) -> int:
        count = 0
        for message in self._messages.values():
            if message.match_id == match_id and message.sender_id != user_id and not message.is_read:
                message.is_read = True
                count += 1
        return count

    # --- Achievements ---

    def _add_achievement(self, user_id: int, grant: AchievementGrant, now: datetime) -> Achievement:
        achievement = Achievement(
            id=self._next_id("achievement"),
            user_id=user_id,
            type=grant.type,
            title=grant.title,
            description=grant.description,
            points=grant.points,
            earned_at=now,
        )
        self._achievements[achievement.id] = achievement
        return achievement

    async def create_achievement(self, user_id: int, grant: AchievementGrant, now: datetime) -> Achievement:
        return replace(self._add_achievement(user_id, grant, now))

    async def get_user_achievements(self, user_id: int) -> list[Achievement]:
        items = [a for a in self._achievements.values() if a.user_id == user_id]
        return [replace(a) for a in sorted(items, key=lambda a: a.id, reverse=True)]

    # --- Interests ---

    async def create_interest(self, name: str, category: str) -> Interest:
        interest = self._interests.get(name)
        if interest is None:
            interest = Interest(id=self._next_id("interest"), name=name, category=category)
            self._interests[name] = interest
        return replace(interest)

    async def list_interests(self) -> list[Interest]:
        items = sorted(self._interests.values(), key=lambda i: (i.category, i.name))
        return [replace(i) for i in items]

    # --- Helpers ---

    @staticmethod
    def _require(table: dict[int, Any], key: int, kind: str) -> Any:
        item = table.get(key)
        if item is None:
            msg = f"{kind} with id {key} not found"
            raise LookupError(msg)
        return item
