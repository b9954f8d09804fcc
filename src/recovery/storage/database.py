"""PostgreSQL storage on SQLAlchemy async sessions.

Every public method is a single unit of work: it opens a session, runs in
one transaction and returns detached records.
"""

from __future__ import annotations

import logging
from dataclasses import fields
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import and_, or_, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from recovery.challenges.policy import (
    Milestone,
    apply_check_in,
    apply_days_sober,
    apply_sobriety_reset,
    apply_steps,
    expire_streak,
)
from recovery.clock import utcnow
from recovery.db import models
from recovery.db.base import Base
from recovery.db.session import create_engine, create_session_factory
from recovery.storage import records
from recovery.storage.base import AchievementGrant, CheckInResult, Storage
from recovery.storage.records import CHALLENGE_ACTIVE, CHALLENGE_COMPLETED

logger = logging.getLogger(__name__)

R = TypeVar("R")

_USER_FIELDS = {"display_name", "bio", "interests", "goals", "experiences", "profile_pic", "email", "last_active"}


def _record(row: Any, cls: type[R]) -> R:
    """Copy an ORM row into its record dataclass."""
    return cls(**{f.name: getattr(row, f.name) for f in fields(cls)})  # type: ignore[arg-type]


class DatabaseStorage(Storage):
    """Storage backed by PostgreSQL via asyncpg."""

    def __init__(self, engine: AsyncEngine, *, credit_early_steps: bool = True) -> None:
        super().__init__(credit_early_steps=credit_early_steps)
        self._engine = engine
        self._sessions = create_session_factory(engine)

    @classmethod
    def from_url(cls, url: str, *, pool_size: int = 10, credit_early_steps: bool = True) -> DatabaseStorage:
        return cls(create_engine(url, pool_size=pool_size), credit_early_steps=credit_early_steps)

    async def create_schema(self) -> None:
        """Create all tables directly (tests and local runs; production uses Alembic)."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        async with self._sessions() as session:
            await session.execute(text("SELECT 1"))

    async def close(self) -> None:
        await self._engine.dispose()

    # --- Users ---

    async def get_user(self, user_id: int) -> records.User | None:
        async with self._sessions() as session:
            row = await session.get(models.User, user_id)
            return _record(row, records.User) if row else None

    async def get_user_by_username(self, username: str) -> records.User | None:
        async with self._sessions() as session:
            result = await session.execute(select(models.User).where(models.User.username == username))
            row = result.scalar_one_or_none()
            return _record(row, records.User) if row else None

    async def get_user_by_email(self, email: str) -> records.User | None:
        async with self._sessions() as session:
            result = await session.execute(select(models.User).where(models.User.email == email))
            row = result.scalar_one_or_none()
            return _record(row, records.User) if row else None

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
    ) -> records.User:
        now = utcnow()
        row = models.User(
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
        async with self._sessions() as session, session.begin():
            session.add(row)
            await session.flush()
        return _record(row, records.User)

    async def update_user(self, user_id: int, **values: Any) -> records.User:
        unknown = set(values) - _USER_FIELDS
        if unknown:
            msg = f"Cannot update user field: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        async with self._sessions() as session, session.begin():
            row = await self._require(session, models.User, user_id)
            for key, value in values.items():
                setattr(row, key, value)
        return _record(row, records.User)

    async def add_user_points(self, user_id: int, points: int) -> records.User:
        async with self._sessions() as session, session.begin():
            row = await self._require(session, models.User, user_id, for_update=True)
            row.points += points
        return _record(row, records.User)

    async def list_users(self) -> list[records.User]:
        async with self._sessions() as session:
            result = await session.execute(select(models.User).order_by(models.User.id))
            return [_record(r, records.User) for r in result.scalars()]

    # --- Matches ---

    async def get_match(self, match_id: int) -> records.Match | None:
        async with self._sessions() as session:
            row = await session.get(models.Match, match_id)
            return _record(row, records.Match) if row else None

    async def get_user_matches(self, user_id: int) -> list[records.Match]:
        async with self._sessions() as session:
            result = await session.execute(
                select(models.Match)
                .where(or_(models.Match.user_id_1 == user_id, models.Match.user_id_2 == user_id))
                .order_by(models.Match.id)
            )
            return [_record(r, records.Match) for r in result.scalars()]

    async def find_existing_match(self, user_id_1: int, user_id_2: int) -> records.Match | None:
        async with self._sessions() as session:
            result = await session.execute(
                select(models.Match).where(
                    or_(
                        and_(models.Match.user_id_1 == user_id_1, models.Match.user_id_2 == user_id_2),
                        and_(models.Match.user_id_1 == user_id_2, models.Match.user_id_2 == user_id_1),
                    )
                ).limit(1)
            )
            row = result.scalar_one_or_none()
            return _record(row, records.Match) if row else None

    async def create_match(
        self,
        *,
        user_id_1: int,
        user_id_2: int,
        match_score: int,
        match_details: dict[str, Any] | None = None,
        status: str = "pending",
    ) -> records.Match:
        now = utcnow()
        row = models.Match(
            user_id_1=user_id_1,
            user_id_2=user_id_2,
            match_score=match_score,
            match_details=match_details,
            status=status,
            created_at=now,
            updated_at=now,
        )
        async with self._sessions() as session, session.begin():
            session.add(row)
            await session.flush()
        return _record(row, records.Match)

    async def update_match_status(self, match_id: int, status: str) -> records.Match:
        async with self._sessions() as session, session.begin():
            row = await self._require(session, models.Match, match_id)
            row.status = status
            row.updated_at = utcnow()
        return _record(row, records.Match)

    # --- Challenges ---

    async def get_challenge(self, challenge_id: int) -> records.Challenge | None:
        async with self._sessions() as session:
            row = await session.get(models.Challenge, challenge_id)
            return _record(row, records.Challenge) if row else None

    async def get_match_challenges(self, match_id: int) -> list[records.Challenge]:
        async with self._sessions() as session:
            result = await session.execute(
                select(models.Challenge).where(models.Challenge.match_id == match_id).order_by(models.Challenge.id)
            )
            return [_record(r, records.Challenge) for r in result.scalars()]

    async def get_user_challenges(self, match_ids: list[int]) -> list[records.Challenge]:
        if not match_ids:
            return []
        async with self._sessions() as session:
            result = await session.execute(
                select(models.Challenge)
                .where(models.Challenge.match_id.in_(match_ids))
                .order_by(models.Challenge.id)
            )
            return [_record(r, records.Challenge) for r in result.scalars()]

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
    ) -> records.Challenge:
        row = models.Challenge(
            match_id=match_id,
            title=title,
            description=description,
            challenge_type=challenge_type,
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
            total_steps=total_steps,
            status=CHALLENGE_ACTIVE,
            created_at=now,
        )
        async with self._sessions() as session, session.begin():
            session.add(row)
            await session.flush()
            for user_id in participant_ids:
                await self._progress_row(session, row.id, user_id, now)
        return _record(row, records.Challenge)

    async def update_challenge_status(self, challenge_id: int, status: str) -> records.Challenge:
        async with self._sessions() as session, session.begin():
            row = await self._require(session, models.Challenge, challenge_id)
            row.status = status
        return _record(row, records.Challenge)

    # --- Progress ---

    @staticmethod
    async def _progress_row(
        session: AsyncSession, challenge_id: int, user_id: int, now: datetime
    ) -> models.ChallengeProgress:
        """Lock the (challenge, user) row, inserting a zeroed one if missing."""
        result = await session.execute(
            select(models.ChallengeProgress)
            .where(
                models.ChallengeProgress.challenge_id == challenge_id,
                models.ChallengeProgress.user_id == user_id,
            )
            .with_for_update()
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = models.ChallengeProgress(
                challenge_id=challenge_id,
                user_id=user_id,
                steps_completed=0,
                milestone_level=0,
                days_sober=0,
                current_streak=0,
                longest_streak=0,
                last_updated=now,
            )
            session.add(row)
            await session.flush()
        return row

    async def get_challenge_progress(self, challenge_id: int, user_id: int) -> records.ChallengeProgress | None:
        async with self._sessions() as session:
            result = await session.execute(
                select(models.ChallengeProgress).where(
                    models.ChallengeProgress.challenge_id == challenge_id,
                    models.ChallengeProgress.user_id == user_id,
                )
            )
            row = result.scalar_one_or_none()
            return _record(row, records.ChallengeProgress) if row else None

    async def create_challenge_progress(
        self, challenge_id: int, user_id: int, now: datetime
    ) -> records.ChallengeProgress:
        async with self._sessions() as session, session.begin():
            row = await self._progress_row(session, challenge_id, user_id, now)
        return _record(row, records.ChallengeProgress)

    async def update_challenge_progress(
        self, challenge_id: int, user_id: int, steps_completed: int, now: datetime
    ) -> records.ChallengeProgress:
        async with self._sessions() as session, session.begin():
            row = await self._progress_row(session, challenge_id, user_id, now)
            apply_steps(row, steps_completed, now)
        return _record(row, records.ChallengeProgress)

    async def update_days_sober(
        self, challenge_id: int, user_id: int, days_sober: int, now: datetime
    ) -> records.ChallengeProgress:
        async with self._sessions() as session, session.begin():
            row = await self._progress_row(session, challenge_id, user_id, now)
            apply_days_sober(row, days_sober, now)
        return _record(row, records.ChallengeProgress)

    async def reset_days_sober(self, challenge_id: int, user_id: int, now: datetime) -> records.ChallengeProgress:
        async with self._sessions() as session, session.begin():
            row = await self._progress_row(session, challenge_id, user_id, now)
            apply_sobriety_reset(row, now)
        return _record(row, records.ChallengeProgress)

    async def record_check_in(self, challenge_id: int, user_id: int, now: datetime) -> CheckInResult:
        async with self._sessions() as session, session.begin():
            row = await self._progress_row(session, challenge_id, user_id, now)
            outcome = apply_check_in(row, now, credit_early_steps=self.credit_early_steps)
        return CheckInResult(progress=_record(row, records.ChallengeProgress), outcome=outcome)

    async def get_check_in_streak(
        self, challenge_id: int, user_id: int, now: datetime
    ) -> records.ChallengeProgress | None:
        async with self._sessions() as session, session.begin():
            result = await session.execute(
                select(models.ChallengeProgress)
                .where(
                    models.ChallengeProgress.challenge_id == challenge_id,
                    models.ChallengeProgress.user_id == user_id,
                )
                .with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            if expire_streak(row, now):
                logger.info("Expired stale streak for challenge %s user %s", challenge_id, user_id)
        return _record(row, records.ChallengeProgress)

    async def apply_milestone(
        self,
        challenge_id: int,
        user_id: int,
        milestone: Milestone,
        now: datetime,
        *,
        complete_challenge: bool = False,
    ) -> records.Achievement | None:
        async with self._sessions() as session, session.begin():
            user = await self._require(session, models.User, user_id, for_update=True)
            progress = await self._progress_row(session, challenge_id, user_id, now)
            if progress.milestone_level >= milestone.level:
                return None
            progress.milestone_level = milestone.level
            progress.last_updated = now

            achievement = self._achievement_row(user_id, AchievementGrant.from_milestone(milestone), now)
            session.add(achievement)
            user.points += milestone.points

            if complete_challenge:
                challenge = await self._require(session, models.Challenge, challenge_id)
                challenge.status = CHALLENGE_COMPLETED
            await session.flush()
        return _record(achievement, records.Achievement)

    async def complete_challenge(
        self,
        challenge_id: int,
        user_ids: list[int],
        grant: AchievementGrant,
        now: datetime,
    ) -> list[records.Achievement]:
        async with self._sessions() as session, session.begin():
            challenge = await self._require(session, models.Challenge, challenge_id, for_update=True)
            if challenge.status == CHALLENGE_COMPLETED:
                return []
            challenge.status = CHALLENGE_COMPLETED

            rows = []
            for user_id in user_ids:
                user = await self._require(session, models.User, user_id, for_update=True)
                user.points += grant.points
                row = self._achievement_row(user_id, grant, now)
                session.add(row)
                rows.append(row)
            await session.flush()
        return [_record(r, records.Achievement) for r in rows]

    # --- Messages ---

    async def get_match_messages(self, match_id: int) -> list[records.Message]:
        async with self._sessions() as session:
            result = await session.execute(
                select(models.Message)
                .where(models.Message.match_id == match_id)
                .order_by(models.Message.sent_at, models.Message.id)
            )
            return [_record(r, records.Message) for r in result.scalars()]

    async def get_recent_match_messages(self, match_id: int, limit: int) -> list[records.Message]:
        async with self._sessions() as session:
            result = await session.execute(
                select(models.Message)
                .where(models.Message.match_id == match_id)
                .order_by(models.Message.sent_at.desc(), models.Message.id.desc())
                .limit(limit)
            )
            return [_record(r, records.Message) for r in result.scalars()]

    async def create_message(
        self, *, match_id: int, sender_id: int, content: str, now: datetime
    ) -> records.Message:
        row = models.Message(match_id=match_id, sender_id=sender_id, content=content, sent_at=now, is_read=False)
        async with self._sessions() as session, session.begin():
            session.add(row)
            await session.flush()
        return _record(row, records.Message)

    async def mark_messages_as_read(self, match_id: int, user_id: int) -> int:
        async with self._sessions() as session, session.begin():
            result = await session.execute(
                update(models.Message)
                .where(
                    models.Message.match_id == match_id,
                    models.Message.sender_id != user_id,
                    models.Message.is_read.is_(False),
                )
                .values(is_read=True)
            )
        return result.rowcount

    # --- Achievements ---

    @staticmethod
    def _achievement_row(user_id: int, grant: AchievementGrant, now: datetime) -> models.Achievement:
        return models.Achievement(
            user_id=user_id,
            type=grant.type,
            title=grant.title,
            description=grant.description,
            points=grant.points,
            earned_at=now,
        )

    async def create_achievement(self, user_id: int, grant: AchievementGrant, now: datetime) -> records.Achievement:
        row = self._achievement_row(user_id, grant, now)
        async with self._sessions() as session, session.begin():
            session.add(row)
            await session.flush()
        return _record(row, records.Achievement)

    async def get_user_achievements(self, user_id: int) -> list[records.Achievement]:
        async with self._sessions() as session:
            result = await session.execute(
                select(models.Achievement)
                .where(models.Achievement.user_id == user_id)
                .order_by(models.Achievement.earned_at.desc(), models.Achievement.id.desc())
            )
            return [_record(r, records.Achievement) for r in result.scalars()]

    # --- Interests ---

    async def create_interest(self, name: str, category: str) -> records.Interest:
        stmt = pg_insert(models.Interest).values(name=name, category=category)
        stmt = stmt.on_conflict_do_nothing(index_elements=["name"])
        async with self._sessions() as session, session.begin():
            await session.execute(stmt)
            result = await session.execute(select(models.Interest).where(models.Interest.name == name))
            return _record(result.scalar_one(), records.Interest)

    async def list_interests(self) -> list[records.Interest]:
        async with self._sessions() as session:
            result = await session.execute(
                select(models.Interest).order_by(models.Interest.category, models.Interest.name)
            )
            return [_record(r, records.Interest) for r in result.scalars()]

    # --- Helpers ---

    @staticmethod
    async def _require(session: AsyncSession, model: type[Any], key: int, *, for_update: bool = False) -> Any:
        row = await session.get(model, key, with_for_update=for_update)
        if row is None:
            msg = f"{model.__name__} with id {key} not found"
            raise LookupError(msg)
        return row
