"""Challenge business logic.

Rules:
- Only the two participants of the owning match may read or change a challenge
- Progress can only change while the challenge is ``active``
- Sobriety days and check-in streaks award one milestone per update, the
  highest newly crossed one; reaching the last milestone completes the
  challenge when its target is no larger than the milestone ladder
- A generic challenge completes once both participants reach ``total_steps``
- A check-in notifies the partner over the notification hub
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from recovery.challenges.policy import (
    CHECK_IN_MAX_GAP,
    CHECK_IN_MIN_GAP,
    COMPLETION_ACHIEVEMENT_TYPE,
    MILESTONES_BY_TYPE,
    CheckInOutcome,
    all_reached,
    completes_challenge,
    next_milestone,
)
from recovery.challenges.schemas import ChallengeCreateRequest
from recovery.errors import BadRequestError, ForbiddenError, NotFoundError
from recovery.storage.base import AchievementGrant, Storage
from recovery.storage.records import (
    CHALLENGE_ACTIVE,
    CHALLENGE_CHECK_IN_STREAK,
    CHALLENGE_DAYS_SOBER,
    CHALLENGE_GENERIC,
    MATCH_ACTIVE,
    Achievement,
    Challenge,
    ChallengeProgress,
    Match,
    User,
)
from recovery.ws.hub import NotificationHub
from recovery.ws.notifications import PartnerCheckIn

logger = logging.getLogger(__name__)

TYPE_DEFAULTS: dict[str, tuple[str, str, int]] = {
    CHALLENGE_DAYS_SOBER: (
        "Sobriety Challenge",
        "Track days of sobriety and support each other in this journey.",
        4,
    ),
    CHALLENGE_CHECK_IN_STREAK: (
        "Check-in Streak Challenge",
        "Daily check-ins with your accountability partner. Build consistency together!",
        3,
    ),
}


@dataclass
class ChallengeView:
    challenge: Challenge
    match: Match
    partner: User
    user_progress: ChallengeProgress | None
    partner_progress: ChallengeProgress | None


@dataclass
class ProgressOutcome:
    progress: ChallengeProgress
    challenge: Challenge
    achievement: Achievement | None = None
    points_awarded: int = 0
    check_in: CheckInOutcome | None = None


# --- loading and guards ---


async def load_challenge(storage: Storage, challenge_id: int, user_id: int) -> tuple[Challenge, Match]:
    """Load a challenge and its match, requiring ``user_id`` to be a participant."""
    challenge = await storage.get_challenge(challenge_id)
    if challenge is None:
        raise NotFoundError("Challenge not found")
    match = await storage.get_match(challenge.match_id)
    if match is None:
        raise NotFoundError("Match not found")
    if not match.involves(user_id):
        raise ForbiddenError("You don't have access to this challenge")
    return challenge, match


def _require_type(challenge: Challenge, challenge_type: str, message: str) -> None:
    if challenge.challenge_type != challenge_type:
        raise BadRequestError(message)


def _require_active(challenge: Challenge) -> None:
    if challenge.status != CHALLENGE_ACTIVE:
        raise BadRequestError(f"Challenge is {challenge.status}, not active")


async def _build_view(storage: Storage, challenge: Challenge, match: Match, user_id: int) -> ChallengeView:
    partner_id = match.partner_of(user_id)
    partner = await storage.get_user(partner_id)
    if partner is None:
        raise NotFoundError("Match user not found")
    return ChallengeView(
        challenge=challenge,
        match=match,
        partner=partner,
        user_progress=await storage.get_challenge_progress(challenge.id, user_id),
        partner_progress=await storage.get_challenge_progress(challenge.id, partner_id),
    )


# --- reads ---


async def list_challenges(storage: Storage, user: User) -> list[ChallengeView]:
    """Challenges across all of the user's matches, with both users' progress."""
    matches = {m.id: m for m in await storage.get_user_matches(user.id)}
    challenges = await storage.get_user_challenges(list(matches))
    views = []
    for challenge in challenges:
        match = matches.get(challenge.match_id)
        if match is None:
            continue
        try:
            views.append(await _build_view(storage, challenge, match, user.id))
        except NotFoundError:
            logger.warning("Skipping challenge %s: partner of user %s is missing", challenge.id, user.id)
    return views


async def get_challenge(storage: Storage, user: User, challenge_id: int) -> ChallengeView:
    challenge, match = await load_challenge(storage, challenge_id, user.id)
    return await _build_view(storage, challenge, match, user.id)


async def streak_snapshot(
    storage: Storage, user: User, challenge_id: int, now: datetime
) -> tuple[ChallengeProgress | None, ChallengeProgress | None]:
    """Both participants' streak state. Stale streaks are zeroed and saved."""
    challenge, match = await load_challenge(storage, challenge_id, user.id)
    mine = await storage.get_check_in_streak(challenge.id, user.id, now)
    theirs = await storage.get_check_in_streak(challenge.id, match.partner_of(user.id), now)
    return mine, theirs


def next_check_in_at(progress: ChallengeProgress) -> datetime | None:
    """Earliest time a check-in continues the streak."""
    return progress.last_check_in + CHECK_IN_MIN_GAP if progress.last_check_in else None


def streak_expires_at(progress: ChallengeProgress) -> datetime | None:
    """Latest time a check-in continues the streak."""
    return progress.last_check_in + CHECK_IN_MAX_GAP if progress.last_check_in else None


# --- writes ---


async def create_challenge(
    storage: Storage, user: User, body: ChallengeCreateRequest, now: datetime
) -> ChallengeView:
    match = await storage.get_match(body.match_id)
    if match is None:
        raise NotFoundError("Match not found")
    if not match.involves(user.id):
        raise ForbiddenError("You don't have access to this match")
    if match.status != MATCH_ACTIVE:
        raise BadRequestError("Challenges can only be created for an active match")

    default_title, default_description, default_steps = TYPE_DEFAULTS.get(
        body.challenge_type, ("", "", 1)
    )
    challenge = await storage.create_challenge(
        match_id=match.id,
        participant_ids=(match.user_id_1, match.user_id_2),
        title=body.title or default_title,
        description=body.description or default_description,
        challenge_type=body.challenge_type,
        total_steps=body.total_steps or default_steps,
        frequency=body.frequency,
        start_date=body.start_date or now,
        end_date=body.end_date,
        now=now,
    )
    logger.info(
        "User %s created %s challenge %s for match %s", user.id, challenge.challenge_type, challenge.id, match.id
    )
    return await _build_view(storage, challenge, match, user.id)


async def log_progress(
    storage: Storage,
    user: User,
    challenge_id: int,
    steps_completed: int,
    now: datetime,
    *,
    completion_points: int,
) -> ProgressOutcome:
    """Set the user's logged steps, bounded by the challenge target.

    For a generic challenge, completes it when both participants are done.
    """
    challenge, match = await load_challenge(storage, challenge_id, user.id)
    _require_active(challenge)
    if steps_completed < 0:
        raise BadRequestError("steps_completed must not be negative")

    steps = min(steps_completed, challenge.total_steps)
    progress = await storage.update_challenge_progress(challenge.id, user.id, steps, now)
    outcome = ProgressOutcome(progress=progress, challenge=challenge)

    if challenge.challenge_type != CHALLENGE_GENERIC:
        return outcome

    partner_progress = await storage.get_challenge_progress(challenge.id, match.partner_of(user.id))
    if not all_reached([progress, partner_progress], challenge.total_steps):
        return outcome

    grant = AchievementGrant(
        type=COMPLETION_ACHIEVEMENT_TYPE,
        title="Challenge Completed",
        description=f"Completed \"{challenge.title}\" together with your partner",
        points=completion_points,
    )
    awarded = await storage.complete_challenge(challenge.id, [match.user_id_1, match.user_id_2], grant, now)
    if awarded:
        logger.info("Challenge %s completed by match %s", challenge.id, match.id)
        outcome.achievement = next((a for a in awarded if a.user_id == user.id), None)
        outcome.points_awarded = completion_points
    outcome.challenge = await storage.get_challenge(challenge.id) or challenge
    return outcome


async def update_sobriety(
    storage: Storage, user: User, challenge_id: int, days_sober: int, now: datetime
) -> ProgressOutcome:
    challenge, _ = await load_challenge(storage, challenge_id, user.id)
    _require_type(challenge, CHALLENGE_DAYS_SOBER, "This is not a sobriety tracking challenge")
    _require_active(challenge)

    progress = await storage.update_days_sober(challenge.id, user.id, days_sober, now)
    return await _award_milestone(storage, challenge, user.id, progress.days_sober, progress, now)


async def reset_sobriety(storage: Storage, user: User, challenge_id: int, now: datetime) -> ProgressOutcome:
    challenge, _ = await load_challenge(storage, challenge_id, user.id)
    _require_type(challenge, CHALLENGE_DAYS_SOBER, "This is not a sobriety tracking challenge")
    _require_active(challenge)

    progress = await storage.reset_days_sober(challenge.id, user.id, now)
    logger.info("User %s reset sobriety count on challenge %s", user.id, challenge.id)
    return ProgressOutcome(progress=progress, challenge=challenge)


async def check_in(
    storage: Storage, hub: NotificationHub, user: User, challenge_id: int, now: datetime
) -> ProgressOutcome:
    """Record a daily check-in, award any streak milestone and tell the partner."""
    challenge, match = await load_challenge(storage, challenge_id, user.id)
    _require_type(challenge, CHALLENGE_CHECK_IN_STREAK, "This is not a check-in streak challenge")
    _require_active(challenge)

    result = await storage.record_check_in(challenge.id, user.id, now)
    outcome = await _award_milestone(
        storage, challenge, user.id, result.progress.current_streak, result.progress, now
    )
    outcome.check_in = result.outcome

    partner_id = match.partner_of(user.id)
    delivered = await hub.send(
        partner_id,
        PartnerCheckIn(
            challenge_id=challenge.id,
            user_id=user.id,
            display_name=user.display_name,
            profile_pic=user.profile_pic,
            streak=result.progress.current_streak,
            timestamp=now,
        ),
    )
    logger.debug("Check-in notice for user %s %s", partner_id, "delivered" if delivered else "buffered")
    return outcome


async def _award_milestone(
    storage: Storage,
    challenge: Challenge,
    user_id: int,
    value: int,
    progress: ChallengeProgress,
    now: datetime,
) -> ProgressOutcome:
    milestones = MILESTONES_BY_TYPE[challenge.challenge_type]
    milestone = next_milestone(value, progress.milestone_level, milestones)
    if milestone is None:
        return ProgressOutcome(progress=progress, challenge=challenge)

    completes = completes_challenge(milestone, milestones, challenge.total_steps)
    achievement = await storage.apply_milestone(
        challenge.id, user_id, milestone, now, complete_challenge=completes
    )
    if achievement is None:
        # A concurrent update already credited this level.
        return ProgressOutcome(progress=progress, challenge=challenge)

    logger.info("User %s reached %r on challenge %s", user_id, milestone.title, challenge.id)
    progress = await storage.get_challenge_progress(challenge.id, user_id) or progress
    if completes:
        challenge = await storage.get_challenge(challenge.id) or challenge
    return ProgressOutcome(
        progress=progress,
        challenge=challenge,
        achievement=achievement,
        points_awarded=milestone.points,
    )
