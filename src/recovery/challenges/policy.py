"""Check-in streak windows and milestone thresholds.

Pure functions over progress objects. Both storage backends call these on
their own row type (dataclass record or ORM row) so the rules live in one
place. Anything with the ``ChallengeProgress`` attribute names works.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from recovery.storage.records import (
    CHALLENGE_CHECK_IN_STREAK,
    CHALLENGE_DAYS_SOBER,
)

# A check-in between 20 and 36 hours (inclusive) after the previous one
# continues the streak.
CHECK_IN_MIN_GAP = timedelta(hours=20)
CHECK_IN_MAX_GAP = timedelta(hours=36)


class CheckInOutcome(str, Enum):
    """What a check-in did to the streak."""

    STARTED = "started"
    CONTINUED = "continued"
    RESET = "reset"
    TOO_SOON = "too_soon"


def classify_check_in(last_check_in: datetime | None, now: datetime) -> CheckInOutcome:
    """Decide whether a check-in at ``now`` starts, continues or resets a streak."""
    if last_check_in is None:
        return CheckInOutcome.STARTED
    elapsed = now - last_check_in
    if elapsed < CHECK_IN_MIN_GAP:
        return CheckInOutcome.TOO_SOON
    if elapsed <= CHECK_IN_MAX_GAP:
        return CheckInOutcome.CONTINUED
    return CheckInOutcome.RESET


def apply_check_in(progress: Any, now: datetime, *, credit_early_steps: bool = True) -> CheckInOutcome:
    """Mutate ``progress`` for a check-in at ``now`` and return the outcome.

    Every check-in stamps ``last_check_in``. A too-soon check-in leaves the
    streak untouched and only credits a step when ``credit_early_steps`` is set.
    """
    outcome = classify_check_in(progress.last_check_in, now)

    if outcome is CheckInOutcome.CONTINUED:
        progress.current_streak = (progress.current_streak or 0) + 1
    elif outcome in (CheckInOutcome.STARTED, CheckInOutcome.RESET):
        progress.current_streak = 1

    progress.longest_streak = max(progress.longest_streak or 0, progress.current_streak or 0)

    if outcome is not CheckInOutcome.TOO_SOON or credit_early_steps:
        progress.steps_completed = (progress.steps_completed or 0) + 1

    progress.last_check_in = now
    progress.last_updated = now
    return outcome


def streak_expired(last_check_in: datetime | None, now: datetime) -> bool:
    """True once more than 36 hours have passed since the last check-in."""
    return last_check_in is not None and now - last_check_in > CHECK_IN_MAX_GAP


def expire_streak(progress: Any, now: datetime) -> bool:
    """Zero a stale ``current_streak`` in place. Returns True if it changed."""
    if progress.current_streak and streak_expired(progress.last_check_in, now):
        progress.current_streak = 0
        progress.last_updated = now
        return True
    return False


def apply_steps(progress: Any, steps: int, now: datetime) -> None:
    progress.steps_completed = steps
    progress.last_updated = now


def apply_days_sober(progress: Any, days: int, now: datetime) -> None:
    progress.days_sober = days
    progress.last_sober_date = now
    progress.last_updated = now


def apply_sobriety_reset(progress: Any, now: datetime) -> None:
    # Milestones already credited stay credited.
    progress.days_sober = 0
    progress.last_updated = now


# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Milestone:
    """A threshold whose first crossing awards a one-time achievement."""

    level: int
    threshold: int
    points: int
    title: str
    description: str
    achievement_type: str


SOBRIETY_MILESTONES: tuple[Milestone, ...] = (
    Milestone(1, 7, 50, "One Week Sober", "Stayed sober for 7 days", "sobriety_milestone"),
    Milestone(2, 30, 100, "One Month Sober", "Stayed sober for 30 days", "sobriety_milestone"),
    Milestone(3, 90, 200, "Three Months Sober", "Stayed sober for 90 days", "sobriety_milestone"),
    Milestone(4, 365, 500, "One Year Sober", "Stayed sober for a full year", "sobriety_milestone"),
)

STREAK_MILESTONES: tuple[Milestone, ...] = (
    Milestone(1, 7, 50, "One Week Streak", "Checked in 7 days in a row", "streak_milestone"),
    Milestone(2, 30, 150, "Thirty Day Streak", "Checked in 30 days in a row", "streak_milestone"),
    Milestone(3, 100, 300, "Hundred Day Streak", "Checked in 100 days in a row", "streak_milestone"),
)

MILESTONES_BY_TYPE: dict[str, tuple[Milestone, ...]] = {
    CHALLENGE_DAYS_SOBER: SOBRIETY_MILESTONES,
    CHALLENGE_CHECK_IN_STREAK: STREAK_MILESTONES,
}

COMPLETION_ACHIEVEMENT_TYPE = "challenge_completed"


def next_milestone(value: int, reached_level: int, milestones: Iterable[Milestone]) -> Milestone | None:
    """Return the milestone to award for ``value``, if any.

    Only the highest threshold at or below ``value`` is considered, and only
    if it is above the level already awarded. Lower thresholds skipped by a
    single jump are not back-filled.
    """
    highest: Milestone | None = None
    for milestone in milestones:
        if value >= milestone.threshold:
            highest = milestone
    if highest is None or highest.level <= reached_level:
        return None
    return highest


def completes_challenge(milestone: Milestone, milestones: tuple[Milestone, ...], total_steps: int) -> bool:
    """The final milestone completes a challenge whose target is no larger than the ladder."""
    return milestone.level == len(milestones) and total_steps <= len(milestones)


def display_steps(challenge_type: str, progress: Any | None) -> int:
    """Progress shown against ``total_steps`` for a challenge of this type."""
    if progress is None:
        return 0
    if challenge_type in MILESTONES_BY_TYPE:
        return progress.milestone_level or 0
    return progress.steps_completed or 0


def all_reached(progresses: Iterable[Any | None], total_steps: int) -> bool:
    """True when every participant has logged at least ``total_steps``."""
    items = list(progresses)
    return bool(items) and all(
        p is not None and (p.steps_completed or 0) >= total_steps for p in items
    )
