"""Challenge endpoints: /api/challenges/*."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends

from recovery.auth.dependencies import get_current_user
from recovery.challenges import service
from recovery.challenges.schemas import (
    ChallengeCreateRequest,
    ChallengeDetailResponse,
    ChallengeListResponse,
    ChallengeResponse,
    CheckInResponse,
    MatchSummary,
    PartnerSummary,
    ProgressMutationResponse,
    ProgressPair,
    ProgressResponse,
    ProgressUpdateRequest,
    SobrietyUpdateRequest,
    StreakResponse,
    StreakSnapshot,
)
from recovery.config import Settings
from recovery.dependencies import get_app_settings, get_hub, get_now, get_storage
from recovery.storage.base import Storage
from recovery.storage.records import ChallengeProgress, User
from recovery.users.schemas import AchievementResponse
from recovery.ws.hub import NotificationHub

router = APIRouter(prefix="/api/challenges", tags=["Challenges"])


# ── Helpers ──


def _detail_response(view: service.ChallengeView, user_id: int) -> ChallengeDetailResponse:
    base = ChallengeResponse.from_record(view.challenge)
    return ChallengeDetailResponse(
        **base.model_dump(),
        match=MatchSummary(id=view.match.id, match_score=view.match.match_score),
        partner=PartnerSummary(
            id=view.partner.id,
            display_name=view.partner.display_name,
            profile_pic=view.partner.profile_pic,
        ),
        progress=ProgressPair(
            user=ProgressResponse.build(view.challenge, user_id, view.user_progress),
            partner=ProgressResponse.build(view.challenge, view.partner.id, view.partner_progress),
        ),
    )


def _mutation_fields(outcome: service.ProgressOutcome, user_id: int) -> dict:
    achievement = None
    if outcome.achievement is not None:
        a = outcome.achievement
        achievement = AchievementResponse(
            id=a.id, type=a.type, title=a.title, description=a.description, points=a.points, earned_at=a.earned_at
        )
    return {
        "progress": ProgressResponse.build(outcome.challenge, user_id, outcome.progress),
        "challenge": ChallengeResponse.from_record(outcome.challenge),
        "achievement": achievement,
        "points_awarded": outcome.points_awarded,
    }


def _streak(progress: ChallengeProgress | None) -> StreakSnapshot | None:
    if progress is None:
        return None
    return StreakSnapshot(
        user_id=progress.user_id,
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        last_check_in=progress.last_check_in,
        next_check_in_at=service.next_check_in_at(progress),
        expires_at=service.streak_expires_at(progress),
    )


# ── Endpoints ──


@router.get("", response_model=ChallengeListResponse)
async def list_challenges_endpoint(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Challenges for all of the caller's matches, with both partners' progress."""
    views = await service.list_challenges(storage, user)
    return ChallengeListResponse(challenges=[_detail_response(v, user.id) for v in views])


@router.post("", response_model=ChallengeDetailResponse, status_code=201)
async def create_challenge_endpoint(
    body: ChallengeCreateRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    now: datetime = Depends(get_now),
):
    """Create a challenge for an active match and seed both progress records."""
    view = await service.create_challenge(storage, user, body, now)
    return _detail_response(view, user.id)


@router.get("/{challenge_id}", response_model=ChallengeDetailResponse)
async def get_challenge_endpoint(
    challenge_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    view = await service.get_challenge(storage, user, challenge_id)
    return _detail_response(view, user.id)


@router.put("/{challenge_id}/progress", response_model=ProgressMutationResponse)
async def update_progress_endpoint(
    challenge_id: int,
    body: ProgressUpdateRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
    now: datetime = Depends(get_now),
):
    """Set logged steps. Completes a generic challenge once both partners finish."""
    outcome = await service.log_progress(
        storage,
        user,
        challenge_id,
        body.steps_completed,
        now,
        completion_points=settings.challenge_completion_points,
    )
    return ProgressMutationResponse(**_mutation_fields(outcome, user.id))


@router.put("/{challenge_id}/sobriety", response_model=ProgressMutationResponse)
async def update_sobriety_endpoint(
    challenge_id: int,
    body: SobrietyUpdateRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    now: datetime = Depends(get_now),
):
    """Set days sober. May award a sobriety milestone."""
    outcome = await service.update_sobriety(storage, user, challenge_id, body.days_sober, now)
    return ProgressMutationResponse(**_mutation_fields(outcome, user.id))


@router.post("/{challenge_id}/sobriety/reset", response_model=ProgressMutationResponse)
async def reset_sobriety_endpoint(
    challenge_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    now: datetime = Depends(get_now),
):
    """Zero days sober. Milestones already earned are kept."""
    outcome = await service.reset_sobriety(storage, user, challenge_id, now)
    return ProgressMutationResponse(**_mutation_fields(outcome, user.id))


@router.post("/{challenge_id}/check-in", response_model=CheckInResponse)
async def check_in_endpoint(
    challenge_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    hub: NotificationHub = Depends(get_hub),
    now: datetime = Depends(get_now),
):
    """Record a daily check-in and notify the partner."""
    outcome = await service.check_in(storage, hub, user, challenge_id, now)
    return CheckInResponse(**_mutation_fields(outcome, user.id), outcome=outcome.check_in.value)


@router.get("/{challenge_id}/streak", response_model=StreakResponse)
async def get_streak_endpoint(
    challenge_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    now: datetime = Depends(get_now),
):
    """Streak state for both partners. Streaks older than 36 hours read as zero."""
    mine, theirs = await service.streak_snapshot(storage, user, challenge_id, now)
    return StreakResponse(user=_streak(mine), partner=_streak(theirs))
