"""Match endpoints: /api/matches/*."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from recovery.auth.dependencies import get_current_user
from recovery.challenges.schemas import ChallengeResponse
from recovery.config import Settings
from recovery.dependencies import get_app_settings, get_hub, get_now, get_storage
from recovery.errors import NotFoundError
from recovery.matches import service
from recovery.matches.schemas import (
    MatchDetailResponse,
    MatchRecommendation,
    MatchRequest,
    MatchResponse,
    MatchStatusUpdate,
    MatchWithUserResponse,
    UnmatchResponse,
    public_user,
)
from recovery.messages.schemas import MessageResponse
from recovery.storage.base import Storage
from recovery.storage.records import CHALLENGE_ACTIVE, User
from recovery.ws.hub import NotificationHub

router = APIRouter(prefix="/api/matches", tags=["Matches"])


@router.get("", response_model=list[MatchWithUserResponse])
async def list_matches_endpoint(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """All of the caller's matches with the other user's public profile."""
    items = []
    for match, other in await service.list_matches(storage, user):
        challenges = await storage.get_match_challenges(match.id)
        active = next((c for c in challenges if c.status == CHALLENGE_ACTIVE), None)
        items.append(
            MatchWithUserResponse(
                **MatchResponse.from_record(match).model_dump(),
                other_user=public_user(other),
                active_challenge=ChallengeResponse.from_record(active) if active else None,
            )
        )
    return items


# Declared before /{match_id} so "find" is not parsed as an id.
@router.get("/find", response_model=list[MatchRecommendation])
async def find_matches_endpoint(
    interests: str | None = Query(None, description="Comma-separated interests to filter on"),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Suggest partners the caller is not yet matched with."""
    wanted = interests.split(",") if interests else []
    candidates = await service.find_candidates(storage, user, wanted)
    return [MatchRecommendation(**c) for c in candidates]


@router.post("", response_model=MatchResponse, status_code=201)
async def request_match_endpoint(
    body: MatchRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    hub: NotificationHub = Depends(get_hub),
    now: datetime = Depends(get_now),
):
    """Request a match. The recipient is notified live or on next connect."""
    match = await service.request_match(
        storage, hub, user, body.other_user_id, body.match_score, body.match_details, now
    )
    return MatchResponse.from_record(match)


@router.get("/{match_id}", response_model=MatchDetailResponse)
async def get_match_endpoint(
    match_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Match detail with partner, challenges and the most recent messages."""
    match = await service.get_match_for_participant(storage, match_id, user.id)
    other = await storage.get_user(match.partner_of(user.id))
    if other is None:
        raise NotFoundError("Match user not found")
    challenges = await storage.get_match_challenges(match.id)
    messages = await storage.get_recent_match_messages(match.id, service.RECENT_MESSAGE_COUNT)
    return MatchDetailResponse(
        **MatchResponse.from_record(match).model_dump(),
        other_user=public_user(other),
        challenges=[ChallengeResponse.from_record(c) for c in challenges],
        messages=[MessageResponse.from_record(m) for m in messages],
    )


@router.put("/{match_id}/status", response_model=MatchResponse)
async def update_match_status_endpoint(
    match_id: int,
    body: MatchStatusUpdate,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    """Accept or reject a match request (recipient only)."""
    match = await service.respond_to_match(
        storage, user, match_id, body.status, accept_points=settings.match_accept_points
    )
    return MatchResponse.from_record(match)


@router.put("/{match_id}/unmatch", response_model=UnmatchResponse)
async def unmatch_endpoint(
    match_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    hub: NotificationHub = Depends(get_hub),
    now: datetime = Depends(get_now),
):
    """End an active match."""
    match = await service.unmatch(storage, hub, user, match_id, now)
    return UnmatchResponse(match=MatchResponse.from_record(match))
