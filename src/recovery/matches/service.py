"""Match business logic.

Rules:
- A user has at most one active match at a time
- Only one match may exist between the same two users
- The requester is ``user_id_1``; only ``user_id_2`` may accept or reject
- Accepting awards both users points for the new connection
- Either participant may end an active match
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from recovery.errors import BadRequestError, ForbiddenError, NotFoundError
from recovery.storage.base import Storage
from recovery.storage.records import MATCH_ACTIVE, MATCH_ENDED, MATCH_PENDING, Match, User
from recovery.ws.hub import NotificationHub, SnapshotProvider
from recovery.ws.notifications import MatchEnded, NewMatchRequest, PendingMatches, PendingMatchSummary

logger = logging.getLogger(__name__)

RECENT_MESSAGE_COUNT = 20


async def get_match_for_participant(storage: Storage, match_id: int, user_id: int) -> Match:
    match = await storage.get_match(match_id)
    if match is None:
        raise NotFoundError("Match not found")
    if not match.involves(user_id):
        raise ForbiddenError("You don't have access to this match")
    return match


async def active_match(storage: Storage, user_id: int) -> Match | None:
    for match in await storage.get_user_matches(user_id):
        if match.status == MATCH_ACTIVE:
            return match
    return None


async def list_matches(storage: Storage, user: User) -> list[tuple[Match, User]]:
    """The user's matches paired with the other participant."""
    result = []
    for match in await storage.get_user_matches(user.id):
        other = await storage.get_user(match.partner_of(user.id))
        if other is None:
            logger.warning("Match %s references missing user", match.id)
            continue
        result.append((match, other))
    return result


def _score(user: User, candidate: User) -> tuple[int, list[str]]:
    """Compatibility out of 100 from shared interests and goals."""
    mine = {i.strip().lower() for i in user.interests}
    shared = [i for i in candidate.interests if i.strip().lower() in mine]
    shared_goals = {g.strip().lower() for g in user.goals} & {g.strip().lower() for g in candidate.goals}
    score = 50 + 10 * len(shared) + 5 * len(shared_goals)
    return min(score, 100), shared


async def find_candidates(storage: Storage, user: User, interests: list[str]) -> list[dict[str, Any]]:
    """Users the caller has no match with, optionally filtered by interest.

    Sorted best score first.
    """
    matched = {m.partner_of(user.id) for m in await storage.get_user_matches(user.id)}
    wanted = {i.strip().lower() for i in interests if i.strip()}

    candidates = []
    for other in await storage.list_users():
        if other.id == user.id or other.id in matched:
            continue
        if wanted and not wanted & {i.strip().lower() for i in other.interests}:
            continue
        score, shared = _score(user, other)
        candidates.append(
            {
                "user_id": other.id,
                "display_name": other.display_name,
                "profile_pic": other.profile_pic,
                "match_score": score,
                "shared_interests": shared,
                "member_since": other.created_at,
            }
        )
    candidates.sort(key=lambda c: (-c["match_score"], c["user_id"]))
    return candidates


async def request_match(
    storage: Storage,
    hub: NotificationHub,
    requester: User,
    other_user_id: int,
    match_score: int,
    match_details: dict[str, Any] | None,
    now: datetime,
) -> Match:
    """Create a pending match and notify the recipient."""
    if other_user_id == requester.id:
        raise BadRequestError("You cannot match with yourself")
    target = await storage.get_user(other_user_id)
    if target is None:
        raise NotFoundError("User not found")
    if await active_match(storage, requester.id) is not None:
        raise BadRequestError("You already have an active match. Please unmatch first to request a new match.")
    if await active_match(storage, other_user_id) is not None:
        raise BadRequestError("This user already has an active match and is unavailable.")
    if await storage.find_existing_match(requester.id, other_user_id) is not None:
        raise BadRequestError("Match already exists")

    match = await storage.create_match(
        user_id_1=requester.id,
        user_id_2=other_user_id,
        match_score=match_score,
        match_details=match_details,
        status=MATCH_PENDING,
    )
    logger.info("User %s requested match %s with user %s", requester.id, match.id, other_user_id)

    await hub.send(
        other_user_id,
        NewMatchRequest(
            match_id=match.id,
            user_id=requester.id,
            display_name=requester.display_name,
            profile_pic=requester.profile_pic,
            timestamp=now,
        ),
    )
    return match


async def respond_to_match(
    storage: Storage, user: User, match_id: int, status: str, *, accept_points: int
) -> Match:
    """Accept (``active``) or reject (``rejected``) a pending request."""
    match = await storage.get_match(match_id)
    if match is None:
        raise NotFoundError("Match not found")
    if match.user_id_2 != user.id:
        raise ForbiddenError("You don't have permission to update this match")
    if match.status != MATCH_PENDING:
        raise BadRequestError(f"Match is already {match.status}")

    if status == MATCH_ACTIVE:
        requester_active = await active_match(storage, match.user_id_1)
        if requester_active is not None and requester_active.id != match.id:
            raise BadRequestError("The requesting user already has an active match.")
        recipient_active = await active_match(storage, match.user_id_2)
        if recipient_active is not None and recipient_active.id != match.id:
            raise BadRequestError(
                "You already have an active match. Please unmatch first before accepting a new one."
            )

    updated = await storage.update_match_status(match.id, status)
    if status == MATCH_ACTIVE:
        await storage.add_user_points(match.user_id_1, accept_points)
        await storage.add_user_points(match.user_id_2, accept_points)
    logger.info("User %s set match %s to %s", user.id, match.id, status)
    return updated


async def unmatch(storage: Storage, hub: NotificationHub, user: User, match_id: int, now: datetime) -> Match:
    """End an active match and tell the other participant."""
    match = await get_match_for_participant(storage, match_id, user.id)
    if match.status != MATCH_ACTIVE:
        raise BadRequestError("Only active matches can be unmatched")

    updated = await storage.update_match_status(match.id, MATCH_ENDED)
    logger.info("User %s ended match %s", user.id, match.id)
    await hub.send(
        match.partner_of(user.id),
        MatchEnded(match_id=match.id, user_id=user.id, display_name=user.display_name, timestamp=now),
    )
    return updated


def pending_matches_provider(storage: Storage) -> SnapshotProvider:
    """Build the hub's snapshot callback: requests still awaiting ``user_id``."""

    async def provide(user_id: int) -> PendingMatches | None:
        items = []
        for match in await storage.get_user_matches(user_id):
            if match.status != MATCH_PENDING or match.user_id_2 != user_id:
                continue
            requester = await storage.get_user(match.user_id_1)
            items.append(
                PendingMatchSummary(
                    match_id=match.id,
                    user_id=match.user_id_1,
                    display_name=requester.display_name if requester else "Unknown user",
                    profile_pic=requester.profile_pic if requester else None,
                )
            )
        return PendingMatches(matches=items) if items else None

    return provide
