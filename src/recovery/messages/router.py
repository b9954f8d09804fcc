"""Messaging endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends

from recovery.auth.dependencies import get_current_user
from recovery.dependencies import get_hub, get_now, get_storage
from recovery.matches.schemas import MatchMessagesResponse, MatchResponse, public_user
from recovery.messages import service
from recovery.messages.schemas import MessageResponse, SendMessageRequest
from recovery.storage.base import Storage
from recovery.storage.records import User
from recovery.ws.hub import NotificationHub

router = APIRouter(prefix="/api", tags=["Messages"])


@router.get("/matches/{match_id}/messages", response_model=MatchMessagesResponse)
async def list_messages_endpoint(
    match_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Conversation for a match. Marks the partner's messages as read."""
    messages, match, other = await service.get_conversation(storage, user, match_id)
    return MatchMessagesResponse(
        messages=[MessageResponse.from_record(m) for m in messages],
        match=MatchResponse.from_record(match),
        other_user=public_user(other),
    )


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message_endpoint(
    body: SendMessageRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    hub: NotificationHub = Depends(get_hub),
    now: datetime = Depends(get_now),
):
    """Send a message to the match partner."""
    message = await service.send_message(storage, hub, user, body.match_id, body.content, now)
    return MessageResponse.from_record(message)
