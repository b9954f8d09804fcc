"""Messaging between match partners."""

from __future__ import annotations

import logging
from datetime import datetime

from recovery.errors import NotFoundError
from recovery.matches.service import get_match_for_participant
from recovery.storage.base import Storage
from recovery.storage.records import Match, Message, User
from recovery.ws.hub import NotificationHub
from recovery.ws.notifications import MessagePayload, NewMessage, UserSummary

logger = logging.getLogger(__name__)


async def get_conversation(storage: Storage, user: User, match_id: int) -> tuple[list[Message], Match, User]:
    """Messages oldest first. Marks the partner's messages read for ``user``.

    The returned messages show their read state from before this call.
    """
    match = await get_match_for_participant(storage, match_id, user.id)
    messages = await storage.get_match_messages(match.id)
    marked = await storage.mark_messages_as_read(match.id, user.id)
    if marked:
        logger.debug("Marked %d messages read for user %s in match %s", marked, user.id, match.id)

    other = await storage.get_user(match.partner_of(user.id))
    if other is None:
        raise NotFoundError("Match user not found")
    return messages, match, other


async def send_message(
    storage: Storage, hub: NotificationHub, sender: User, match_id: int, content: str, now: datetime
) -> Message:
    """Store a message and push it to the partner."""
    match = await get_match_for_participant(storage, match_id, sender.id)
    message = await storage.create_message(match_id=match.id, sender_id=sender.id, content=content, now=now)

    recipient_id = match.partner_of(sender.id)
    delivered = await hub.send(
        recipient_id,
        NewMessage(
            match_id=match.id,
            message=MessagePayload(
                id=message.id,
                match_id=match.id,
                sender_id=sender.id,
                content=message.content,
                sent_at=message.sent_at,
                is_read=message.is_read,
            ),
            sender=UserSummary(id=sender.id, display_name=sender.display_name, profile_pic=sender.profile_pic),
        ),
    )
    logger.info(
        "Message %s in match %s %s to user %s",
        message.id,
        match.id,
        "delivered" if delivered else "queued",
        recipient_id,
    )
    return message
