"""Request/response schemas for messaging."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from recovery.storage.records import Message


class SendMessageRequest(BaseModel):
    match_id: int
    content: str = Field(..., min_length=1, max_length=5000)


class MessageResponse(BaseModel):
    id: int
    match_id: int
    sender_id: int
    content: str
    sent_at: datetime | None = None
    is_read: bool = False

    @classmethod
    def from_record(cls, message: Message) -> MessageResponse:
        return cls(
            id=message.id,
            match_id=message.match_id,
            sender_id=message.sender_id,
            content=message.content,
            sent_at=message.sent_at,
            is_read=message.is_read,
        )
