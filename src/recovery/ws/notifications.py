"""WebSocket frame schemas.

Outbound notifications are a tagged union on ``type`` and carry enough
display data (names, avatars, ids) for the client to render a toast
without another request. Field names go over the wire in camelCase.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Frame(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class UserSummary(_Frame):
    id: int
    display_name: str
    profile_pic: str | None = None


class PendingMatchSummary(_Frame):
    match_id: int
    user_id: int
    display_name: str
    profile_pic: str | None = None


class MessagePayload(_Frame):
    id: int
    match_id: int
    sender_id: int
    content: str
    sent_at: datetime | None = None
    is_read: bool = False


# ---------------------------------------------------------------------------
# Server -> client
# ---------------------------------------------------------------------------


class NewMatchRequest(_Frame):
    type: Literal["new_match_request"] = "new_match_request"
    match_id: int
    user_id: int
    display_name: str
    profile_pic: str | None = None
    timestamp: datetime


class PendingMatches(_Frame):
    """Snapshot of match requests still waiting on the recipient."""

    type: Literal["pending_matches"] = "pending_matches"
    matches: list[PendingMatchSummary]


class NewMessage(_Frame):
    type: Literal["new_message"] = "new_message"
    match_id: int
    message: MessagePayload
    sender: UserSummary


class PartnerCheckIn(_Frame):
    type: Literal["partner_check_in"] = "partner_check_in"
    challenge_id: int
    user_id: int
    display_name: str
    profile_pic: str | None = None
    streak: int
    timestamp: datetime


class MatchEnded(_Frame):
    type: Literal["match_ended"] = "match_ended"
    match_id: int
    user_id: int
    display_name: str
    message: str = "Your partner has ended the match."
    timestamp: datetime


Notification = Union[NewMatchRequest, PendingMatches, NewMessage, PartnerCheckIn, MatchEnded]


# ---------------------------------------------------------------------------
# Client -> server
# ---------------------------------------------------------------------------


class AuthFrame(_Frame):
    """``{"type": "auth", "userId": 1}``, optionally with an access ``token``.

    When a token is present it must verify and name the same user.
    """

    type: Literal["auth"]
    user_id: int
    token: str | None = None
