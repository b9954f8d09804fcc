"""Unit tests for NotificationHub delivery and offline buffering."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketState

from recovery.ws.hub import NotificationHub
from recovery.ws.notifications import (
    MatchEnded,
    NewMatchRequest,
    PendingMatches,
    PendingMatchSummary,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _make_ws(*, fail_send: bool = False, connected: bool = True) -> MagicMock:
    """Create a mock WebSocket."""
    ws = AsyncMock()
    state = WebSocketState.CONNECTED if connected else WebSocketState.DISCONNECTED
    ws.application_state = state
    ws.client_state = state
    if fail_send:
        ws.send_text = AsyncMock(side_effect=RuntimeError("connection closed"))
    else:
        ws.send_text = AsyncMock()
    return ws


def _sent(ws: MagicMock) -> list[dict]:
    return [json.loads(call.args[0]) for call in ws.send_text.await_args_list]


def _request(match_id: int, from_user: int = 1) -> NewMatchRequest:
    return NewMatchRequest(match_id=match_id, user_id=from_user, display_name="Alice", timestamp=NOW)


def _ended(match_id: int) -> MatchEnded:
    return MatchEnded(match_id=match_id, user_id=1, display_name="Alice", timestamp=NOW)


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


class TestSend:
    @pytest.mark.asyncio
    async def test_offline_user_is_buffered(self, hub: NotificationHub) -> None:
        delivered = await hub.send(2, _request(10))
        assert delivered is False
        assert [n.match_id for n in hub.pending_for(2)] == [10]
        assert hub.get_stats() == {
            "connections": 0,
            "pending_users": 1,
            "pending_notifications": 1,
            "catching_up": 0,
        }

    @pytest.mark.asyncio
    async def test_online_user_receives_camel_case(self, hub: NotificationHub) -> None:
        ws = _make_ws()
        await hub.authenticate(ws, 2)
        delivered = await hub.send(2, _request(10))
        assert delivered is True
        frame = _sent(ws)[0]
        assert frame["type"] == "new_match_request"
        assert frame["matchId"] == 10
        assert frame["displayName"] == "Alice"
        assert "match_id" not in frame
        assert hub.pending_for(2) == []

    @pytest.mark.asyncio
    async def test_send_failure_buffers_and_drops_socket(self, hub: NotificationHub) -> None:
        ws = _make_ws(fail_send=True)
        await hub.authenticate(ws, 2)
        delivered = await hub.send(2, _ended(5))
        assert delivered is False
        assert not hub.is_online(2)
        assert [n.type for n in hub.pending_for(2)] == ["match_ended"]

    @pytest.mark.asyncio
    async def test_closed_socket_is_not_written(self, hub: NotificationHub) -> None:
        ws = _make_ws(connected=False)
        await hub.authenticate(ws, 2)
        await hub.send(2, _request(1))
        ws.send_text.assert_not_awaited()
        assert len(hub.pending_for(2)) == 1

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, hub: NotificationHub) -> None:
        ws2 = _make_ws()
        await hub.authenticate(ws2, 2)
        await hub.send(3, _request(7))
        ws2.send_text.assert_not_awaited()
        assert len(hub.pending_for(3)) == 1


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_flushes_pending_in_order(self, hub: NotificationHub) -> None:
        await hub.send(2, _request(1))
        await hub.send(2, _ended(2))
        await hub.send(2, _request(3))

        ws = _make_ws()
        await hub.authenticate(ws, 2)

        assert [(f["type"], f["matchId"]) for f in _sent(ws)] == [
            ("new_match_request", 1),
            ("match_ended", 2),
            ("new_match_request", 3),
        ]
        assert hub.pending_for(2) == []
        assert hub.get_stats()["pending_users"] == 0

    @pytest.mark.asyncio
    async def test_snapshot_comes_first(self) -> None:
        snapshot = PendingMatches(matches=[PendingMatchSummary(match_id=9, user_id=1, display_name="Alice")])
        hub = NotificationHub(AsyncMock(return_value=snapshot))
        await hub.send(2, _ended(4))

        ws = _make_ws()
        await hub.authenticate(ws, 2)

        frames = _sent(ws)
        assert [f["type"] for f in frames] == ["pending_matches", "match_ended"]
        assert frames[0]["matches"][0] == {"matchId": 9, "userId": 1, "displayName": "Alice", "profilePic": None}

    @pytest.mark.asyncio
    async def test_buffered_snapshot_is_replaced(self) -> None:
        fresh = PendingMatches(matches=[PendingMatchSummary(match_id=2, user_id=1, display_name="Alice")])
        hub = NotificationHub(AsyncMock(return_value=fresh))
        await hub.send(2, PendingMatches(matches=[]))

        ws = _make_ws()
        await hub.authenticate(ws, 2)

        frames = _sent(ws)
        assert len(frames) == 1
        assert frames[0]["matches"][0]["matchId"] == 2

    @pytest.mark.asyncio
    async def test_no_snapshot_when_nothing_pending(self) -> None:
        provider = AsyncMock(return_value=None)
        hub = NotificationHub(provider)
        ws = _make_ws()
        await hub.authenticate(ws, 2)
        provider.assert_awaited_once_with(2)
        ws.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_snapshot_failure_still_flushes(self) -> None:
        hub = NotificationHub(AsyncMock(side_effect=RuntimeError("db down")))
        await hub.send(2, _request(1))
        ws = _make_ws()
        await hub.authenticate(ws, 2)
        assert [f["type"] for f in _sent(ws)] == ["new_match_request"]

    @pytest.mark.asyncio
    async def test_flush_failure_keeps_remaining(self, hub: NotificationHub) -> None:
        await hub.send(2, _request(1))
        await hub.send(2, _request(2))
        await hub.send(2, _request(3))

        ws = _make_ws()
        ws.send_text = AsyncMock(side_effect=[None, RuntimeError("gone")])
        await hub.authenticate(ws, 2)

        assert [n.match_id for n in hub.pending_for(2)] == [2, 3]
        assert not hub.is_online(2)

        ws2 = _make_ws()
        await hub.authenticate(ws2, 2)
        assert [f["matchId"] for f in _sent(ws2)] == [2, 3]

    @pytest.mark.asyncio
    async def test_newer_connection_replaces_older(self, hub: NotificationHub) -> None:
        old, new = _make_ws(), _make_ws()
        await hub.authenticate(old, 2)
        await hub.authenticate(new, 2)
        await hub.send(2, _request(1))

        old.send_text.assert_not_awaited()
        assert len(_sent(new)) == 1
        assert hub.connection_count == 1

    @pytest.mark.asyncio
    async def test_send_during_catch_up_waits_behind_backlog(self) -> None:
        started, release = asyncio.Event(), asyncio.Event()
        snapshot = PendingMatches(matches=[PendingMatchSummary(match_id=9, user_id=1, display_name="Alice")])

        async def slow_snapshot(user_id: int) -> PendingMatches:
            started.set()
            await release.wait()
            return snapshot

        hub = NotificationHub(slow_snapshot)
        await hub.send(2, _request(1))

        ws = _make_ws()
        task = asyncio.create_task(hub.authenticate(ws, 2))
        await started.wait()
        assert hub.get_stats()["catching_up"] == 1

        assert await hub.send(2, _ended(2)) is False
        ws.send_text.assert_not_awaited()

        release.set()
        await task
        assert await hub.send(2, _request(3)) is True

        assert [(f["type"], f.get("matchId")) for f in _sent(ws)] == [
            ("pending_matches", None),
            ("new_match_request", 1),
            ("match_ended", 2),
            ("new_match_request", 3),
        ]
        assert hub.get_stats()["catching_up"] == 0

    @pytest.mark.asyncio
    async def test_replacement_during_catch_up_gets_one_snapshot(self) -> None:
        started, release = asyncio.Event(), asyncio.Event()
        snapshot = PendingMatches(matches=[PendingMatchSummary(match_id=9, user_id=1, display_name="Alice")])

        async def slow_snapshot(user_id: int) -> PendingMatches:
            started.set()
            await release.wait()
            return snapshot

        hub = NotificationHub(slow_snapshot)
        old, new = _make_ws(), _make_ws()
        first = asyncio.create_task(hub.authenticate(old, 2))
        await started.wait()
        second = asyncio.create_task(hub.authenticate(new, 2))
        await asyncio.sleep(0)

        release.set()
        await asyncio.gather(first, second)

        old.send_text.assert_not_awaited()
        assert [f["type"] for f in _sent(new)] == ["pending_matches"]
        assert hub.pending_for(2) == []
        assert hub.get_stats()["catching_up"] == 0

    @pytest.mark.asyncio
    async def test_catch_up_state_is_released(self, hub: NotificationHub) -> None:
        for user_id in range(1, 6):
            ws = _make_ws()
            await hub.authenticate(ws, user_id)
            hub.disconnect(ws)
        assert hub.get_stats()["catching_up"] == 0


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_returns_user(self, hub: NotificationHub) -> None:
        ws = _make_ws()
        await hub.authenticate(ws, 2)
        assert hub.disconnect(ws) == 2
        assert not hub.is_online(2)

    @pytest.mark.asyncio
    async def test_stale_socket_does_not_remove_replacement(self, hub: NotificationHub) -> None:
        old, new = _make_ws(), _make_ws()
        await hub.authenticate(old, 2)
        await hub.authenticate(new, 2)
        assert hub.disconnect(old) is None
        assert hub.is_online(2)

    def test_disconnect_unknown_socket(self, hub: NotificationHub) -> None:
        assert hub.disconnect(_make_ws()) is None

    @pytest.mark.asyncio
    async def test_after_disconnect_notifications_buffer(self, hub: NotificationHub) -> None:
        ws = _make_ws()
        await hub.authenticate(ws, 2)
        hub.disconnect(ws)
        assert await hub.send(2, _request(1)) is False
        ws.send_text.assert_not_awaited()


class TestClose:
    @pytest.mark.asyncio
    async def test_close_shuts_sockets_and_drops_queues(self, hub: NotificationHub) -> None:
        ws = _make_ws()
        await hub.authenticate(ws, 2)
        await hub.send(3, _request(1))

        await hub.close()

        ws.close.assert_awaited_once_with(code=1001)
        assert hub.get_stats() == {
            "connections": 0,
            "pending_users": 0,
            "pending_notifications": 0,
            "catching_up": 0,
        }
