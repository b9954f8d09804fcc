"""Messaging between match partners."""

from __future__ import annotations

import pytest


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_send_stores_and_notifies(self, client, app, alice, bob, active_match) -> None:
        response = await client.post(
            "/api/messages", json={"match_id": active_match, "content": "Day one, let's go"}, headers=alice.headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["sender_id"] == alice.id
        assert data["is_read"] is False

        notices = [n for n in app.state.hub.pending_for(bob.id) if n.type == "new_message"]
        assert len(notices) == 1
        wire = notices[0].to_wire()
        assert wire["matchId"] == active_match
        assert wire["message"]["content"] == "Day one, let's go"
        assert wire["sender"]["displayName"] == "Alice"

    @pytest.mark.asyncio
    async def test_outsider_cannot_send(self, client, carol, active_match) -> None:
        response = await client.post(
            "/api/messages", json={"match_id": active_match, "content": "hello"}, headers=carol.headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_empty_content_rejected(self, client, alice, active_match) -> None:
        response = await client.post(
            "/api/messages", json={"match_id": active_match, "content": ""}, headers=alice.headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_match(self, client, alice) -> None:
        response = await client.post("/api/messages", json={"match_id": 404, "content": "hi"}, headers=alice.headers)
        assert response.status_code == 404


class TestConversation:
    @pytest.mark.asyncio
    async def test_reading_marks_partner_messages(self, client, clock, alice, bob, active_match) -> None:
        await client.post("/api/messages", json={"match_id": active_match, "content": "one"}, headers=alice.headers)
        clock.advance(minutes=1)
        await client.post("/api/messages", json={"match_id": active_match, "content": "two"}, headers=bob.headers)
        clock.advance(minutes=1)
        await client.post("/api/messages", json={"match_id": active_match, "content": "three"}, headers=alice.headers)

        response = await client.get(f"/api/matches/{active_match}/messages", headers=bob.headers)
        assert response.status_code == 200
        data = response.json()
        assert [m["content"] for m in data["messages"]] == ["one", "two", "three"]
        assert all(m["is_read"] is False for m in data["messages"])
        assert data["other_user"]["id"] == alice.id
        assert data["match"]["id"] == active_match

        again = await client.get(f"/api/matches/{active_match}/messages", headers=bob.headers)
        read = {m["content"]: m["is_read"] for m in again.json()["messages"]}
        assert read == {"one": True, "two": False, "three": True}

    @pytest.mark.asyncio
    async def test_outsider_cannot_read(self, client, carol, active_match) -> None:
        response = await client.get(f"/api/matches/{active_match}/messages", headers=carol.headers)
        assert response.status_code == 403
