"""Match request, response, listing and unmatch flows."""

from __future__ import annotations

import pytest


class TestRequestMatch:
    @pytest.mark.asyncio
    async def test_request_creates_pending_and_notifies(self, client, app, alice, bob) -> None:
        response = await client.post(
            "/api/matches", json={"other_user_id": bob.id, "match_score": 85}, headers=alice.headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["user_id_1"] == alice.id
        assert data["user_id_2"] == bob.id
        assert data["match_score"] == 85

        pending = app.state.hub.pending_for(bob.id)
        assert [n.type for n in pending] == ["new_match_request"]
        assert pending[0].match_id == data["id"]
        assert pending[0].display_name == "Alice"

    @pytest.mark.asyncio
    async def test_cannot_match_self(self, client, alice) -> None:
        response = await client.post("/api/matches", json={"other_user_id": alice.id}, headers=alice.headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, alice) -> None:
        response = await client.post("/api/matches", json={"other_user_id": 999}, headers=alice.headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_duplicate_request(self, client, alice, bob) -> None:
        await client.post("/api/matches", json={"other_user_id": bob.id}, headers=alice.headers)
        response = await client.post("/api/matches", json={"other_user_id": alice.id}, headers=bob.headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Match already exists"

    @pytest.mark.asyncio
    async def test_active_match_blocks_new_request(self, client, alice, carol, active_match) -> None:
        response = await client.post("/api/matches", json={"other_user_id": carol.id}, headers=alice.headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_target_with_active_match_unavailable(self, client, bob, carol, active_match) -> None:
        response = await client.post("/api/matches", json={"other_user_id": bob.id}, headers=carol.headers)
        assert response.status_code == 400
        assert "unavailable" in response.json()["detail"]


class TestRespond:
    @pytest.mark.asyncio
    async def test_accept_awards_points(self, client, alice, bob, active_match) -> None:
        for user in (alice, bob):
            me = await client.get("/api/users/me", headers=user.headers)
            assert me.json()["points"] == 50

    @pytest.mark.asyncio
    async def test_only_recipient_may_respond(self, client, alice, bob) -> None:
        response = await client.post("/api/matches", json={"other_user_id": bob.id}, headers=alice.headers)
        match_id = response.json()["id"]
        response = await client.put(
            f"/api/matches/{match_id}/status", json={"status": "active"}, headers=alice.headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reject(self, client, alice, bob) -> None:
        response = await client.post("/api/matches", json={"other_user_id": bob.id}, headers=alice.headers)
        match_id = response.json()["id"]
        response = await client.put(
            f"/api/matches/{match_id}/status", json={"status": "rejected"}, headers=bob.headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        me = await client.get("/api/users/me", headers=bob.headers)
        assert me.json()["points"] == 0

    @pytest.mark.asyncio
    async def test_cannot_answer_twice(self, client, bob, active_match) -> None:
        response = await client.put(
            f"/api/matches/{active_match}/status", json={"status": "active"}, headers=bob.headers
        )
        assert response.status_code == 400
        me = await client.get("/api/users/me", headers=bob.headers)
        assert me.json()["points"] == 50

    @pytest.mark.asyncio
    async def test_invalid_status(self, client, alice, bob) -> None:
        response = await client.post("/api/matches", json={"other_user_id": bob.id}, headers=alice.headers)
        response = await client.put(
            f"/api/matches/{response.json()['id']}/status", json={"status": "ended"}, headers=bob.headers
        )
        assert response.status_code == 400


class TestReadMatches:
    @pytest.mark.asyncio
    async def test_list_includes_partner_and_active_challenge(
        self, client, alice, bob, active_match, create_challenge
    ) -> None:
        challenge = await create_challenge(alice, active_match, challenge_type="days_sober")
        response = await client.get("/api/matches", headers=bob.headers)
        assert response.status_code == 200
        [item] = response.json()
        assert item["other_user"]["id"] == alice.id
        assert "email" not in item["other_user"]
        assert item["active_challenge"]["id"] == challenge["id"]

    @pytest.mark.asyncio
    async def test_detail(self, client, alice, bob, active_match) -> None:
        await client.post("/api/messages", json={"match_id": active_match, "content": "Hi"}, headers=alice.headers)
        response = await client.get(f"/api/matches/{active_match}", headers=bob.headers)
        assert response.status_code == 200
        data = response.json()
        assert data["other_user"]["username"] == "alice"
        assert [m["content"] for m in data["messages"]] == ["Hi"]
        assert data["challenges"] == []

    @pytest.mark.asyncio
    async def test_detail_forbidden_for_outsider(self, client, carol, active_match) -> None:
        response = await client.get(f"/api/matches/{active_match}", headers=carol.headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_detail_not_found(self, client, alice) -> None:
        response = await client.get("/api/matches/777", headers=alice.headers)
        assert response.status_code == 404


class TestFindMatches:
    @pytest.mark.asyncio
    async def test_candidates_scored_by_shared_interests(self, client, alice, bob, carol) -> None:
        response = await client.get("/api/matches/find", headers=alice.headers)
        assert response.status_code == 200
        candidates = response.json()
        assert [c["user_id"] for c in candidates] == [bob.id, carol.id]
        assert candidates[0]["match_score"] == 65
        assert candidates[0]["shared_interests"] == ["running"]
        assert candidates[1]["match_score"] == 50

    @pytest.mark.asyncio
    async def test_interest_filter(self, client, alice, bob, carol) -> None:
        response = await client.get("/api/matches/find", params={"interests": "chess"}, headers=alice.headers)
        assert [c["user_id"] for c in response.json()] == [carol.id]

    @pytest.mark.asyncio
    async def test_existing_partners_excluded(self, client, alice, bob, carol, active_match) -> None:
        response = await client.get("/api/matches/find", headers=alice.headers)
        assert [c["user_id"] for c in response.json()] == [carol.id]


class TestUnmatch:
    @pytest.mark.asyncio
    async def test_unmatch_ends_and_notifies(self, client, app, alice, bob, active_match) -> None:
        response = await client.put(f"/api/matches/{active_match}/unmatch", headers=bob.headers)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["match"]["status"] == "ended"

        pending = app.state.hub.pending_for(alice.id)
        assert [n.type for n in pending] == ["match_ended"]
        assert pending[0].user_id == bob.id

    @pytest.mark.asyncio
    async def test_unmatch_frees_both_users(self, client, alice, bob, carol, active_match) -> None:
        await client.put(f"/api/matches/{active_match}/unmatch", headers=alice.headers)
        response = await client.post("/api/matches", json={"other_user_id": carol.id}, headers=bob.headers)
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_only_active_can_be_unmatched(self, client, alice, bob) -> None:
        response = await client.post("/api/matches", json={"other_user_id": bob.id}, headers=alice.headers)
        response = await client.put(f"/api/matches/{response.json()['id']}/unmatch", headers=alice.headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_outsider_cannot_unmatch(self, client, carol, active_match) -> None:
        response = await client.put(f"/api/matches/{active_match}/unmatch", headers=carol.headers)
        assert response.status_code == 403
