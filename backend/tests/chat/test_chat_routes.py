"""Tests for the /api/chat REST routes."""

import pytest

ALICE = {"Authorization": "Bearer alice-token"}
BOB = {"Authorization": "Bearer bob-token"}


def post(client, content, room_id="bitcoin", headers=ALICE):
    return client.post("/api/chat/messages", json={"roomId": room_id, "content": content}, headers=headers)


class TestAuthentication:
    """Bearer token handling."""

    def test_missing_token(self, client):
        """Test that requests without a token are refused."""
        response = client.get("/api/chat/messages", params={"roomId": "bitcoin"})
        assert response.status_code == 401
        assert response.json() == {"error": "No token provided"}

    def test_invalid_token(self, client):
        """Test that an unknown token is refused."""
        response = client.get(
            "/api/chat/messages",
            params={"roomId": "bitcoin"},
            headers={"Authorization": "Bearer forged"},
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    def test_non_bearer_scheme(self, client):
        """Test that other authorization schemes are ignored."""
        response = client.get("/api/chat/rooms", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401


class TestPostMessage:
    """POST /api/chat/messages."""

    def test_created(self, client):
        """Test a successful post."""
        response = post(client, "hello")
        assert response.status_code == 201
        message = response.json()["message"]
        assert message["content"] == "hello"
        assert message["roomId"] == "bitcoin"
        assert message["user"]["name"] == "Alice"

    def test_too_long(self, client):
        """Test that an over-length body is a 400 and nothing is stored."""
        response = post(client, "x" * 1001)
        assert response.status_code == 400
        assert response.json() == {"error": "Message too long (max 1000 characters)"}
        history = client.get("/api/chat/messages", params={"roomId": "bitcoin"}, headers=ALICE).json()
        assert history["messages"] == []

    def test_unknown_coin(self, client):
        """Test that posting to an unknown coin is a 404."""
        response = post(client, "hi", room_id="not-a-coin")
        assert response.status_code == 404
        assert response.json() == {"error": "Coin not found"}

    def test_missing_room(self, client):
        """Test that a body without roomId is a 400."""
        response = client.post("/api/chat/messages", json={"content": "hi"}, headers=ALICE)
        assert response.status_code == 400

    def test_reaches_live_members(self, client):
        """Test that REST posts are broadcast to sessions in the room."""
        with client.websocket_connect("/ws/chat?token=bob-token") as ws:
            ws.send_json({"event": "join_room", "data": {"roomId": "bitcoin"}})
            assert ws.receive_json()["event"] == "room_joined"

            post(client, "via rest")
            frame = ws.receive_json()
            assert frame["event"] == "message"
            assert frame["data"]["content"] == "via rest"


class TestListMessages:
    """GET /api/chat/messages."""

    def test_paging(self, client):
        """Test limit, hasMore and nextOffset."""
        for content in ("one", "two", "three"):
            assert post(client, content).status_code == 201

        body = client.get(
            "/api/chat/messages", params={"roomId": "bitcoin", "limit": 2}, headers=ALICE
        ).json()
        assert [m["content"] for m in body["messages"]] == ["two", "three"]
        assert body["hasMore"] is True
        assert body["nextOffset"] == 2

        body = client.get(
            "/api/chat/messages", params={"roomId": "bitcoin", "limit": 2, "offset": 2}, headers=ALICE
        ).json()
        assert [m["content"] for m in body["messages"]] == ["one"]
        assert body["hasMore"] is False

    def test_requires_room(self, client):
        """Test that roomId is mandatory."""
        response = client.get("/api/chat/messages", headers=ALICE)
        assert response.status_code == 400

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_bounds(self, client, limit):
        """Test that the page size is bounded."""
        response = client.get(
            "/api/chat/messages", params={"roomId": "bitcoin", "limit": limit}, headers=ALICE
        )
        assert response.status_code == 400


class TestDeleteMessage:
    """DELETE /api/chat/messages/{id}."""

    def test_author_deletes(self, client):
        """Test that the author can delete and the message disappears."""
        message_id = post(client, "oops").json()["message"]["id"]
        response = client.delete(f"/api/chat/messages/{message_id}", headers=ALICE)
        assert response.status_code == 200
        assert response.json() == {"message": "Message deleted successfully"}

        history = client.get("/api/chat/messages", params={"roomId": "bitcoin"}, headers=ALICE).json()
        assert history["messages"] == []

    def test_other_user_forbidden(self, client):
        """Test that a non-author gets 403 and the message stays."""
        message_id = post(client, "mine").json()["message"]["id"]
        response = client.delete(f"/api/chat/messages/{message_id}", headers=BOB)
        assert response.status_code == 403
        assert response.json() == {"error": "You can only delete your own messages"}

        history = client.get("/api/chat/messages", params={"roomId": "bitcoin"}, headers=BOB).json()
        assert [m["id"] for m in history["messages"]] == [message_id]

    def test_missing(self, client):
        """Test deleting an unknown message."""
        response = client.delete("/api/chat/messages/nope", headers=ALICE)
        assert response.status_code == 404
        assert response.json() == {"error": "Message not found"}

    def test_delete_twice(self, client):
        """Test that a deleted message cannot be deleted again."""
        message_id = post(client, "once").json()["message"]["id"]
        client.delete(f"/api/chat/messages/{message_id}", headers=ALICE)
        response = client.delete(f"/api/chat/messages/{message_id}", headers=ALICE)
        assert response.status_code == 404


class TestActiveRooms:
    """GET /api/chat/rooms."""

    def test_lists_rooms(self, client):
        """Test the room summary."""
        post(client, "btc talk")
        post(client, "eth talk", room_id="ethereum")
        body = client.get("/api/chat/rooms", headers=ALICE).json()
        assert body["totalCount"] == 2
        assert {room["roomId"] for room in body["rooms"]} == {"bitcoin", "ethereum"}
        assert all(room["messageCount"] == 1 for room in body["rooms"])

    def test_limit(self, client):
        """Test that the limit is honoured."""
        post(client, "btc talk")
        post(client, "eth talk", room_id="ethereum")
        body = client.get("/api/chat/rooms", params={"limit": 1}, headers=ALICE).json()
        assert body["totalCount"] == 1
