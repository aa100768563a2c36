"""
HTTP and WebSocket integration tests using FastAPI TestClient.
Tests: room REST endpoints, joining over the socket, private role delivery, reconnection.
"""
import random

import pytest
from fastapi.testclient import TestClient

from gamehub.app import create_app
from gamehub.registry import RoomRegistry


@pytest.fixture
def registry():
    return RoomRegistry(min_players=3, game_rng=random.Random(5))


@pytest.fixture
def client(registry):
    with TestClient(create_app(registry=registry)) as test_client:
        yield test_client


def create_room(client, client_id, name="Host"):
    res = client.post("/api/rooms", json={"name": name, "client_id": client_id})
    assert res.status_code == 201
    return res.json()["room_code"]


def recv_until(ws, msg_type, max_messages=100):
    """Receive WS messages until we get the expected type."""
    for _ in range(max_messages):
        data = ws.receive_json()
        if data.get("type") == msg_type:
            return data
    raise TimeoutError(f"Never received {msg_type} after {max_messages} messages")


def join_over_socket(ws, name):
    ws.send_json({"type": "join", "name": name})
    return recv_until(ws, "joined")


# =====================================================================
# REST
# =====================================================================

class TestRooms:
    def test_create_and_check_room(self, client):
        code = create_room(client, "host-1", "Hana")
        assert len(code) == 4

        res = client.get(f"/api/rooms/{code.lower()}/exists")
        assert res.json() == {"exists": True, "room_code": code}
        assert client.get("/api/rooms/ZZZZ/exists").json()["exists"] is False

        room = client.get(f"/api/rooms/{code}").json()
        assert room["host_id"] == "host-1"
        assert room["players"][0]["name"] == "Hana"
        assert room["players"][0]["is_host"] is True

    def test_create_generates_client_id_when_missing(self, client):
        res = client.post("/api/rooms", json={"name": "Hana"})
        assert res.status_code == 201
        assert res.json()["client_id"]

    def test_join_room(self, client):
        code = create_room(client, "host-1")
        res = client.post(f"/api/rooms/{code}/join", json={"name": "  Ben  ", "client_id": "p1"})
        assert res.status_code == 200
        assert res.json()["player"]["name"] == "Ben"

        again = client.post(f"/api/rooms/{code}/join", json={"name": "Other", "client_id": "p1"})
        assert again.json()["player"]["name"] == "Ben"
        assert client.get(f"/api/rooms/{code}").json()["player_count"] == 2

    def test_rest_seats_are_disconnected_until_socket_opens(self, client, registry):
        code = create_room(client, "host-1")
        client.post(f"/api/rooms/{code}/join", json={"name": "Ben", "client_id": "p1"})

        players = client.get(f"/api/rooms/{code}").json()["players"]
        assert [p["connected"] for p in players] == [False, False]
        assert registry.removal_pending(code, "host-1")
        assert registry.removal_pending(code, "p1")

        with client.websocket_connect(f"/ws/{code}?client_id=p1") as ws:
            roster = recv_until(ws, "room")["data"]["players"]
            assert {p["client_id"]: p["connected"] for p in roster} == {"host-1": False, "p1": True}
            assert not registry.removal_pending(code, "p1")
            assert registry.removal_pending(code, "host-1")

    def test_join_unknown_room_is_404(self, client):
        res = client.post("/api/rooms/NOPE/join", json={"name": "Ben", "client_id": "p1"})
        assert res.status_code == 404
        assert client.get("/api/rooms/NOPE").status_code == 404

    def test_list_rooms_and_health(self, client):
        create_room(client, "h1")
        create_room(client, "h2")
        assert len(client.get("/api/rooms").json()) == 2
        health = client.get("/api/health").json()
        assert health["status"] == "ok"
        assert health["rooms"] == 2
        assert health["connections"] == 0


# =====================================================================
# WebSocket
# =====================================================================

class TestWebSocket:
    def test_unknown_room_rejected(self, client):
        with client.websocket_connect("/ws/NOPE?client_id=x") as ws:
            msg = ws.receive_json()
            assert msg["type"] == "error"
            assert msg["code"] == "room_not_found"

    def test_roles_are_private(self, client, registry):
        code = create_room(client, "host")
        with client.websocket_connect(f"/ws/{code}?client_id=host") as host_ws:
            recv_until(host_ws, "room")
            with client.websocket_connect(f"/ws/{code}?client_id=p1") as p1_ws, \
                    client.websocket_connect(f"/ws/{code}?client_id=p2") as p2_ws:
                join_over_socket(p1_ws, "Ann")
                join_over_socket(p2_ws, "Ben")

                host_ws.send_json({"type": "start_game"})
                game = None
                for cid, ws in (("host", host_ws), ("p1", p1_ws), ("p2", p2_ws)):
                    recv_until(ws, "game_started")
                    role_msg = recv_until(ws, "role")
                    game = registry.find(code).game
                    assert role_msg["role"] == game.role_of(cid)

                p2_ws.send_json({"type": "get_state"})
                state = recv_until(p2_ws, "game_state")["data"]
                assert state["my_role"] == game.role_of("p2")
                assert state["phase"] == "role"
                assert state["can_advance"] is False
                assert all("role" not in p for p in state["alive"])

    def test_non_host_start_reports_error(self, client):
        code = create_room(client, "host")
        with client.websocket_connect(f"/ws/{code}?client_id=p1") as p1_ws:
            join_over_socket(p1_ws, "Ann")
            p1_ws.send_json({"type": "start_game"})
            err = recv_until(p1_ws, "error")
            assert err["code"] == "not_authorized"

    def test_start_with_too_few_players_reports_error(self, client):
        code = create_room(client, "host")
        with client.websocket_connect(f"/ws/{code}?client_id=host") as host_ws:
            host_ws.send_json({"type": "start_game"})
            err = recv_until(host_ws, "error")
            assert err["code"] == "insufficient_players"

    def test_reconnect_redelivers_role(self, client, registry):
        code = create_room(client, "host")
        with client.websocket_connect(f"/ws/{code}?client_id=host") as host_ws:
            with client.websocket_connect(f"/ws/{code}?client_id=p2") as p2_ws:
                join_over_socket(p2_ws, "Ben")
                with client.websocket_connect(f"/ws/{code}?client_id=p1") as p1_ws:
                    join_over_socket(p1_ws, "Ann")
                    host_ws.send_json({"type": "start_game"})
                    role = recv_until(p1_ws, "role")["role"]

                # p1 dropped: everyone else sees them as disconnected.
                # Older roster broadcasts (some without p1) are skipped.
                while True:
                    roster = recv_until(host_ws, "room")["data"]["players"]
                    p1 = next((p for p in roster if p["client_id"] == "p1"), None)
                    if p1 is None:
                        continue
                    if not p1["connected"]:
                        break
                assert registry.removal_pending(code, "p1")

                with client.websocket_connect(f"/ws/{code}?client_id=p1") as p1_again:
                    assert recv_until(p1_again, "role")["role"] == role
                    assert not registry.removal_pending(code, "p1")
                    assert registry.find(code).host_id == "host"

    def test_leave_closes_socket_and_updates_roster(self, client):
        code = create_room(client, "host")
        with client.websocket_connect(f"/ws/{code}?client_id=host") as host_ws:
            with client.websocket_connect(f"/ws/{code}?client_id=p1") as p1_ws:
                join_over_socket(p1_ws, "Ann")
                p1_ws.send_json({"type": "leave"})
                left = recv_until(host_ws, "player_left")
                assert left["client_id"] == "p1"
        assert client.get(f"/api/rooms/{code}").json()["player_count"] == 1
