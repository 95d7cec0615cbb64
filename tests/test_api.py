"""End-to-end tests for the FastAPI match server."""

from __future__ import annotations

import time

from fastapi.testclient import TestClient

from tictacmoji.config import Settings
from tictacmoji.server import create_app

SETTINGS = Settings(heartbeat_seconds=0, countdown_tick_seconds=0.0)

ANN = {"name": "Ann", "avatar": "🍄"}
BO = {"name": "Bo", "avatar": "🌼"}
COUNTDOWN = [
    {"type": "countdown", "count": 3},
    {"type": "countdown", "count": 2},
    {"type": "countdown", "count": 1},
    {"type": "game_start"},
]


def make_client(code: str = "AB12") -> TestClient:
    return TestClient(create_app(SETTINGS, code_generator=lambda: code))


def receive(ws, n: int):
    return [ws.receive_json() for _ in range(n)]


def receive_skipping_pings(ws):
    while True:
        message = ws.receive_json()
        if message != {"type": "ping"}:
            return message


def test_health_returns_plain_ok():
    with make_client() as client:
        response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "OK"


def test_other_http_requests_return_404():
    with make_client() as client:
        assert client.get("/").status_code == 404
        assert client.get("/rooms").status_code == 404
        assert client.post("/health").status_code == 404


def test_full_match_scenario():
    with make_client() as client:
        with client.websocket_connect("/") as ann, client.websocket_connect("/") as bo:
            ann.send_json({"type": "create_room", "userData": ANN})
            assert ann.receive_json() == {"type": "room_created", "roomId": "AB12"}

            bo.send_json({"type": "join_room", "roomId": "AB12", "userData": BO})
            assert ann.receive_json() == {"type": "player_joined", "opponent": BO}
            assert bo.receive_json() == {
                "type": "joined_room",
                "roomId": "AB12",
                "opponent": ANN,
            }
            assert receive(ann, 4) == COUNTDOWN
            assert receive(bo, 4) == COUNTDOWN

            ann.send_json({"type": "move", "index": 4})
            assert bo.receive_json() == {"type": "opponent_move", "index": 4, "player": 0}

            # Duplicate of an occupied cell is dropped; the next frame Ann sees
            # is Bo's legal follow-up.
            bo.send_json({"type": "move", "index": 4})
            bo.send_json({"type": "move", "index": 0})
            assert ann.receive_json() == {"type": "opponent_move", "index": 0, "player": 1}

            room = client.app.state.store.get("AB12")
            assert room.board.cells[4] == 0
            assert room.board.cells[0] == 1

            bo.close()
            assert ann.receive_json() == {"type": "opponent_left"}

            ann.send_json({"type": "join_room", "roomId": "AB12", "userData": ANN})
            assert ann.receive_json() == {"type": "error", "message": "Room not found"}


def test_rematch_handshake_over_websocket():
    with make_client("RM42") as client:
        with client.websocket_connect("/") as ann, client.websocket_connect("/") as bo:
            ann.send_json({"type": "create_room", "userData": ANN})
            ann.receive_json()
            bo.send_json({"type": "join_room", "roomId": "rm42", "userData": BO})
            receive(ann, 5)
            receive(bo, 5)

            ann.send_json({"type": "move", "index": 0})
            bo.receive_json()

            bo.send_json({"type": "request_rematch"})
            assert ann.receive_json() == {"type": "rematch_requested"}

            ann.send_json({"type": "request_rematch"})
            assert receive(ann, 4) == COUNTDOWN
            assert receive(bo, 4) == COUNTDOWN

            room = client.app.state.store.get("RM42")
            assert room.board.is_empty()
            assert room.turn == 0
            assert room.game_active is True


def test_malformed_frames_keep_connection_open():
    with make_client() as client:
        with client.websocket_connect("/") as ws:
            ws.send_text("definitely not json")
            ws.send_json({"type": "unknown_thing"})
            ws.send_json({"type": "join_room", "roomId": "ZZZZ"})
            assert ws.receive_json() == {"type": "error", "message": "Room not found"}
            assert len(client.app.state.store) == 0


def test_idle_client_survives_heartbeat_sweeps():
    settings = Settings(heartbeat_seconds=0.05, countdown_tick_seconds=0.0)
    app = create_app(settings, code_generator=lambda: "ID1E")
    with TestClient(app) as client:
        with client.websocket_connect("/") as ann:
            ann.send_json({"type": "create_room", "userData": ANN})
            assert receive_skipping_pings(ann) == {
                "type": "room_created",
                "roomId": "ID1E",
            }

            # Ann never answers the pings; several sweeps run meanwhile.
            time.sleep(0.3)

            with client.websocket_connect("/") as bo:
                bo.send_json({"type": "join_room", "roomId": "ID1E", "userData": BO})
                assert receive_skipping_pings(ann) == {
                    "type": "player_joined",
                    "opponent": BO,
                }
                assert receive_skipping_pings(bo)["type"] == "joined_room"
                assert len(client.app.state.registry) == 2


def test_overlong_profile_is_clipped_not_dropped():
    long_name = "N" * 100
    with make_client() as client:
        with client.websocket_connect("/") as ann, client.websocket_connect("/") as bo:
            profile = {"name": long_name, "avatar": "🍄"}
            ann.send_json({"type": "create_room", "userData": profile})
            assert ann.receive_json() == {"type": "room_created", "roomId": "AB12"}

            bo.send_json(
                {"type": "join_room", "roomId": "AB12", "userData": {"name": "Bo"}}
            )
            joined = bo.receive_json()
            assert joined["type"] == "joined_room"
            assert joined["opponent"] == {"name": "N" * 64, "avatar": "🍄"}
            # Bo's profile lacked an avatar, so the guest default stands in.
            assert ann.receive_json() == {
                "type": "player_joined",
                "opponent": {"name": "Player 2", "avatar": "🤠"},
            }
