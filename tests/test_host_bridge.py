"""Tests for the FastAPI host bridge over a real WebSocket (TestClient)."""

import pytest
from fastapi.testclient import TestClient

from main import app
from narration.session import session_manager


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _snapshot_payload(**fields):
    payload = {
        "run_state": "choice",
        "selection": [{"id": "c1", "name": "Sword", "buy_price": 5}],
        "hero": {"health": 40, "max_health": 50, "gold": 10},
        "can_exit": True,
    }
    payload.update(fields)
    return payload


def _connect(client, session_id):
    ws = client.websocket_connect(f"/ws/narration/{session_id}")
    return ws


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_connect_and_ping(client):
    with _connect(client, "bridge-ping") as ws:
        assert ws.receive_json() == {"type": "connected", "sessionId": "bridge-ping"}
        assert session_manager.get("bridge-ping") is not None
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_input_is_narrated_from_pushed_snapshot(client):
    with _connect(client, "bridge-input") as ws:
        ws.receive_json()
        ws.send_json({"type": "snapshot", "data": _snapshot_payload()})
        ws.send_json({"type": "input", "data": {"command": "go_to_hero"}})
        assert ws.receive_json() == {"type": "speak", "text": "Hero stats", "interrupt": True}
        assert ws.receive_json() == {"type": "speak", "text": "Health: 40", "interrupt": False}


def test_actions_are_relayed_to_the_host(client):
    with _connect(client, "bridge-action") as ws:
        ws.receive_json()
        ws.send_json({"type": "snapshot", "data": _snapshot_payload()})
        ws.send_json({"type": "input", "data": {"command": "confirm"}})
        assert ws.receive_json() == {"type": "action", "action": "buy", "cardId": "c1"}

        ws.send_json({"type": "input", "data": {"command": "exit"}})
        assert ws.receive_json() == {"type": "action", "action": "exit_state"}
        assert ws.receive_json() == {"type": "speak", "text": "Exiting", "interrupt": True}


def test_events_are_ingested(client):
    with _connect(client, "bridge-event") as ws:
        ws.receive_json()
        ws.send_json({"type": "snapshot", "data": _snapshot_payload()})
        ws.send_json({"type": "event", "data": {"type": "mystery"}})
        ws.send_json({"type": "event", "data": {"type": "state_transition", "state": "choice"}})
        assert ws.receive_json() == {"type": "speak", "text": "Shop", "interrupt": True}


def test_combat_outcome_over_the_bridge(client):
    with _connect(client, "bridge-outcome") as ws:
        ws.receive_json()
        ws.send_json({"type": "mode", "data": {"mode": "combat", "entered": True, "enemyName": "Boss"}})
        ws.send_json({"type": "event", "data": {"type": "combat_outcome", "victory": True, "victories": 4}})
        assert ws.receive_json() == {"type": "speak", "text": "Victory! 4 wins", "interrupt": True}


def test_bad_messages_are_reported(client):
    with _connect(client, "bridge-errors") as ws:
        ws.receive_json()

        ws.send_text("{not json")
        assert ws.receive_json()["code"] == "PARSE_ERROR"

        ws.send_json({"type": "teleport"})
        assert ws.receive_json()["code"] == "UNKNOWN_TYPE"

        ws.send_json({"type": "mode", "data": {"mode": "shopping"}})
        assert ws.receive_json()["code"] == "INVALID_MODE"

        ws.send_json({"type": "snapshot", "data": {"run_state": "nowhere"}})
        assert ws.receive_json()["code"] == "INVALID_SNAPSHOT"
