"""Tests for the FastAPI REST endpoints."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app import create_app
from store import SessionStore


@pytest.fixture
def store():
    return SessionStore(max_sessions=3)


@pytest.fixture
def client(store):
    app = create_app(store=store, log_level="WARNING")
    return TestClient(app)


@pytest.fixture
def session_id(client) -> str:
    return client.post("/sessions", json={"label": "desk"}).json()["id"]


def _press(client, session_id: str, *labels: str) -> dict:
    resp = client.post(f"/sessions/{session_id}/sequence", json={"keys": list(labels)})
    assert resp.status_code == 200, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# POST /sessions
# ---------------------------------------------------------------------------

class TestCreateEndpoint:

    def test_create_returns_201(self, client):
        resp = client.post("/sessions", json={})
        assert resp.status_code == 201

    def test_create_without_body(self, client):
        resp = client.post("/sessions")
        assert resp.status_code == 201
        assert resp.json()["label"] == ""

    def test_create_returns_initial_state(self, client):
        data = client.post("/sessions", json={"label": "desk"}).json()
        assert data["label"] == "desk"
        assert data["state"]["display"] == "0"
        assert data["state"]["phase"] == "entering_first"
        assert data["state"]["operator"] is None
        assert data["key_count"] == 0

    def test_create_beyond_limit_429(self, client):
        for _ in range(3):
            assert client.post("/sessions").status_code == 201
        resp = client.post("/sessions")
        assert resp.status_code == 429


# ---------------------------------------------------------------------------
# GET /sessions
# ---------------------------------------------------------------------------

class TestListEndpoint:

    def test_list_empty(self, client):
        data = client.get("/sessions").json()
        assert data["items"] == []
        assert data["total"] == 0

    def test_list_returns_created(self, client):
        client.post("/sessions")
        client.post("/sessions")
        data = client.get("/sessions").json()
        assert len(data["items"]) == 2
        assert data["total"] == 2

    def test_list_pagination(self, client):
        for _ in range(3):
            client.post("/sessions")
        data = client.get("/sessions", params={"offset": 1, "limit": 1}).json()
        assert len(data["items"]) == 1
        assert data["total"] == 3

    def test_list_bad_limit_422(self, client):
        assert client.get("/sessions", params={"limit": 0}).status_code == 422


# ---------------------------------------------------------------------------
# GET /sessions/{id}
# ---------------------------------------------------------------------------

class TestGetEndpoint:

    def test_get_existing(self, client, session_id):
        resp = client.get(f"/sessions/{session_id}")
        assert resp.status_code == 200
        assert resp.json()["id"] == session_id

    def test_get_reflects_presses(self, client, session_id):
        _press(client, session_id, "4", "2")
        data = client.get(f"/sessions/{session_id}").json()
        assert data["state"]["display"] == "42"
        assert data["key_count"] == 2

    def test_get_nonexistent_404(self, client):
        assert client.get("/sessions/nonexistent").status_code == 404


# ---------------------------------------------------------------------------
# POST /sessions/{id}/keys
# ---------------------------------------------------------------------------

class TestKeyEndpoint:

    def test_press_digit(self, client, session_id):
        resp = client.post(f"/sessions/{session_id}/keys", json={"key": "7"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["display"] == "7"
        assert data["first_operand"] == "7"
        assert data["clear_label"] == "C"

    def test_press_printed_label(self, client, session_id):
        client.post(f"/sessions/{session_id}/keys", json={"key": "9"})
        resp = client.post(f"/sessions/{session_id}/keys", json={"key": "÷"})
        assert resp.json()["operator"] == "/"

    def test_press_unknown_key_422(self, client, session_id):
        resp = client.post(f"/sessions/{session_id}/keys", json={"key": "sqrt"})
        assert resp.status_code == 422
        assert "sqrt" in resp.json()["detail"]

    def test_press_missing_key_422(self, client, session_id):
        resp = client.post(f"/sessions/{session_id}/keys", json={})
        assert resp.status_code == 422

    def test_press_nonexistent_404(self, client):
        resp = client.post("/sessions/bad-id/keys", json={"key": "1"})
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# POST /sessions/{id}/sequence
# ---------------------------------------------------------------------------

class TestSequenceEndpoint:

    def test_chaining(self, client, session_id):
        assert _press(client, session_id, "5", "+", "3", "=")["display"] == "8"
        assert _press(client, session_id, "+", "2", "=")["display"] == "10"

    def test_divide_by_zero(self, client, session_id):
        data = _press(client, session_id, "5", "÷", "0", "=")
        assert data["display"] == "Error"
        assert data["phase"] == "error"
        assert _press(client, session_id, "7")["display"] == "Error"
        assert _press(client, session_id, "AC")["display"] == "0"

    def test_percent_and_sign(self, client, session_id):
        assert _press(client, session_id, "5", "0", "%")["display"] == "0.5"
        assert _press(client, session_id, "+/-")["display"] == "-0.5"

    def test_unknown_key_applies_nothing(self, client, session_id):
        resp = client.post(
            f"/sessions/{session_id}/sequence", json={"keys": ["1", "?"]}
        )
        assert resp.status_code == 422
        data = client.get(f"/sessions/{session_id}").json()
        assert data["state"]["display"] == "0"

    def test_empty_sequence_422(self, client, session_id):
        resp = client.post(f"/sessions/{session_id}/sequence", json={"keys": []})
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# DELETE /sessions/{id}
# ---------------------------------------------------------------------------

class TestDeleteEndpoint:

    def test_delete_returns_deleted(self, client, session_id):
        resp = client.delete(f"/sessions/{session_id}")
        assert resp.status_code == 200
        assert resp.json()["id"] == session_id

    def test_delete_removes_session(self, client, session_id):
        client.delete(f"/sessions/{session_id}")
        assert client.get(f"/sessions/{session_id}").status_code == 404

    def test_delete_nonexistent_404(self, client):
        assert client.delete("/sessions/bad-id").status_code == 404


# ---------------------------------------------------------------------------
# GET /keypad
# ---------------------------------------------------------------------------

class TestKeypadEndpoint:

    def test_default_layout(self, client):
        rows = client.get("/keypad").json()["rows"]
        assert rows[0] == ["AC", "+/-", "%", "÷"]
        assert len(rows) == 5

    def test_clear_label(self, client):
        rows = client.get("/keypad", params={"clear_label": "C"}).json()["rows"]
        assert rows[0][0] == "C"

    def test_bad_clear_label_422(self, client):
        assert client.get("/keypad", params={"clear_label": "X"}).status_code == 422
