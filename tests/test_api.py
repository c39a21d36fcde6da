"""End-to-end tests for the REST surface using FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient
from langgraph.store.memory import InMemoryStore

import main
from flow.errors import GenerationError
from tests.fakes import FakeGenerator


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main, "store", InMemoryStore())
    monkeypatch.setattr(main, "generator", FakeGenerator(error=GenerationError("offline")))
    monkeypatch.setattr(main, "sessions", {})
    return TestClient(main.app)


def _create(client, **body):
    resp = client.post("/sessions", json={"module": "offer", **body})
    assert resp.status_code == 200
    return resp.json()


class TestSessions:

    def test_create_and_get(self, client):
        created = _create(client, user_id="user-1")
        assert created["current_step"] == 0
        resp = client.get(f"/sessions/{created['session_id']}")
        assert resp.status_code == 200
        assert resp.json()["module"] == "offer"

    def test_unknown_module(self, client):
        assert client.post("/sessions", json={"module": "poetry"}).status_code == 422

    def test_unknown_session(self, client):
        assert client.get("/sessions/does-not-exist").status_code == 404

    def test_logout_closes_session(self, client):
        sid = _create(client, user_id="user-1")["session_id"]
        assert client.post(f"/sessions/{sid}/logout").json()["closed"] is True
        assert client.get(f"/sessions/{sid}").status_code == 404

    def test_close(self, client):
        sid = _create(client)["session_id"]
        assert client.delete(f"/sessions/{sid}").json()["closed"] is True
        assert client.get(f"/sessions/{sid}").status_code == 404


class TestEditing:

    def test_setter_action(self, client):
        sid = _create(client)["session_id"]
        resp = client.patch(f"/sessions/{sid}/fields",
                            json={"action": "set_audience", "params": {"statement": "Solo consultants"}})
        assert resp.status_code == 200
        assert resp.json()["state"]["offer"]["audience"] == "Solo consultants"
        assert resp.json()["steps"][0]["complete"] is True

    def test_plain_patch(self, client):
        sid = _create(client)["session_id"]
        resp = client.patch(f"/sessions/{sid}/fields", json={"fields": {"cta_text": "Join"}})
        assert resp.json()["state"]["offer"]["cta_text"] == "Join"

    @pytest.mark.parametrize("body", [
        {"fields": {"nope": 1}},
        {"container": "ghost", "fields": {"title": "x"}},
        {"action": "replace", "params": {"snapshot": {}}},
        {"action": "_update", "params": {}},
    ])
    def test_invalid_edits(self, client, body):
        sid = _create(client)["session_id"]
        assert client.patch(f"/sessions/{sid}/fields", json=body).status_code == 422

    def test_badly_typed_field_is_rejected(self, client):
        sid = _create(client)["session_id"]
        resp = client.patch(f"/sessions/{sid}/fields", json={"fields": {"audience": 42}})
        assert resp.status_code == 422
        resp = client.get(f"/sessions/{sid}")
        assert resp.status_code == 200
        assert resp.json()["state"]["offer"]["audience"] == ""

    def test_read_only_session_refuses_edits(self, client):
        sid = _create(client, read_only=True)["session_id"]
        resp = client.patch(f"/sessions/{sid}/fields", json={"fields": {"cta_text": "x"}})
        assert resp.status_code == 409


class TestNavigation:

    def test_next_is_gated(self, client):
        sid = _create(client)["session_id"]
        resp = client.post(f"/sessions/{sid}/navigate", json={"action": "next"})
        assert resp.json()["moved"] is False
        assert resp.json()["current_step"] == 0

    def test_unknown_step_id(self, client):
        sid = _create(client)["session_id"]
        resp = client.post(f"/sessions/{sid}/navigate", json={"action": "goto", "step_id": "nowhere"})
        assert resp.status_code == 422


class TestSaveFlow:

    def test_save_requires_auth_then_resumes(self, client):
        sid = _create(client)["session_id"]
        resp = client.post(f"/sessions/{sid}/save")
        assert resp.json()["saved"] is None
        assert resp.json()["show_auth_prompt"] is True

        resp = client.post(f"/sessions/{sid}/auth", json={"user_id": "user-7"})
        body = resp.json()
        assert body["saved"]["id"] == body["record_id"]
        assert body["show_auth_prompt"] is False

    def test_title_prompt(self, client):
        sid = _create(client, user_id="user-1")["session_id"]
        client.patch(f"/sessions/{sid}/fields", json={"fields": {"title": ""}})
        assert client.post(f"/sessions/{sid}/save").json()["show_title_prompt"] is True
        body = client.post(f"/sessions/{sid}/title", json={"title": "Spring Offer"}).json()
        assert body["saved"]["payload"]["title"] == "Spring Offer"


class TestGeneration:

    def test_fallback_applied(self, client):
        sid = _create(client)["session_id"]
        body = client.post(f"/sessions/{sid}/generate/advantages").json()
        assert body["applied"] is True
        assert len(body["state"]["offer"]["advantages"]) == 1

    def test_unknown_target(self, client):
        sid = _create(client)["session_id"]
        assert client.post(f"/sessions/{sid}/generate/limerick").status_code == 422
