import asyncio

import pytest
from fastapi.testclient import TestClient

from onboarding.api import app, get_registry
from onboarding.ledger import provider
from onboarding.ledger.stub_client import StubLedgerClient
from onboarding.service import SessionRegistry


@pytest.fixture()
def client(ledger):
    registry = SessionRegistry(ledger, write_timeout=1.0)
    app.dependency_overrides[get_registry] = lambda: registry
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


def open_session(client):
    r = client.post("/sessions")
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_new_session_needs_account(client):
    body = open_session(client)

    assert body["step"] == "need_account"
    assert [r["kind"] for r in body["resources"]] == ["account", "profile", "definition", "instance"]
    assert [r["exists"] for r in body["resources"]] == ["absent", "unknown", "unknown", "unknown"]
    assert {"action": "create", "label": "Fund wallet", "kind": "account"} in body["node"]["actions"]
    assert body["outcome"] is None


def test_unknown_session_is_404(client):
    assert client.get("/sessions/nope").status_code == 404
    assert client.post("/sessions/nope/probe").status_code == 404
    assert client.delete("/sessions/nope").status_code == 404


def test_walk_over_http(client):
    sid = open_session(client)["session_id"]

    for kind, step in (
        ("account", "need_profile"),
        ("profile", "need_definition"),
        ("definition", "need_instance"),
        ("instance", "complete"),
    ):
        r = client.post(f"/sessions/{sid}/resources/{kind}")
        assert r.status_code == 200, r.text
        assert r.json()["outcome"]["status"] == "created"

        r = client.post(f"/sessions/{sid}/probe")
        assert r.status_code == 200, r.text
        assert r.json()["step"] == step

    body = client.get(f"/sessions/{sid}").json()
    assert body["completed"] is True
    assert body["in_progress"] is False

    again = client.post(f"/sessions/{sid}/resources/profile").json()
    assert again["outcome"]["status"] == "cached"


def test_create_before_parent_reports_missing(client, ledger):
    sid = open_session(client)["session_id"]

    body = client.post(f"/sessions/{sid}/resources/instance").json()

    assert body["outcome"]["status"] == "failed"
    assert "account" in body["outcome"]["error"]
    assert body["node"]["step"] == "need_account"
    assert ledger.writes == []


def test_stage_parameters(client):
    sid = open_session(client)["session_id"]

    ok = client.put(f"/sessions/{sid}/parameters/definition", json={"name": "Robotics Club"})
    assert ok.status_code == 200

    too_long = client.put(f"/sessions/{sid}/parameters/definition", json={"name": "x" * 33})
    assert too_long.status_code == 400

    bad_kind = client.put(f"/sessions/{sid}/parameters/wallet", json={})
    assert bad_kind.status_code == 422


def test_start_another_boundary(client):
    sid = open_session(client)["session_id"]

    assert client.post(f"/sessions/{sid}/start-another", json={"clear_from": "profile"}).status_code == 400
    assert client.post(f"/sessions/{sid}/start-another", json={}).status_code == 422

    r = client.post(f"/sessions/{sid}/start-another", json={"clear_from": "instance"})
    assert r.status_code == 200
    assert r.json()["resources"][3]["exists"] == "unknown"


def test_reset_and_close(client):
    sid = open_session(client)["session_id"]

    r = client.post(f"/sessions/{sid}/reset")
    assert r.status_code == 200
    assert r.json()["in_progress"] is False

    assert client.delete(f"/sessions/{sid}").status_code == 204
    assert client.get(f"/sessions/{sid}").status_code == 404


def test_help(client):
    body = client.get("/help").json()
    assert "wallet" in body["text"].lower()
    assert body["actions"][0]["kind"] == "account"


class ClosingLedger(StubLedgerClient):
    def __init__(self):
        super().__init__()
        self.closed = 0

    async def aclose(self):
        self.closed += 1


def test_shutdown_closes_shared_ledger_client(monkeypatch):
    ledger = ClosingLedger()
    monkeypatch.setattr(provider, "_client", ledger)
    monkeypatch.setattr("onboarding.api._registry", None)

    with TestClient(app) as c:
        assert c.post("/sessions").status_code == 201
        assert ledger.closed == 0

    assert ledger.closed == 1
    assert provider._client is None


def test_close_without_client_is_a_noop(monkeypatch):
    monkeypatch.setattr(provider, "_client", None)
    asyncio.run(provider.close_ledger_client())
    assert provider._client is None
