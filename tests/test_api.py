import inspect
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from core.store import InMemoryQuoteStore, JsonFileQuoteStore
from core.wizard import KioskWizard
from web.api import app, get_sessions, get_store
from web.sessions import SessionRegistry


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(clock):
    return SessionRegistry(timedelta(minutes=30), clock=clock)


@pytest.fixture
def client(sessions):
    store = InMemoryQuoteStore()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_sessions] = lambda: sessions
    with TestClient(app) as http:
        yield http
    app.dependency_overrides.clear()


def send(client, sid, event):
    resp = client.post(f"/kiosk/sessions/{sid}/events", json={"event": event})
    assert resp.status_code == 200, resp.text
    return resp.json()


def advance(client, sid):
    resp = client.post(f"/kiosk/sessions/{sid}/advance")
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_estimate_with_preset(client):
    resp = client.post(
        "/estimate",
        params={"preset": "MEDIUM"},
        json={"tier": "BETTER", "plumbing_move_count": 1, "include_demo": True},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["estimate"] == {"low": 9800.0, "high": 11500.0, "subtotal": 10650.0, "deposit_credit": 28.75}
    assert len(body["line_items"]) == 7


def test_estimate_rejects_bad_sizes(client):
    resp = client.post(
        "/estimate",
        json={"length_ft": 0, "width_ft": 10, "cabinet_lf": 10, "countertop_lf": 5},
    )
    assert resp.status_code == 400


def test_estimate_unknown_preset(client):
    resp = client.post("/estimate", params={"preset": "HUGE"}, json={})
    assert resp.status_code == 400


def test_pricebook_endpoint(client):
    body = client.get("/pricebook").json()
    assert body["deposit"] == 28.75
    assert [p["id"] for p in body["presets"]] == ["SMALL", "MEDIUM", "LARGE"]


def test_session_walkthrough(client):
    resp = client.post("/kiosk/sessions")
    assert resp.status_code == 201
    sid = resp.json()["session_id"]
    assert resp.json()["step"] == "welcome"

    assert advance(client, sid)["step"] == "customer"

    blocked = advance(client, sid)
    assert blocked["step"] == "customer"
    assert blocked["outcome"]["ok"] is False
    assert blocked["outcome"]["title"] == "Missing Information"

    send(client, sid, {"kind": "customer", "name": "Jane", "phone": "555", "email": "jane@example.com"})
    assert advance(client, sid)["step"] == "kitchen"

    send(client, sid, {"kind": "preset", "preset_id": "SMALL"})
    assert advance(client, sid)["step"] == "materials"

    view = send(client, sid, {"kind": "tier", "tier": "BEST"})
    assert view["draft"]["tier"] == "BEST"
    advance(client, sid)
    advance(client, sid)

    send(client, sid, {"kind": "slot", "slot": "Fri 3:00 PM"})
    assert advance(client, sid)["step"] == "payment"

    done = advance(client, sid)
    assert done["step"] == "confirm"
    assert done["draft"]["status"] == "APPOINTMENT_BOOKED"
    assert done["draft"]["reference_code"].startswith("KQ-")

    booked = client.get("/kiosk/quotes", params={"status": "APPOINTMENT_BOOKED"}).json()
    assert [q["reference_code"] for q in booked] == [done["draft"]["reference_code"]]

    reset = client.post(f"/kiosk/sessions/{sid}/reset").json()
    assert reset["step"] == "welcome"
    assert reset["draft"] is None


def test_rejected_event_is_reported(client):
    sid = client.post("/kiosk/sessions").json()["session_id"]
    advance(client, sid)

    view = send(client, sid, {"kind": "tier", "tier": "BEST"})
    assert view["outcome"]["ok"] is False
    assert view["step"] == "customer"


def test_malformed_event_is_422(client):
    sid = client.post("/kiosk/sessions").json()["session_id"]
    resp = client.post(f"/kiosk/sessions/{sid}/events", json={"event": {"kind": "tier", "tier": "PLATINUM"}})
    assert resp.status_code == 422


def test_unknown_session_is_404(client):
    assert client.get("/kiosk/sessions/nope").status_code == 404
    assert client.post("/kiosk/sessions/nope/advance").status_code == 404


def test_stale_quotes_empty_for_fresh_drafts(client):
    sid = client.post("/kiosk/sessions").json()["session_id"]
    advance(client, sid)
    send(client, sid, {"kind": "customer", "name": "Jane", "phone": "555", "email": "jane@example.com"})
    advance(client, sid)

    assert len(client.get("/kiosk/quotes", params={"status": "DRAFT"}).json()) == 1
    assert client.get("/kiosk/quotes/stale").json() == []


def test_closed_session_is_removed(client, sessions):
    sids = [client.post("/kiosk/sessions").json()["session_id"] for _ in range(5)]
    assert len(sessions) == 5

    assert client.delete(f"/kiosk/sessions/{sids[0]}").status_code == 204
    assert len(sessions) == 4
    assert client.get(f"/kiosk/sessions/{sids[0]}").status_code == 404
    assert client.delete(f"/kiosk/sessions/{sids[0]}").status_code == 404


def test_idle_sessions_expire(client, sessions, clock):
    for _ in range(50):
        client.post("/kiosk/sessions")
    assert len(sessions) == 50

    clock.now += timedelta(minutes=31)
    fresh = client.post("/kiosk/sessions").json()["session_id"]

    assert len(sessions) == 1
    assert fresh in sessions


def test_active_session_survives_expiry(client, sessions, clock):
    kept = client.post("/kiosk/sessions").json()["session_id"]
    idle = client.post("/kiosk/sessions").json()["session_id"]

    clock.now += timedelta(minutes=20)
    advance(client, kept)
    clock.now += timedelta(minutes=20)
    client.post("/kiosk/sessions")

    assert kept in sessions
    assert idle not in sessions


def test_busy_session_is_not_expired(clock, pricebook):
    registry = SessionRegistry(timedelta(minutes=30), clock=clock)
    wizard = KioskWizard(InMemoryQuoteStore(), pricebook=pricebook)
    sid = registry.add(wizard)
    wizard._busy = True

    clock.now += timedelta(hours=2)

    assert registry.prune() == 0
    assert sid in registry


def test_session_endpoints_run_on_the_event_loop():
    routes = [r for r in app.routes if isinstance(r, APIRoute) and r.path.startswith("/kiosk/sessions")]
    assert routes
    for route in routes:
        assert inspect.iscoroutinefunction(route.endpoint), route.path


def test_unreadable_history_is_503(client, tmp_path):
    history = tmp_path / "history"
    history.mkdir()
    (history / "broken.json").write_text("{not json", encoding="utf-8")
    store = JsonFileQuoteStore(history)
    app.dependency_overrides[get_store] = lambda: store

    assert client.get("/kiosk/quotes").status_code == 503
    assert client.get("/kiosk/quotes/stale").status_code == 503
