"""Tests for the HTTP API: registration, profile, session start/end, probes."""

import tempfile

from fastapi.testclient import TestClient

from conftest import AppHarness
from livestylist.core.config import RateLimitConfig

DEVICE = "6f1c2a9e-3b7d-4e2f-9a1b-0c5d8e7f6a21"
OTHER_DEVICE = "0b9d7c3e-2a4f-4c8b-8e1d-5f6a7b8c9d0e"


def headers(device_id: str = DEVICE) -> dict:
    return {"X-Device-ID": device_id}


def register(client, device_id: str = DEVICE, **fields):
    body = {"name": "Ada", "favorite_color": "green"}
    body.update(fields)
    return client.post("/register", json=body, headers=headers(device_id))


# ─── Probes ───────────────────────────────────────────────────


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["active_sessions"] == 0


def test_ready(client):
    resp = client.get("/ready")

    assert resp.status_code == 200
    assert resp.json()["store"] == "connected"


def test_metrics(client):
    register(client)
    client.post("/start-session", json={}, headers=headers())

    counters = client.get("/metrics").json()["counters"]
    assert counters["session.started{tier=free}"] == 1


# ─── Device id ────────────────────────────────────────────────


def test_missing_device_id(client):
    resp = client.get("/profile")

    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_device_id"


def test_malformed_device_id(client):
    resp = client.get("/profile", headers=headers("not-a-uuid"))

    assert resp.status_code == 400


# ─── Users ────────────────────────────────────────────────────


def test_register_and_profile(client):
    resp = register(client, stylist_name="Mira", language="de")
    assert resp.status_code == 201
    assert resp.json()["stylist_name"] == "Mira"

    profile = client.get("/profile", headers=headers()).json()
    assert profile["name"] == "Ada"
    assert profile["language"] == "de"
    assert profile["sessions_used_today"] == 0


def test_register_twice_conflicts(client):
    register(client)
    resp = register(client)

    assert resp.status_code == 409
    assert resp.json()["error"] == "conflict"


def test_register_validation(client):
    resp = register(client, name="Ada99")

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "validation_error"
    assert body["details"]


def test_profile_not_registered(client):
    assert client.get("/profile", headers=headers()).status_code == 404


def test_update_profile(client):
    register(client)
    resp = client.put("/profile", json={"favorite_color": "navy blue"}, headers=headers())

    assert resp.status_code == 200
    assert resp.json()["favorite_color"] == "navy blue"
    assert resp.json()["name"] == "Ada"


def test_update_profile_not_registered(client):
    resp = client.put("/profile", json={"name": "Ada"}, headers=headers())

    assert resp.status_code == 404


def test_session_history_empty(client):
    register(client)

    assert client.get("/session-history", headers=headers()).json() == {"sessions": []}


# ─── Sessions ─────────────────────────────────────────────────


def test_start_session_requires_registration(client):
    resp = client.post("/start-session", json={}, headers=headers())

    assert resp.status_code == 404


def test_start_session(client):
    register(client)
    resp = client.post("/start-session", json={"occasion": "work"}, headers=headers())

    assert resp.status_code == 201
    data = resp.json()
    assert data["session_id"]
    assert data["remaining_sessions_today"] == 0
    assert data["session_expiry_time"] > 0
    assert data["ws_url"].endswith("/ws/live")
    assert client.get("/health").json()["active_sessions"] == 1


def test_start_session_rejects_unknown_occasion(client):
    register(client)
    resp = client.post("/start-session", json={"occasion": "funeral"}, headers=headers())

    assert resp.status_code == 400


def test_free_tier_daily_limit(client):
    register(client)
    client.post("/start-session", json={}, headers=headers())
    resp = client.post("/start-session", json={}, headers=headers())

    assert resp.status_code == 429
    body = resp.json()
    assert body["error"] == "session_limit_exceeded"
    assert body["sessions_used_today"] == 1
    assert body["remaining_sessions_today"] == 0


def test_premium_start_replaces_running_session(client, app_harness):
    app_harness.entitlements.premium.add(DEVICE)
    register(client)

    first = client.post("/start-session", json={}, headers=headers()).json()
    second = client.post("/start-session", json={}, headers=headers()).json()

    assert second["session_id"] != first["session_id"]
    assert second["remaining_sessions_today"] == 3
    assert client.get("/health").json()["active_sessions"] == 1

    resp = client.post(
        "/end-session", json={"session_id": first["session_id"]}, headers=headers()
    )
    assert resp.status_code == 404


def test_end_session(client):
    register(client)
    session_id = client.post("/start-session", json={}, headers=headers()).json()["session_id"]

    resp = client.post("/end-session", json={"session_id": session_id}, headers=headers())

    assert resp.status_code == 200
    data = resp.json()
    assert data["session_id"] == session_id
    assert data["reason"] == "manual"
    assert data["duration_seconds"] >= 0

    again = client.post("/end-session", json={"session_id": session_id}, headers=headers())
    assert again.status_code == 404


def test_end_session_other_device(client):
    register(client)
    session_id = client.post("/start-session", json={}, headers=headers()).json()["session_id"]

    resp = client.post(
        "/end-session", json={"session_id": session_id}, headers=headers(OTHER_DEVICE)
    )

    assert resp.status_code == 403
    assert client.get("/health").json()["active_sessions"] == 1


# ─── Rate limiting ────────────────────────────────────────────


def limited_client(tmpdir: str, **limits) -> TestClient:
    harness = AppHarness(tmpdir, rate_limit=RateLimitConfig(**limits))
    return TestClient(harness.app)


def test_general_rate_limit_per_device():
    with tempfile.TemporaryDirectory() as tmpdir:
        with limited_client(tmpdir, general="3/minute") as c:
            codes = [c.get("/profile", headers=headers()).status_code for _ in range(4)]
            other = c.get("/profile", headers=headers(OTHER_DEVICE))

    assert codes == [404, 404, 404, 429]
    assert other.status_code == 404


def test_rate_limit_body():
    with tempfile.TemporaryDirectory() as tmpdir:
        with limited_client(tmpdir, general="1/minute") as c:
            c.get("/profile", headers=headers())
            resp = c.get("/profile", headers=headers())
            health = c.get("/health")

    assert resp.status_code == 429
    assert resp.json() == {
        "error": "rate_limit_exceeded",
        "message": "Too many requests. Please try again later.",
    }
    assert health.status_code == 200


def test_session_start_rate_limit():
    with tempfile.TemporaryDirectory() as tmpdir:
        with limited_client(tmpdir, session_start="2/hour") as c:
            register(c)
            first = c.post("/start-session", json={}, headers=headers())
            second = c.post("/start-session", json={}, headers=headers())
            third = c.post("/start-session", json={}, headers=headers())
            profile = c.get("/profile", headers=headers())

    assert first.status_code == 201
    assert second.json()["error"] == "session_limit_exceeded"
    assert third.status_code == 429
    assert third.json() == {
        "error": "rate_limit_exceeded",
        "message": "Too many session requests. Please try again later.",
    }
    assert profile.status_code == 200


def test_rate_limit_disabled():
    with tempfile.TemporaryDirectory() as tmpdir:
        with limited_client(tmpdir, enabled=False, general="1/minute") as c:
            codes = [c.get("/profile", headers=headers()).status_code for _ in range(3)]

    assert codes == [404, 404, 404]


# ─── App wiring ───────────────────────────────────────────────


def test_app_shares_one_task_supervisor(client, app_harness):
    state = app_harness.app.state

    assert state.manager.tasks is state.tasks
    assert state.relay.tasks is state.tasks
