"""
Tests for the HTTP API, running the real lifespan against in-memory fakes.
"""

import pytest
from fastapi.testclient import TestClient

from timeleak.main import app
from timeleak.models.domain import DEFAULT_GOAL_MS, HOUR_MS, MINUTE_MS, UsageSample
from timeleak.runtime import build_runtime
from timeleak.services.usage_stats_provider import UsageStatsError

PREFS = "timeleak:prefs"


@pytest.fixture
def client(fake_store, fake_clock, fake_provider, fake_sink):
    # A recent run keeps the startup catch-up sync out of the way
    fake_store.store[f"{PREFS}:last_run_time"] = str(fake_clock.now_ms() - HOUR_MS)
    app.state.runtime = build_runtime(
        store=fake_store,
        clock=fake_clock,
        provider=fake_provider,
        sink=fake_sink,
        sleep=fake_clock.sleep,
    )
    with TestClient(app) as test_client:
        yield test_client
    app.state.runtime = None


def _add_sample(provider, clock, pkg="com.instagram.android", duration_ms=20 * MINUTE_MS):
    provider.samples.append(
        UsageSample(
            package_name=pkg,
            total_time_visible_ms=duration_ms,
            total_time_in_foreground_ms=duration_ms,
            last_time_used_ms=clock.now_ms() - HOUR_MS,
        )
    )


def test_healthz_endpoint(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readyz_all_healthy(client):
    response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    assert data["checks"]["redis"]["ok"] is True
    assert isinstance(data["checks"]["redis"]["latency_ms"], (int, float))


def test_readyz_store_down(client, fake_store):
    fake_store.healthy = False

    data = client.get("/readyz").json()

    assert data["overall_ok"] is False
    assert data["checks"]["redis"]["ok"] is False


def test_usage_today(client, fake_provider, fake_clock):
    _add_sample(fake_provider, fake_clock)

    response = client.get("/usage/today")

    assert response.status_code == 200
    data = response.json()
    assert data["date"] == "2024-03-15"
    assert data["total_screen_time_ms"] == 20 * MINUTE_MS
    assert data["total_screen_time_display"] == "20 min"
    assert data["social_media_time_ms"] == 20 * MINUTE_MS
    assert data["top_apps"][0]["app_name"] == "Instagram"
    assert data["top_apps"][0]["category"] == "social_media"


def test_usage_last_24h(client, fake_provider, fake_clock):
    _add_sample(fake_provider, fake_clock, pkg="com.netflix.mediaclient", duration_ms=2 * HOUR_MS)

    data = client.get("/usage/last-24h").json()

    assert data["total_screen_time_ms"] == 2 * HOUR_MS
    assert data["entertainment_time_ms"] == 2 * HOUR_MS
    assert data["app_count"] == 1


def test_usage_without_access_is_404(client, fake_provider):
    fake_provider.access_granted = False

    assert client.get("/usage/today").status_code == 404
    assert client.get("/usage/last-24h").status_code == 404
    assert client.get("/usage/average").status_code == 404


def test_usage_source_failure_is_503(client, fake_provider):
    fake_provider.stats_error = UsageStatsError("export unreadable")

    assert client.get("/usage/today").status_code == 503


def test_usage_average(client, fake_provider, fake_clock):
    _add_sample(fake_provider, fake_clock, duration_ms=3 * HOUR_MS)

    data = client.get("/usage/average").json()

    assert data["days"] == 30
    assert data["average_daily_screen_time_ms"] == 3 * HOUR_MS
    assert data["average_daily_screen_time_display"] == "3 hr 0 min"


def test_get_goal_defaults(client, fake_provider, fake_clock):
    _add_sample(fake_provider, fake_clock, duration_ms=HOUR_MS)

    data = client.get("/goal").json()

    assert data["goal_time_ms"] == DEFAULT_GOAL_MS
    assert data["goal_time_display"] == "4 hr 30 min"
    assert data["baseline_screen_time_ms"] is None
    assert data["progress"]["current_usage_ms"] == HOUR_MS
    assert data["progress"]["band"] == "good"


def test_get_goal_without_access_has_no_progress(client, fake_provider):
    fake_provider.access_granted = False

    data = client.get("/goal").json()

    assert data["progress"] is None


def test_put_goal(client, fake_store):
    response = client.put("/goal", json={"goal_time_ms": 2 * HOUR_MS})

    assert response.status_code == 200
    assert response.json()["goal_time_ms"] == 2 * HOUR_MS
    assert fake_store.store[f"{PREFS}:goal_time_millis"] == str(2 * HOUR_MS)


def test_put_goal_rejects_non_positive(client):
    response = client.put("/goal", json={"goal_time_ms": 0})

    assert response.status_code == 422
    assert response.json()["detail"]["reason"] == "not_positive"


def test_put_goal_rejects_above_baseline(client, fake_store):
    fake_store.store[f"{PREFS}:baseline_screen_time_millis"] = str(4 * HOUR_MS)
    fake_store.store[f"{PREFS}:baseline_captured"] = "1"

    response = client.put("/goal", json={"goal_time_ms": 5 * HOUR_MS})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["reason"] == "exceeds_baseline"
    assert detail["limit_ms"] == 4 * HOUR_MS
    assert f"{PREFS}:goal_time_millis" not in fake_store.store


def test_put_goal_store_unavailable_returns_503(client, fake_store):
    fake_store.store[f"{PREFS}:baseline_screen_time_millis"] = str(2 * HOUR_MS)
    fake_store.store[f"{PREFS}:baseline_captured"] = "1"
    fake_store.down = True

    response = client.put("/goal", json={"goal_time_ms": 10 * HOUR_MS})

    assert response.status_code == 503
    assert f"{PREFS}:goal_time_millis" not in fake_store.store
    fake_store.down = False


def test_sync_status_after_startup(client):
    data = client.get("/sync/status").json()

    assert data["work_name"] == "daily_midnight_sync"
    assert data["state"] == "enqueued"
    assert data["time_until_next"] == "11h 59m 0s"
    assert data["hours_since_last_run"] == 1
    assert data["is_stale"] is False


def test_sync_now_without_user(client):
    data = client.post("/sync/now").json()

    assert data["status"] == "not_authenticated"
    assert data["trigger"] == "manual"
    assert data["rearmed"] is True


def test_sync_reset(client):
    before = client.get("/sync/status").json()

    data = client.post("/sync/reset").json()

    assert data["success"] is True
    assert data["work_name"] == "daily_midnight_sync"
    assert client.get("/sync/status").json()["target_at"] == before["target_at"]


def test_session_lifecycle(client, fake_store):
    response = client.post("/auth/session", json={"uid": "user-123", "phone_number": "+15555550100"})

    assert response.status_code == 201
    assert response.json()["work_name"] == "immediate_usage_sync"
    assert fake_store.store[f"{PREFS}:uid"] == "user-123"

    response = client.delete("/auth/session")

    assert response.status_code == 200
    assert f"{PREFS}:uid" not in fake_store.store
    assert f"{PREFS}:phone_number" not in fake_store.store


def test_session_requires_phone_number(client):
    response = client.post("/auth/session", json={"uid": "user-123"})

    assert response.status_code == 422
