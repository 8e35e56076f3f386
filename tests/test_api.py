from conftest import FakeBackend, usage_rows
from fastapi.testclient import TestClient

from api.main import create_app
from monitor.loop import Monitor
from storage.base import StorageError


def test_status_before_first_round(make_config):
    monitor = Monitor(make_config(), FakeBackend(usage_rows()))
    client = TestClient(create_app(monitor))

    r = client.get("/status")
    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "active"
    assert body["ticks"] == 0
    assert body["last_usage"] is None
    assert client.get("/health").json() == {"status": "ok"}


def test_status_after_eviction(make_config, fake_clock):
    backend = FakeBackend(usage_rows(free=50, used=950))
    monitor = Monitor(make_config(), backend, sleep=fake_clock.sleep, clock=fake_clock.monotonic)
    monitor.tick()
    client = TestClient(create_app(monitor))

    body = client.get("/status").json()
    assert body["state"] == "cooling"
    assert body["remaining_rounds"] == 3
    assert body["last_usage"]["used_bytes"] == 950
    assert body["last_usage"]["usage_ratio"] == 0.95
    assert body["last_eviction"]["attempted"] == ["flows", "flows_pod_view", "flows_node_view"]
    assert body["last_eviction"]["failed"] == []


def test_health_degraded_after_failed_round(make_config, fake_clock):
    rows = usage_rows()
    rows["SELECT free_space"] = StorageError("down")
    monitor = Monitor(make_config(), FakeBackend(rows), sleep=fake_clock.sleep, clock=fake_clock.monotonic)
    monitor.tick()
    client = TestClient(create_app(monitor))

    body = client.get("/health").json()
    assert body["status"] == "degraded"
    assert "disk usage" in body["error"]
