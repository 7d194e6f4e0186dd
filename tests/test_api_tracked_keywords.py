from fastapi.testclient import TestClient

from trend_watch.api.app import app


def _client(monkeypatch, tmp_path):
    monkeypatch.setenv("TREND_WATCH_DB", str(tmp_path / "api.sqlite"))
    return TestClient(app)


def test_health(monkeypatch, tmp_path):
    client = _client(monkeypatch, tmp_path)
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_save_list_toggle_interval_delete(monkeypatch, tmp_path):
    client = _client(monkeypatch, tmp_path)

    resp = client.post(
        "/api/tracked-keywords",
        json={
            "owner_id": "u1",
            "keyword": "python",
            "time_range": "7d",
            "current_value": 42,
            "data": [{"date": "2026-03-01", "value": 42}],
        },
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["created"] is True
    assert body["tracked_keyword"]["alerts_enabled"] is False
    assert body["tracked_keyword"]["data"] == [{"date": "2026-03-01", "value": 42.0}]

    resp = client.post("/api/tracked-keywords", json={"owner_id": "u1", "keyword": "python", "current_value": 50})
    assert resp.json()["created"] is False
    assert resp.json()["tracked_keyword"]["current_value"] == 50

    rows = client.get("/api/tracked-keywords", params={"owner_id": "u1"}).json()["tracked_keywords"]
    assert [r["keyword"] for r in rows] == ["python"]

    resp = client.post("/api/tracked-keywords/python/toggle-alerts", params={"owner_id": "u1"})
    assert resp.status_code == 200
    assert resp.json()["tracked_keyword"]["alerts_enabled"] is True

    resp = client.post("/api/tracked-keywords/python/alert-interval", json={"owner_id": "u1", "interval": "3h"})
    assert resp.status_code == 200
    assert resp.json()["tracked_keyword"]["alert_interval"] == "3h"

    resp = client.delete("/api/tracked-keywords/python", params={"owner_id": "u1"})
    assert resp.status_code == 200
    assert client.get("/api/tracked-keywords", params={"owner_id": "u1"}).json()["tracked_keywords"] == []


def test_validation_and_not_found(monkeypatch, tmp_path):
    client = _client(monkeypatch, tmp_path)

    assert client.post("/api/tracked-keywords", json={"owner_id": " ", "keyword": "x"}).status_code == 400
    resp = client.post("/api/tracked-keywords", json={"owner_id": "u1", "keyword": "x", "alert_interval": "2w"})
    assert resp.status_code == 400
    assert "Invalid interval" in resp.json()["detail"]

    client.post("/api/tracked-keywords", json={"owner_id": "u1", "keyword": "python"})
    resp = client.post("/api/tracked-keywords/python/alert-interval", json={"owner_id": "u1", "interval": "30m"})
    assert resp.status_code == 400
    assert client.post("/api/tracked-keywords/python/alert-interval", json={"owner_id": "u1"}).status_code == 400

    assert client.post("/api/tracked-keywords/nope/toggle-alerts", params={"owner_id": "u1"}).status_code == 404
    resp = client.post("/api/tracked-keywords/nope/alert-interval", json={"owner_id": "u1", "interval": "1h"})
    assert resp.status_code == 404
    assert client.delete("/api/tracked-keywords/nope", params={"owner_id": "u1"}).status_code == 404


def test_background_scheduler_starts_and_stops(monkeypatch, tmp_path):
    monkeypatch.setenv("TREND_WATCH_SCHEDULER", "1")
    monkeypatch.setenv("TREND_WATCH_PROVIDER", "synthetic")
    monkeypatch.setenv("TREND_WATCH_STARTUP_DELAY_S", "60")
    monkeypatch.setenv("TREND_WATCH_DB", str(tmp_path / "api.sqlite"))
    app.state.watcher = None
    try:
        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            assert app.state.watcher is not None
            assert app.state.watcher.provider.provider_key == "synthetic"
    finally:
        app.state.watcher = None
