from fastapi.testclient import TestClient

from trend_watch.api.app import app


def test_notifications_create_list_and_read(monkeypatch, tmp_path):
    monkeypatch.setenv("TREND_WATCH_DB", str(tmp_path / "api.sqlite"))
    client = TestClient(app)

    ids = []
    for title in ("first", "second"):
        resp = client.post(
            "/api/notifications",
            json={"owner_id": "u1", "title": title, "message": "m", "keyword": "python", "percent_change": 6.2},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["notification"]["read"] is False
        ids.append(resp.json()["notification"]["id"])

    rows = client.get("/api/notifications", params={"owner_id": "u1"}).json()["notifications"]
    assert len(rows) == 2

    resp = client.post(f"/api/notifications/{ids[0]}/read")
    assert resp.status_code == 200
    assert resp.json()["notification"]["read"] is True

    unread = client.get("/api/notifications", params={"owner_id": "u1", "unread_only": "true"}).json()
    assert [n["id"] for n in unread["notifications"]] == [ids[1]]

    resp = client.post("/api/notifications/read-all", params={"owner_id": "u1"})
    assert resp.json() == {"ok": True, "count": 1}

    assert client.post("/api/notifications/99999/read").status_code == 404
    assert client.post("/api/notifications", json={"owner_id": "", "title": "t", "message": "m"}).status_code == 400
