from trend_watch.api.app import app, health


def test_health_without_server():
    assert health().get("status") == "ok"


def test_api_routes_registered():
    paths = {route.path for route in app.router.routes}
    assert "/health" in paths
    assert "/api/tracked-keywords" in paths
    assert "/api/tracked-keywords/{keyword}/toggle-alerts" in paths
    assert "/api/tracked-keywords/{keyword}/alert-interval" in paths
    assert "/api/notifications" in paths
    assert "/api/notifications/read-all" in paths
    assert "/api/notifications/{notification_id}/read" in paths
    assert "/api/watch/run" in paths
    assert "/api/trends/search" in paths
