from trend_watch.settings import WatchSettings, get_settings, reset_settings_cache


def test_defaults():
    s = get_settings()
    assert s.provider == "google"
    assert s.scheduler_enabled is False
    assert s.interval_s == 900
    assert s.min_call_spacing_s == 30
    assert s.fetch_timeout_s == 30
    assert s.hl == "en-US"
    assert s.geo == ""


def test_env_overrides_and_clamping(monkeypatch):
    monkeypatch.setenv("TREND_WATCH_PROVIDER", " Synthetic ")
    monkeypatch.setenv("TREND_WATCH_SCHEDULER", "yes")
    monkeypatch.setenv("TREND_WATCH_INTERVAL_S", "1")
    monkeypatch.setenv("TREND_WATCH_FETCH_TIMEOUT_S", "abc")
    monkeypatch.setenv("TREND_WATCH_GEO", "gb")
    s = WatchSettings.from_env()
    assert s.provider == "synthetic"
    assert s.scheduler_enabled is True
    assert s.interval_s == 5
    assert s.fetch_timeout_s == 30
    assert s.geo == "GB"


def test_settings_are_cached_until_reset(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("TREND_WATCH_PROVIDER", "synthetic")
    assert get_settings() is first
    reset_settings_cache()
    assert get_settings().provider == "synthetic"
