from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = str(raw).strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _env_float(name: str, default: float, *, lo: float, hi: float) -> float:
    raw = (os.getenv(name) or "").strip()
    try:
        value = float(raw) if raw else float(default)
    except ValueError:
        value = float(default)
    return max(lo, min(value, hi))


@dataclass(frozen=True)
class WatchSettings:
    """Runtime settings for the trend watcher.

    Everything comes from env vars so the API host, the CLI and tests share a
    single source of truth. Defaults match the production cadence.
    """

    db_path: str
    provider: str
    scheduler_enabled: bool
    interval_s: float
    startup_delay_s: float
    min_call_spacing_s: float
    fetch_timeout_s: float
    geo: str
    hl: str
    lock_ttl_s: float
    fixtures_dir: str

    @classmethod
    def from_env(cls) -> "WatchSettings":
        return cls(
            db_path=(os.getenv("TREND_WATCH_DB") or "").strip() or "./trend_watch.sqlite",
            provider=(os.getenv("TREND_WATCH_PROVIDER") or "").strip().lower() or "google",
            scheduler_enabled=_env_bool("TREND_WATCH_SCHEDULER", False),
            interval_s=_env_float("TREND_WATCH_INTERVAL_S", 900, lo=5, hi=86400),
            startup_delay_s=_env_float("TREND_WATCH_STARTUP_DELAY_S", 5, lo=0, hi=3600),
            min_call_spacing_s=_env_float("TREND_WATCH_MIN_CALL_SPACING_S", 30, lo=0, hi=600),
            fetch_timeout_s=_env_float("TREND_WATCH_FETCH_TIMEOUT_S", 30, lo=1, hi=300),
            geo=(os.getenv("TREND_WATCH_GEO") or "").strip().upper(),
            hl=(os.getenv("TREND_WATCH_HL") or "").strip() or "en-US",
            lock_ttl_s=_env_float("TREND_WATCH_LOCK_TTL_S", 3600, lo=10, hi=86400),
            fixtures_dir=(os.getenv("TREND_WATCH_FIXTURES_DIR") or "").strip() or "./fixtures/trends",
        )


@lru_cache(maxsize=1)
def get_settings() -> WatchSettings:
    return WatchSettings.from_env()


def reset_settings_cache() -> None:
    """Test helper to force env re-read."""

    get_settings.cache_clear()
