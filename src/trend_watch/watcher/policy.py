from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from trend_watch.models import AlertInterval, normalize_interval

THRESHOLD_MINUTES = {
    AlertInterval.MINUTES_15: 15,
    AlertInterval.HOUR_1: 60,
    AlertInterval.HOURS_3: 180,
    AlertInterval.HOURS_6: 360,
    AlertInterval.HOURS_24: 1440,
}

SIGNIFICANT_CHANGE_PCT = 5.0

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_utc(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value or "").strip()
        if not raw:
            return _EPOCH
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return _EPOCH
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def threshold_minutes(interval: Any) -> int:
    return THRESHOLD_MINUTES[normalize_interval(interval)]


def minutes_since(last_checked_at: Any, now: Any) -> float:
    """Minutes elapsed; an unknown last check counts from the Unix epoch."""

    return (_as_utc(now) - _as_utc(last_checked_at)).total_seconds() / 60.0


def is_due(last_checked_at: Any, interval: Any, now: Any, *, alerts_enabled: bool = True) -> bool:
    if not alerts_enabled:
        return False
    return minutes_since(last_checked_at, now) >= threshold_minutes(interval)


def percent_change(previous: float | None, latest: float) -> float:
    prev = float(previous or 0)
    cur = float(latest)
    if prev > 0:
        return ((cur - prev) / prev) * 100
    if cur > 0:
        # A rise from zero reads as a full 100% jump.
        return 100.0
    return 0.0


def compose_title(keyword: str) -> str:
    return f"Trend Alert: {keyword}"


def compose_message(pct: float) -> str:
    if abs(pct) >= SIGNIFICANT_CHANGE_PCT:
        direction = "up" if pct > 0 else "down"
        return f"Interest has gone {direction} by {abs(pct):.1f}%"
    return f"No significant change in interest ({pct:.1f}%)"
