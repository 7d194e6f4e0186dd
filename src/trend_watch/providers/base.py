from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, NamedTuple

from trend_watch.models import SeriesPoint, TimeRange, normalize_time_range
from trend_watch.settings import WatchSettings


class FetchError(RuntimeError):
    """The provider could not produce a usable interest series."""


class Window(NamedTuple):
    timeframe: str  # Google Trends timeframe string
    points: int
    step: timedelta


WINDOWS: Dict[TimeRange, Window] = {
    TimeRange.DAY_1: Window("now 1-d", 24, timedelta(hours=1)),
    TimeRange.DAYS_7: Window("now 7-d", 7, timedelta(days=1)),
    TimeRange.MONTH_1: Window("today 1-m", 30, timedelta(days=1)),
    TimeRange.MONTHS_3: Window("today 3-m", 12, timedelta(weeks=1)),
    TimeRange.MONTHS_12: Window("today 12-m", 12, timedelta(days=30)),
    TimeRange.YEARS_5: Window("today 5-y", 20, timedelta(days=90)),
}


def window_for(time_range: Any) -> Window:
    return WINDOWS[normalize_time_range(time_range)]


def parse_now(now_iso: str | None) -> datetime:
    raw = (now_iso or "").strip()
    if not raw:
        return datetime.now(timezone.utc)
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timeline_payload(payload: Any) -> list[SeriesPoint]:
    """Decode a Google Trends multiline widget payload.

    Accepts the raw response text (with or without the `)]}'` guard line) or an
    already-decoded dict. HTML error pages, non-JSON text and missing keys raise
    FetchError; an empty timeline returns [].
    """

    data = payload
    if isinstance(payload, (bytes, bytearray)):
        data = payload.decode("utf-8", errors="replace")
    if isinstance(data, str):
        text = data.strip()
        if text.startswith(")]}'"):
            text = text.split("\n", 1)[1] if "\n" in text else text[5:]
        if text.startswith("<"):
            raise FetchError("provider returned HTML instead of JSON")
        try:
            data = json.loads(text)
        except ValueError as e:
            raise FetchError(f"provider returned non-JSON payload: {e}") from e

    if not isinstance(data, dict):
        raise FetchError("payload is not a JSON object")
    default = data.get("default")
    timeline = default.get("timelineData") if isinstance(default, dict) else None
    if not isinstance(timeline, list):
        raise FetchError("payload missing default.timelineData")

    points: list[SeriesPoint] = []
    for item in timeline:
        if not isinstance(item, dict):
            raise FetchError("timeline entry is not an object")
        values = item.get("value")
        if not isinstance(values, list) or not values:
            raise FetchError("timeline entry has no value")
        try:
            value = float(values[0])
        except (TypeError, ValueError) as e:
            raise FetchError(f"timeline value is not numeric: {values[0]!r}") from e

        date = str(item.get("formattedTime") or "").strip()
        if not date and item.get("time") is not None:
            try:
                ts = int(item["time"])
            except (TypeError, ValueError) as e:
                raise FetchError(f"timeline time is not numeric: {item['time']!r}") from e
            date = datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat()
        points.append(SeriesPoint(date=date, value=value))
    return points


class TrendProvider(ABC):
    """Source of keyword interest-over-time series (0-100 scale)."""

    provider_key: str
    # Remote providers are subject to the watcher's call spacing.
    remote: bool = True

    def __init__(self, settings: WatchSettings | None = None) -> None:
        self.settings = settings

    @abstractmethod
    def fetch_interest(
        self,
        keyword: str,
        time_range: str,
        *,
        now_iso: str | None = None,
        timeout_s: float = 30.0,
    ) -> list[SeriesPoint]:
        """Return the series oldest-first, or raise FetchError."""
        raise NotImplementedError


_PROVIDERS: Dict[str, type[TrendProvider]] = {}


def register_provider(cls: type[TrendProvider]) -> type[TrendProvider]:
    key = (getattr(cls, "provider_key", "") or "").strip().lower()
    if not key:
        raise ValueError("provider_key is required")
    _PROVIDERS[key] = cls
    return cls


def get_provider(provider_key: str, settings: WatchSettings | None = None) -> TrendProvider:
    key = (provider_key or "").strip().lower()
    cls = _PROVIDERS.get(key)
    if cls is None:
        raise KeyError(f"Unknown trend provider: {provider_key}")
    return cls(settings=settings)


def list_providers() -> list[str]:
    return sorted(_PROVIDERS.keys())
