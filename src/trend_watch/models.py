from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Dict, List, Optional


class AlertInterval(StrEnum):
    """Minimum time between two checks of a tracked keyword."""

    MINUTES_15 = "15m"
    HOUR_1 = "1h"
    HOURS_3 = "3h"
    HOURS_6 = "6h"
    HOURS_24 = "24h"


DEFAULT_ALERT_INTERVAL = AlertInterval.HOURS_24


def normalize_interval(value: Any) -> AlertInterval:
    raw = str(value or "").strip().lower()
    try:
        return AlertInterval(raw)
    except ValueError:
        return DEFAULT_ALERT_INTERVAL


class TimeRange(StrEnum):
    """Sample window requested from the trend provider."""

    DAY_1 = "1d"
    DAYS_7 = "7d"
    MONTH_1 = "1m"
    MONTHS_3 = "3m"
    MONTHS_12 = "12m"
    YEARS_5 = "5y"


DEFAULT_TIME_RANGE = TimeRange.MONTH_1


def normalize_time_range(value: Any) -> TimeRange:
    raw = str(value or "").strip().lower()
    try:
        return TimeRange(raw)
    except ValueError:
        return DEFAULT_TIME_RANGE


@dataclass(frozen=True)
class SeriesPoint:
    date: str  # YYYY-MM-DD or ISO8601 for sub-day windows
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "value": self.value}


@dataclass(frozen=True)
class TrackedKeyword:
    id: int
    owner_id: str
    keyword: str
    alerts_enabled: bool = False
    alert_interval: AlertInterval = DEFAULT_ALERT_INTERVAL
    current_value: Optional[float] = None
    last_checked_at: Optional[str] = None  # ISO8601
    time_range: TimeRange = DEFAULT_TIME_RANGE
    data: List[SeriesPoint] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TrackedKeyword":
        points: List[SeriesPoint] = []
        try:
            raw_points = json.loads(row.get("data_json") or "[]")
        except (TypeError, ValueError):
            raw_points = []
        for p in raw_points if isinstance(raw_points, list) else []:
            if not isinstance(p, dict):
                continue
            try:
                points.append(SeriesPoint(date=str(p.get("date") or ""), value=float(p.get("value") or 0)))
            except (TypeError, ValueError):
                continue

        value = row.get("current_value")
        return cls(
            id=int(row.get("id") or 0),
            owner_id=str(row.get("owner_id") or ""),
            keyword=str(row.get("keyword") or ""),
            alerts_enabled=bool(row.get("alerts_enabled")),
            alert_interval=normalize_interval(row.get("alert_interval")),
            current_value=float(value) if value is not None else None,
            last_checked_at=row.get("last_checked_at"),
            time_range=normalize_time_range(row.get("time_range")),
            data=points,
        )


@dataclass(frozen=True)
class Notification:
    owner_id: str
    title: str
    message: str
    created_at: str  # ISO8601
    keyword: Optional[str] = None
    percent_change: Optional[float] = None
    read: bool = False
