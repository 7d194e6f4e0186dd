"""Keyword trend watcher: due checks, change detection and notification filing."""

from .job import TrendWatcher, search_payload, utc_now_iso
from .policy import compose_message, is_due, percent_change, threshold_minutes
from .rate_limit import MinIntervalGate

__all__ = [
    "MinIntervalGate",
    "TrendWatcher",
    "compose_message",
    "is_due",
    "percent_change",
    "search_payload",
    "threshold_minutes",
    "utc_now_iso",
]
