from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from trend_watch.models import Notification, SeriesPoint, TrackedKeyword, normalize_time_range
from trend_watch.providers.base import FetchError, TrendProvider
from trend_watch.storage import CheckConflict, SQLiteStore

from .policy import compose_message, compose_title, is_due, minutes_since, percent_change
from .rate_limit import MinIntervalGate

logger = logging.getLogger("trend_watch.watcher")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


class TrendWatcher:
    """Polls alert-enabled tracked keywords and files change notifications.

    A watcher instance owns its provider, its outbound call gate and a
    non-reentrant cycle guard; keep one instance alive for the lifetime of a
    scheduler so call spacing holds across cycles.
    """

    def __init__(
        self,
        provider: TrendProvider,
        *,
        gate: Optional[MinIntervalGate] = None,
        min_call_spacing_s: float = 30.0,
        fetch_timeout_s: float = 30.0,
    ) -> None:
        self.provider = provider
        if gate is None:
            gate = MinIntervalGate(min_call_spacing_s if provider.remote else 0.0)
        self.gate = gate
        self.fetch_timeout_s = float(fetch_timeout_s)
        self._cycle_guard = threading.Lock()

    def run_cycle(self, store: SQLiteStore, *, now_iso: Optional[str] = None, limit: int = 1000) -> Dict[str, Any]:
        if not self._cycle_guard.acquire(blocking=False):
            logger.warning("trend check skipped: previous cycle still running")
            return {"ok": False, "error": "cycle_in_progress"}
        try:
            return self._run_cycle(store, now_iso=now_iso, limit=limit)
        finally:
            self._cycle_guard.release()

    def _run_cycle(self, store: SQLiteStore, *, now_iso: Optional[str], limit: int) -> Dict[str, Any]:
        now = (now_iso or "").strip() or utc_now_iso()
        summary: Dict[str, Any] = {
            "ok": True,
            "now": now,
            "provider": self.provider.provider_key,
            "candidates": 0,
            "due": 0,
            "notified": 0,
            "skipped_not_due": 0,
            "superseded": 0,
            "failed": 0,
            "results": [],
        }
        logger.info("running trend check at %s", now)

        try:
            rows = store.list_alerting_keywords(limit=limit)
        except Exception as e:
            logger.exception("trend check aborted: could not list tracked keywords")
            summary.update({"ok": False, "error": str(e)})
            return summary

        summary["candidates"] = len(rows)
        results: List[Dict[str, Any]] = summary["results"]
        for row in rows:
            tk = TrackedKeyword.from_row(row)
            if not is_due(tk.last_checked_at, tk.alert_interval, now, alerts_enabled=tk.alerts_enabled):
                summary["skipped_not_due"] += 1
                logger.debug(
                    "%r (owner=%s) not due: %.2f min since last check, interval %s",
                    tk.keyword,
                    tk.owner_id,
                    minutes_since(tk.last_checked_at, now),
                    tk.alert_interval,
                )
                continue

            summary["due"] += 1
            res = self.check_keyword(store, tk, now_iso=now)
            results.append(res)
            if res["status"] == "notified":
                summary["notified"] += 1
            elif res["status"] == "superseded":
                summary["superseded"] += 1
            else:
                summary["failed"] += 1

        logger.info(
            "trend check done: candidates=%s due=%s notified=%s failed=%s",
            summary["candidates"],
            summary["due"],
            summary["notified"],
            summary["failed"],
        )
        return summary

    def search(self, keyword: str, time_range: Any = None, *, now_iso: Optional[str] = None) -> List[SeriesPoint]:
        """Fetch a series on demand, behind the same call gate and timeout as cycles.

        Raises ValueError for an empty keyword and FetchError when the
        provider fails.
        """

        kw = (keyword or "").strip()
        if not kw:
            raise ValueError("keyword is required")
        self.gate.wait()
        try:
            return self.provider.fetch_interest(
                kw,
                str(normalize_time_range(time_range)),
                now_iso=now_iso,
                timeout_s=self.fetch_timeout_s,
            )
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(str(e)) from e

    def check_keyword(self, store: SQLiteStore, tk: TrackedKeyword, *, now_iso: str) -> Dict[str, Any]:
        """Fetch, compare and record one due keyword. Never raises."""

        base: Dict[str, Any] = {"id": tk.id, "owner_id": tk.owner_id, "keyword": tk.keyword}
        try:
            self.gate.wait()
            series = self.provider.fetch_interest(
                tk.keyword,
                tk.time_range,
                now_iso=now_iso,
                timeout_s=self.fetch_timeout_s,
            )
        except FetchError as e:
            logger.warning("fetch failed for %r (owner=%s): %s", tk.keyword, tk.owner_id, e)
            return {**base, "status": "fetch_failed", "error": str(e)}
        except Exception as e:
            logger.exception("unexpected provider error for %r (owner=%s)", tk.keyword, tk.owner_id)
            return {**base, "status": "fetch_failed", "error": str(e)}

        if not series:
            logger.info("no data points for %r (owner=%s); skipping", tk.keyword, tk.owner_id)
            return {**base, "status": "no_data"}

        try:
            latest = float(series[-1].value)
            pct = percent_change(tk.current_value, latest)
            notification = Notification(
                owner_id=tk.owner_id,
                title=compose_title(tk.keyword),
                message=compose_message(pct),
                keyword=tk.keyword,
                percent_change=pct,
                created_at=now_iso,
            )
            nid = store.record_keyword_check(
                keyword_id=tk.id,
                notification=notification,
                latest_value=latest,
                checked_at=now_iso,
                expected_last_checked_at=tk.last_checked_at,
            )
        except CheckConflict as e:
            logger.info("skipping %r (owner=%s): %s", tk.keyword, tk.owner_id, e)
            return {**base, "status": "superseded"}
        except Exception as e:
            logger.exception("could not record trend check for %r (owner=%s)", tk.keyword, tk.owner_id)
            return {**base, "status": "store_failed", "error": str(e)}

        logger.info(
            "notified owner=%s keyword=%r previous=%s latest=%s change=%.2f%%",
            tk.owner_id,
            tk.keyword,
            tk.current_value,
            latest,
            pct,
        )
        return {
            **base,
            "status": "notified",
            "notification_id": nid,
            "previous": tk.current_value,
            "latest": latest,
            "percent_change": pct,
            "message": notification.message,
        }


def search_payload(watcher: TrendWatcher, keyword: str, time_range: Any = None) -> Dict[str, Any]:
    """JSON-able search result, shaped so it can be posted back as a tracked keyword."""

    tr = normalize_time_range(time_range)
    series = watcher.search(keyword, tr)
    return {
        "ok": True,
        "keyword": (keyword or "").strip(),
        "time_range": str(tr),
        "provider": watcher.provider.provider_key,
        "current_value": series[-1].value if series else None,
        "data": [p.to_dict() for p in series],
    }
