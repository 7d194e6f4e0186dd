from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Callable, Dict, Optional

from trend_watch.providers.base import get_provider
from trend_watch.settings import WatchSettings, get_settings
from trend_watch.storage import SQLiteStore
from trend_watch.watcher.job import TrendWatcher, utc_now_iso

logger = logging.getLogger("trend_watch.scheduler")

DEFAULT_LOCK_NAME = "scheduler:trend_watch"


def build_watcher(settings: Optional[WatchSettings] = None, provider_key: Optional[str] = None) -> TrendWatcher:
    # Ensure builtin providers are registered.
    import trend_watch.providers  # noqa: F401

    settings = settings or get_settings()
    provider = get_provider(provider_key or settings.provider, settings=settings)
    return TrendWatcher(
        provider,
        min_call_spacing_s=settings.min_call_spacing_s,
        fetch_timeout_s=settings.fetch_timeout_s,
    )


def run_watch_cycle(
    *,
    db_path: str,
    now_iso: Optional[str] = None,
    watcher: Optional[TrendWatcher] = None,
    settings: Optional[WatchSettings] = None,
    provider_key: Optional[str] = None,
    limit: int = 1000,
) -> Dict[str, Any]:
    """Run one trend check cycle against the DB at db_path.

    Never raises: failures come back as {"ok": False, "error": ...}.
    """

    try:
        watcher = watcher or build_watcher(settings, provider_key)
        store = SQLiteStore(db_path)
    except Exception as e:
        logger.exception("trend check could not start")
        return {"ok": False, "now": now_iso or utc_now_iso(), "error": str(e)}
    try:
        res = watcher.run_cycle(store, now_iso=now_iso, limit=limit)
        res["db"] = db_path
        return res
    finally:
        store.close()


def _lock_refused(acquired: Dict[str, Any]) -> Dict[str, Any] | None:
    if not acquired.get("ok"):
        return {"ok": False, "error": acquired.get("error") or "lock_error"}
    if not acquired.get("acquired"):
        return {
            "ok": False,
            "error": "lock_not_acquired",
            "held_by_pid": acquired.get("held_by_pid"),
            "heartbeat_at": acquired.get("heartbeat_at"),
        }
    return None


def run_locked_cycle(
    *,
    db_path: str,
    watcher: TrendWatcher,
    lock_name: str = DEFAULT_LOCK_NAME,
    lock_ttl_seconds: int = 3600,
    limit: int = 1000,
) -> Dict[str, Any]:
    """Run one cycle at the real current time while holding the scheduler lock.

    Used by in-process hosts (the API loop and manual runs) so they never
    overlap with each other or with a `watch run` process on the same DB.
    Never raises.
    """

    now = utc_now_iso()
    pid = os.getpid()
    try:
        lock_store = SQLiteStore(db_path)
    except Exception as e:
        logger.exception("trend check could not open %s", db_path)
        return {"ok": False, "now": now, "error": str(e)}
    try:
        acquired = lock_store.acquire_scheduler_lock(
            lock_name=lock_name,
            now_iso=now,
            ttl_seconds=lock_ttl_seconds,
            pid=pid,
        )
        refused = _lock_refused(acquired)
        if refused is not None:
            logger.info("trend check skipped: %s", refused["error"])
            return refused
        try:
            return run_watch_cycle(db_path=db_path, now_iso=now, watcher=watcher, limit=limit)
        finally:
            lock_store.release_scheduler_lock(lock_name=lock_name, pid=pid)
    finally:
        lock_store.close()


def run_scheduler(
    *,
    db_path: str,
    now_iso: Optional[str] = None,
    loop: bool = False,
    interval_seconds: float = 900,
    startup_delay_seconds: float = 5,
    settings: Optional[WatchSettings] = None,
    provider_key: Optional[str] = None,
    lock_name: str = DEFAULT_LOCK_NAME,
    lock_ttl_seconds: int = 3600,
    max_cycles: Optional[int] = None,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """Lock-aware scheduler entrypoint used by the CLI.

    - In once mode (loop=False), runs exactly one cycle and exits.
    - In loop mode (loop=True), waits startup_delay_seconds, then runs a cycle
      every interval_seconds until max_cycles (forever when None).
    """

    interval = max(5.0, float(interval_seconds or 0))
    lock_name = (lock_name or "").strip() or DEFAULT_LOCK_NAME
    lock_ttl = max(int(interval * 2), int(lock_ttl_seconds or 0))

    lock_store = SQLiteStore(db_path)
    held = False
    try:
        lock_now = (now_iso or "").strip() or utc_now_iso()
        acquired = lock_store.acquire_scheduler_lock(
            lock_name=lock_name,
            now_iso=lock_now,
            ttl_seconds=lock_ttl,
            pid=os.getpid(),
        )
        refused = _lock_refused(acquired)
        if refused is not None:
            return refused
        held = True

        try:
            watcher = build_watcher(settings, provider_key)
        except KeyError as e:
            return {"ok": False, "error": str(e.args[0] if e.args else e)}

        if not loop:
            res = dict(run_watch_cycle(db_path=db_path, now_iso=now_iso, watcher=watcher))
            res["mode"] = "once"
            res["lock"] = acquired
            return res

        logger.info("trend watch scheduler started: interval_s=%s", interval)
        if startup_delay_seconds and startup_delay_seconds > 0:
            sleep_fn(float(startup_delay_seconds))

        cycles = 0
        last: Dict[str, Any] = {}
        while True:
            t_now = (now_iso or "").strip() or utc_now_iso()
            lock_store.refresh_scheduler_lock(lock_name=lock_name, now_iso=t_now, pid=os.getpid())
            try:
                last = run_watch_cycle(db_path=db_path, now_iso=t_now, watcher=watcher)
            except Exception as e:
                logger.exception("trend check cycle crashed")
                last = {"ok": False, "now": t_now, "error": str(e)}
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            sleep_fn(interval)

        return {"ok": True, "mode": "loop", "cycles": cycles, "last": last, "lock": acquired}
    finally:
        try:
            if held:
                lock_store.release_scheduler_lock(lock_name=lock_name, pid=os.getpid())
        finally:
            lock_store.close()


def dumps(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, indent=2, default=str) + "\n"
