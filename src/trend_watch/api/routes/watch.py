from __future__ import annotations

import os
import threading
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from trend_watch.scheduler.runner import build_watcher, run_locked_cycle
from trend_watch.settings import get_settings
from trend_watch.watcher.job import TrendWatcher

router = APIRouter(tags=["watch"])

_watcher_lock = threading.Lock()


def _get_db_path() -> str:
    return os.getenv("TREND_WATCH_DB") or get_settings().db_path


def shared_watcher(state: Any) -> TrendWatcher:
    """The app-wide watcher, built once so call spacing and the cycle guard are shared.

    Raises KeyError for an unknown configured provider.
    """

    with _watcher_lock:
        if getattr(state, "watcher", None) is None:
            state.watcher = build_watcher(get_settings())
        return state.watcher


@router.post("/watch/run")
def run_watch_now(request: Request) -> Dict[str, Any]:
    """Run one trend check now, at the server's clock."""

    try:
        watcher = shared_watcher(request.app.state)
    except KeyError as e:
        raise HTTPException(status_code=400, detail=str(e.args[0] if e.args else e))
    res = run_locked_cycle(
        db_path=_get_db_path(),
        watcher=watcher,
        lock_ttl_seconds=int(get_settings().lock_ttl_s),
    )
    if res.get("error") in {"cycle_in_progress", "lock_not_acquired"}:
        raise HTTPException(status_code=409, detail="trend check already running")
    return res
