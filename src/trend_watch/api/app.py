import asyncio
import logging
import os

from fastapi import FastAPI

from trend_watch import __version__
from trend_watch.api.routes.keywords import router as keywords_router
from trend_watch.api.routes.notifications import router as notifications_router
from trend_watch.api.routes.trends import router as trends_router
from trend_watch.api.routes.watch import router as watch_router, shared_watcher
from trend_watch.settings import get_settings
from trend_watch.storage import SQLiteStore

logger = logging.getLogger("trend_watch.api")


def health():
    return {"status": "ok", "version": __version__}


app = FastAPI(title="trend_watch")
app.state.watcher = None

app.include_router(keywords_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(trends_router, prefix="/api")
app.include_router(watch_router, prefix="/api")

_scheduler_task = {"task": None}


@app.get("/health")
def health_route():
    return health()


@app.on_event("startup")
def _ensure_db():
    db_path = os.getenv("TREND_WATCH_DB") or get_settings().db_path
    logger.info("startup env: TREND_WATCH_DB=%s TREND_WATCH_PROVIDER=%s", db_path, get_settings().provider)
    SQLiteStore(db_path).close()


@app.on_event("startup")
async def _start_trend_scheduler():
    settings = get_settings()
    if not settings.scheduler_enabled:
        return

    from trend_watch.scheduler.runner import run_locked_cycle

    try:
        watcher = shared_watcher(app.state)
    except KeyError as e:
        logger.error("trend scheduler disabled: %s", e)
        return
    logger.warning(
        "trend scheduler enabled: interval_s=%s provider=%s",
        settings.interval_s,
        watcher.provider.provider_key,
    )

    async def _loop():
        await asyncio.sleep(settings.startup_delay_s)
        while True:
            db_path = os.getenv("TREND_WATCH_DB") or settings.db_path
            try:
                # Holds the DB scheduler lock, so manual runs and other processes never overlap.
                await asyncio.to_thread(
                    run_locked_cycle,
                    db_path=db_path,
                    watcher=watcher,
                    lock_ttl_seconds=int(settings.lock_ttl_s),
                )
            except Exception as e:
                logger.warning("trend check tick failed: %s", e)
            await asyncio.sleep(settings.interval_s)

    _scheduler_task["task"] = asyncio.create_task(_loop())


@app.on_event("shutdown")
async def _stop_trend_scheduler():
    t = _scheduler_task.get("task")
    if t is not None:
        t.cancel()
        try:
            await t
        except asyncio.CancelledError:
            pass
        _scheduler_task["task"] = None
