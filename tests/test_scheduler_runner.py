import os
import tempfile

from trend_watch.scheduler.runner import build_watcher, run_locked_cycle, run_scheduler, run_watch_cycle
from trend_watch.storage import SQLiteStore


def _seed(db, *, keyword="python", interval="1h"):
    store = SQLiteStore(db)
    try:
        store.save_tracked_keyword(
            owner_id="u1",
            keyword=keyword,
            current_value=50,
            alerts_enabled=True,
            alert_interval=interval,
            now_iso="2026-01-01T00:00:00+00:00",
        )
    finally:
        store.close()


def _notifications(db):
    store = SQLiteStore(db)
    try:
        return store.list_notifications(owner_id="u1")
    finally:
        store.close()


def test_once_mode_runs_one_cycle_with_synthetic_provider():
    with tempfile.TemporaryDirectory() as td:
        db = f"{td}/watch.sqlite"
        _seed(db)

        res = run_scheduler(db_path=db, now_iso="2026-01-02T00:00:00+00:00", provider_key="synthetic")

        assert res["ok"] is True
        assert res["mode"] == "once"
        assert res["provider"] == "synthetic"
        assert res["lock"]["acquired"] is True
        assert res["notified"] == 1
        assert len(_notifications(db)) == 1

        # Lock was released on exit; a second run can take it.
        again = run_scheduler(db_path=db, now_iso="2026-01-02T00:10:00+00:00", provider_key="synthetic")
        assert again["ok"] is True
        assert again["due"] == 0


def test_synthetic_cycles_are_deterministic():
    with tempfile.TemporaryDirectory() as td:
        db1 = f"{td}/a.sqlite"
        db2 = f"{td}/b.sqlite"
        _seed(db1)
        _seed(db2)
        now = "2026-01-02T00:00:00+00:00"
        r1 = run_scheduler(db_path=db1, now_iso=now, provider_key="synthetic")
        r2 = run_scheduler(db_path=db2, now_iso=now, provider_key="synthetic")
        assert r1["results"][0]["latest"] == r2["results"][0]["latest"]
        assert r1["results"][0]["message"] == r2["results"][0]["message"]


def test_lock_held_by_another_runner():
    with tempfile.TemporaryDirectory() as td:
        db = f"{td}/watch.sqlite"
        _seed(db)
        store = SQLiteStore(db)
        try:
            got = store.acquire_scheduler_lock(
                lock_name="scheduler:trend_watch",
                now_iso="2026-01-02T00:00:00+00:00",
                pid=1,
            )
            assert got["acquired"] is True
        finally:
            store.close()

        res = run_scheduler(db_path=db, now_iso="2026-01-02T00:00:30+00:00", provider_key="synthetic")
        assert res["ok"] is False
        assert res["error"] == "lock_not_acquired"
        assert res["held_by_pid"] == 1
        assert _notifications(db) == []


def test_unknown_provider_is_reported():
    with tempfile.TemporaryDirectory() as td:
        db = f"{td}/watch.sqlite"
        res = run_scheduler(db_path=db, now_iso="2026-01-02T00:00:00+00:00", provider_key="nope")
        assert res["ok"] is False
        assert "nope" in res["error"]


def test_loop_mode_sleeps_between_cycles():
    with tempfile.TemporaryDirectory() as td:
        db = f"{td}/watch.sqlite"
        _seed(db)
        slept = []

        res = run_scheduler(
            db_path=db,
            now_iso="2026-01-02T00:00:00+00:00",
            loop=True,
            interval_seconds=900,
            startup_delay_seconds=3,
            provider_key="synthetic",
            max_cycles=2,
            sleep_fn=slept.append,
        )

        assert res["ok"] is True
        assert res["mode"] == "loop"
        assert res["cycles"] == 2
        assert slept == [3.0, 900.0]
        # Second cycle ran at the same instant, so nothing was due.
        assert res["last"]["due"] == 0
        assert len(_notifications(db)) == 1


def test_run_watch_cycle_reuses_watcher():
    with tempfile.TemporaryDirectory() as td:
        db = f"{td}/watch.sqlite"
        _seed(db, interval="15m")
        watcher = build_watcher(provider_key="synthetic")

        r1 = run_watch_cycle(db_path=db, now_iso="2026-01-02T00:00:00+00:00", watcher=watcher)
        r2 = run_watch_cycle(db_path=db, now_iso="2026-01-02T00:20:00+00:00", watcher=watcher)

        assert r1["db"] == db
        assert r1["notified"] == 1
        assert r2["notified"] == 1
        assert len(_notifications(db)) == 2


def test_locked_cycle_takes_and_releases_lock():
    with tempfile.TemporaryDirectory() as td:
        db = f"{td}/watch.sqlite"
        _seed(db, interval="15m")
        watcher = build_watcher(provider_key="synthetic")

        res = run_locked_cycle(db_path=db, watcher=watcher)
        assert res["ok"] is True
        assert res["notified"] == 1

        store = SQLiteStore(db)
        try:
            got = store.acquire_scheduler_lock(lock_name="scheduler:trend_watch", pid=os.getpid() + 1)
            assert got["acquired"] is True
        finally:
            store.close()


def test_locked_cycle_skips_while_another_runner_holds_lock():
    with tempfile.TemporaryDirectory() as td:
        db = f"{td}/watch.sqlite"
        _seed(db, interval="15m")
        other_pid = os.getpid() + 1
        store = SQLiteStore(db)
        try:
            assert store.acquire_scheduler_lock(lock_name="scheduler:trend_watch", pid=other_pid)["acquired"] is True
        finally:
            store.close()

        res = run_locked_cycle(db_path=db, watcher=build_watcher(provider_key="synthetic"))

        assert res["ok"] is False
        assert res["error"] == "lock_not_acquired"
        assert res["held_by_pid"] == other_pid
        assert _notifications(db) == []
        # The other runner's lock is left in place.
        store = SQLiteStore(db)
        try:
            assert store.acquire_scheduler_lock(lock_name="scheduler:trend_watch")["acquired"] is False
        finally:
            store.close()


def test_scheduler_does_not_release_a_lock_it_did_not_take():
    with tempfile.TemporaryDirectory() as td:
        db = f"{td}/watch.sqlite"
        store = SQLiteStore(db)
        try:
            assert store.acquire_scheduler_lock(lock_name="scheduler:trend_watch")["acquired"] is True
        finally:
            store.close()

        res = run_scheduler(db_path=db, provider_key="synthetic")
        assert res["error"] == "lock_not_acquired"

        store = SQLiteStore(db)
        try:
            assert store.acquire_scheduler_lock(lock_name="scheduler:trend_watch", pid=os.getpid() + 1)["acquired"] is False
        finally:
            store.close()
