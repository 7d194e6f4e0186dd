from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from trend_watch.scheduler.runner import dumps, run_scheduler
from trend_watch.settings import get_settings


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(prog="trend_watch watch")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Run the trend check once or in a loop")
    p_run.add_argument("--db", default=settings.db_path, help="SQLite DB path")
    p_run.add_argument("--now", default=None, help="Override current time (ISO8601); recommended only with --once")
    p_run.add_argument(
        "--provider",
        default=None,
        help="Trend provider key (google, synthetic, recorded); default from TREND_WATCH_PROVIDER",
    )
    p_run.add_argument("--interval-seconds", type=float, default=settings.interval_s, help="Loop interval in seconds")
    p_run.add_argument(
        "--startup-delay-seconds",
        type=float,
        default=settings.startup_delay_s,
        help="Delay before the first cycle in loop mode",
    )

    mode = p_run.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run one cycle and exit (default)")
    mode.add_argument("--loop", action="store_true", help="Run forever with sleep interval")

    p_run.add_argument("--lock-name", default="scheduler:trend_watch", help="Scheduler lock name")
    p_run.add_argument("--lock-ttl-seconds", type=int, default=int(settings.lock_ttl_s), help="Lock stale timeout; allows takeover")
    p_run.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, etc.)")

    args = parser.parse_args(argv)

    if args.cmd == "run":
        logging.basicConfig(
            level=getattr(logging, str(args.log_level or "INFO").upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        res = run_scheduler(
            db_path=str(args.db),
            now_iso=args.now,
            loop=bool(args.loop),
            interval_seconds=float(args.interval_seconds),
            startup_delay_seconds=float(args.startup_delay_seconds),
            settings=settings,
            provider_key=args.provider,
            lock_name=str(args.lock_name or "scheduler:trend_watch"),
            lock_ttl_seconds=int(args.lock_ttl_seconds or 3600),
        )
        print(dumps(res), end="")
        return 0 if res.get("ok") else 2

    return 2
