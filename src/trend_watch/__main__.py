import argparse
import json
import sys

from .models import AlertInterval, TimeRange
from .settings import get_settings
from .storage import SQLiteStore


def _keywords(args) -> int:
    store = SQLiteStore(args.db)
    try:
        if args.action == "save":
            row = store.save_tracked_keyword(
                owner_id=args.owner,
                keyword=args.keyword,
                time_range=args.time_range,
                alerts_enabled=True if args.alerts else None,
                alert_interval=args.interval,
            )
            print(json.dumps(row, default=str))
        elif args.action == "list":
            print(json.dumps(store.list_tracked_keywords(owner_id=args.owner), default=str))
        elif args.action == "delete":
            if not store.delete_tracked_keyword(owner_id=args.owner, keyword=args.keyword):
                print(json.dumps({"error": "tracked keyword not found"}))
                return 1
            print(json.dumps({"ok": True}))
    finally:
        store.close()
    return 0


def _notifications(args) -> int:
    store = SQLiteStore(args.db)
    try:
        if args.action == "list":
            rows = store.list_notifications(owner_id=args.owner, unread_only=args.unread, limit=args.limit)
            print(json.dumps(rows, default=str))
        elif args.action == "read-all":
            count = store.mark_all_notifications_read(owner_id=args.owner)
            print(json.dumps({"ok": True, "count": count}))
    finally:
        store.close()
    return 0


def _trends(args) -> int:
    from .providers.base import FetchError
    from .scheduler.runner import build_watcher
    from .watcher.job import search_payload

    try:
        watcher = build_watcher(get_settings(), args.provider)
        res = search_payload(watcher, args.keyword, args.time_range)
    except (KeyError, FetchError) as e:
        print(json.dumps({"ok": False, "error": str(e.args[0] if e.args else e)}))
        return 2
    print(json.dumps(res, default=str))
    return 0


def main(argv=None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] == "watch":
        from .scheduler.cli import main as watch_main

        return watch_main(argv[1:])

    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="trend_watch",
        description="Google Trends keyword watcher. Use `watch run` for the scheduler.",
    )
    parser.add_argument("--db", default=settings.db_path, help="SQLite DB path")
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("watch", help="Run the trend check scheduler (see `watch run --help`)")

    p_kw = sub.add_parser("keywords", help="Manage tracked keywords")
    p_kw.add_argument("action", choices=["save", "list", "delete"])
    p_kw.add_argument("--owner", required=True)
    p_kw.add_argument("--keyword", default=None)
    p_kw.add_argument("--time-range", default=None, choices=[str(t) for t in TimeRange])
    p_kw.add_argument("--interval", default=None, choices=[str(i) for i in AlertInterval])
    p_kw.add_argument("--alerts", action="store_true", help="Enable alerts for the keyword")

    p_t = sub.add_parser("trends", help="Search interest over time")
    p_t.add_argument("action", choices=["search"])
    p_t.add_argument("--keyword", required=True)
    p_t.add_argument("--time-range", default=None, choices=[str(t) for t in TimeRange])
    p_t.add_argument("--provider", default=None, help="Trend provider key; default from TREND_WATCH_PROVIDER")

    p_n = sub.add_parser("notifications", help="Read notifications")
    p_n.add_argument("action", choices=["list", "read-all"])
    p_n.add_argument("--owner", required=True)
    p_n.add_argument("--unread", action="store_true")
    p_n.add_argument("--limit", type=int, default=50)

    args = parser.parse_args(argv)
    if args.cmd == "keywords":
        if args.action in {"save", "delete"} and not args.keyword:
            parser.error("--keyword is required for save and delete")
        return _keywords(args)
    if args.cmd == "notifications":
        return _notifications(args)
    if args.cmd == "trends":
        if not args.keyword.strip():
            parser.error("--keyword must not be empty")
        return _trends(args)
    return 2


def _safe_main():
    try:
        code = main()
    except SystemExit:
        raise
    except Exception as exc:
        print(json.dumps({"error": str(exc)}))
        raise SystemExit(1)
    raise SystemExit(code)


if __name__ == "__main__":
    _safe_main()
