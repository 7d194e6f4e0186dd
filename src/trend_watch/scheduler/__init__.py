"""Trend check scheduler.

Runs the watcher cycle on a fixed cadence behind a SQLite scheduler lock, so
two processes never poll the same database at once.

CLI entrypoint is wired via `python -m trend_watch watch run`.
"""
