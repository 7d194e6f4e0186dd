from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from trend_watch.models import (
    DEFAULT_ALERT_INTERVAL,
    DEFAULT_TIME_RANGE,
    Notification,
    SeriesPoint,
    normalize_interval,
    normalize_time_range,
)


class CheckConflict(RuntimeError):
    """A tracked keyword changed under the caller between read and write."""


class SQLiteStore:
    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tracked_keywords (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner_id TEXT NOT NULL,
                keyword TEXT NOT NULL,
                time_range TEXT NOT NULL DEFAULT '1m',
                alerts_enabled INTEGER NOT NULL DEFAULT 0,
                alert_interval TEXT NOT NULL DEFAULT '24h',
                current_value REAL,
                last_checked_at TEXT,
                data_json TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        # A user can track a keyword only once.
        self.conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS ux_tracked_keywords_owner_keyword ON tracked_keywords(owner_id, keyword)"
        )
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tracked_keywords_alerts ON tracked_keywords(alerts_enabled, last_checked_at)"
        )

        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS notifications (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner_id TEXT NOT NULL,
                title TEXT NOT NULL,
                message TEXT NOT NULL,
                keyword TEXT,
                percent_change REAL,
                read INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
            """
        )
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_notifications_owner_time ON notifications(owner_id, created_at DESC)"
        )

        # SQLite-backed scheduler locks (single-runner enforcement).
        # Heartbeat timestamps are stored as unix seconds for reliable TTL logic.
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS scheduler_locks (
                lock_name TEXT PRIMARY KEY,
                acquired_at TEXT NOT NULL,
                pid INTEGER NOT NULL,
                heartbeat_at TEXT NOT NULL,
                heartbeat_ts INTEGER NOT NULL
            )
            """
        )
        self.conn.commit()

    @staticmethod
    def _utc_now_iso() -> str:
        return datetime.now(timezone.utc).replace(microsecond=0).isoformat()

    @staticmethod
    def _iso_to_epoch_seconds(iso: str) -> int:
        raw = (iso or "").strip()
        if not raw:
            return 0
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return 0
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.astimezone(timezone.utc).timestamp())

    @staticmethod
    def _limit(value: Any, default: int, hi: int) -> int:
        try:
            lim = int(value)
        except (TypeError, ValueError):
            lim = default
        return max(1, min(lim, hi))

    @staticmethod
    def _points_json(data: Any) -> str:
        out: List[Dict[str, Any]] = []
        for p in data or []:
            if isinstance(p, SeriesPoint):
                out.append(p.to_dict())
            elif isinstance(p, dict):
                out.append({"date": str(p.get("date") or ""), "value": p.get("value")})
        return json.dumps(out, ensure_ascii=True)

    @staticmethod
    def _keyword_dict(row: sqlite3.Row | None) -> Dict[str, Any] | None:
        if row is None:
            return None
        d = dict(row)
        d["alerts_enabled"] = bool(d.get("alerts_enabled"))
        d["alert_interval"] = str(normalize_interval(d.get("alert_interval")))
        try:
            d["data"] = json.loads(d.pop("data_json", None) or "[]")
        except ValueError:
            d["data"] = []
        return d

    @staticmethod
    def _notification_dict(row: sqlite3.Row | None) -> Dict[str, Any] | None:
        if row is None:
            return None
        d = dict(row)
        d["read"] = bool(d.get("read"))
        return d

    # Scheduler locks

    def acquire_scheduler_lock(
        self,
        *,
        lock_name: str,
        now_iso: str | None = None,
        ttl_seconds: int = 3600,
        pid: int | None = None,
    ) -> Dict[str, Any]:
        """Acquire a named scheduler lock (with TTL-based stale takeover).

        Returns a dict with:
        - ok: bool
        - acquired: bool
        - stolen: bool
        - held_by_pid: int | None
        """

        now = (now_iso or "").strip() or self._utc_now_iso()
        name = (lock_name or "").strip() or "scheduler"
        ttl = max(10, int(ttl_seconds or 0))
        my_pid = int(pid if pid is not None else os.getpid())
        now_ts = int(self._iso_to_epoch_seconds(now) or 0)

        try:
            self.conn.execute("BEGIN IMMEDIATE")
            row = self.conn.execute(
                "SELECT lock_name, pid, heartbeat_ts, heartbeat_at FROM scheduler_locks WHERE lock_name=? LIMIT 1",
                (name,),
            ).fetchone()

            if not row:
                self.conn.execute(
                    """
                    INSERT INTO scheduler_locks(lock_name, acquired_at, pid, heartbeat_at, heartbeat_ts)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (name, now, my_pid, now, now_ts),
                )
                self.conn.commit()
                return {"ok": True, "acquired": True, "stolen": False, "held_by_pid": my_pid}

            held_pid = int(row["pid"] or 0)
            held_ts = int(row["heartbeat_ts"] or 0)
            stale = bool(now_ts and held_ts and (held_ts < (now_ts - ttl)))

            if stale:
                self.conn.execute(
                    """
                    UPDATE scheduler_locks
                    SET acquired_at=?, pid=?, heartbeat_at=?, heartbeat_ts=?
                    WHERE lock_name=?
                    """,
                    (now, my_pid, now, now_ts, name),
                )
                self.conn.commit()
                return {
                    "ok": True,
                    "acquired": True,
                    "stolen": True,
                    "held_by_pid": my_pid,
                    "previous_pid": held_pid,
                }

            self.conn.rollback()
            return {
                "ok": True,
                "acquired": False,
                "stolen": False,
                "held_by_pid": held_pid or None,
                "heartbeat_at": str(row["heartbeat_at"] or "") or None,
            }
        except sqlite3.Error as e:
            self.conn.rollback()
            return {"ok": False, "acquired": False, "error": str(e)}

    def refresh_scheduler_lock(
        self,
        *,
        lock_name: str,
        now_iso: str | None = None,
        pid: int | None = None,
    ) -> bool:
        now = (now_iso or "").strip() or self._utc_now_iso()
        name = (lock_name or "").strip() or "scheduler"
        my_pid = int(pid if pid is not None else os.getpid())
        cur = self.conn.execute(
            "UPDATE scheduler_locks SET heartbeat_at=?, heartbeat_ts=? WHERE lock_name=? AND pid=?",
            (now, int(self._iso_to_epoch_seconds(now) or 0), name, my_pid),
        )
        self.conn.commit()
        return bool(cur.rowcount and int(cur.rowcount) > 0)

    def release_scheduler_lock(self, *, lock_name: str, pid: int | None = None) -> bool:
        name = (lock_name or "").strip() or "scheduler"
        my_pid = int(pid if pid is not None else os.getpid())
        cur = self.conn.execute(
            "DELETE FROM scheduler_locks WHERE lock_name=? AND pid=?",
            (name, my_pid),
        )
        self.conn.commit()
        return bool(cur.rowcount and int(cur.rowcount) > 0)

    # Tracked keywords

    def save_tracked_keyword(
        self,
        *,
        owner_id: str,
        keyword: str,
        time_range: str | None = None,
        current_value: float | None = None,
        data: List[Any] | None = None,
        alerts_enabled: bool | None = None,
        alert_interval: str | None = None,
        now_iso: str | None = None,
    ) -> Dict[str, Any]:
        """Insert a tracked keyword, or update the owner's existing one in place.

        Unset arguments keep the stored value on update. Saving always resets
        last_checked_at to now, so a fresh save is never immediately due.
        """

        owner = str(owner_id or "").strip()
        kw = str(keyword or "").strip()
        if not owner or not kw:
            raise ValueError("owner_id and keyword are required")
        now = (now_iso or "").strip() or self._utc_now_iso()

        existing = self.get_tracked_keyword(owner_id=owner, keyword=kw)
        if existing is None:
            cur = self.conn.execute(
                """
                INSERT INTO tracked_keywords (
                    owner_id, keyword, time_range, alerts_enabled, alert_interval,
                    current_value, last_checked_at, data_json, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    owner,
                    kw,
                    str(normalize_time_range(time_range or DEFAULT_TIME_RANGE)),
                    1 if alerts_enabled else 0,
                    str(normalize_interval(alert_interval or DEFAULT_ALERT_INTERVAL)),
                    float(current_value) if current_value is not None else None,
                    now,
                    self._points_json(data),
                    now,
                    now,
                ),
            )
            self.conn.commit()
            out = self.get_tracked_keyword_by_id(keyword_id=int(cur.lastrowid or 0)) or {}
            out["created"] = True
            return out

        sets = ["last_checked_at=?", "updated_at=?"]
        params: list[Any] = [now, now]
        if time_range:
            sets.append("time_range=?")
            params.append(str(normalize_time_range(time_range)))
        if current_value is not None:
            sets.append("current_value=?")
            params.append(float(current_value))
        if data:
            sets.append("data_json=?")
            params.append(self._points_json(data))
        if alerts_enabled is not None:
            sets.append("alerts_enabled=?")
            params.append(1 if alerts_enabled else 0)
        if alert_interval:
            sets.append("alert_interval=?")
            params.append(str(normalize_interval(alert_interval)))
        params.append(int(existing["id"]))
        self.conn.execute(f"UPDATE tracked_keywords SET {', '.join(sets)} WHERE id=?", params)
        self.conn.commit()
        out = self.get_tracked_keyword_by_id(keyword_id=int(existing["id"])) or {}
        out["created"] = False
        return out

    def get_tracked_keyword(self, *, owner_id: str, keyword: str) -> Dict[str, Any] | None:
        r = self.conn.execute(
            "SELECT * FROM tracked_keywords WHERE owner_id=? AND keyword=? LIMIT 1",
            (str(owner_id or "").strip(), str(keyword or "").strip()),
        ).fetchone()
        return self._keyword_dict(r)

    def get_tracked_keyword_by_id(self, *, keyword_id: int) -> Dict[str, Any] | None:
        r = self.conn.execute("SELECT * FROM tracked_keywords WHERE id=? LIMIT 1", (int(keyword_id),)).fetchone()
        return self._keyword_dict(r)

    def list_tracked_keywords(self, *, owner_id: str) -> List[Dict[str, Any]]:
        rows = self.conn.execute(
            "SELECT * FROM tracked_keywords WHERE owner_id=? ORDER BY updated_at DESC, id DESC",
            (str(owner_id or "").strip(),),
        ).fetchall()
        return [self._keyword_dict(r) for r in rows]

    def list_alerting_keywords(self, *, limit: int = 1000) -> List[Dict[str, Any]]:
        """Raw rows (data_json kept) for every keyword with alerts enabled."""

        lim = self._limit(limit, 1000, 10000)
        rows = self.conn.execute(
            "SELECT * FROM tracked_keywords WHERE alerts_enabled=1 ORDER BY last_checked_at ASC, id ASC LIMIT ?",
            (lim,),
        ).fetchall()
        return [dict(r) for r in rows]

    def toggle_keyword_alerts(self, *, owner_id: str, keyword: str, now_iso: str | None = None) -> Dict[str, Any] | None:
        existing = self.get_tracked_keyword(owner_id=owner_id, keyword=keyword)
        if existing is None:
            return None
        now = (now_iso or "").strip() or self._utc_now_iso()
        self.conn.execute(
            "UPDATE tracked_keywords SET alerts_enabled=?, updated_at=? WHERE id=?",
            (0 if existing["alerts_enabled"] else 1, now, int(existing["id"])),
        )
        self.conn.commit()
        return self.get_tracked_keyword_by_id(keyword_id=int(existing["id"]))

    def set_keyword_alert_interval(
        self,
        *,
        owner_id: str,
        keyword: str,
        interval: str,
        now_iso: str | None = None,
    ) -> Dict[str, Any] | None:
        """Change the alert interval; choosing an interval also turns alerts on."""

        existing = self.get_tracked_keyword(owner_id=owner_id, keyword=keyword)
        if existing is None:
            return None
        now = (now_iso or "").strip() or self._utc_now_iso()
        self.conn.execute(
            "UPDATE tracked_keywords SET alert_interval=?, alerts_enabled=1, updated_at=? WHERE id=?",
            (str(normalize_interval(interval)), now, int(existing["id"])),
        )
        self.conn.commit()
        return self.get_tracked_keyword_by_id(keyword_id=int(existing["id"]))

    def delete_tracked_keyword(self, *, owner_id: str, keyword: str) -> bool:
        cur = self.conn.execute(
            "DELETE FROM tracked_keywords WHERE owner_id=? AND keyword=?",
            (str(owner_id or "").strip(), str(keyword or "").strip()),
        )
        self.conn.commit()
        return bool(cur.rowcount and int(cur.rowcount) > 0)

    def record_keyword_check(
        self,
        *,
        keyword_id: int,
        notification: Notification,
        latest_value: float,
        checked_at: str,
        expected_last_checked_at: str | None,
    ) -> int:
        """Write the cycle's notification and the new baseline atomically.

        The baseline only moves if last_checked_at still equals the value the
        caller read, so two runners racing on one due keyword file a single
        notification. Returns the notification id. On any error nothing is
        written: CheckConflict when another runner got there first,
        LookupError when the keyword was deleted.
        """

        try:
            self.conn.execute("BEGIN IMMEDIATE")
            upd = self.conn.execute(
                """
                UPDATE tracked_keywords SET current_value=?, last_checked_at=?, updated_at=?
                WHERE id=? AND last_checked_at IS ?
                """,
                (float(latest_value), checked_at, checked_at, int(keyword_id), expected_last_checked_at),
            )
            if not upd.rowcount:
                exists = self.conn.execute(
                    "SELECT 1 FROM tracked_keywords WHERE id=? LIMIT 1", (int(keyword_id),)
                ).fetchone()
                if exists is None:
                    raise LookupError(f"tracked keyword {keyword_id} no longer exists")
                raise CheckConflict(f"tracked keyword {keyword_id} was already checked by another runner")
            cur = self.conn.execute(
                """
                INSERT INTO notifications (owner_id, title, message, keyword, percent_change, read, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    notification.owner_id,
                    notification.title,
                    notification.message,
                    notification.keyword,
                    notification.percent_change,
                    1 if notification.read else 0,
                    notification.created_at,
                ),
            )
            nid = int(cur.lastrowid or 0)
            self.conn.commit()
            return nid
        except Exception:
            self.conn.rollback()
            raise

    # Notifications

    def insert_notification(self, notification: Notification) -> Dict[str, Any]:
        if not str(notification.owner_id or "").strip():
            raise ValueError("owner_id is required")
        cur = self.conn.execute(
            """
            INSERT INTO notifications (owner_id, title, message, keyword, percent_change, read, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                notification.owner_id,
                notification.title,
                notification.message,
                notification.keyword,
                notification.percent_change,
                1 if notification.read else 0,
                notification.created_at or self._utc_now_iso(),
            ),
        )
        self.conn.commit()
        return self.get_notification(notification_id=int(cur.lastrowid or 0)) or {}

    def get_notification(self, *, notification_id: int) -> Dict[str, Any] | None:
        r = self.conn.execute("SELECT * FROM notifications WHERE id=? LIMIT 1", (int(notification_id),)).fetchone()
        return self._notification_dict(r)

    def list_notifications(
        self,
        *,
        owner_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        sql = "SELECT * FROM notifications WHERE owner_id=?"
        params: list[Any] = [str(owner_id or "").strip()]
        if unread_only:
            sql += " AND read=0"
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(self._limit(limit, 50, 1000))
        rows = self.conn.execute(sql, params).fetchall()
        return [self._notification_dict(r) for r in rows]

    def mark_notification_read(self, *, notification_id: int) -> Dict[str, Any] | None:
        try:
            nid = int(notification_id)
        except (TypeError, ValueError):
            return None
        if nid <= 0:
            return None
        cur = self.conn.execute("UPDATE notifications SET read=1 WHERE id=?", (nid,))
        self.conn.commit()
        if not cur.rowcount:
            return None
        return self.get_notification(notification_id=nid)

    def mark_all_notifications_read(self, *, owner_id: str) -> int:
        cur = self.conn.execute(
            "UPDATE notifications SET read=1 WHERE owner_id=? AND read=0",
            (str(owner_id or "").strip(),),
        )
        self.conn.commit()
        return int(cur.rowcount or 0)

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None  # type: ignore[assignment]
