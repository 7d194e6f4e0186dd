from __future__ import annotations

import os
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from trend_watch.models import Notification
from trend_watch.settings import get_settings
from trend_watch.storage import SQLiteStore
from trend_watch.watcher.job import utc_now_iso

router = APIRouter(tags=["notifications"])


def _get_db_path() -> str:
    return os.getenv("TREND_WATCH_DB") or get_settings().db_path


class CreateNotificationBody(BaseModel):
    owner_id: str
    title: str
    message: str
    keyword: Optional[str] = None
    percent_change: Optional[float] = None


@router.get("/notifications")
def list_notifications(owner_id: str, unread_only: bool = False, limit: int = 50) -> Dict[str, Any]:
    store = SQLiteStore(_get_db_path())
    try:
        rows = store.list_notifications(owner_id=owner_id, unread_only=unread_only, limit=limit)
        return {"ok": True, "notifications": rows}
    finally:
        store.close()


@router.post("/notifications")
def create_notification(body: CreateNotificationBody) -> Dict[str, Any]:
    """Administrative path; the watcher writes notifications directly."""

    if not body.owner_id.strip():
        raise HTTPException(status_code=400, detail="owner_id is required")
    store = SQLiteStore(_get_db_path())
    try:
        row = store.insert_notification(
            Notification(
                owner_id=body.owner_id.strip(),
                title=body.title,
                message=body.message,
                keyword=body.keyword,
                percent_change=body.percent_change,
                created_at=utc_now_iso(),
            )
        )
        return {"ok": True, "notification": row}
    finally:
        store.close()


@router.post("/notifications/read-all")
def mark_all_read(owner_id: str) -> Dict[str, Any]:
    store = SQLiteStore(_get_db_path())
    try:
        return {"ok": True, "count": store.mark_all_notifications_read(owner_id=owner_id)}
    finally:
        store.close()


@router.post("/notifications/{notification_id}/read")
def mark_read(notification_id: int) -> Dict[str, Any]:
    store = SQLiteStore(_get_db_path())
    try:
        row = store.mark_notification_read(notification_id=notification_id)
        if row is None:
            raise HTTPException(status_code=404, detail="notification not found")
        return {"ok": True, "notification": row}
    finally:
        store.close()
