from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from trend_watch.models import AlertInterval
from trend_watch.settings import get_settings
from trend_watch.storage import SQLiteStore

router = APIRouter(tags=["tracked-keywords"])

_VALID_INTERVALS = [str(i) for i in AlertInterval]


def _get_db_path() -> str:
    return os.getenv("TREND_WATCH_DB") or get_settings().db_path


class PointIn(BaseModel):
    date: str
    value: float


class SaveTrackedKeywordBody(BaseModel):
    owner_id: str
    keyword: str
    time_range: Optional[str] = None
    current_value: Optional[float] = None
    data: List[PointIn] = Field(default_factory=list)
    alerts_enabled: Optional[bool] = None
    alert_interval: Optional[str] = None


class AlertIntervalBody(BaseModel):
    owner_id: str
    interval: Optional[str] = None


def _check_interval(value: Optional[str]) -> None:
    if value and value not in _VALID_INTERVALS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid interval. Must be one of: {', '.join(_VALID_INTERVALS)}",
        )


@router.get("/tracked-keywords")
def list_tracked_keywords(owner_id: str) -> Dict[str, Any]:
    store = SQLiteStore(_get_db_path())
    try:
        return {"ok": True, "tracked_keywords": store.list_tracked_keywords(owner_id=owner_id)}
    finally:
        store.close()


@router.post("/tracked-keywords")
def save_tracked_keyword(body: SaveTrackedKeywordBody) -> Dict[str, Any]:
    if not body.owner_id.strip() or not body.keyword.strip():
        raise HTTPException(status_code=400, detail="owner_id and keyword are required")
    _check_interval(body.alert_interval)
    store = SQLiteStore(_get_db_path())
    try:
        row = store.save_tracked_keyword(
            owner_id=body.owner_id,
            keyword=body.keyword,
            time_range=body.time_range,
            current_value=body.current_value,
            data=[p.model_dump() for p in body.data],
            alerts_enabled=body.alerts_enabled,
            alert_interval=body.alert_interval,
        )
        created = bool(row.pop("created", False))
        return {"ok": True, "created": created, "tracked_keyword": row}
    finally:
        store.close()


@router.post("/tracked-keywords/{keyword}/toggle-alerts")
def toggle_alerts(keyword: str, owner_id: str) -> Dict[str, Any]:
    store = SQLiteStore(_get_db_path())
    try:
        row = store.toggle_keyword_alerts(owner_id=owner_id, keyword=keyword)
        if row is None:
            raise HTTPException(status_code=404, detail="tracked keyword not found")
        return {"ok": True, "tracked_keyword": row}
    finally:
        store.close()


@router.post("/tracked-keywords/{keyword}/alert-interval")
def set_alert_interval(keyword: str, body: AlertIntervalBody) -> Dict[str, Any]:
    if not body.interval:
        raise HTTPException(status_code=400, detail="interval is required")
    _check_interval(body.interval)
    store = SQLiteStore(_get_db_path())
    try:
        row = store.set_keyword_alert_interval(owner_id=body.owner_id, keyword=keyword, interval=body.interval)
        if row is None:
            raise HTTPException(status_code=404, detail="tracked keyword not found")
        return {"ok": True, "tracked_keyword": row}
    finally:
        store.close()


@router.delete("/tracked-keywords/{keyword}")
def delete_tracked_keyword(keyword: str, owner_id: str) -> Dict[str, Any]:
    store = SQLiteStore(_get_db_path())
    try:
        if not store.delete_tracked_keyword(owner_id=owner_id, keyword=keyword):
            raise HTTPException(status_code=404, detail="tracked keyword not found")
        return {"ok": True}
    finally:
        store.close()
