from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request

from trend_watch.api.routes.watch import shared_watcher
from trend_watch.providers.base import FetchError
from trend_watch.watcher.job import search_payload

router = APIRouter(tags=["trends"])


@router.get("/trends/search")
def search_trends(request: Request, keyword: str = "", time_range: Optional[str] = None) -> Dict[str, Any]:
    """Interest over time for one keyword, ready to post back to /tracked-keywords."""

    if not keyword.strip():
        raise HTTPException(status_code=400, detail="keyword is required")
    try:
        watcher = shared_watcher(request.app.state)
    except KeyError as e:
        raise HTTPException(status_code=400, detail=str(e.args[0] if e.args else e))
    try:
        return search_payload(watcher, keyword, time_range)
    except FetchError as e:
        raise HTTPException(status_code=502, detail=f"Failed to search trends: {e}")
