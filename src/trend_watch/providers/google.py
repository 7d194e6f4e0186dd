from __future__ import annotations

import logging
from typing import Any, Callable

from pytrends.request import TrendReq

from trend_watch.models import SeriesPoint, TimeRange, normalize_time_range
from trend_watch.settings import WatchSettings

from .base import FetchError, TrendProvider, register_provider, window_for

logger = logging.getLogger("trend_watch.providers.google")


@register_provider
class GoogleTrendsProvider(TrendProvider):
    """Live Google Trends interest-over-time via pytrends.

    Every failure mode (network error, timeout, 429, HTML error page, empty
    frame) surfaces as FetchError so the watcher can skip the keyword.
    """

    provider_key = "google"
    remote = True

    def __init__(
        self,
        settings: WatchSettings | None = None,
        trend_req_factory: Callable[..., Any] | None = None,
    ) -> None:
        super().__init__(settings=settings)
        self.trend_req_factory = trend_req_factory or TrendReq

    def fetch_interest(
        self,
        keyword: str,
        time_range: str,
        *,
        now_iso: str | None = None,
        timeout_s: float = 30.0,
    ) -> list[SeriesPoint]:
        kw = (keyword or "").strip()
        if not kw:
            raise FetchError("keyword is required")
        tr = normalize_time_range(time_range)
        timeframe = window_for(tr).timeframe
        geo = self.settings.geo if self.settings else ""
        hl = self.settings.hl if self.settings else "en-US"
        timeout = max(1.0, float(timeout_s or 30.0))

        try:
            # TrendReq fetches Google cookies on construction, so it lives inside the guard.
            client = self.trend_req_factory(hl=hl, tz=0, timeout=(min(10.0, timeout), timeout), retries=0)
            client.build_payload([kw], timeframe=timeframe, geo=geo)
            df = client.interest_over_time()
        except Exception as e:
            raise FetchError(f"google trends request failed for {kw!r}: {e}") from e

        if df is None or getattr(df, "empty", True):
            return []
        if kw not in df.columns:
            raise FetchError(f"google trends response has no column for {kw!r}")

        points: list[SeriesPoint] = []
        for idx, value in df[kw].items():
            date = idx.isoformat() if tr == TimeRange.DAY_1 else idx.date().isoformat()
            try:
                points.append(SeriesPoint(date=date, value=float(value)))
            except (TypeError, ValueError) as e:
                raise FetchError(f"non-numeric interest value {value!r}") from e
        logger.debug("fetched %s points for %r (%s)", len(points), kw, timeframe)
        return points
