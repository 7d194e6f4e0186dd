from __future__ import annotations

import re
from pathlib import Path

from trend_watch.models import SeriesPoint, normalize_time_range
from trend_watch.settings import WatchSettings

from .base import FetchError, TrendProvider, register_provider, parse_timeline_payload


def fixture_name(keyword: str, time_range: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", (keyword or "").strip().lower()).strip("_") or "keyword"
    return f"{slug}__{normalize_time_range(time_range)}.json"


@register_provider
class RecordedProvider(TrendProvider):
    """Replays captured Google Trends widget responses from disk.

    Looks up `<fixtures_dir>/<keyword_slug>__<time_range>.json`, falling back
    to `<keyword_slug>.json`. Files hold the raw response body, guard line and
    all, so captured HTML error pages exercise the same failure path as live.
    """

    provider_key = "recorded"
    remote = False

    def __init__(self, settings: WatchSettings | None = None, fixtures_dir: str | Path | None = None) -> None:
        super().__init__(settings=settings)
        if fixtures_dir is None:
            fixtures_dir = (settings.fixtures_dir if settings else "") or "./fixtures/trends"
        self.fixtures_dir = Path(fixtures_dir)

    def fetch_interest(
        self,
        keyword: str,
        time_range: str,
        *,
        now_iso: str | None = None,
        timeout_s: float = 30.0,
    ) -> list[SeriesPoint]:
        exact = self.fixtures_dir / fixture_name(keyword, time_range)
        fallback = self.fixtures_dir / (exact.name.split("__", 1)[0] + ".json")
        for path in (exact, fallback):
            if path.is_file():
                return parse_timeline_payload(path.read_text(encoding="utf-8"))
        raise FetchError(f"no recorded payload for {keyword!r} in {self.fixtures_dir}")
