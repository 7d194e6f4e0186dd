from __future__ import annotations

import hashlib
import random

from trend_watch.models import SeriesPoint, TimeRange, normalize_time_range

from .base import TrendProvider, parse_now, register_provider, window_for


@register_provider
class SyntheticProvider(TrendProvider):
    """Deterministic, offline provider for tests + local demos.

    The same keyword and window give the same series for a whole UTC day, so
    repeated cycles within a day see a stable latest value.
    """

    provider_key = "synthetic"
    remote = False

    def fetch_interest(
        self,
        keyword: str,
        time_range: str,
        *,
        now_iso: str | None = None,
        timeout_s: float = 30.0,
    ) -> list[SeriesPoint]:
        tr = normalize_time_range(time_range)
        window = window_for(tr)
        now = parse_now(now_iso).replace(minute=0, second=0, microsecond=0)

        seed_src = f"{(keyword or '').strip().lower()}|{tr}|{now.date().isoformat()}"
        rng = random.Random(int(hashlib.sha256(seed_src.encode("utf-8")).hexdigest()[:16], 16))

        value = rng.randint(20, 80)
        out: list[SeriesPoint] = []
        for i in range(window.points):
            at = now - window.step * (window.points - 1 - i)
            value = max(0, min(100, value + rng.randint(-12, 12)))
            date = at.isoformat() if tr == TimeRange.DAY_1 else at.date().isoformat()
            out.append(SeriesPoint(date=date, value=float(value)))
        return out
