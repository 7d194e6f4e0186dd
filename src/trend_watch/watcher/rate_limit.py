from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class MinIntervalGate:
    """Enforces a minimum delay between consecutive outbound calls.

    One gate is shared by every keyword a watcher processes, across cycles.
    The first call never waits.
    """

    def __init__(
        self,
        min_interval_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval_s = max(0.0, float(min_interval_s or 0))
        self.clock = clock
        self.sleep_fn = sleep_fn
        self._last_call: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until a call is allowed, mark it, and return seconds slept."""

        with self._lock:
            slept = 0.0
            if self._last_call is not None and self.min_interval_s > 0:
                remaining = self.min_interval_s - (self.clock() - self._last_call)
                if remaining > 0:
                    self.sleep_fn(remaining)
                    slept = remaining
            self._last_call = self.clock()
            return slept
