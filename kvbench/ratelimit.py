from __future__ import annotations

import threading
import time
from typing import Callable


class RateLimiter:
    """Admission gate bounding the aggregate probe rate of every worker sharing it.

    Callers reserve consecutive slots ``1/rate`` seconds apart while holding
    the lock and sleep until their slot after releasing it, so admissions are
    spaced evenly no matter how many threads compete.
    """

    def __init__(
        self,
        rate: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError("RateLimiter rate must be > 0")
        self._rate = float(rate)
        self._interval = 1.0 / self._rate
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot: float | None = None

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def interval(self) -> float:
        return self._interval

    def wait(self) -> float:
        """Block until the caller may proceed and return its admission time."""
        with self._lock:
            now = self._clock()
            if self._next_slot is None or self._next_slot < now:
                slot = now
            else:
                slot = self._next_slot
            self._next_slot = slot + self._interval

        remaining = slot - self._clock()
        if remaining > 0:
            self._sleep(remaining)
        return slot


__all__ = ["RateLimiter"]
