from __future__ import annotations

import threading
import time

import pytest

from kvbench.ratelimit import RateLimiter


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.parametrize("rate", [0, -5])
def test_rejects_non_positive_rate(rate):
    with pytest.raises(ValueError):
        RateLimiter(rate)


def test_interval_matches_rate():
    limiter = RateLimiter(250)

    assert limiter.rate == 250
    assert limiter.interval == pytest.approx(0.004)


def test_first_admission_is_immediate():
    clock = FakeClock()
    limiter = RateLimiter(10, clock=clock, sleep=clock.sleep)

    assert limiter.wait() == 100.0
    assert clock.sleeps == []


def test_consecutive_admissions_are_spaced_by_interval():
    clock = FakeClock()
    limiter = RateLimiter(10, clock=clock, sleep=clock.sleep)

    slots = [limiter.wait() for _ in range(5)]

    assert slots == pytest.approx([100.0, 100.1, 100.2, 100.3, 100.4])
    assert clock.now == pytest.approx(100.4)


def test_idle_time_does_not_accumulate_burst_credit():
    clock = FakeClock()
    limiter = RateLimiter(10, clock=clock, sleep=clock.sleep)
    limiter.wait()

    clock.now += 5.0
    first = limiter.wait()
    second = limiter.wait()

    assert first == pytest.approx(105.0)
    assert second == pytest.approx(105.1)


@pytest.mark.parametrize(
    "rate, threads_count, per_thread",
    [
        (200, 8, 10),
        (50, 6, 10),
    ],
)
def test_aggregate_rate_holds_across_threads(rate, threads_count, per_thread):
    limiter = RateLimiter(rate)
    admitted: list[float] = []
    lock = threading.Lock()

    def caller() -> None:
        for _ in range(per_thread):
            limiter.wait()
            stamp = time.monotonic()
            with lock:
                admitted.append(stamp)

    threads = [threading.Thread(target=caller) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    total = threads_count * per_thread
    assert len(admitted) == total
    span = max(admitted) - min(admitted)
    assert span >= (total - 1) / rate - 0.02
