from __future__ import annotations

import queue
import threading

import pytest

from kvbench.errors import DialError, ProbeError
from kvbench.ratelimit import RateLimiter
from kvbench.workers import JobQueue, TimingRecord, WorkerFailure, WorkerPool

from .fakes import FakeClientFactory


def drain(results: queue.Queue, count: int, timeout: float = 5.0) -> list:
    return [results.get(timeout=timeout) for _ in range(count)]


def run_pool(config, factory, limiter=None):
    jobs = JobQueue(capacity=config.jobs)
    results: queue.Queue = queue.Queue()
    pool = WorkerPool(config, jobs, results, limiter or RateLimiter(10_000), factory)
    pool.start()
    for job in range(config.jobs):
        jobs.put(job)
    jobs.close()
    return pool, results


class CountingLimiter(RateLimiter):
    def __init__(self, rate: float) -> None:
        super().__init__(rate)
        self.calls = 0
        self._calls_lock = threading.Lock()

    def wait(self) -> float:
        with self._calls_lock:
            self.calls += 1
        return super().wait()


def test_timing_record_truncates_to_microseconds():
    record = TimingRecord(elapsed_ns=1_999_999, job=3, worker=1)

    assert record.elapsed_us == 1_999


def test_job_queue_is_fifo():
    jobs = JobQueue(capacity=3)
    for job in range(3):
        jobs.put(job)
    jobs.close()

    assert [jobs.get() for _ in range(3)] == [0, 1, 2]


def test_closed_queue_keeps_signalling_every_consumer():
    jobs = JobQueue(capacity=1)
    jobs.put(42)
    jobs.close()

    assert jobs.get() == 42
    assert jobs.get() is None
    assert jobs.get() is None
    assert jobs.closed


def test_put_after_close_raises():
    jobs = JobQueue()
    jobs.close()
    jobs.close()

    with pytest.raises(RuntimeError):
        jobs.put(0)


def test_pool_emits_one_record_per_job(make_config, client_factory):
    config = make_config(workers=3, jobs=30)

    pool, results = run_pool(config, client_factory)
    records = drain(results, 30)
    pool.join(timeout=5.0)

    assert all(isinstance(record, TimingRecord) for record in records)
    assert sorted(record.job for record in records) == list(range(30))
    assert {record.worker for record in records} <= {0, 1, 2}
    assert all(record.elapsed_ns >= 0 for record in records)
    assert pool.alive == 0
    assert results.empty()


def test_each_worker_owns_a_client(make_config, client_factory):
    config = make_config(workers=4, jobs=20)

    pool, results = run_pool(config, client_factory)
    drain(results, 20)
    pool.join(timeout=5.0)

    assert sorted(client.worker for client in client_factory.clients) == [0, 1, 2, 3]
    assert sum(client.pings for client in client_factory.clients) == 20
    assert all(client.closed for client in client_factory.clients)


def test_every_job_passes_the_rate_limiter(make_config, client_factory):
    config = make_config(workers=3, jobs=12)
    limiter = CountingLimiter(10_000)

    pool, results = run_pool(config, client_factory, limiter)
    drain(results, 12)
    pool.join(timeout=5.0)

    assert limiter.calls == 12


def test_probe_failure_is_reported_and_stops_the_pool(make_config):
    config = make_config(workers=1, jobs=5)
    factory = FakeClientFactory(fail_from=3)

    pool, results = run_pool(config, factory)
    items = drain(results, 3)
    pool.join(timeout=5.0)

    assert [item.job for item in items[:2]] == [0, 1]
    failure = items[2]
    assert isinstance(failure, WorkerFailure)
    assert failure.job == 2
    assert failure.worker == 0
    assert isinstance(failure.error, ProbeError)
    assert pool.stopping
    assert results.empty()


def test_unexpected_errors_become_probe_errors(make_config):
    class BrokenClient:
        def ping(self):
            raise KeyError("boom")

    config = make_config(workers=1, jobs=1)

    pool, results = run_pool(config, lambda worker: BrokenClient())
    failure = results.get(timeout=5.0)
    pool.join(timeout=5.0)

    assert isinstance(failure, WorkerFailure)
    assert isinstance(failure.error, ProbeError)
    assert isinstance(failure.error.__cause__, KeyError)


def test_client_setup_failure_is_reported_without_a_job(make_config, mocker):
    factory = mocker.Mock(side_effect=DialError("connection refused"))
    config = make_config(workers=1, jobs=3)

    pool, results = run_pool(config, factory)
    failure = results.get(timeout=5.0)
    pool.join(timeout=5.0)

    assert isinstance(failure, WorkerFailure)
    assert failure.job is None
    assert isinstance(failure.error, DialError)


def test_start_twice_is_rejected(make_config, client_factory):
    config = make_config(workers=1, jobs=0)

    pool, _ = run_pool(config, client_factory)
    pool.join(timeout=5.0)

    with pytest.raises(RuntimeError):
        pool.start()
