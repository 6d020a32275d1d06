from __future__ import annotations

import contextlib
import enum
import logging
import queue
import time
from dataclasses import dataclass
from typing import Callable

from .client import create_probe_client
from .collector import ResultCollector, verify_results
from .config import RunConfig
from .errors import OutputError
from .ratelimit import RateLimiter
from .resolver import EndpointResolver
from .workers import JobQueue, WorkerFailure, WorkerPool, WorkerResult

LOGGER = logging.getLogger("kvbench.harness")


class RunState(enum.Enum):
    INIT = "init"
    DISPATCH = "dispatch"
    COLLECT = "collect"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunStatistics:
    completed: int
    started_at: float
    finished_at: float

    @property
    def duration_s(self) -> float:
        return max(self.finished_at - self.started_at, 0.0)

    @property
    def throughput_per_second(self) -> float:
        if self.duration_s == 0:
            return 0.0
        return self.completed / self.duration_s


class BenchmarkRun:
    """Dispatches ``config.jobs`` probes to the worker pool and records every timing."""

    def __init__(
        self,
        config: RunConfig,
        client_factory: Callable[[int], object] | None = None,
        limiter: RateLimiter | None = None,
        collector: ResultCollector | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or self._default_client_factory
        self._limiter = limiter
        self._collector = collector
        self.state = RunState.INIT

    def run(self) -> RunStatistics:
        try:
            return self._run()
        except BaseException:
            self.state = RunState.FAILED
            raise

    def _run(self) -> RunStatistics:
        config = self._config
        self.state = RunState.INIT
        LOGGER.info("Starting benchmark run: %s", config.describe())

        limiter = self._limiter or RateLimiter(config.rate_limit)
        jobs = JobQueue(capacity=config.jobs)
        # room for one failure report per worker on top of every record
        results: queue.Queue[WorkerResult] = queue.Queue(maxsize=config.jobs + config.workers)
        collector = self._collector or ResultCollector(config.output_path)
        collector.open()

        pool = WorkerPool(config, jobs, results, limiter, self._client_factory)
        started_at = time.time()
        try:
            self.state = RunState.DISPATCH
            pool.start()
            for job in range(config.jobs):
                jobs.put(job)
            jobs.close()

            self.state = RunState.COLLECT
            for _ in range(config.jobs):
                item = results.get()
                if isinstance(item, WorkerFailure):
                    raise item.error
                collector.write(item)
        except BaseException:
            pool.stop()
            with contextlib.suppress(OutputError):
                collector.close()
            raise

        collector.close()
        finished_at = time.time()
        pool.join(timeout=5.0)
        verify_results(collector.path, config.jobs)
        self.state = RunState.DONE

        stats = RunStatistics(
            completed=collector.rows_written,
            started_at=started_at,
            finished_at=finished_at,
        )
        LOGGER.info(
            "Completed %d probe(s) in %.2fs (%.1f probes/s)",
            stats.completed,
            stats.duration_s,
            stats.throughput_per_second,
        )
        return stats

    def _default_client_factory(self, worker_id: int):
        return create_probe_client(self._config, EndpointResolver())


def run_benchmark(config: RunConfig, **kwargs) -> RunStatistics:
    return BenchmarkRun(config, **kwargs).run()


__all__ = [
    "BenchmarkRun",
    "RunState",
    "RunStatistics",
    "run_benchmark",
]
