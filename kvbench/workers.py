from __future__ import annotations

import contextlib
import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Union

from .config import RunConfig
from .errors import BenchmarkError, ProbeError
from .ratelimit import RateLimiter

LOGGER = logging.getLogger("kvbench.workers")

_CLOSED = object()


@dataclass(frozen=True)
class TimingRecord:
    elapsed_ns: int
    job: int
    worker: int

    @property
    def elapsed_us(self) -> int:
        return self.elapsed_ns // 1_000


@dataclass(frozen=True)
class WorkerFailure:
    """Fatal error reported by a worker in place of a timing record."""

    worker: int
    job: int | None
    error: BenchmarkError


WorkerResult = Union[TimingRecord, WorkerFailure]
ClientFactory = Callable[[int], object]


class JobQueue:
    """FIFO of job numbers that workers drain until it is closed and empty."""

    def __init__(self, capacity: int = 0) -> None:
        # one extra slot for the close marker
        maxsize = capacity + 1 if capacity > 0 else 0
        self._queue: queue.Queue[object] = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def put(self, job: int) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("cannot enqueue jobs on a closed queue")
        self._queue.put(job)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._queue.put(_CLOSED)

    def get(self) -> int | None:
        """Return the next job, or None once the queue is closed and drained."""
        item = self._queue.get()
        if item is _CLOSED:
            # leave the marker for the remaining workers
            self._queue.put(_CLOSED)
            return None
        return item


def probe(client) -> int:
    started = time.perf_counter_ns()
    client.ping()
    return time.perf_counter_ns() - started


class WorkerPool:
    """Fixed set of probe threads pulling jobs from a shared queue."""

    def __init__(
        self,
        config: RunConfig,
        jobs: JobQueue,
        results: queue.Queue[WorkerResult],
        limiter: RateLimiter,
        client_factory: ClientFactory,
    ) -> None:
        self._config = config
        self._jobs = jobs
        self._results = results
        self._limiter = limiter
        self._client_factory = client_factory

        self._threads: list[threading.Thread] = []
        self._stop_event = threading.Event()

    @property
    def size(self) -> int:
        return self._config.workers

    @property
    def alive(self) -> int:
        return sum(1 for thread in self._threads if thread.is_alive())

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("worker pool already started")
        for worker_id in range(self._config.workers):
            thread = threading.Thread(
                target=self._run_worker,
                args=(worker_id,),
                name=f"probe-worker-{worker_id}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        LOGGER.info("Started %d worker(s)", len(self._threads))

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self._threads:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            thread.join(timeout=remaining)

    def _run_worker(self, worker_id: int) -> None:
        client = None
        job: int | None = None
        try:
            client = self._client_factory(worker_id)
            while not self._stop_event.is_set():
                job = self._jobs.get()
                if job is None or self._stop_event.is_set():
                    break
                self._limiter.wait()
                elapsed_ns = probe(client)
                self._results.put(TimingRecord(elapsed_ns=elapsed_ns, job=job, worker=worker_id))
                job = None
        except BenchmarkError as exc:
            self._fail(worker_id, job, exc)
        except Exception as exc:  # noqa: BLE001
            error = ProbeError(f"unexpected error: {exc!r}")
            error.__cause__ = exc
            self._fail(worker_id, job, error)
        finally:
            if client is not None and hasattr(client, "close"):
                with contextlib.suppress(Exception):
                    client.close()

    def _fail(self, worker_id: int, job: int | None, error: BenchmarkError) -> None:
        self._stop_event.set()
        LOGGER.error("worker %d failed on job %s: %s", worker_id, job, error)
        self._results.put(WorkerFailure(worker=worker_id, job=job, error=error))


__all__ = [
    "JobQueue",
    "TimingRecord",
    "WorkerFailure",
    "WorkerPool",
    "probe",
]
