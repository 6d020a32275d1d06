from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6379
DEFAULT_JOBS = 100_000
DEFAULT_WORKERS = 10
DEFAULT_RATE_LIMIT = 1_000
DEFAULT_OUTPUT_PATH = Path("results.csv")


@dataclass(frozen=True)
class RetryPolicy:
    """Reconnect envelope each worker's client applies when dialing the server."""

    min_backoff: float = 0.001
    max_backoff: float = 0.05
    max_retries: int = 1000
    connect_timeout: float | None = 5.0

    def __post_init__(self) -> None:
        if self.min_backoff < 0:
            raise ValueError("RetryPolicy min_backoff must be >= 0")
        if self.max_backoff < self.min_backoff:
            raise ValueError("RetryPolicy max_backoff must be >= min_backoff")
        if self.max_retries < 0:
            raise ValueError("RetryPolicy max_retries must be >= 0")
        if self.connect_timeout is not None and self.connect_timeout <= 0:
            raise ValueError("RetryPolicy connect_timeout must be > 0")


@dataclass(frozen=True)
class RunConfig:
    """Parameters of a single benchmark run, shared read-only by every worker."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    password: str | None = None
    workers: int = DEFAULT_WORKERS
    jobs: int = DEFAULT_JOBS
    rate_limit: float = DEFAULT_RATE_LIMIT
    output_path: Path = DEFAULT_OUTPUT_PATH
    log_file: Path | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("RunConfig host must not be empty")
        if not 0 < self.port <= 65535:
            raise ValueError(f"RunConfig port must be in 1..65535, got {self.port}")
        if self.workers < 1:
            raise ValueError("RunConfig workers must be >= 1")
        if self.jobs < 0:
            raise ValueError("RunConfig jobs must be >= 0")
        if self.rate_limit <= 0:
            raise ValueError("RunConfig rate_limit must be > 0")

    def describe(self) -> str:
        return (
            f"host={self.host} port={self.port} workers={self.workers} "
            f"jobs={self.jobs} rate_limit={self.rate_limit:g}/s "
            f"output={self.output_path}"
        )
