from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .config import (
    DEFAULT_HOST,
    DEFAULT_JOBS,
    DEFAULT_OUTPUT_PATH,
    DEFAULT_PORT,
    DEFAULT_RATE_LIMIT,
    DEFAULT_WORKERS,
    RetryPolicy,
    RunConfig,
)
from .errors import BenchmarkError
from .harness import run_benchmark

LOGGER = logging.getLogger("kvbench")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    env = os.environ
    parser = argparse.ArgumentParser(description="Redis PING latency benchmark")
    parser.add_argument(
        "--redis-host",
        "-s",
        default=env.get("REDIS_SERVER", DEFAULT_HOST),
        help="Redis to connect to",
    )
    parser.add_argument(
        "--redis-port",
        "-p",
        type=int,
        default=env.get("REDIS_PORT", str(DEFAULT_PORT)),
        help="Redis port to connect to",
    )
    parser.add_argument(
        "--redis-password",
        "-a",
        default=env.get("REDIS_PASSWORD", ""),
        help="Redis password",
    )
    parser.add_argument(
        "--writes",
        "-w",
        type=int,
        default=env.get("REDIS_WRITES", str(DEFAULT_JOBS)),
        help="Number of probes to issue",
    )
    parser.add_argument(
        "--clients",
        "-c",
        type=int,
        default=env.get("REDIS_CLIENTS", str(DEFAULT_WORKERS)),
        help="Number of concurrent clients",
    )
    parser.add_argument(
        "--rate-limit",
        "-r",
        type=float,
        default=env.get("REDIS_RATE_LIMIT", str(DEFAULT_RATE_LIMIT)),
        help="Probes per second across all clients",
    )
    parser.add_argument(
        "--logfile",
        "-l",
        default=env.get("REDIS_LOGFILE", ""),
        help="Append log output to this file instead of stdout",
    )
    parser.add_argument(
        "--out-file",
        "-o",
        default=env.get("REDIS_OUTFILE", str(DEFAULT_OUTPUT_PATH)),
        help="CSV file to write timings to",
    )
    parser.add_argument(
        "--min-retry-backoff",
        type=float,
        default=env.get("REDIS_MIN_RETRY_BACKOFF", str(RetryPolicy.min_backoff)),
        help="Minimum seconds to back off between reconnect attempts",
    )
    parser.add_argument(
        "--max-retry-backoff",
        type=float,
        default=env.get("REDIS_MAX_RETRY_BACKOFF", str(RetryPolicy.max_backoff)),
        help="Maximum seconds to back off between reconnect attempts",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=env.get("REDIS_MAX_RETRIES", str(RetryPolicy.max_retries)),
        help="Reconnect attempts before a client gives up",
    )
    parser.add_argument(
        "--log-level",
        default=env.get("BENCHMARK_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_config(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        host=args.redis_host,
        port=args.redis_port,
        password=args.redis_password or None,
        workers=args.clients,
        jobs=args.writes,
        rate_limit=args.rate_limit,
        output_path=Path(args.out_file),
        log_file=Path(args.logfile) if args.logfile else None,
        retry=RetryPolicy(
            min_backoff=args.min_retry_backoff,
            max_backoff=args.max_retry_backoff,
            max_retries=args.max_retries,
        ),
    )


def setup_logging(level: str, log_file: Path | None = None) -> None:
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stdout)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[handler],
        force=True,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = build_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        setup_logging(args.log_level, config.log_file)
    except OSError as exc:
        print(f"fatal: cannot open log file {config.log_file}: {exc}", file=sys.stderr)
        return 1

    try:
        run_benchmark(config)
    except BenchmarkError as exc:
        LOGGER.error("fatal: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
