from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import IO

import pandas as pd

from .errors import OutputError
from .workers import TimingRecord

LOGGER = logging.getLogger("kvbench.collector")

HEADER: tuple[str, str, str] = ("elapsed(μs)", "job", "worker")


class ResultCollector:
    """Single-consumer writer streaming timing records to a CSV file."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._handle: IO[str] | None = None
        self._writer = None
        self._closed = False
        self._rows_written = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def rows_written(self) -> int:
        return self._rows_written

    def open(self) -> None:
        if self._handle is not None or self._closed:
            raise OutputError(f"{self._path} was already opened")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self._path, "w", newline="", encoding="utf-8")
            self._writer = csv.writer(self._handle)
            self._writer.writerow(HEADER)
        except OSError as exc:
            raise OutputError(f"failed to open {self._path}: {exc}") from exc
        LOGGER.info("Writing results to %s", self._path)

    def write(self, record: TimingRecord) -> None:
        if self._writer is None or self._closed:
            raise OutputError(f"{self._path} is not open for writing")
        row = (record.elapsed_us, record.job, record.worker)
        try:
            self._writer.writerow(row)
        except OSError as exc:
            raise OutputError(f"failed to write record to {self._path}: {exc}") from exc
        self._rows_written += 1

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        self._writer = None
        try:
            handle.flush()
        except OSError as exc:
            raise OutputError(f"failed to flush {self._path}: {exc}") from exc
        finally:
            try:
                handle.close()
            except OSError as exc:
                raise OutputError(f"failed to close {self._path}: {exc}") from exc
        LOGGER.info("Wrote %d row(s) to %s", self._rows_written, self._path)

    def __enter__(self) -> "ResultCollector":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def load_results(path: Path | str) -> pd.DataFrame:
    """Read a results file back into a frame with integer columns."""
    return pd.read_csv(path, encoding="utf-8", dtype={column: "int64" for column in HEADER})


def verify_results(path: Path | str, expected_jobs: int) -> pd.DataFrame:
    """Re-read a finished results file and check it holds every job exactly once."""
    try:
        frame = load_results(path)
    except (OSError, ValueError, pd.errors.ParserError) as exc:
        raise OutputError(f"failed to read back {path}: {exc}") from exc

    if list(frame.columns) != list(HEADER):
        raise OutputError(f"{path} has unexpected columns {list(frame.columns)}")
    if len(frame) != expected_jobs:
        raise OutputError(f"{path} holds {len(frame)} row(s), expected {expected_jobs}")
    if frame["job"].sort_values().tolist() != list(range(expected_jobs)):
        raise OutputError(f"{path} does not hold jobs 0..{expected_jobs - 1} exactly once")

    LOGGER.info(
        "Verified %d row(s) from %d worker(s) in %s",
        len(frame),
        frame["worker"].nunique(),
        path,
    )
    return frame


__all__ = ["HEADER", "ResultCollector", "load_results", "verify_results"]
