from __future__ import annotations


class BenchmarkError(Exception):
    """Raised when the benchmark run hits a condition it cannot recover from."""


class DialError(BenchmarkError):
    """Raised when a connection to the server cannot be (re)established."""


class ResolutionError(DialError):
    """Raised when the server hostname does not resolve to any address."""


class ProbeError(BenchmarkError):
    """Raised when a probe fails on an established connection."""


class OutputError(BenchmarkError):
    """Raised when the results file cannot be written."""


__all__ = [
    "BenchmarkError",
    "DialError",
    "OutputError",
    "ProbeError",
    "ResolutionError",
]
