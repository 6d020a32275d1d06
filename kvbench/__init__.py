"""
Latency benchmarking harness for Redis-compatible key-value services.

This package drives a fixed pool of rate-limited probe clients against a
server, spreading connections across every address its hostname resolves to,
and records the round-trip time of each probe to a CSV file for offline
analysis.
"""

from .main import main

__all__ = ["main"]
