from __future__ import annotations

from pathlib import Path

import pytest

from kvbench.config import RunConfig

from .fakes import FakeClientFactory


@pytest.fixture
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def output_path(tmp_path: Path) -> Path:
    return tmp_path / "results.csv"


@pytest.fixture
def make_config(output_path: Path):
    def _make(**overrides) -> RunConfig:
        values = {
            "host": "redis.test",
            "port": 6379,
            "workers": 2,
            "jobs": 10,
            "rate_limit": 1000,
            "output_path": output_path,
        }
        values.update(overrides)
        return RunConfig(**values)

    return _make
