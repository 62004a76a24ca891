"""Shared test fixtures."""

import asyncio
from pathlib import Path

import pytest

from batchwise.config.settings import Settings


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def sleep() -> RecordingSleep:
    """Create a recording sleep."""
    return RecordingSleep()


@pytest.fixture
def test_config_path(tmp_path: Path) -> Path:
    """Create temporary config directory with test files."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    (config_dir / "batching.yaml").write_text("""
batching:
  batch_size: 4
  inter_batch_delay_ms: 5

retry:
  max_attempts: 3
  initial_delay_ms: 1
  backoff_multiplier: 3
  max_delay_ms: 50

retry_batches: true
""")

    return config_dir


@pytest.fixture
def test_settings(test_config_path: Path) -> Settings:
    """Create test settings instance."""
    return Settings(
        environment="test",
        log_level="DEBUG",
        config_path=test_config_path,
    )
