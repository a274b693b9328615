"""Integration test fixtures: real SQLite files and HTTP stack, mocked upstream."""

from __future__ import annotations

from pathlib import Path

import pytest

from price_collector.core.config import (
    APIConfig,
    CollectionConfig,
    CollectorConfig,
    SourceConfig,
    StorageConfig,
)
from price_collector.ingestion.store import SqliteStore

UPSTREAM = "https://api.example.test/v3"


@pytest.fixture
def integration_config(tmp_path: Path) -> CollectorConfig:
    return CollectorConfig(
        source=SourceConfig(base_url=UPSTREAM, max_retries=3, base_delay_ms=10),
        collection=CollectionConfig(
            pacing_delay_ms=10,
            log_dir=str(tmp_path / "logs"),
            cache_dir=str(tmp_path / "cache"),
        ),
        storage=StorageConfig(sqlite_path=str(tmp_path / "integration.db")),
        api=APIConfig(rate_limit_enabled=False),
    )


@pytest.fixture
async def integration_store(integration_config: CollectorConfig) -> SqliteStore:
    """An initialized file-backed SqliteStore."""
    store = SqliteStore(integration_config.storage)
    await store.initialize()
    yield store
    await store.close()
