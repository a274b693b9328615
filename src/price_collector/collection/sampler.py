"""Instant price sampling."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from price_collector.core.models import AssetSymbol, InstantSample
from price_collector.ingestion.store import StorageProtocol

logger = logging.getLogger(__name__)


class CurrentPriceSource(Protocol):
    async def current_prices(self) -> dict[AssetSymbol, float]: ...


class CacheWriter(Protocol):
    def write(self, sample: InstantSample) -> Path: ...


class InstantSampler:
    """Captures the current price of every tracked symbol.

    One batched upstream request, one shared capture timestamp, one store
    transaction. Nothing is written until the fetch has succeeded, so a
    sample is either stored for every symbol or not at all. Errors propagate
    to the caller unchanged.
    """

    def __init__(
        self,
        source: CurrentPriceSource,
        store: StorageProtocol,
        cache_writer: CacheWriter | None = None,
    ) -> None:
        self._source = source
        self._store = store
        self._cache_writer = cache_writer

    async def sample(self, now: datetime | None = None) -> InstantSample:
        prices = await self._source.current_prices()
        sample = InstantSample(
            timestamp=now or datetime.now(timezone.utc),
            prices=prices,
        )
        await self._store.append_instant_prices(sample.observations())
        logger.info(
            "Sampled %s",
            ", ".join(f"{symbol}={price:.6f}" for symbol, price in prices.items()),
        )
        if self._cache_writer is not None:
            self._cache_writer.write(sample)
        return sample
