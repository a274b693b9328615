"""Gap detection and backfill of daily average prices."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, datetime, timezone, tzinfo
from typing import Protocol

from price_collector.collection.calendar import reference_yesterday, trailing_days
from price_collector.core.models import (
    AssetSymbol,
    BackfillMode,
    BackfillOutcome,
    BackfillReport,
    BackfillResult,
    DailyPrice,
)
from price_collector.ingestion.store import StorageProtocol

logger = logging.getLogger(__name__)

INVALID_PRICE_REASON = "Invalid price received (0 or negative)"


class AverageCalculator(Protocol):
    async def average_for(self, symbol: AssetSymbol, day: date) -> float: ...


class BackfillDriver:
    """Fills missing (symbol, date) daily prices from the upstream API.

    Pairs are processed strictly one at a time, date by date, with every
    symbol of a date finished before moving to the next date. After each pair
    that needed an upstream call there is a fixed pause before the next pair
    to stay under the upstream rate limit. Pairs already in the store are
    skipped without a pause, so repeated runs are cheap and idempotent.

    A run never stops early: per-pair failures are collected in the report.
    """

    def __init__(
        self,
        calculator: AverageCalculator,
        store: StorageProtocol,
        tz: tzinfo,
        pacing_delay_ms: int = 3000,
        recovery_days: int = 3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._calculator = calculator
        self._store = store
        self._tz = tz
        self._pacing_delay = pacing_delay_ms / 1000.0
        self._recovery_days = recovery_days
        self._sleep = sleep

    async def collect_daily(
        self, now: datetime | None = None, day: date | None = None
    ) -> BackfillReport:
        """Routine mode: the reference-timezone "yesterday" (or ``day`` if given)."""
        target = day or reference_yesterday(self._tz, now)
        logger.info("Collecting daily prices for %s", target)
        return await self.run([target], BackfillMode.DAILY)

    async def recover(
        self, days: int | None = None, now: datetime | None = None
    ) -> BackfillReport:
        """Recovery mode: the trailing ``days`` days ending yesterday."""
        dates = trailing_days(self._tz, days or self._recovery_days, now)
        logger.info("Starting recovery for %s .. %s", dates[-1], dates[0])
        return await self.run(dates, BackfillMode.RECOVERY)

    async def run(self, dates: Iterable[date], mode: BackfillMode) -> BackfillReport:
        dates = list(dates)
        started_at = datetime.now(timezone.utc)
        pairs = [(day, symbol) for day in dates for symbol in AssetSymbol]

        results: list[BackfillResult] = []
        for index, (day, symbol) in enumerate(pairs):
            result = await self._process(day, symbol)
            results.append(result)
            if result.attempted and index < len(pairs) - 1:
                await self._sleep(self._pacing_delay)

        report = BackfillReport(
            mode=mode,
            dates=dates,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            results=results,
        )
        logger.info(
            "Backfill (%s) completed: %d saved, %d already present, %d failed",
            mode, report.succeeded, report.already_present, report.failed,
        )
        return report

    async def _process(self, day: date, symbol: AssetSymbol) -> BackfillResult:
        try:
            if await self._store.daily_price_exists(symbol, day):
                logger.info("Price for %s on %s already exists, skipping", symbol, day)
                return BackfillResult(
                    date=day, symbol=symbol, outcome=BackfillOutcome.ALREADY_PRESENT
                )

            logger.info("Fetching price for %s on %s", symbol, day)
            price = await self._calculator.average_for(symbol, day)

            if not math.isfinite(price) or price <= 0:
                logger.error("Failed to fetch %s price for %s: %s", symbol, day, INVALID_PRICE_REASON)
                return BackfillResult(
                    date=day,
                    symbol=symbol,
                    outcome=BackfillOutcome.FAILURE,
                    price=price,
                    reason=INVALID_PRICE_REASON,
                )

            await self._store.upsert_daily_price(
                DailyPrice(
                    symbol=symbol,
                    date=day,
                    price=price,
                    created_at=datetime.now(timezone.utc),
                )
            )
            logger.info("Saved %s: %.6f for %s", symbol, price, day)
            return BackfillResult(
                date=day, symbol=symbol, outcome=BackfillOutcome.SUCCESS, price=price
            )

        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.error("Failed to fetch %s price for %s: %s", symbol, day, reason)
            return BackfillResult(
                date=day, symbol=symbol, outcome=BackfillOutcome.FAILURE, reason=reason
            )
