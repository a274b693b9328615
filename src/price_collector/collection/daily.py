"""Daily average price computation with snapshot fallback."""

from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo
from typing import Protocol

from price_collector.collection.calendar import day_bounds
from price_collector.core.models import AssetSymbol, PriceSeries

logger = logging.getLogger(__name__)


class DailyPriceSource(Protocol):
    """The adapter operations the calculator needs."""

    async def price_series(
        self, symbol: AssetSymbol, start: datetime, end: datetime
    ) -> PriceSeries: ...
    async def historical_snapshot(self, symbol: AssetSymbol, day: date) -> float: ...


def mean_price(series: PriceSeries) -> float:
    """Unweighted arithmetic mean over samples. 0.0 for an empty series."""
    if not series:
        return 0.0
    return sum(point.price for point in series) / len(series)


class DailyAverageCalculator:
    """Average price of one symbol over one reference-timezone day.

    Two tiers:

    1. Range endpoint over [00:00:00, 23:59:59] of the day in ``tz``. An
       empty series is *not* an error: it is logged and returns 0.0, which
       callers must treat as "unknown".
    2. If tier 1 raises, the single-day snapshot endpoint. If that raises
       too, the tier-1 error is re-raised; the snapshot error is only logged.
    """

    def __init__(self, source: DailyPriceSource, tz: tzinfo) -> None:
        self._source = source
        self._tz = tz

    async def average_for(self, symbol: AssetSymbol, day: date) -> float:
        start, end = day_bounds(day, self._tz)
        try:
            series = await self._source.price_series(symbol, start, end)
        except Exception as primary_error:
            logger.error(
                "Failed to fetch daily average price for %s on %s (%s): %s",
                symbol, day, self._tz, primary_error,
            )
            return await self._fallback(symbol, day, primary_error)

        if not series:
            logger.warning("No price data available for %s on %s (%s)", symbol, day, self._tz)
            return 0.0

        average = mean_price(series)
        logger.info(
            "%s %s (%s): %d data points, average price %.6f",
            symbol, day, self._tz, len(series), average,
        )
        return average

    async def _fallback(
        self, symbol: AssetSymbol, day: date, primary_error: Exception
    ) -> float:
        logger.info("Falling back to history snapshot for %s %s", symbol, day)
        try:
            return await self._source.historical_snapshot(symbol, day)
        except Exception as fallback_error:
            logger.error(
                "Fallback snapshot also failed for %s on %s: %s",
                symbol, day, fallback_error,
            )
            raise primary_error from None
