"""CoinGecko price source: request building and response parsing.

Three query shapes are used:

- ``/simple/price``: batched instant price for every tracked symbol.
- ``/coins/{id}/market_chart/range``: price series between two instants.
- ``/coins/{id}/history``: single-day snapshot, used as a fallback.

This module is the only place that turns dates and instants into upstream
query parameters. Missing, malformed, non-finite or negative values resolve to ``0.0`` (or
are dropped from a series); only an unparseable body raises.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime, time, timezone
from typing import Any

from price_collector.core.exceptions import PriceSourceError
from price_collector.core.models import (
    REFERENCE_CURRENCY,
    AssetSymbol,
    PricePoint,
    PriceSeries,
)
from price_collector.ingestion.client import ResilientClient

logger = logging.getLogger(__name__)

_SIMPLE_PRICE_PATH = "/simple/price"
_RANGE_PATH = "/coins/{coin_id}/market_chart/range"
_HISTORY_PATH = "/coins/{coin_id}/history"


def format_history_date(day: date) -> str:
    """Format a calendar date the way the history endpoint expects (DD-MM-YYYY)."""
    return day.strftime("%d-%m-%Y")


def to_unix_seconds(instant: datetime) -> int:
    """Convert an aware datetime to whole Unix seconds (floored)."""
    if instant.tzinfo is None:
        raise ValueError("instant must be timezone-aware")
    return math.floor(instant.timestamp())


def _as_price(value: Any) -> float:
    """Coerce an upstream price field, mapping anything unusable to 0.0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    price = float(value)
    if not math.isfinite(price) or price < 0:
        return 0.0
    return price


class CoinGeckoSource:
    """Price Source Adapter backed by the CoinGecko public API.

    Parameters
    ----------
    client : ResilientClient
        Retrying HTTP client; all requests go through it.
    base_url : str
        API root, e.g. ``https://api.coingecko.com/api/v3``.
    """

    def __init__(self, client: ResilientClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        url = f"{self._base_url}{path}"
        response = await self._client.fetch(url, params=params)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PriceSourceError(
                f"Malformed JSON from {url}: {e}",
                context={"url": url},
            ) from e

    async def current_prices(self) -> dict[AssetSymbol, float]:
        """Fetch the current price of every tracked symbol in one request.

        Symbols absent or malformed in the response resolve to 0.0.
        """
        ids = ",".join(symbol.coingecko_id for symbol in AssetSymbol)
        data = await self._get_json(
            _SIMPLE_PRICE_PATH,
            {"ids": ids, "vs_currencies": REFERENCE_CURRENCY},
        )
        if not isinstance(data, dict):
            data = {}

        prices: dict[AssetSymbol, float] = {}
        for symbol in AssetSymbol:
            entry = data.get(symbol.coingecko_id)
            value = entry.get(REFERENCE_CURRENCY) if isinstance(entry, dict) else None
            prices[symbol] = _as_price(value)
            if prices[symbol] == 0.0:
                logger.warning("No current %s price in response", symbol)
        return prices

    async def price_series(
        self,
        symbol: AssetSymbol,
        start: datetime,
        end: datetime,
    ) -> PriceSeries:
        """Fetch the price series between two instants (inclusive).

        An empty list means upstream had no data; fetch failures raise.
        """
        data = await self._get_json(
            _RANGE_PATH.format(coin_id=symbol.coingecko_id),
            {
                "vs_currency": REFERENCE_CURRENCY,
                "from": to_unix_seconds(start),
                "to": to_unix_seconds(end),
            },
        )
        rows = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            return []

        series: PriceSeries = []
        for row in rows:
            # Row format: [timestamp_ms, price]
            if not isinstance(row, (list, tuple)) or len(row) < 2:
                continue
            ts_ms, price = row[0], row[1]
            if isinstance(ts_ms, bool) or not isinstance(ts_ms, (int, float)):
                continue
            if not math.isfinite(ts_ms):
                continue
            if isinstance(price, bool) or not isinstance(price, (int, float)):
                continue
            if not math.isfinite(price) or price < 0:
                logger.debug("Skipping unusable %s price %r at %s", symbol, price, ts_ms)
                continue
            series.append(
                PricePoint(
                    at=datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc),
                    price=float(price),
                )
            )
        return series

    async def historical_snapshot(self, symbol: AssetSymbol, day: date) -> float:
        """Fetch the single-day snapshot price. Returns 0.0 if absent."""
        data = await self._get_json(
            _HISTORY_PATH.format(coin_id=symbol.coingecko_id),
            {"date": format_history_date(day), "localization": "false"},
        )
        market_data = data.get("market_data") if isinstance(data, dict) else None
        current = market_data.get("current_price") if isinstance(market_data, dict) else None
        value = current.get(REFERENCE_CURRENCY) if isinstance(current, dict) else None
        return _as_price(value)

    async def price_history(
        self,
        symbol: AssetSymbol,
        start_day: date,
        end_day: date,
    ) -> list[tuple[date, float]]:
        """Every range-endpoint sample between two UTC day starts, labelled by UTC date."""
        start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
        end = datetime.combine(end_day, time.min, tzinfo=timezone.utc)
        series = await self.price_series(symbol, start, end)
        return [(point.at.date(), point.price) for point in series]
