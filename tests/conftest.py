"""Shared pytest fixtures for price-collector."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from price_collector.core.config import StorageConfig
from price_collector.core.models import (
    AssetSymbol,
    DailyPrice,
    InstantPrice,
    PricePoint,
)
from price_collector.ingestion.store import SqliteStore

TOKYO = ZoneInfo("Asia/Tokyo")


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeSource:
    """Scriptable price source.

    ``series`` and ``snapshots`` map (symbol, day) to a value or to an
    exception instance, which is raised instead.
    """

    def __init__(self, series=None, snapshots=None, current=None):
        self.series = series or {}
        self.snapshots = snapshots or {}
        self.current = current or {AssetSymbol.XEM: 2.5, AssetSymbol.XYM: 3.75}
        self.series_calls: list[tuple[AssetSymbol, datetime, datetime]] = []
        self.snapshot_calls: list[tuple[AssetSymbol, date]] = []
        self.current_calls = 0

    async def price_series(self, symbol, start, end):
        self.series_calls.append((symbol, start, end))
        value = self.series.get((symbol, start.date()), [])
        if isinstance(value, Exception):
            raise value
        return value

    async def historical_snapshot(self, symbol, day):
        self.snapshot_calls.append((symbol, day))
        value = self.snapshots.get((symbol, day), 0.0)
        if isinstance(value, Exception):
            raise value
        return value

    async def current_prices(self):
        self.current_calls += 1
        if isinstance(self.current, Exception):
            raise self.current
        return dict(self.current)


def make_series(*prices: float, day: date = date(2024, 1, 15)) -> list[PricePoint]:
    """Hourly points starting at midnight UTC of ``day``."""
    base = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return [
        PricePoint(at=base.replace(hour=i), price=p) for i, p in enumerate(prices)
    ]


@pytest.fixture
def tokyo() -> ZoneInfo:
    return TOKYO


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
async def store():
    """An initialized in-memory SqliteStore."""
    s = SqliteStore(StorageConfig(sqlite_path=":memory:"))
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def sample_daily_price() -> DailyPrice:
    return DailyPrice(
        symbol=AssetSymbol.XEM,
        date=date(2024, 1, 15),
        price=2.345678,
        created_at=datetime(2024, 1, 16, 0, 5, tzinfo=timezone.utc),
    )


@pytest.fixture
def sample_instant_price() -> InstantPrice:
    return InstantPrice(
        symbol=AssetSymbol.XYM,
        price=3.21,
        timestamp=datetime(2024, 1, 16, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def series_of():
    """Factory: ``series_of(1.0, 2.0, day=...)`` -> list[PricePoint]."""
    return make_series
