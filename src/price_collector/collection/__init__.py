"""Price collection: daily averages, backfill, instant sampling, artifacts."""

from price_collector.collection.artifacts import JsonCacheWriter, read_cache, write_run_log
from price_collector.collection.backfill import INVALID_PRICE_REASON, BackfillDriver
from price_collector.collection.calendar import (
    day_bounds,
    reference_today,
    reference_yesterday,
    trailing_days,
)
from price_collector.collection.daily import DailyAverageCalculator, mean_price
from price_collector.collection.sampler import InstantSampler

__all__ = [
    "BackfillDriver",
    "DailyAverageCalculator",
    "INVALID_PRICE_REASON",
    "InstantSampler",
    "JsonCacheWriter",
    "day_bounds",
    "mean_price",
    "read_cache",
    "reference_today",
    "reference_yesterday",
    "trailing_days",
    "write_run_log",
]
