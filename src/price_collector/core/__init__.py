"""price_collector.core: Foundation types, config, and exceptions."""

from price_collector.core.config import (
    APIConfig,
    CollectionConfig,
    CollectorConfig,
    SourceConfig,
    StorageConfig,
    load_config,
)
from price_collector.core.exceptions import (
    CollectionError,
    ConfigError,
    FetchError,
    PriceCollectorError,
    PriceSourceError,
    RetriesExhaustedError,
    StorageError,
)
from price_collector.core.models import (
    COINGECKO_IDS,
    REFERENCE_CURRENCY,
    REFERENCE_TIMEZONE,
    AssetSymbol,
    BackfillMode,
    BackfillOutcome,
    BackfillReport,
    BackfillResult,
    DailyPrice,
    InstantPrice,
    InstantSample,
    PricePoint,
    PriceSeries,
)

__all__ = [
    # Constants
    "COINGECKO_IDS",
    "REFERENCE_CURRENCY",
    "REFERENCE_TIMEZONE",
    # Enums
    "AssetSymbol",
    "BackfillMode",
    "BackfillOutcome",
    # Price models
    "InstantPrice",
    "DailyPrice",
    "PricePoint",
    "PriceSeries",
    "InstantSample",
    # Backfill models
    "BackfillResult",
    "BackfillReport",
    # Config
    "CollectorConfig",
    "SourceConfig",
    "CollectionConfig",
    "StorageConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "PriceCollectorError",
    "ConfigError",
    "FetchError",
    "RetriesExhaustedError",
    "PriceSourceError",
    "StorageError",
    "CollectionError",
]
