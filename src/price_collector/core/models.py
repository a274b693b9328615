"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# --- Constants ---

REFERENCE_CURRENCY = "jpy"
REFERENCE_TIMEZONE = "Asia/Tokyo"

# --- Enumerations ---


class AssetSymbol(StrEnum):
    """Tracked assets. Closed set; every member needs a COINGECKO_IDS entry."""

    XEM = "XEM"
    XYM = "XYM"

    @property
    def coingecko_id(self) -> str:
        return COINGECKO_IDS[self]

    @classmethod
    def parse(cls, value: str) -> AssetSymbol:
        """Case-insensitive lookup. Raises ValueError for unknown symbols."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            valid = " or ".join(s.value for s in cls)
            raise ValueError(f"Invalid symbol {value!r}. Use {valid}.") from None


COINGECKO_IDS: dict[AssetSymbol, str] = {
    AssetSymbol.XEM: "nem",
    AssetSymbol.XYM: "symbol",
}


class BackfillOutcome(StrEnum):
    """Result classification for one (date, symbol) pair."""

    SUCCESS = "success"
    ALREADY_PRESENT = "already_present"
    FAILURE = "failure"


class BackfillMode(StrEnum):
    """Which window a backfill run targeted."""

    DAILY = "daily"
    RECOVERY = "recovery"


# --- Price Models ---


def _require_aware(v: datetime) -> datetime:
    if v.tzinfo is None or v.utcoffset() is None:
        raise ValueError("datetime must be timezone-aware")
    return v


class InstantPrice(BaseModel):
    """A single point-in-time price observation."""

    model_config = ConfigDict(frozen=True)

    symbol: AssetSymbol
    price: float
    timestamp: datetime

    @field_validator("price")
    @classmethod
    def price_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"price must be >= 0, got {v}")
        return v

    @field_validator("timestamp")
    @classmethod
    def timestamp_aware(cls, v: datetime) -> datetime:
        return _require_aware(v)


class DailyPrice(BaseModel):
    """Average price for one symbol over one reference-timezone day."""

    model_config = ConfigDict(frozen=True)

    symbol: AssetSymbol
    date: date
    price: float
    created_at: datetime

    @field_validator("price")
    @classmethod
    def price_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"price must be >= 0, got {v}")
        return v

    @field_validator("created_at")
    @classmethod
    def created_at_aware(cls, v: datetime) -> datetime:
        return _require_aware(v)


class PricePoint(BaseModel):
    """One (instant, price) sample from the upstream range endpoint."""

    model_config = ConfigDict(frozen=True)

    at: datetime
    price: float


PriceSeries = list[PricePoint]


class InstantSample(BaseModel):
    """All tracked symbols captured under one shared timestamp."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    prices: dict[AssetSymbol, float]

    def observations(self) -> list[InstantPrice]:
        return [
            InstantPrice(symbol=symbol, price=price, timestamp=self.timestamp)
            for symbol, price in self.prices.items()
        ]


# --- Backfill Models ---


class BackfillResult(BaseModel):
    """Outcome of examining one (date, symbol) pair."""

    model_config = ConfigDict(frozen=True)

    date: date
    symbol: AssetSymbol
    outcome: BackfillOutcome
    price: float | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def outcome_fields_consistent(self) -> BackfillResult:
        if self.outcome == BackfillOutcome.FAILURE and not self.reason:
            raise ValueError("failure results must carry a reason")
        if self.outcome == BackfillOutcome.SUCCESS and (
            self.price is None or self.price <= 0
        ):
            raise ValueError("success results must carry a positive price")
        return self

    @property
    def attempted(self) -> bool:
        """True if the upstream API was consulted for this pair."""
        return self.outcome != BackfillOutcome.ALREADY_PRESENT


class BackfillReport(BaseModel):
    """Aggregate of one backfill invocation. Not persisted in the store."""

    model_config = ConfigDict(frozen=True)

    mode: BackfillMode
    dates: list[date]
    started_at: datetime
    finished_at: datetime
    results: list[BackfillResult]

    def _count(self, outcome: BackfillOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def succeeded(self) -> int:
        return self._count(BackfillOutcome.SUCCESS)

    @property
    def already_present(self) -> int:
        return self._count(BackfillOutcome.ALREADY_PRESENT)

    @property
    def failed(self) -> int:
        return self._count(BackfillOutcome.FAILURE)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def failures(self) -> list[BackfillResult]:
        return [r for r in self.results if r.outcome == BackfillOutcome.FAILURE]
