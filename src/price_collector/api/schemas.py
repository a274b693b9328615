"""API response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Service --


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    database: str


class IndexResponse(BaseModel):
    """Endpoint directory served at the root path."""

    name: str
    version: str
    endpoints: dict[str, str]


# -- Prices --


class DailyPriceResponse(BaseModel):
    date: date
    price_jpy: float
    created_at: datetime


class DailyPriceListResponse(BaseModel):
    """Daily prices of one symbol over an inclusive date range."""

    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    from_date: date = Field(alias="from")
    to_date: date = Field(alias="to")
    count: int
    data: list[DailyPriceResponse]


class CurrentPrice(BaseModel):
    price_jpy: float
    timestamp: datetime


class CurrentPriceResponse(CurrentPrice):
    """Most recent instant observation for one symbol."""

    symbol: str
