"""FastAPI route definitions for the price-collector read API."""

from datetime import UTC as _UTC, date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request

import price_collector
from price_collector.api.deps import CACHE_LIMIT, STORE_LIMIT, get_config, get_store, limiter
from price_collector.api.schemas import (
    CurrentPrice,
    CurrentPriceResponse,
    DailyPriceListResponse,
    DailyPriceResponse,
    HealthResponse,
    IndexResponse,
)
from price_collector.collection.artifacts import read_cache
from price_collector.core.config import CollectorConfig
from price_collector.core.models import AssetSymbol
from price_collector.ingestion.store import SqliteStore

root_router = APIRouter()
router = APIRouter()


def _parse_symbol(raw: str) -> AssetSymbol:
    try:
        return AssetSymbol.parse(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


# -- Service --


@root_router.get("/", response_model=IndexResponse)
async def index():
    """Endpoint directory."""
    return IndexResponse(
        name="price-collector",
        version=price_collector.__version__,
        endpoints={
            "health": "/health",
            "daily": "/api/daily/{symbol}?from=YYYY-MM-DD&to=YYYY-MM-DD",
            "current": "/api/current/{symbol}",
            "current_all": "/api/current",
            "current_cache": "/api/current-cache",
        },
    )


@root_router.get("/health", response_model=HealthResponse)
async def health_check(store: SqliteStore = Depends(get_store)):
    """Liveness plus a database round trip."""
    healthy = await store.health_check()
    return HealthResponse(
        status="ok" if healthy else "degraded",
        timestamp=datetime.now(_UTC),
        version=price_collector.__version__,
        database="connected" if healthy else "unavailable",
    )


# -- Daily prices --


@router.get(
    "/daily/{symbol}",
    response_model=DailyPriceListResponse,
    response_model_by_alias=True,
)
@limiter.limit(STORE_LIMIT)
async def get_daily_prices(
    request: Request,
    symbol: str,
    from_: date = Query(..., alias="from", description="First date, YYYY-MM-DD"),
    to: date = Query(..., description="Last date, YYYY-MM-DD"),
    store: SqliteStore = Depends(get_store),
):
    """Stored daily averages for one symbol, date ascending, bounds inclusive."""
    asset = _parse_symbol(symbol)
    if from_ > to:
        raise HTTPException(status_code=400, detail="'from' must not be after 'to'")

    prices = await store.query_daily_prices(asset, from_, to)
    return DailyPriceListResponse(
        symbol=asset.value,
        from_date=from_,
        to_date=to,
        count=len(prices),
        data=[
            DailyPriceResponse(date=p.date, price_jpy=p.price, created_at=p.created_at)
            for p in prices
        ],
    )


# -- Current prices --


@router.get("/current/{symbol}", response_model=CurrentPriceResponse)
@limiter.limit(STORE_LIMIT)
async def get_current_price(
    request: Request,
    symbol: str,
    store: SqliteStore = Depends(get_store),
):
    """Latest instant observation for one symbol."""
    asset = _parse_symbol(symbol)
    latest = await store.latest_instant_price(asset)
    if latest is None:
        raise HTTPException(status_code=404, detail=f"No price data for {asset.value}")
    return CurrentPriceResponse(
        symbol=asset.value, price_jpy=latest.price, timestamp=latest.timestamp
    )


@router.get("/current", response_model=dict[str, CurrentPrice | None])
@limiter.limit(STORE_LIMIT)
async def get_current_prices(
    request: Request,
    store: SqliteStore = Depends(get_store),
):
    """Latest instant observation for every tracked symbol, null where none."""
    result: dict[str, CurrentPrice | None] = {}
    for asset in AssetSymbol:
        latest = await store.latest_instant_price(asset)
        result[asset.value] = (
            CurrentPrice(price_jpy=latest.price, timestamp=latest.timestamp)
            if latest is not None
            else None
        )
    return result


@router.get("/current-cache")
@limiter.limit(CACHE_LIMIT)
async def get_current_cache(
    request: Request,
    config: CollectorConfig = Depends(get_config),
):
    """The current-price cache file exactly as the sampler last wrote it."""
    document = read_cache(config.collection.cache_dir)
    if document is None:
        raise HTTPException(status_code=404, detail="Price cache not found")
    return document
