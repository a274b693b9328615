"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import cast

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from price_collector.api.deps import AppState, limiter
from price_collector.api.routes import root_router, router
from price_collector.api.schemas import ErrorResponse
from price_collector.core.config import CollectorConfig, load_config
from price_collector.core.exceptions import ConfigError, PriceCollectorError
from price_collector.ingestion.store import create_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config
    store = await create_store(config.storage)

    app.state.app_state = AppState(config=config, store=store)

    yield

    await store.close()


def _rate_limit_handler(request: Request, exc: Exception) -> Response:
    return _rate_limit_exceeded_handler(request, cast(RateLimitExceeded, exc))


def create_app(config: CollectorConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    import price_collector

    config = config or load_config()

    app = FastAPI(
        title="Price Collector API",
        description="XEM/XYM prices in JPY from CoinGecko",
        version=price_collector.__version__,
        lifespan=lifespan,
    )

    # Stash config so lifespan can retrieve it
    app.state._pending_config = config

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Per-client request-rate limits
    limiter.enabled = config.api.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.include_router(root_router)
    app.include_router(
        router, prefix="/api", responses={500: {"model": ErrorResponse}}
    )

    # Exception handlers
    @app.exception_handler(PriceCollectorError)
    async def collector_exception_handler(request: Request, exc: PriceCollectorError):
        status = 400 if isinstance(exc, ConfigError) else 500
        return JSONResponse(
            status_code=status,
            content=ErrorResponse(error=type(exc).__name__, detail=str(exc)).model_dump(),
        )

    return app
