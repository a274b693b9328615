"""Tests for the FastAPI read API."""

from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient

from price_collector.api.app import create_app
from price_collector.api.deps import AppState, limiter
from price_collector.core.config import (
    APIConfig,
    CollectionConfig,
    CollectorConfig,
    StorageConfig,
)
from price_collector.core.exceptions import StorageError
from price_collector.core.models import AssetSymbol, DailyPrice, InstantPrice
from price_collector.ingestion.store import create_store

NOW = datetime(2024, 1, 16, 12, 0, tzinfo=timezone.utc)


# -- Fixtures --


def _make_config(tmp_path, rate_limit_enabled=False):
    return CollectorConfig(
        storage=StorageConfig(sqlite_path=str(tmp_path / "test.db")),
        collection=CollectionConfig(cache_dir=str(tmp_path / "cache")),
        api=APIConfig(rate_limit_enabled=rate_limit_enabled),
    )


def _seed(config, daily=(), instant=()):
    """Write rows through a separate connection before the app starts."""

    async def _run():
        store = await create_store(config.storage)
        try:
            for price in daily:
                await store.upsert_daily_price(price)
            await store.append_instant_prices(list(instant))
        finally:
            await store.close()

    asyncio.run(_run())


@pytest.fixture(autouse=True)
def _reset_limiter():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def config(tmp_path):
    return _make_config(tmp_path)


@pytest.fixture
def client(config):
    with TestClient(create_app(config=config)) as c:
        yield c


# -- Service --


class TestService:
    def test_index(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        body = resp.json()
        assert body["name"] == "price-collector"
        assert "daily" in body["endpoints"]

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["database"] == "connected"
        assert "timestamp" in body


# -- Daily --


class TestDaily:
    def test_range(self, config):
        _seed(
            config,
            daily=[
                DailyPrice(symbol=AssetSymbol.XEM, date=date(2024, 1, d), price=2.0 + d / 100, created_at=NOW)
                for d in (14, 15, 16)
            ],
        )
        with TestClient(create_app(config=config)) as client:
            resp = client.get("/api/daily/xem", params={"from": "2024-01-15", "to": "2024-01-16"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["symbol"] == "XEM"
        assert body["from"] == "2024-01-15"
        assert body["to"] == "2024-01-16"
        assert body["count"] == 2
        assert [row["date"] for row in body["data"]] == ["2024-01-15", "2024-01-16"]
        assert body["data"][0]["price_jpy"] == pytest.approx(2.15)

    def test_empty_range(self, client):
        resp = client.get("/api/daily/XYM", params={"from": "2024-01-01", "to": "2024-01-31"})
        assert resp.status_code == 200
        assert resp.json()["count"] == 0

    def test_unknown_symbol(self, client):
        resp = client.get("/api/daily/BTC", params={"from": "2024-01-01", "to": "2024-01-31"})
        assert resp.status_code == 400
        assert "Invalid symbol" in resp.json()["detail"]

    def test_missing_dates(self, client):
        assert client.get("/api/daily/XEM").status_code == 422

    def test_malformed_date(self, client):
        resp = client.get("/api/daily/XEM", params={"from": "15-01-2024", "to": "2024-01-31"})
        assert resp.status_code == 422

    def test_inverted_range(self, client):
        resp = client.get("/api/daily/XEM", params={"from": "2024-02-01", "to": "2024-01-01"})
        assert resp.status_code == 400


# -- Current --


class TestCurrent:
    def test_latest_for_symbol(self, config):
        _seed(config, instant=[InstantPrice(symbol=AssetSymbol.XYM, price=3.5, timestamp=NOW)])
        with TestClient(create_app(config=config)) as client:
            resp = client.get("/api/current/xym")
        assert resp.status_code == 200
        body = resp.json()
        assert body["symbol"] == "XYM"
        assert body["price_jpy"] == 3.5

    def test_no_data_404(self, client):
        assert client.get("/api/current/XEM").status_code == 404

    def test_unknown_symbol_400(self, client):
        assert client.get("/api/current/DOGE").status_code == 400

    def test_all_symbols_with_null(self, config):
        _seed(config, instant=[InstantPrice(symbol=AssetSymbol.XEM, price=2.1, timestamp=NOW)])
        with TestClient(create_app(config=config)) as client:
            resp = client.get("/api/current")
        assert resp.status_code == 200
        body = resp.json()
        assert body["XEM"]["price_jpy"] == 2.1
        assert body["XYM"] is None

    def test_storage_error_uses_error_envelope(self, config, client):
        class BrokenStore:
            async def latest_instant_price(self, symbol):
                raise StorageError("database is locked")

        client.app.state.app_state = AppState(config=config, store=BrokenStore())
        resp = client.get("/api/current/XEM")
        assert resp.status_code == 500
        assert resp.json() == {"error": "StorageError", "detail": "database is locked"}


# -- Cache --


class TestCurrentCache:
    def test_missing_cache_404(self, client):
        assert client.get("/api/current-cache").status_code == 404

    def test_serves_file(self, config, client, tmp_path):
        cache_dir = tmp_path / "cache"
        cache_dir.mkdir()
        document = {"timestamp": NOW.isoformat(), "prices": {"XEM": 2.0, "XYM": 3.0}}
        (cache_dir / "current-prices.json").write_text(json.dumps(document))

        resp = client.get("/api/current-cache")
        assert resp.status_code == 200
        assert resp.json() == document


# -- Rate limiting --


class TestRateLimit:
    def test_cache_endpoint_limited(self, tmp_path):
        config = _make_config(tmp_path, rate_limit_enabled=True)
        with TestClient(create_app(config=config)) as client:
            statuses = [client.get("/api/current-cache").status_code for _ in range(11)]
        assert statuses[:10] == [404] * 10
        assert statuses[10] == 429

    def test_disabled(self, client):
        statuses = {client.get("/api/current-cache").status_code for _ in range(15)}
        assert statuses == {404}
