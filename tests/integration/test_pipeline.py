"""Integration tests for the collection pipeline.

Real client, adapter, calculator, driver and SQLite store wired together;
only the upstream HTTP API is mocked.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from price_collector.api.app import create_app
from price_collector.collection import (
    BackfillDriver,
    DailyAverageCalculator,
    InstantSampler,
    JsonCacheWriter,
    write_run_log,
)
from price_collector.core.models import AssetSymbol, BackfillOutcome
from price_collector.ingestion import CoinGeckoSource, ResilientClient

UPSTREAM = "https://api.example.test/v3"

pytestmark = pytest.mark.integration

# 09:00 JST on 2024-01-18
NOW = datetime(2024, 1, 18, 0, 0, tzinfo=timezone.utc)


def _range_response(*prices):
    return httpx.Response(
        200, json={"prices": [[1705244400000 + i * 3_600_000, p] for i, p in enumerate(prices)]}
    )


class TestRecoveryPipeline:
    @respx.mock
    async def test_recovery_with_rate_limit_and_fallback(self, integration_config, integration_store, recording_sleep):
        tz = integration_config.collection.tz
        # XEM: rate limited once, then data, for every day requested
        respx.get(f"{UPSTREAM}/coins/nem/market_chart/range").mock(
            side_effect=[httpx.Response(429), _range_response(2.0, 4.0)]
            + [_range_response(3.0)] * 5
        )
        # XYM: range endpoint down, snapshot answers
        respx.get(f"{UPSTREAM}/coins/symbol/market_chart/range").mock(
            return_value=httpx.Response(503)
        )
        respx.get(f"{UPSTREAM}/coins/symbol/history").mock(
            return_value=httpx.Response(200, json={"market_data": {"current_price": {"jpy": 5.5}}})
        )

        async with ResilientClient(integration_config.source, sleep=recording_sleep) as client:
            source = CoinGeckoSource(client, integration_config.source.base_url)
            driver = BackfillDriver(
                DailyAverageCalculator(source, tz),
                integration_store,
                tz,
                pacing_delay_ms=integration_config.collection.pacing_delay_ms,
                sleep=recording_sleep,
            )
            report = await driver.recover(days=2, now=NOW)

        assert report.ok
        assert report.succeeded == 4
        xem = await integration_store.query_daily_prices(AssetSymbol.XEM, date(2024, 1, 16), date(2024, 1, 17))
        assert [(r.date, r.price) for r in xem] == [(date(2024, 1, 16), 3.0), (date(2024, 1, 17), 3.0)]
        xym = await integration_store.query_daily_prices(AssetSymbol.XYM, date(2024, 1, 16), date(2024, 1, 17))
        assert [r.price for r in xym] == [5.5, 5.5]

        log_path = write_run_log(report, integration_config.collection.log_dir)
        assert json.loads(log_path.read_text())["succeeded"] == 4

    @respx.mock
    async def test_second_run_makes_no_requests(self, integration_config, integration_store, recording_sleep):
        tz = integration_config.collection.tz
        route = respx.get(url__regex=rf"{UPSTREAM}/coins/(nem|symbol)/market_chart/range").mock(
            return_value=_range_response(1.0, 2.0)
        )

        async with ResilientClient(integration_config.source, sleep=recording_sleep) as client:
            source = CoinGeckoSource(client, integration_config.source.base_url)
            driver = BackfillDriver(
                DailyAverageCalculator(source, tz), integration_store, tz, sleep=recording_sleep
            )
            first = await driver.recover(days=3, now=NOW)
            calls = route.call_count
            second = await driver.recover(days=3, now=NOW)

        assert first.succeeded == 6
        assert calls == 6
        assert route.call_count == calls
        assert {r.outcome for r in second.results} == {BackfillOutcome.ALREADY_PRESENT}


class TestSampleAndServe:
    async def test_sampled_prices_visible_through_api(self, integration_config, integration_store, recording_sleep):
        with respx.mock:
            respx.get(f"{UPSTREAM}/simple/price").mock(
                return_value=httpx.Response(200, json={"nem": {"jpy": 2.25}, "symbol": {"jpy": 3.5}})
            )
            async with ResilientClient(integration_config.source, sleep=recording_sleep) as client:
                source = CoinGeckoSource(client, integration_config.source.base_url)
                sampler = InstantSampler(
                    source, integration_store, JsonCacheWriter(integration_config.collection.cache_dir)
                )
                await sampler.sample(now=NOW)

        app = create_app(config=integration_config)
        with TestClient(app) as api:
            current = api.get("/api/current").json()
            cached = api.get("/api/current-cache").json()

        assert current["XEM"]["price_jpy"] == 2.25
        assert current["XYM"]["price_jpy"] == 3.5
        assert cached["prices"] == {"XEM": 2.25, "XYM": 3.5}
