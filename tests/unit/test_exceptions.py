"""Tests for price_collector.core.exceptions."""

import pytest

from price_collector.core.exceptions import (
    CollectionError,
    ConfigError,
    FetchError,
    PriceCollectorError,
    PriceSourceError,
    RetriesExhaustedError,
    StorageError,
)


class TestExceptionHierarchy:
    """Verify the exception class hierarchy."""

    def test_config_is_subclass(self):
        assert issubclass(ConfigError, PriceCollectorError)

    def test_fetch_is_subclass(self):
        assert issubclass(FetchError, PriceCollectorError)

    def test_retries_exhausted_is_subclass_of_fetch(self):
        assert issubclass(RetriesExhaustedError, FetchError)
        assert issubclass(RetriesExhaustedError, PriceCollectorError)

    def test_price_source_is_subclass_of_fetch(self):
        assert issubclass(PriceSourceError, FetchError)

    def test_storage_is_subclass(self):
        assert issubclass(StorageError, PriceCollectorError)

    def test_collection_is_subclass(self):
        assert issubclass(CollectionError, PriceCollectorError)


class TestExceptionContext:
    """Verify context dict behavior."""

    def test_default_context_is_empty(self):
        err = PriceCollectorError("boom")
        assert err.context == {}
        assert str(err) == "boom"

    def test_context_preserved(self):
        err = FetchError("HTTP 500", context={"url": "https://x", "status_code": 500})
        assert err.context["status_code"] == 500

    def test_catchable_as_base(self):
        with pytest.raises(PriceCollectorError):
            raise RetriesExhaustedError("gave up", context={"attempts": 3})
