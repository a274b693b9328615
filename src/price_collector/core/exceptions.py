"""Custom exception hierarchy for price-collector."""

from typing import Any


class PriceCollectorError(Exception):
    """Base exception for all price-collector errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(PriceCollectorError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field (str): the config field that failed validation
        value (Any): the invalid value
    """


class FetchError(PriceCollectorError):
    """An upstream price API request failed.

    Raised by ResilientClient for a single failed attempt (non-2xx status
    other than 429, or a transport error). Retried internally.

    Context keys:
        url (str): the URL that was being fetched
        status_code (int | None): HTTP status if a response was received
    """


class RetriesExhaustedError(FetchError):
    """The retry budget ran out without a successful response.

    Policy: terminal. Surfaced to the caller; the daily-average path falls
    back to the snapshot endpoint, everything else propagates.

    Context keys:
        url: str
        attempts (int): number of attempts made
    """


class PriceSourceError(FetchError):
    """Upstream returned a body that is not valid JSON.

    Missing fields are not errors (they resolve to 0 / empty series);
    only an unparseable payload raises.

    Context keys:
        url: str
    """


class StorageError(PriceCollectorError):
    """Database operation failed.

    Policy: raise immediately. Data integrity is critical.

    Context keys:
        operation (str): "insert", "query", "migrate", etc.
        table (str): the table involved
    """


class CollectionError(PriceCollectorError):
    """A collection run could not complete.

    Policy: fatal for the invocation; the CLI exits non-zero.

    Context keys:
        stage (str): "sample", "cache", etc.
    """
