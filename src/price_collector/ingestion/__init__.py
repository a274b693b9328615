"""Upstream price ingestion: retrying client, CoinGecko adapter, and storage."""

from price_collector.ingestion.client import ResilientClient
from price_collector.ingestion.coingecko import CoinGeckoSource
from price_collector.ingestion.store import SqliteStore, StorageProtocol, create_store

__all__ = [
    "ResilientClient",
    "CoinGeckoSource",
    "SqliteStore",
    "StorageProtocol",
    "create_store",
]
