"""Dependency injection and request-rate governance for FastAPI routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from price_collector.core.config import CollectorConfig
from price_collector.ingestion.store import SqliteStore

DEFAULT_LIMIT = "100 per 15 minutes"
STORE_LIMIT = "30 per 5 minutes"
CACHE_LIMIT = "10 per minute"

# Keyed on client IP. Enabled or disabled per app in create_app().
limiter = Limiter(key_func=get_remote_address, default_limits=[DEFAULT_LIMIT])


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: CollectorConfig
    store: SqliteStore


def get_config(request: Request) -> CollectorConfig:
    """Dependency: retrieve config."""
    return request.app.state.app_state.config


def get_store(request: Request) -> SqliteStore:
    """Dependency: retrieve storage backend."""
    return request.app.state.app_state.store
