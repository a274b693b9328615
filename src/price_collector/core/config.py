"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from price_collector.core.exceptions import ConfigError
from price_collector.core.models import REFERENCE_TIMEZONE


class SourceConfig(BaseModel):
    """Upstream price API (CoinGecko) access configuration."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://api.coingecko.com/api/v3"
    request_timeout: int = 30
    max_retries: int = 3
    base_delay_ms: int = 1000
    api_key: str | None = None
    user_agent: str = "price-collector/0.1"

    @field_validator("base_url")
    @classmethod
    def base_url_is_http(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("base_url must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("max_retries")
    @classmethod
    def max_retries_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_retries must be >= 1")
        return v

    @field_validator("base_delay_ms")
    @classmethod
    def base_delay_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("base_delay_ms must be >= 0")
        return v


class CollectionConfig(BaseModel):
    """Daily-average and backfill settings."""

    model_config = ConfigDict(frozen=True)

    timezone: str = REFERENCE_TIMEZONE
    recovery_days: int = 3
    pacing_delay_ms: int = 3000
    log_dir: str = "./logs"
    cache_dir: str = "./cache"

    @field_validator("timezone")
    @classmethod
    def timezone_known(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {v!r}") from e
        return v

    @field_validator("recovery_days")
    @classmethod
    def recovery_days_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("recovery_days must be >= 1")
        return v

    @field_validator("pacing_delay_ms")
    @classmethod
    def pacing_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("pacing_delay_ms must be >= 0")
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class StorageConfig(BaseModel):
    """SQLite storage configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/prices.db"
    retention_days: int = 7

    @field_validator("retention_days")
    @classmethod
    def retention_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retention_days must be >= 1")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 3000
    rate_limit_enabled: bool = True


class CollectorConfig(BaseModel):
    """Root configuration for the entire price-collector system."""

    model_config = ConfigDict(frozen=True)

    source: SourceConfig = SourceConfig()
    collection: CollectionConfig = CollectionConfig()
    storage: StorageConfig = StorageConfig()
    api: APIConfig = APIConfig()


CONFIG_PATH_ENV = "PRICE_COLLECTOR_CONFIG"
DEFAULT_CONFIG_FILE = "price-collector.yml"

_BOOL_WORDS = {"true": True, "false": False}


def load_config(
    config_path: str | None = None,
    env_prefix: str = "PRICE_COLLECTOR_",
) -> CollectorConfig:
    """Build the config: ``<prefix>SECTION__FIELD`` env vars over YAML over defaults.

    The YAML file is ``config_path``, else ``$PRICE_COLLECTOR_CONFIG``, else
    ``./price-collector.yml`` if present. Any failure surfaces as ConfigError.
    """
    try:
        path = _resolve_config_path(config_path)
        document = _load_yaml(path) if path is not None else {}
        return CollectorConfig.model_validate(_merge_env_vars(document, env_prefix))
    except ConfigError:
        raise
    except Exception as e:
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    # An explicitly named file must exist; the cwd default is optional.
    candidates = (
        ("config_path", explicit),
        (CONFIG_PATH_ENV, os.environ.get(CONFIG_PATH_ENV)),
    )
    for origin, candidate in candidates:
        if not candidate:
            continue
        path = Path(candidate)
        if not path.exists():
            raise ConfigError(
                f"Config file not found ({origin}): {candidate}",
                context={"field": origin, "value": candidate},
            )
        return path

    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.exists() else None


def _load_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"YAML config must be a mapping, got {type(data).__name__}",
            context={"field": "config_file", "value": str(path)},
        )
    return data


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Return a copy of ``base`` with matching env vars laid over it.

    ``PRICE_COLLECTOR_COLLECTION__RECOVERY_DAYS=5`` sets
    ``collection.recovery_days``. Nested dicts from ``base`` are copied
    before being written to.
    """
    result = dict(base)

    for key, raw in os.environ.items():
        if not key.startswith(prefix):
            continue
        path = [part.lower() for part in key[len(prefix) :].split("__")]
        if path == ["config"]:
            continue

        section = result
        for part in path[:-1]:
            child = section.get(part)
            section[part] = dict(child) if isinstance(child, dict) else {}
            section = section[part]
        section[path[-1]] = _auto_cast(raw)

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    if value.lower() in _BOOL_WORDS:
        return _BOOL_WORDS[value.lower()]
    for number in (int, float):
        try:
            return number(value)
        except ValueError:
            continue
    return value
