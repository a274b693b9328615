"""Storage backend: Protocol definition, SQLite implementation, factory."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from price_collector.core.config import StorageConfig
from price_collector.core.exceptions import StorageError
from price_collector.core.models import AssetSymbol, DailyPrice, InstantPrice

logger = logging.getLogger(__name__)


@runtime_checkable
class StorageProtocol(Protocol):
    """Abstract storage interface for price observations."""

    async def upsert_daily_price(self, price: DailyPrice) -> None: ...
    async def append_instant_price(self, observation: InstantPrice) -> None: ...
    async def append_instant_prices(self, observations: list[InstantPrice]) -> None: ...
    async def daily_price_exists(self, symbol: AssetSymbol, day: date) -> bool: ...
    async def query_daily_prices(
        self, symbol: AssetSymbol, start: date, end: date
    ) -> list[DailyPrice]: ...
    async def latest_instant_price(self, symbol: AssetSymbol) -> InstantPrice | None: ...
    async def prune_instant_prices(
        self, retention_days: int = 7, now: datetime | None = None
    ) -> int: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...
    async def health_check(self) -> bool: ...


def _utc_iso(dt: datetime) -> str:
    """Fixed-width UTC ISO-8601 so stored timestamps compare lexicographically."""
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SqliteStore:
    """SQLite implementation of the storage protocol.

    Uses aiosqlite for async access, WAL mode for concurrent reads,
    and a version-tracked migration system.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS daily_prices (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    date TEXT NOT NULL,
                    price REAL NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE(symbol, date)
                )""",
                """CREATE TABLE IF NOT EXISTS instant_prices (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    price REAL NOT NULL,
                    timestamp TEXT NOT NULL
                )""",
                "CREATE INDEX IF NOT EXISTS idx_daily_symbol_date ON daily_prices(symbol, date)",
                "CREATE INDEX IF NOT EXISTS idx_instant_symbol_ts ON instant_prices(symbol, timestamp)",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except aiosqlite.Error:
            return False

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    # --- Daily Prices ---

    async def upsert_daily_price(self, price: DailyPrice) -> None:
        """Insert or replace the row keyed on (symbol, date)."""
        try:
            await self._db.execute(
                """INSERT OR REPLACE INTO daily_prices
                   (symbol, date, price, created_at)
                   VALUES (?, ?, ?, ?)""",
                (
                    price.symbol.value,
                    price.date.isoformat(),
                    price.price,
                    _utc_iso(price.created_at),
                ),
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to upsert daily price: {e}",
                context={
                    "operation": "insert",
                    "table": "daily_prices",
                    "symbol": price.symbol.value,
                    "date": price.date.isoformat(),
                },
            ) from e

    async def daily_price_exists(self, symbol: AssetSymbol, day: date) -> bool:
        try:
            async with self._db.execute(
                "SELECT 1 FROM daily_prices WHERE symbol = ? AND date = ?",
                (symbol.value, day.isoformat()),
            ) as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception as e:
            raise StorageError(
                f"Failed to check daily price existence: {e}",
                context={"operation": "query", "table": "daily_prices"},
            ) from e

    async def query_daily_prices(
        self, symbol: AssetSymbol, start: date, end: date
    ) -> list[DailyPrice]:
        """Daily prices for ``start <= date <= end``, date ascending."""
        try:
            async with self._db.execute(
                """SELECT symbol, date, price, created_at FROM daily_prices
                   WHERE symbol = ? AND date >= ? AND date <= ?
                   ORDER BY date ASC""",
                (symbol.value, start.isoformat(), end.isoformat()),
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_daily_price(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to query daily prices: {e}",
                context={"operation": "query", "table": "daily_prices"},
            ) from e

    # --- Instant Prices ---

    async def append_instant_price(self, observation: InstantPrice) -> None:
        await self.append_instant_prices([observation])

    async def append_instant_prices(self, observations: list[InstantPrice]) -> None:
        """Append observations in a single transaction (all or nothing)."""
        if not observations:
            return
        try:
            await self._db.executemany(
                "INSERT INTO instant_prices (symbol, price, timestamp) VALUES (?, ?, ?)",
                [
                    (obs.symbol.value, obs.price, _utc_iso(obs.timestamp))
                    for obs in observations
                ],
            )
            await self._db.commit()
        except Exception as e:
            await self._db.rollback()
            raise StorageError(
                f"Failed to append instant prices: {e}",
                context={"operation": "insert", "table": "instant_prices"},
            ) from e

    async def latest_instant_price(self, symbol: AssetSymbol) -> InstantPrice | None:
        try:
            async with self._db.execute(
                """SELECT symbol, price, timestamp FROM instant_prices
                   WHERE symbol = ?
                   ORDER BY timestamp DESC, id DESC LIMIT 1""",
                (symbol.value,),
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_instant_price(row)
        except Exception as e:
            raise StorageError(
                f"Failed to get latest instant price: {e}",
                context={"operation": "query", "table": "instant_prices"},
            ) from e

    async def prune_instant_prices(
        self, retention_days: int = 7, now: datetime | None = None
    ) -> int:
        """Delete instant prices older than the retention window. Returns rows deleted."""
        now = now or datetime.now(timezone.utc)
        cutoff = _utc_iso(now - timedelta(days=retention_days))
        try:
            cursor = await self._db.execute(
                "DELETE FROM instant_prices WHERE timestamp < ?", (cutoff,)
            )
            deleted = cursor.rowcount
            await cursor.close()
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to prune instant prices: {e}",
                context={"operation": "delete", "table": "instant_prices"},
            ) from e
        if deleted:
            logger.info("Pruned %d instant prices older than %s", deleted, cutoff)
        return deleted

    # --- Statistics ---

    async def get_statistics(self) -> dict:
        """Row counts and date coverage, per symbol where relevant."""
        try:
            stats: dict = {"daily": {}, "instant": {}}
            async with self._db.execute(
                """SELECT symbol, COUNT(*) AS n, MIN(date) AS first, MAX(date) AS last
                   FROM daily_prices GROUP BY symbol"""
            ) as cursor:
                for row in await cursor.fetchall():
                    stats["daily"][row["symbol"]] = {
                        "count": row["n"],
                        "first": row["first"],
                        "last": row["last"],
                    }
            async with self._db.execute(
                """SELECT symbol, COUNT(*) AS n, MAX(timestamp) AS last
                   FROM instant_prices GROUP BY symbol"""
            ) as cursor:
                for row in await cursor.fetchall():
                    stats["instant"][row["symbol"]] = {
                        "count": row["n"],
                        "last": row["last"],
                    }
            return stats
        except Exception as e:
            raise StorageError(
                f"Failed to gather statistics: {e}",
                context={"operation": "query", "table": "*"},
            ) from e

    # --- Row Mapping Helpers ---

    @staticmethod
    def _row_to_daily_price(row: aiosqlite.Row) -> DailyPrice:
        return DailyPrice(
            symbol=AssetSymbol(row["symbol"]),
            date=date.fromisoformat(row["date"]),
            price=row["price"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_instant_price(row: aiosqlite.Row) -> InstantPrice:
        return InstantPrice(
            symbol=AssetSymbol(row["symbol"]),
            price=row["price"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )


async def create_store(config: StorageConfig) -> SqliteStore:
    """Create and initialize a storage backend based on configuration."""
    store = SqliteStore(config)
    await store.initialize()
    return store
