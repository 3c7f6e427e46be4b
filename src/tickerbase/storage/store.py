"""Storage backend: registry/store protocols, SQLite implementation, factory.

Correctness under concurrent writers relies on the two uniqueness
constraints, ``assets(symbol)`` and ``prices(asset_id, date)``; there is no
application-level locking.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from tickerbase.core.config import StorageConfig
from tickerbase.core.exceptions import StorageError
from tickerbase.core.models import (
    Asset,
    AssetId,
    AssetType,
    PricePoint,
    PriceRecord,
    QuoteSnapshot,
    StorageBackend,
    WriteResult,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class AssetRegistry(Protocol):
    """Durable identity for symbols, created lazily and never deleted."""

    async def ensure_asset(
        self,
        symbol: str,
        name: str | None = None,
        asset_type: AssetType = AssetType.STOCK,
    ) -> AssetId: ...
    async def get_asset(self, symbol: str) -> Asset | None: ...
    async def list_assets(self) -> list[Asset]: ...
    async def list_symbols(self) -> list[str]: ...
    async def count_assets(self) -> int: ...


@runtime_checkable
class PriceStore(Protocol):
    """Price persistence keyed by (asset, date). Rows are never updated."""

    async def write_daily_price(
        self,
        asset_id: AssetId,
        snapshot: QuoteSnapshot,
        as_of: datetime | None = None,
    ) -> WriteResult: ...
    async def write_historical_series(
        self, asset_id: AssetId, points: list[PricePoint]
    ) -> WriteResult: ...
    async def get_prices(
        self,
        symbol: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[PriceRecord]: ...
    async def latest_prices(self, limit: int = 3) -> list[PriceRecord]: ...
    async def count_prices(self) -> int: ...


class SqliteStore:
    """SQLite implementation of both the asset registry and the price store.

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
                """CREATE TABLE IF NOT EXISTS assets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'STOCK',
                    created_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS prices (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    asset_id INTEGER NOT NULL REFERENCES assets(id),
                    date TEXT NOT NULL,
                    open REAL,
                    high REAL,
                    low REAL,
                    close REAL,
                    volume INTEGER,
                    created_at TEXT DEFAULT (datetime('now')),
                    UNIQUE(asset_id, date)
                )""",
                "CREATE INDEX IF NOT EXISTS idx_prices_date ON prices(date)",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL + FK, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA foreign_keys=ON")
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
        except Exception:
            return False

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError(
                "Store is not initialized",
                context={"operation": "connect", "path": self._path},
            )
        return self._db

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

    # --- Asset Registry ---

    async def ensure_asset(
        self,
        symbol: str,
        name: str | None = None,
        asset_type: AssetType = AssetType.STOCK,
    ) -> AssetId:
        """Get-or-create the asset for ``symbol`` and return its id.

        The create is a single ``INSERT ... ON CONFLICT DO NOTHING`` so two
        concurrent callers can never produce two rows for one symbol.
        """
        normalized = symbol.strip().upper()
        if not normalized:
            raise ValueError("symbol must not be empty")
        db = self._conn
        try:
            cursor = await db.execute(
                """INSERT INTO assets (symbol, name, type) VALUES (?, ?, ?)
                   ON CONFLICT(symbol) DO NOTHING""",
                (normalized, name or normalized, str(asset_type)),
            )
            created = cursor.rowcount == 1
            await cursor.close()
            await db.commit()
            async with db.execute(
                "SELECT id FROM assets WHERE symbol = ?", (normalized,)
            ) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            raise StorageError(
                f"Failed to register asset {normalized}: {e}",
                context={"operation": "upsert", "table": "assets", "symbol": normalized},
            ) from e

        if row is None:
            raise StorageError(
                f"Asset {normalized} missing after upsert",
                context={"operation": "upsert", "table": "assets", "symbol": normalized},
            )
        if created:
            logger.info("Registered asset %s (id=%d)", normalized, row["id"])
        return row["id"]

    async def get_asset(self, symbol: str) -> Asset | None:
        try:
            async with self._conn.execute(
                "SELECT * FROM assets WHERE symbol = ?", (symbol.strip().upper(),)
            ) as cursor:
                row = await cursor.fetchone()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to get asset: {e}",
                context={"operation": "query", "table": "assets"},
            ) from e
        return self._row_to_asset(row) if row is not None else None

    async def list_assets(self) -> list[Asset]:
        try:
            async with self._conn.execute(
                "SELECT * FROM assets ORDER BY symbol ASC"
            ) as cursor:
                rows = await cursor.fetchall()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to list assets: {e}",
                context={"operation": "query", "table": "assets"},
            ) from e
        return [self._row_to_asset(r) for r in rows]

    async def list_symbols(self) -> list[str]:
        return [a.symbol for a in await self.list_assets()]

    async def count_assets(self) -> int:
        return await self._count("assets")

    # --- Price Store ---

    async def write_daily_price(
        self,
        asset_id: AssetId,
        snapshot: QuoteSnapshot,
        as_of: datetime | None = None,
    ) -> WriteResult:
        """Insert one record derived from a quote snapshot.

        The snapshot has a single price point, so open/high/low/close all take
        ``regular_market_price``. The row is dated at midnight UTC of
        ``as_of`` (default: now); a second write for the same day is skipped.

        Write failures are logged and reported in the result, never raised.
        """
        day = _day_key(as_of or datetime.now(timezone.utc))
        price = snapshot.regular_market_price
        try:
            cursor = await self._conn.execute(
                """INSERT INTO prices (asset_id, date, open, high, low, close, volume)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(asset_id, date) DO NOTHING""",
                (asset_id, day, price, price, price, price, snapshot.volume),
            )
            inserted = max(cursor.rowcount, 0)
            await cursor.close()
            await self._conn.commit()
        except Exception as e:
            await self._discard_pending()
            logger.error(
                "Failed to save daily price for %s: %s", snapshot.symbol, e
            )
            return WriteResult(attempted=1, inserted=0, error=str(e))

        if inserted:
            logger.info("Saved daily price for %s (%s)", snapshot.symbol, day)
        else:
            logger.info("Daily price for %s on %s already stored", snapshot.symbol, day)
        return WriteResult(attempted=1, inserted=inserted)

    async def write_historical_series(
        self, asset_id: AssetId, points: list[PricePoint]
    ) -> WriteResult:
        """Bulk insert points; existing (asset, date) pairs are skipped.

        Write failures are logged and reported in the result, never raised.
        """
        if not points:
            logger.info("No points to store for asset %d", asset_id)
            return WriteResult()

        rows = [
            (asset_id, _date_key(p.date), p.open, p.high, p.low, p.close, p.volume)
            for p in points
        ]
        try:
            db = self._conn
            before = db.total_changes
            await db.executemany(
                """INSERT INTO prices (asset_id, date, open, high, low, close, volume)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(asset_id, date) DO NOTHING""",
                rows,
            )
            await db.commit()
            inserted = db.total_changes - before
        except Exception as e:
            await self._discard_pending()
            logger.error(
                "Failed to save historical prices for asset %d: %s", asset_id, e
            )
            return WriteResult(attempted=len(rows), inserted=0, error=str(e))

        logger.info(
            "Stored %d of %d historical prices for asset %d",
            inserted, len(rows), asset_id,
        )
        return WriteResult(attempted=len(rows), inserted=inserted)

    async def get_prices(
        self,
        symbol: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[PriceRecord]:
        try:
            query = """SELECT a.symbol, p.date, p.open, p.high, p.low, p.close, p.volume
                       FROM prices p JOIN assets a ON a.id = p.asset_id
                       WHERE a.symbol = ?"""
            params: list = [symbol.strip().upper()]
            if start is not None:
                query += " AND p.date >= ?"
                params.append(_date_key(start))
            if end is not None:
                query += " AND p.date <= ?"
                params.append(_date_key(end))
            query += " ORDER BY p.date ASC"
            if limit is not None:
                query += " LIMIT ?"
                params.append(limit)
            async with self._conn.execute(query, params) as cursor:
                rows = await cursor.fetchall()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to get prices: {e}",
                context={"operation": "query", "table": "prices"},
            ) from e
        return [self._row_to_price(r) for r in rows]

    async def latest_prices(self, limit: int = 3) -> list[PriceRecord]:
        try:
            async with self._conn.execute(
                """SELECT a.symbol, p.date, p.open, p.high, p.low, p.close, p.volume
                   FROM prices p JOIN assets a ON a.id = p.asset_id
                   ORDER BY p.date DESC, p.id DESC LIMIT ?""",
                (limit,),
            ) as cursor:
                rows = await cursor.fetchall()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to get latest prices: {e}",
                context={"operation": "query", "table": "prices"},
            ) from e
        return [self._row_to_price(r) for r in rows]

    async def count_prices(self) -> int:
        return await self._count("prices")

    async def get_statistics(self) -> dict[str, int]:
        return {
            "assets": await self.count_assets(),
            "prices": await self.count_prices(),
        }

    # --- Helpers ---

    async def _discard_pending(self) -> None:
        """Roll back a half-applied write so the next commit does not carry it."""
        if self._db is not None:
            await self._db.rollback()

    async def _count(self, table: str) -> int:
        try:
            async with self._conn.execute(f"SELECT COUNT(*) FROM {table}") as cursor:
                row = await cursor.fetchone()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to count {table}: {e}",
                context={"operation": "query", "table": table},
            ) from e
        return row[0]

    @staticmethod
    def _row_to_asset(row: aiosqlite.Row) -> Asset:
        return Asset(
            id=row["id"],
            symbol=row["symbol"],
            name=row["name"],
            type=AssetType(row["type"]),
        )

    @staticmethod
    def _row_to_price(row: aiosqlite.Row) -> PriceRecord:
        return PriceRecord(
            symbol=row["symbol"],
            date=datetime.fromisoformat(row["date"]),
            open=row["open"],
            high=row["high"],
            low=row["low"],
            close=row["close"],
            volume=row["volume"],
        )


def _date_key(moment: datetime) -> str:
    """Canonical UTC text form used for the (asset, date) uniqueness key."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds")


def _day_key(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    day = moment.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return _date_key(day)


async def create_store(config: StorageConfig) -> SqliteStore:
    """Create and initialize a storage backend based on configuration."""
    if config.backend == StorageBackend.SQLITE:
        store = SqliteStore(config)
        await store.initialize()
        return store
    raise StorageError(
        f"Unsupported storage backend: {config.backend}",
        context={"operation": "create_store", "backend": str(config.backend)},
    )
