"""
DuckDB Durable Store

Persists last-known-good assets and price history in a local DuckDB file so the
dashboard survives a full provider outage and process restarts.

Tables:
    assets           - one row per asset id (INSERT OR REPLACE keeps the latest)
    price_history    - one row per (coin_id, timestamp)
    watchlists       - user watchlists, ids from the watchlist_ids sequence
    watchlist_coins  - one row per (watchlist_id, coin_id)
    price_alerts     - price alerts, ids from the alert_ids sequence

DuckDB calls are blocking, so every statement runs in a worker thread through
asyncio.to_thread. A single connection is shared and guarded by a threading.Lock.
"""

import asyncio
import threading
from pathlib import Path
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import duckdb

from core.logging import get_logger
from core.schemas import Asset, PriceAlert, PricePoint, SearchHit, Watchlist
from storage.base import DurableStore, UserDataStore

logger = get_logger(__name__)


ASSET_COLUMNS: List[str] = list(Asset.model_fields)

SCHEMAS: Dict[str, str] = {
    "assets": """
        CREATE TABLE IF NOT EXISTS assets (
            id VARCHAR PRIMARY KEY,
            symbol VARCHAR NOT NULL,
            name VARCHAR NOT NULL,
            image VARCHAR,
            current_price DOUBLE,
            market_cap DOUBLE,
            market_cap_rank INTEGER,
            price_change_24h DOUBLE,
            price_change_percentage_24h DOUBLE,
            total_volume DOUBLE,
            high_24h DOUBLE,
            low_24h DOUBLE,
            ath DOUBLE,
            ath_date VARCHAR,
            atl DOUBLE,
            atl_date VARCHAR,
            circulating_supply DOUBLE,
            total_supply DOUBLE,
            max_supply DOUBLE,
            last_updated VARCHAR
        )
    """,
    "price_history": """
        CREATE TABLE IF NOT EXISTS price_history (
            coin_id VARCHAR NOT NULL,
            timestamp BIGINT NOT NULL,
            price DOUBLE NOT NULL,
            volume DOUBLE,
            PRIMARY KEY (coin_id, timestamp)
        )
    """,
    "watchlist_ids": "CREATE SEQUENCE IF NOT EXISTS watchlist_ids START 1",
    "watchlist_coin_seq": "CREATE SEQUENCE IF NOT EXISTS watchlist_coin_seq START 1",
    "alert_ids": "CREATE SEQUENCE IF NOT EXISTS alert_ids START 1",
    "watchlists": """
        CREATE TABLE IF NOT EXISTS watchlists (
            id BIGINT PRIMARY KEY,
            name VARCHAR NOT NULL,
            created_at VARCHAR NOT NULL
        )
    """,
    "watchlist_coins": """
        CREATE TABLE IF NOT EXISTS watchlist_coins (
            watchlist_id BIGINT NOT NULL,
            coin_id VARCHAR NOT NULL,
            seq BIGINT NOT NULL,
            added_at VARCHAR NOT NULL,
            PRIMARY KEY (watchlist_id, coin_id)
        )
    """,
    "price_alerts": """
        CREATE TABLE IF NOT EXISTS price_alerts (
            id BIGINT PRIMARY KEY,
            coin_id VARCHAR NOT NULL,
            target_price DOUBLE NOT NULL,
            direction VARCHAR NOT NULL CHECK (direction IN ('above', 'below')),
            triggered BOOLEAN NOT NULL DEFAULT false,
            triggered_at VARCHAR,
            created_at VARCHAR NOT NULL
        )
    """,
}


class DuckDBDurableStore(DurableStore, UserDataStore):
    """
    DurableStore and UserDataStore backed by a DuckDB database file.

    Args:
        db_path: Path of the database file, or ":memory:"

    Example:
        >>> store = DuckDBDurableStore("data/crypto.duckdb")
        >>> await store.initialize()
        >>> await store.upsert_assets(assets)
        >>> await store.read_assets_by_rank(10)
    """

    def __init__(self, db_path: str = "data/crypto.duckdb") -> None:
        self.db_path = db_path
        self.conn: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.Lock()

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize(self) -> None:
        await asyncio.to_thread(self._connect)
        logger.info(f"DuckDB durable store ready: {self.db_path}")

    def _connect(self) -> None:
        with self._lock:
            if self.conn is not None:
                return
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = duckdb.connect(self.db_path)
            for table_name, schema in SCHEMAS.items():
                self.conn.execute(schema)
                logger.debug(f"Ensured schema object: {table_name}")

    async def close(self) -> None:
        await asyncio.to_thread(self._close)

    def _close(self) -> None:
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None
                logger.info("DuckDB connection closed")

    # ============================================
    # Blocking helpers (run in worker threads)
    # ============================================

    def _fetch(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self._lock:
            if self.conn is None:
                raise RuntimeError("DuckDB store is not initialized")
            cursor = self.conn.execute(sql, list(params))
            columns = [column[0] for column in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def _write_many(self, sql: str, rows: List[List[Any]]) -> None:
        if not rows:
            return
        with self._lock:
            if self.conn is None:
                raise RuntimeError("DuckDB store is not initialized")
            self.conn.executemany(sql, rows)

    def _transact(self, work: Callable[[duckdb.DuckDBPyConnection], Any]) -> Any:
        """Run several statements that must not interleave with other callers."""
        with self._lock:
            if self.conn is None:
                raise RuntimeError("DuckDB store is not initialized")
            return work(self.conn)

    # ============================================
    # Assets
    # ============================================

    async def upsert_assets(self, assets: List[Asset]) -> None:
        # Collapse duplicate ids within one batch, last occurrence wins
        latest = {asset.id: asset for asset in assets}
        rows = []
        for asset in latest.values():
            record = asset.model_dump(mode="json")
            rows.append([record[column] for column in ASSET_COLUMNS])

        placeholders = ", ".join("?" for _ in ASSET_COLUMNS)
        sql = f"INSERT OR REPLACE INTO assets ({', '.join(ASSET_COLUMNS)}) VALUES ({placeholders})"
        await asyncio.to_thread(self._write_many, sql, rows)
        logger.debug(f"Upserted {len(rows)} asset(s)")

    async def read_assets_by_rank(self, limit: int, offset: int = 0) -> List[Asset]:
        rows = await asyncio.to_thread(
            self._fetch,
            f"SELECT * FROM assets ORDER BY market_cap_rank ASC NULLS LAST, id ASC "
            f"LIMIT {int(limit)} OFFSET {int(offset)}",
        )
        return [Asset.model_validate(row) for row in rows]

    async def read_asset(self, asset_id: str) -> Optional[Asset]:
        rows = await asyncio.to_thread(self._fetch, "SELECT * FROM assets WHERE id = ?", (asset_id,))
        return Asset.model_validate(rows[0]) if rows else None

    async def search_by_name_or_symbol(self, substring: str, limit: int) -> List[SearchHit]:
        pattern = f"%{substring.lower()}%"
        rows = await asyncio.to_thread(
            self._fetch,
            f"""
            SELECT id, symbol, name, market_cap_rank, image AS thumb
            FROM assets
            WHERE lower(name) LIKE ? OR lower(symbol) LIKE ?
            ORDER BY market_cap_rank ASC NULLS LAST, id ASC
            LIMIT {int(limit)}
            """,
            (pattern, pattern),
        )
        return [SearchHit.model_validate(row) for row in rows]

    # ============================================
    # Price History
    # ============================================

    async def upsert_history(self, asset_id: str, points: List[PricePoint]) -> None:
        latest = {point.timestamp: point for point in points}
        rows = [[asset_id, p.timestamp, p.price, p.volume] for p in latest.values()]
        await asyncio.to_thread(
            self._write_many,
            "INSERT OR REPLACE INTO price_history (coin_id, timestamp, price, volume) VALUES (?, ?, ?, ?)",
            rows,
        )
        logger.debug(f"Upserted {len(rows)} history point(s) for {asset_id}")

    async def read_history(self, asset_id: str, since_ms: int) -> List[PricePoint]:
        rows = await asyncio.to_thread(
            self._fetch,
            """
            SELECT timestamp, price, volume
            FROM price_history
            WHERE coin_id = ? AND timestamp >= ?
            ORDER BY timestamp ASC
            """,
            (asset_id, since_ms),
        )
        return [PricePoint.model_validate(row) for row in rows]

    # ============================================
    # Watchlists
    # ============================================

    async def create_watchlist(self, name: str, created_at: datetime) -> Watchlist:
        def work(conn):
            watchlist_id = conn.execute("SELECT nextval('watchlist_ids')").fetchone()[0]
            conn.execute(
                "INSERT INTO watchlists (id, name, created_at) VALUES (?, ?, ?)",
                [watchlist_id, name, created_at.isoformat()],
            )
            return watchlist_id

        watchlist_id = await asyncio.to_thread(self._transact, work)
        logger.debug(f"Created watchlist {watchlist_id}: {name}")
        return Watchlist(id=watchlist_id, name=name, created_at=created_at)

    async def list_watchlists(self) -> List[Watchlist]:
        rows = await asyncio.to_thread(self._fetch, "SELECT * FROM watchlists ORDER BY id DESC")
        return [Watchlist.model_validate(row) for row in rows]

    async def get_watchlist(self, watchlist_id: int) -> Optional[Watchlist]:
        rows = await asyncio.to_thread(self._fetch, "SELECT * FROM watchlists WHERE id = ?", (watchlist_id,))
        return Watchlist.model_validate(rows[0]) if rows else None

    async def delete_watchlist(self, watchlist_id: int) -> bool:
        def work(conn):
            found = conn.execute("SELECT count(*) FROM watchlists WHERE id = ?", [watchlist_id]).fetchone()[0]
            if not found:
                return False
            conn.execute("DELETE FROM watchlist_coins WHERE watchlist_id = ?", [watchlist_id])
            conn.execute("DELETE FROM watchlists WHERE id = ?", [watchlist_id])
            return True

        return await asyncio.to_thread(self._transact, work)

    async def add_watchlist_coin(self, watchlist_id: int, coin_id: str, added_at: datetime) -> bool:
        def work(conn):
            found = conn.execute(
                "SELECT count(*) FROM watchlist_coins WHERE watchlist_id = ? AND coin_id = ?",
                [watchlist_id, coin_id],
            ).fetchone()[0]
            if found:
                return False
            conn.execute(
                "INSERT INTO watchlist_coins (watchlist_id, coin_id, seq, added_at) "
                "VALUES (?, ?, nextval('watchlist_coin_seq'), ?)",
                [watchlist_id, coin_id, added_at.isoformat()],
            )
            return True

        return await asyncio.to_thread(self._transact, work)

    async def remove_watchlist_coin(self, watchlist_id: int, coin_id: str) -> bool:
        def work(conn):
            found = conn.execute(
                "SELECT count(*) FROM watchlist_coins WHERE watchlist_id = ? AND coin_id = ?",
                [watchlist_id, coin_id],
            ).fetchone()[0]
            if not found:
                return False
            conn.execute(
                "DELETE FROM watchlist_coins WHERE watchlist_id = ? AND coin_id = ?",
                [watchlist_id, coin_id],
            )
            return True

        return await asyncio.to_thread(self._transact, work)

    async def read_watchlist_coin_ids(self, watchlist_id: int) -> List[str]:
        rows = await asyncio.to_thread(
            self._fetch,
            "SELECT coin_id FROM watchlist_coins WHERE watchlist_id = ? ORDER BY seq DESC",
            (watchlist_id,),
        )
        return [row["coin_id"] for row in rows]

    # ============================================
    # Alerts
    # ============================================

    @staticmethod
    def _to_alert(row: Dict[str, Any]) -> PriceAlert:
        row["condition"] = row.pop("direction")
        return PriceAlert.model_validate(row)

    async def create_alert(
        self,
        coin_id: str,
        target_price: float,
        condition: str,
        created_at: datetime
    ) -> PriceAlert:
        def work(conn):
            alert_id = conn.execute("SELECT nextval('alert_ids')").fetchone()[0]
            conn.execute(
                "INSERT INTO price_alerts (id, coin_id, target_price, direction, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                [alert_id, coin_id, target_price, condition, created_at.isoformat()],
            )
            return alert_id

        alert_id = await asyncio.to_thread(self._transact, work)
        logger.debug(f"Created alert {alert_id}: {coin_id} {condition} {target_price}")
        return PriceAlert(
            id=alert_id,
            coin_id=coin_id,
            target_price=target_price,
            condition=condition,
            created_at=created_at,
        )

    async def list_alerts(self) -> List[PriceAlert]:
        rows = await asyncio.to_thread(self._fetch, "SELECT * FROM price_alerts ORDER BY id DESC")
        return [self._to_alert(row) for row in rows]

    async def delete_alert(self, alert_id: int) -> bool:
        def work(conn):
            found = conn.execute("SELECT count(*) FROM price_alerts WHERE id = ?", [alert_id]).fetchone()[0]
            if not found:
                return False
            conn.execute("DELETE FROM price_alerts WHERE id = ?", [alert_id])
            return True

        return await asyncio.to_thread(self._transact, work)

    async def read_pending_alerts(self) -> List[PriceAlert]:
        rows = await asyncio.to_thread(
            self._fetch, "SELECT * FROM price_alerts WHERE NOT triggered ORDER BY id ASC"
        )
        return [self._to_alert(row) for row in rows]

    async def mark_alert_triggered(self, alert_id: int, triggered_at: datetime) -> None:
        await asyncio.to_thread(
            self._transact,
            lambda conn: conn.execute(
                "UPDATE price_alerts SET triggered = true, triggered_at = ? WHERE id = ? AND NOT triggered",
                [triggered_at.isoformat(), alert_id],
            ),
        )
