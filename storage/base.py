"""
Durable Store Interface

The durable store is the last line of defence: it keeps the last successfully
observed assets and price history so the dashboard can keep rendering "last known
data" through a multi-provider outage.

Contract for implementations:
    - upsert_assets / upsert_history are idempotent: re-inserting the same id or
      (id, timestamp) replaces the row (last write wins), never duplicates it
    - Reads on a cold store return an empty list / None, not an error
    - Genuine storage failures (corruption, I/O errors) are raised to the caller

The same backends also keep user data (watchlists and price alerts) behind the
UserDataStore interface. Both interfaces share one connection.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from core.schemas import Asset, PriceAlert, PricePoint, SearchHit, Watchlist


class DurableStore(ABC):
    """Async persistence of last-known-good assets and price history."""

    async def initialize(self) -> None:
        """Open connections and create tables. Default does nothing."""
        pass

    async def close(self) -> None:
        """Release connections. Default does nothing."""
        pass

    @abstractmethod
    async def upsert_assets(self, assets: List[Asset]) -> None:
        ...

    @abstractmethod
    async def read_assets_by_rank(self, limit: int, offset: int = 0) -> List[Asset]:
        """Assets ordered by market cap rank ascending; unranked assets last."""
        ...

    @abstractmethod
    async def read_asset(self, asset_id: str) -> Optional[Asset]:
        ...

    @abstractmethod
    async def upsert_history(self, asset_id: str, points: List[PricePoint]) -> None:
        ...

    @abstractmethod
    async def read_history(self, asset_id: str, since_ms: int) -> List[PricePoint]:
        """Points with timestamp >= since_ms, ascending."""
        ...

    @abstractmethod
    async def search_by_name_or_symbol(self, substring: str, limit: int) -> List[SearchHit]:
        """Case-insensitive substring match on name or symbol, ordered by rank."""
        ...

    async def read_fresh_history(
        self,
        asset_id: str,
        since_ms: int,
        now_ms: int,
        max_age_ms: int
    ) -> List[PricePoint]:
        """
        Read history, discarding it entirely when it is stale.

        Stored history whose newest point is older than max_age_ms is not served:
        an empty list is returned so the caller fetches live data instead of
        presenting an old chart as current.
        """
        points = await self.read_history(asset_id, since_ms)
        if points and points[-1].timestamp < now_ms - max_age_ms:
            return []
        return points


class UserDataStore(ABC):
    """
    Async persistence of watchlists and price alerts.

    Ids are assigned by the store and increase with creation order. Listings are
    newest first.
    """

    # Watchlists

    @abstractmethod
    async def create_watchlist(self, name: str, created_at: datetime) -> Watchlist:
        ...

    @abstractmethod
    async def list_watchlists(self) -> List[Watchlist]:
        ...

    @abstractmethod
    async def get_watchlist(self, watchlist_id: int) -> Optional[Watchlist]:
        ...

    @abstractmethod
    async def delete_watchlist(self, watchlist_id: int) -> bool:
        """Delete a watchlist and its coins. False when it does not exist."""
        ...

    @abstractmethod
    async def add_watchlist_coin(self, watchlist_id: int, coin_id: str, added_at: datetime) -> bool:
        """False when the coin is already in the watchlist."""
        ...

    @abstractmethod
    async def remove_watchlist_coin(self, watchlist_id: int, coin_id: str) -> bool:
        """False when the coin was not in the watchlist."""
        ...

    @abstractmethod
    async def read_watchlist_coin_ids(self, watchlist_id: int) -> List[str]:
        """Coin ids, most recently added first."""
        ...

    # Alerts

    @abstractmethod
    async def create_alert(
        self,
        coin_id: str,
        target_price: float,
        condition: str,
        created_at: datetime
    ) -> PriceAlert:
        ...

    @abstractmethod
    async def list_alerts(self) -> List[PriceAlert]:
        ...

    @abstractmethod
    async def delete_alert(self, alert_id: int) -> bool:
        ...

    @abstractmethod
    async def read_pending_alerts(self) -> List[PriceAlert]:
        """Alerts not yet triggered, oldest first."""
        ...

    @abstractmethod
    async def mark_alert_triggered(self, alert_id: int, triggered_at: datetime) -> None:
        ...
