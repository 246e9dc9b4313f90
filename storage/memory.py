"""
In-Memory Durable Store

Dict-backed DurableStore and UserDataStore. Survives only as long as the process,
which makes it the right backend for tests and for running without a database file.
"""

import itertools
from datetime import datetime
from typing import Dict, List, Optional

from core.schemas import Asset, PriceAlert, PricePoint, SearchHit, Watchlist
from storage.base import DurableStore, UserDataStore


def _rank_key(asset: Asset):
    # Unranked assets sort after ranked ones
    return (asset.market_cap_rank is None, asset.market_cap_rank or 0, asset.id)


class InMemoryDurableStore(DurableStore, UserDataStore):
    """
    Example:
        >>> store = InMemoryDurableStore()
        >>> await store.upsert_assets([btc, btc])
        >>> len(await store.read_assets_by_rank(10))
        1
    """

    def __init__(self) -> None:
        self.assets: Dict[str, Asset] = {}
        self.history: Dict[str, Dict[int, PricePoint]] = {}
        self.watchlists: Dict[int, Watchlist] = {}
        self.watchlist_coins: Dict[int, Dict[str, datetime]] = {}
        self.alerts: Dict[int, PriceAlert] = {}
        self._watchlist_ids = itertools.count(1)
        self._alert_ids = itertools.count(1)

    async def upsert_assets(self, assets: List[Asset]) -> None:
        for asset in assets:
            self.assets[asset.id] = asset.model_copy()

    async def read_assets_by_rank(self, limit: int, offset: int = 0) -> List[Asset]:
        ranked = sorted(self.assets.values(), key=_rank_key)
        return [asset.model_copy() for asset in ranked[offset:offset + limit]]

    async def read_asset(self, asset_id: str) -> Optional[Asset]:
        asset = self.assets.get(asset_id)
        return asset.model_copy() if asset else None

    async def upsert_history(self, asset_id: str, points: List[PricePoint]) -> None:
        series = self.history.setdefault(asset_id, {})
        for point in points:
            series[point.timestamp] = point.model_copy()

    async def read_history(self, asset_id: str, since_ms: int) -> List[PricePoint]:
        series = self.history.get(asset_id, {})
        return [series[ts].model_copy() for ts in sorted(series) if ts >= since_ms]

    async def search_by_name_or_symbol(self, substring: str, limit: int) -> List[SearchHit]:
        needle = substring.lower()
        matches = sorted(
            (a for a in self.assets.values() if needle in a.name.lower() or needle in a.symbol.lower()),
            key=_rank_key,
        )
        return [
            SearchHit(id=a.id, symbol=a.symbol, name=a.name, market_cap_rank=a.market_cap_rank, thumb=a.image)
            for a in matches[:limit]
        ]

    # ============================================
    # Watchlists
    # ============================================

    async def create_watchlist(self, name: str, created_at: datetime) -> Watchlist:
        watchlist = Watchlist(id=next(self._watchlist_ids), name=name, created_at=created_at)
        self.watchlists[watchlist.id] = watchlist
        self.watchlist_coins[watchlist.id] = {}
        return watchlist.model_copy()

    async def list_watchlists(self) -> List[Watchlist]:
        return [self.watchlists[i].model_copy() for i in sorted(self.watchlists, reverse=True)]

    async def get_watchlist(self, watchlist_id: int) -> Optional[Watchlist]:
        watchlist = self.watchlists.get(watchlist_id)
        return watchlist.model_copy() if watchlist else None

    async def delete_watchlist(self, watchlist_id: int) -> bool:
        if self.watchlists.pop(watchlist_id, None) is None:
            return False
        self.watchlist_coins.pop(watchlist_id, None)
        return True

    async def add_watchlist_coin(self, watchlist_id: int, coin_id: str, added_at: datetime) -> bool:
        coins = self.watchlist_coins.setdefault(watchlist_id, {})
        if coin_id in coins:
            return False
        coins[coin_id] = added_at
        return True

    async def remove_watchlist_coin(self, watchlist_id: int, coin_id: str) -> bool:
        return self.watchlist_coins.get(watchlist_id, {}).pop(coin_id, None) is not None

    async def read_watchlist_coin_ids(self, watchlist_id: int) -> List[str]:
        # Dicts keep insertion order, which is the order coins were added
        return list(reversed(self.watchlist_coins.get(watchlist_id, {})))

    # ============================================
    # Alerts
    # ============================================

    async def create_alert(
        self,
        coin_id: str,
        target_price: float,
        condition: str,
        created_at: datetime
    ) -> PriceAlert:
        alert = PriceAlert(
            id=next(self._alert_ids),
            coin_id=coin_id,
            target_price=target_price,
            condition=condition,
            created_at=created_at,
        )
        self.alerts[alert.id] = alert
        return alert.model_copy()

    async def list_alerts(self) -> List[PriceAlert]:
        return [self.alerts[i].model_copy() for i in sorted(self.alerts, reverse=True)]

    async def delete_alert(self, alert_id: int) -> bool:
        return self.alerts.pop(alert_id, None) is not None

    async def read_pending_alerts(self) -> List[PriceAlert]:
        return [self.alerts[i].model_copy() for i in sorted(self.alerts) if not self.alerts[i].triggered]

    async def mark_alert_triggered(self, alert_id: int, triggered_at: datetime) -> None:
        alert = self.alerts.get(alert_id)
        if alert is not None and not alert.triggered:
            self.alerts[alert_id] = alert.model_copy(update={"triggered": True, "triggered_at": triggered_at})
