"""
Watchlist Service

Named lists of canonical asset ids. Membership is stored by id only; prices are
resolved through the aggregator each time a watchlist is read, so a watchlist shows
the same data (and the same last-known data during an outage) as the coin list.

Resolution:
    1. One list_assets(1, 250) call covers the common case
    2. Ids outside the top 250 are fetched one by one with get_asset
    3. Ids unknown everywhere are left out of the result but stay in the watchlist
"""

from typing import List, Optional

from core.logging import get_logger
from core.schemas import Asset, AssetDetail, Watchlist, WatchlistDetail
from core.utils.time import Clock, system_clock
from storage import UserDataStore

logger = get_logger(__name__)

RESOLVE_LIST_LIMIT = 250
DEFAULT_WATCHLIST_NAME = "My Watchlist"


class WatchlistNotFound(LookupError):
    """Raised when an operation names a watchlist id that does not exist."""

    def __init__(self, watchlist_id: int) -> None:
        self.watchlist_id = watchlist_id
        super().__init__(f"Watchlist {watchlist_id} not found")


class WatchlistService:
    """
    Args:
        store: Persistence of watchlists and their coin ids
        aggregator: Source of asset data for resolving coins
        clock: Source of creation timestamps
    """

    def __init__(self, store: UserDataStore, aggregator, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.aggregator = aggregator
        self._clock = clock or system_clock

    async def initialize(self) -> None:
        """Create the default watchlist on a store that has none."""
        if not await self.store.list_watchlists():
            await self.store.create_watchlist(DEFAULT_WATCHLIST_NAME, self._clock.utcnow())
            logger.info(f"Created default watchlist '{DEFAULT_WATCHLIST_NAME}'")

    async def list_all(self) -> List[Watchlist]:
        return await self.store.list_watchlists()

    async def create(self, name: str) -> Watchlist:
        watchlist = await self.store.create_watchlist(name, self._clock.utcnow())
        logger.info(f"Watchlist created: {watchlist.id} '{name}'")
        return watchlist

    async def get(self, watchlist_id: int) -> Optional[WatchlistDetail]:
        watchlist = await self.store.get_watchlist(watchlist_id)
        if watchlist is None:
            return None
        coins = await self.resolve(await self.store.read_watchlist_coin_ids(watchlist_id))
        return WatchlistDetail(**watchlist.model_dump(), coins=coins)

    async def delete(self, watchlist_id: int) -> bool:
        deleted = await self.store.delete_watchlist(watchlist_id)
        if deleted:
            logger.info(f"Watchlist deleted: {watchlist_id}")
        return deleted

    async def add_coin(self, watchlist_id: int, coin_id: str) -> bool:
        """
        Returns:
            False when the coin is already in the watchlist

        Raises:
            WatchlistNotFound: If the watchlist does not exist
        """
        if await self.store.get_watchlist(watchlist_id) is None:
            raise WatchlistNotFound(watchlist_id)
        return await self.store.add_watchlist_coin(watchlist_id, coin_id, self._clock.utcnow())

    async def remove_coin(self, watchlist_id: int, coin_id: str) -> bool:
        return await self.store.remove_watchlist_coin(watchlist_id, coin_id)

    async def coin_ids(self, watchlist_id: int) -> List[str]:
        return await self.store.read_watchlist_coin_ids(watchlist_id)

    async def resolve(self, coin_ids: List[str]) -> List[Asset]:
        """Assets for coin_ids, in the same order; unknown ids are skipped."""
        if not coin_ids:
            return []

        wanted = set(coin_ids)
        found = {
            asset.id: asset
            for asset in await self.aggregator.list_assets(1, RESOLVE_LIST_LIMIT)
            if asset.id in wanted
        }

        for coin_id in coin_ids:
            if coin_id in found:
                continue
            asset = await self.aggregator.get_asset(coin_id)
            if asset is None:
                logger.debug(f"Watchlist coin not found anywhere: {coin_id}")
                continue
            found[coin_id] = asset.to_asset() if isinstance(asset, AssetDetail) else asset

        return [found[coin_id] for coin_id in coin_ids if coin_id in found]
