"""
CoinGecko Provider

Primary provider. Implements every capability, including the asset detail with
descriptive fields and the trending list that no fallback provider offers.
"""

from typing import List, Optional

from core.config import settings
from core.logging import logger
from core.provider_interface import (
    DetailCapable,
    HistoryCapable,
    ListCapable,
    ProviderInterface,
    SearchCapable,
    TrendingCapable,
)
from core.schemas import Asset, PricePoint, SearchHit
from core.throttle import RateThrottle
from .api_client import CoinGeckoAPIClient


class CoinGeckoProvider(
    ProviderInterface,
    ListCapable,
    DetailCapable,
    HistoryCapable,
    SearchCapable,
    TrendingCapable,
):
    """
    CoinGecko adapter.

    Example:
        >>> provider = CoinGeckoProvider(throttle)
        >>> await provider.initialize()
        >>> top = await provider.list_assets(page=1, limit=10)
        >>> await provider.shutdown()
    """

    name = "coingecko"
    display_name = "CoinGecko"

    def __init__(self, throttle: RateThrottle, client: Optional[CoinGeckoAPIClient] = None) -> None:
        self.client = client or CoinGeckoAPIClient(
            settings.coingecko_base_url,
            throttle,
            headers=settings.get_coingecko_headers(),
            metadata_timeout=settings.metadata_timeout,
            history_timeout=settings.history_timeout,
        )
        logger.debug(f"CoinGeckoProvider created (base_url={self.client.base_url})")

    async def initialize(self) -> None:
        await self.client.__aenter__()

    async def shutdown(self) -> None:
        await self.client.__aexit__(None, None, None)

    async def list_assets(self, page: int = 1, limit: int = 100) -> List[Asset]:
        return await self.client.get_markets(page, limit)

    async def get_asset(self, asset_id: str) -> Asset:
        return await self.client.get_coin(asset_id)

    async def get_history(self, asset_id: str, days: int = 7) -> List[PricePoint]:
        return await self.client.get_market_chart(asset_id, days)

    async def search(self, query: str) -> List[SearchHit]:
        return await self.client.search(query)

    async def get_trending_ids(self) -> List[str]:
        return await self.client.get_trending_ids()
