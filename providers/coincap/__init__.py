"""
CoinCap Provider

Secondary provider: list, detail (plain Asset, no descriptive fields), history and
search. No trending endpoint.
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
)
from core.schemas import Asset, PricePoint, SearchHit
from core.throttle import RateThrottle
from .api_client import CoinCapAPIClient


class CoinCapProvider(ProviderInterface, ListCapable, DetailCapable, HistoryCapable, SearchCapable):
    """CoinCap adapter."""

    name = "coincap"
    display_name = "CoinCap"

    def __init__(self, throttle: RateThrottle, client: Optional[CoinCapAPIClient] = None) -> None:
        self.client = client or CoinCapAPIClient(
            settings.coincap_base_url,
            throttle,
            headers=settings.get_coincap_headers(),
            metadata_timeout=settings.metadata_timeout,
            history_timeout=settings.history_timeout,
        )
        logger.debug(f"CoinCapProvider created (base_url={self.client.base_url})")

    async def initialize(self) -> None:
        await self.client.__aenter__()

    async def shutdown(self) -> None:
        await self.client.__aexit__(None, None, None)

    async def list_assets(self, page: int = 1, limit: int = 100) -> List[Asset]:
        return await self.client.get_assets(page, limit)

    async def get_asset(self, asset_id: str) -> Asset:
        return await self.client.get_asset(asset_id)

    async def get_history(self, asset_id: str, days: int = 7) -> List[PricePoint]:
        return await self.client.get_history(asset_id, days)

    async def search(self, query: str) -> List[SearchHit]:
        return await self.client.search(query)
