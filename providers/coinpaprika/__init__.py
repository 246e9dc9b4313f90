"""
CoinPaprika Provider

Tertiary provider: list only. No per-asset detail, history or search.
"""

from typing import List, Optional

from core.config import settings
from core.logging import logger
from core.provider_interface import ListCapable, ProviderInterface
from core.schemas import Asset
from core.throttle import RateThrottle
from .api_client import CoinPaprikaAPIClient


class CoinPaprikaProvider(ProviderInterface, ListCapable):
    """CoinPaprika adapter."""

    name = "coinpaprika"
    display_name = "CoinPaprika"

    def __init__(self, throttle: RateThrottle, client: Optional[CoinPaprikaAPIClient] = None) -> None:
        self.client = client or CoinPaprikaAPIClient(
            settings.coinpaprika_base_url,
            throttle,
            metadata_timeout=settings.metadata_timeout,
            history_timeout=settings.history_timeout,
        )
        logger.debug(f"CoinPaprikaProvider created (base_url={self.client.base_url})")

    async def initialize(self) -> None:
        await self.client.__aenter__()

    async def shutdown(self) -> None:
        await self.client.__aexit__(None, None, None)

    async def list_assets(self, page: int = 1, limit: int = 100) -> List[Asset]:
        return await self.client.get_tickers(page, limit)
