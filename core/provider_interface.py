"""
Provider Interface — Contracts for Market Data Providers

This module defines the base class every provider adapter derives from, plus one small
abstract interface per capability. Providers implement only the capabilities their
upstream API actually offers:

    class CoinPaprikaProvider(ProviderInterface, ListCapable):
        ...                                  # list-only

    class CoinGeckoProvider(ProviderInterface, ListCapable, DetailCapable,
                            HistoryCapable, SearchCapable, TrendingCapable):
        ...                                  # everything

The aggregator asks `provider.supports("history")` (or checks isinstance against the
capability class) and skips providers that cannot serve an operation.

Failure Contract:
    Every capability method either returns canonical entities or raises FetchFailed
    (non-2xx, timeout, transport error, malformed payload). Adapters never retry;
    failover is the aggregator's job.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from core.schemas import Asset, PricePoint, SearchHit


class FetchFailed(RuntimeError):
    """
    A single provider call failed.

    The aggregator treats every FetchFailed the same way regardless of cause:
    record the error against the provider and try the next one.

    Attributes:
        provider: Name of the provider that failed
        status: HTTP status when the failure was a non-2xx response
    """

    def __init__(self, provider: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status


# ============================================
# Capability Interfaces
# ============================================

class ListCapable(ABC):
    """Provider can list assets ordered by market cap."""

    @abstractmethod
    async def list_assets(self, page: int = 1, limit: int = 100) -> List[Asset]:
        """
        Fetch one page of assets ordered by market cap rank.

        Args:
            page: 1-based page number
            limit: Page size

        Returns:
            List[Asset]: Normalized assets (may be empty)
        """
        ...


class DetailCapable(ABC):
    """Provider can fetch a single asset by id."""

    @abstractmethod
    async def get_asset(self, asset_id: str) -> Asset:
        """
        Fetch one asset. Richer providers return an AssetDetail.

        Raises:
            FetchFailed: Including when the provider does not know the id
        """
        ...


class HistoryCapable(ABC):
    """Provider can fetch a price chart."""

    @abstractmethod
    async def get_history(self, asset_id: str, days: int = 7) -> List[PricePoint]:
        """
        Fetch price points covering the last `days` days.

        Returns:
            List[PricePoint]: Ascending by timestamp, no duplicate timestamps
        """
        ...


class SearchCapable(ABC):
    """Provider can search assets by name or symbol."""

    @abstractmethod
    async def search(self, query: str) -> List[SearchHit]:
        """Return at most SEARCH_RESULT_LIMIT matches."""
        ...


class TrendingCapable(ABC):
    """Provider publishes a list of currently trending asset ids."""

    @abstractmethod
    async def get_trending_ids(self) -> List[str]:
        ...


CAPABILITIES: Dict[str, Type[ABC]] = {
    "list": ListCapable,
    "detail": DetailCapable,
    "history": HistoryCapable,
    "search": SearchCapable,
    "trending": TrendingCapable,
}
"""Feature name -> capability interface."""


# ============================================
# Provider Base Class
# ============================================

class ProviderInterface(ABC):
    """
    Base class for provider adapters.

    Class Attributes:
        name: Unique provider identifier (lowercase, e.g. "coingecko"). Also the
              key used by the rate throttle and health tracker.
        display_name: Human readable name for status reporting

    Optional Methods (can be overridden):
        - initialize: Open the HTTP session
        - shutdown: Close the HTTP session
    """

    name: str
    """Unique provider identifier (lowercase)."""

    display_name: str = ""

    async def initialize(self) -> None:
        """
        Prepare the adapter for requests (open HTTP sessions).

        Should be idempotent. Default implementation does nothing.
        """
        pass

    async def shutdown(self) -> None:
        """Release network resources. Should not raise."""
        pass

    def supports(self, feature: str) -> bool:
        """
        Check if this provider implements a capability.

        Example:
            >>> CoinPaprikaProvider(throttle).supports("history")
            False
        """
        capability = CAPABILITIES.get(feature)
        return capability is not None and isinstance(self, capability)

    @property
    def capabilities(self) -> Dict[str, bool]:
        """Feature name -> supported, for every known feature."""
        return {feature: self.supports(feature) for feature in CAPABILITIES}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"
