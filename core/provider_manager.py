"""
Provider Manager — Ordered Registry of Provider Adapters

The ProviderManager holds every provider adapter in failover priority order and
answers "which providers can serve this operation, in which order?".

Design Benefits:
    - Single source of truth for available providers and their priority
    - Capability filtering: providers that do not implement an operation are skipped
    - Centralized lifecycle management (initialize/shutdown of HTTP sessions)

Example Usage:
    manager = ProviderManager.default(throttle)
    await manager.initialize_all()

    for provider in manager.providers_for("history"):
        ...   # coingecko, then coincap

    await manager.shutdown_all()
"""

from typing import Dict, Iterable, List

from core.logging import logger
from core.provider_interface import ProviderInterface
from core.throttle import RateThrottle


class ProviderManager:
    """
    Registry of provider adapters in priority order.

    Args:
        providers: Adapters, highest priority first

    Example:
        >>> manager = ProviderManager([CoinGeckoProvider(t), CoinPaprikaProvider(t)])
        >>> [p.name for p in manager.providers_for("list")]
        ['coingecko', 'coinpaprika']
        >>> [p.name for p in manager.providers_for("history")]
        ['coingecko']
    """

    def __init__(self, providers: Iterable[ProviderInterface]) -> None:
        self.providers: Dict[str, ProviderInterface] = {}
        for provider in providers:
            if provider.name in self.providers:
                raise ValueError(f"Duplicate provider name: '{provider.name}'")
            self.providers[provider.name] = provider

        logger.info(
            f"ProviderManager initialized with {len(self.providers)} provider(s): "
            f"{', '.join(self.providers.keys())}"
        )

    @classmethod
    def default(cls, throttle: RateThrottle) -> "ProviderManager":
        """
        Build the production registry: CoinGecko, CoinCap, CoinPaprika.

        Provider modules import from core, so they are imported here rather than at
        module level.
        """
        from providers.coingecko import CoinGeckoProvider
        from providers.coincap import CoinCapProvider
        from providers.coinpaprika import CoinPaprikaProvider

        return cls([
            CoinGeckoProvider(throttle),
            CoinCapProvider(throttle),
            CoinPaprikaProvider(throttle),
        ])

    # ============================================
    # Provider Retrieval Methods
    # ============================================

    def list_providers(self) -> List[str]:
        """Provider names in priority order."""
        return list(self.providers.keys())

    def providers_for(self, feature: str) -> List[ProviderInterface]:
        """
        Providers implementing a capability, in priority order.

        Args:
            feature: "list", "detail", "history", "search" or "trending"
        """
        return [provider for provider in self.providers.values() if provider.supports(feature)]

    def primary(self) -> ProviderInterface:
        """The highest priority provider."""
        return next(iter(self.providers.values()))

    # ============================================
    # Lifecycle Management
    # ============================================

    async def initialize_all(self) -> None:
        """
        Initialize every provider. A provider that fails to initialize is logged and
        left in place; its calls will fail and be handled by failover.
        """
        logger.info("Initializing all providers...")

        for name, provider in self.providers.items():
            try:
                await provider.initialize()
                logger.info(f"✓ {provider.display_name or name} initialized")
            except Exception as e:
                logger.error(f"✗ Failed to initialize {name}: {e}")

        logger.info("All providers initialized")

    async def shutdown_all(self) -> None:
        logger.info("Shutting down all providers...")

        for name, provider in self.providers.items():
            try:
                await provider.shutdown()
                logger.debug(f"✓ {name} shut down")
            except Exception as e:
                logger.error(f"✗ Error shutting down {name}: {e}")

        logger.info("All providers shut down")

    def __repr__(self) -> str:
        return f"<ProviderManager(providers={list(self.providers.keys())})>"

    def __len__(self) -> int:
        return len(self.providers)

    def __iter__(self):
        return iter(self.providers.values())
