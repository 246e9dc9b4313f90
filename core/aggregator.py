"""
Market Data Aggregator

Single entry point for market data. Route handlers and the price stream call the
aggregator and never talk to providers directly.

Algorithm (every operation):
    1. Build a cache key from the operation and its normalized parameters
    2. Result cache hit -> return immediately
    3. History only: serve fresh durable history without contacting providers
    4. Try providers supporting the operation, in priority order, skipping the
       unavailable ones. First success: record health, write through to the durable
       store, cache, return. Failure: log, record the error, try the next one
    5. Every provider failed or was skipped: answer from the durable store

Provider failures never reach the caller. A total outage yields the last known data,
possibly empty. Errors raised by the durable store itself do propagate.

Results:
    Every call returns a new list, so callers may reorder or trim it. The models
    inside are shared with the result cache and are treated as read-only.

Cancellation:
    Each operation runs in its own task awaited through asyncio.shield. A caller that
    goes away (client disconnect) stops waiting, but the provider call and the cache
    and durable writes it triggers still complete for the next caller.

Example Usage:
    aggregator = create_aggregator()
    await aggregator.initialize()

    coins = await aggregator.list_assets(page=1, limit=50)
    chart = await aggregator.get_history("bitcoin", days=7)

    await aggregator.shutdown()
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Set, Tuple

from core.config import Settings, settings as default_settings
from core.cache import ResultCache
from core.context import DataSourceContext
from core.health import HealthTracker
from core.logging import get_logger
from core.provider_interface import ProviderInterface
from core.provider_manager import ProviderManager
from core.schemas import SEARCH_RESULT_LIMIT, Asset, AssetDetail, PricePoint, ProviderHealth, SearchHit
from core.utils.time import Clock
from storage import DurableStore, create_durable_store

logger = get_logger(__name__)

MIN_SEARCH_LENGTH = 2
TRENDING_MATERIALIZE_LIMIT = 100
TRENDING_FALLBACK_LIMIT = 10


class Aggregator:
    """
    Multi-provider failover with in-memory and durable caching.

    Args:
        manager: Provider registry in priority order
        store: Durable cache of last-known-good data
        context: Clock, throttle, health tracker and result cache owned by this instance
    """

    def __init__(self, manager: ProviderManager, store: DurableStore, context: DataSourceContext) -> None:
        self.manager = manager
        self.store = store
        self.context = context
        self._tasks: Set[asyncio.Task] = set()

        for provider in manager:
            context.health.register(provider.name, provider.display_name)

    @property
    def cache(self) -> ResultCache:
        return self.context.cache

    @property
    def health(self) -> HealthTracker:
        return self.context.health

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize(self) -> None:
        await self.store.initialize()
        await self.manager.initialize_all()
        logger.info(f"Aggregator ready with providers: {', '.join(self.manager.list_providers())}")

    async def shutdown(self) -> None:
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} in-flight operation(s)")
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.manager.shutdown_all()
        await self.store.close()
        logger.info("Aggregator shut down")

    # ============================================
    # Public Operations
    # ============================================

    async def list_assets(self, page: int = 1, limit: int = 100) -> List[Asset]:
        """One page of assets ordered by market cap rank."""
        return await self._detached(self._list_assets(page, limit))

    async def get_asset(self, asset_id: str) -> Optional[Asset]:
        """
        One asset, as an AssetDetail when the primary provider answers.

        Returns:
            None when neither a provider nor the durable store knows the id
        """
        return await self._detached(self._get_asset(asset_id))

    async def get_history(self, asset_id: str, days: int = 7) -> List[PricePoint]:
        """Price points for the last `days` days, ascending by timestamp."""
        return await self._detached(self._get_history(asset_id, days))

    async def search(self, query: str) -> List[SearchHit]:
        """Assets matching a name or symbol; at most 20 hits."""
        query = query.strip()
        if len(query) < MIN_SEARCH_LENGTH:
            return []
        return await self._detached(self._search(query))

    async def trending(self) -> List[Asset]:
        """
        Trending assets from the primary provider.

        When trending ids are unavailable this degrades to the top 10 assets by rank.
        """
        return await self._detached(self._trending())

    def source_status(self) -> List[ProviderHealth]:
        """Health snapshot of every provider, in priority order."""
        return self.health.snapshot()

    # ============================================
    # Operation Bodies
    # ============================================

    async def _list_assets(self, page: int, limit: int) -> List[Asset]:
        key = f"coins:{page}:{limit}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return list(cached)

        provider, assets = await self._first_success(
            "list", lambda p: p.list_assets(page, limit)
        )
        if provider is not None:
            await self.store.upsert_assets(assets)
            self.cache.put(key, assets, self.context.ttl_for("list"))
            return list(assets)

        logger.warning(f"All providers failed for {key}; serving durable cache")
        return await self.store.read_assets_by_rank(limit, offset=(page - 1) * limit)

    async def _get_asset(self, asset_id: str) -> Optional[Asset]:
        key = f"detail:{asset_id}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return cached

        provider, asset = await self._first_success(
            "detail", lambda p: p.get_asset(asset_id)
        )
        if provider is not None:
            stored = asset.to_asset() if isinstance(asset, AssetDetail) else asset
            await self.store.upsert_assets([stored])
            self.cache.put(key, asset, self.context.ttl_for("detail"))
            return asset

        logger.warning(f"All providers failed for {key}; serving durable cache")
        return await self.store.read_asset(asset_id)

    async def _get_history(self, asset_id: str, days: int) -> List[PricePoint]:
        key = f"history:{asset_id}:{days}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return list(cached)

        now_ms = self.context.clock.now_ms()
        since_ms = now_ms - days * 86_400_000
        max_age_ms = int(self.context.history_max_age_seconds * 1000)

        stored = await self.store.read_fresh_history(asset_id, since_ms, now_ms, max_age_ms)
        if stored:
            logger.debug(f"Durable hit: {key} ({len(stored)} points)")
            return stored

        provider, points = await self._first_success(
            "history", lambda p: p.get_history(asset_id, days)
        )
        if provider is not None:
            await self.store.upsert_history(asset_id, points)
            self.cache.put(key, points, self.context.ttl_for("history"))
            return list(points)

        logger.warning(f"All providers failed for {key}; serving durable cache")
        return await self.store.read_fresh_history(asset_id, since_ms, now_ms, max_age_ms)

    async def _search(self, query: str) -> List[SearchHit]:
        key = f"search:{query.lower()}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return list(cached)

        provider, hits = await self._first_success("search", lambda p: p.search(query))
        if provider is not None:
            hits = hits[:SEARCH_RESULT_LIMIT]
            self.cache.put(key, hits, self.context.ttl_for("search"))
            return list(hits)

        logger.warning(f"All providers failed for {key}; serving durable cache")
        return await self.store.search_by_name_or_symbol(query, SEARCH_RESULT_LIMIT)

    async def _trending(self) -> List[Asset]:
        key = "trending"
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return list(cached)

        primary = self.manager.primary()
        candidates = [primary] if primary.supports("trending") else []
        provider, trending_ids = await self._first_success(
            "trending", lambda p: p.get_trending_ids(), candidates
        )
        if provider is not None:
            by_id = {asset.id: asset for asset in await self._list_assets(1, TRENDING_MATERIALIZE_LIMIT)}
            assets = [by_id[asset_id] for asset_id in trending_ids if asset_id in by_id]
            if assets:
                self.cache.put(key, assets, self.context.ttl_for("trending"))
                return list(assets)
            logger.info("No trending ids found in the top assets; using top assets by rank")
        else:
            logger.info("Trending unavailable; using top assets by rank")

        return await self._list_assets(1, TRENDING_FALLBACK_LIMIT)

    # ============================================
    # Internals
    # ============================================

    async def _first_success(
        self,
        feature: str,
        fetch: Callable[[ProviderInterface], Awaitable[Any]],
        providers: Optional[List[ProviderInterface]] = None
    ) -> Tuple[Optional[ProviderInterface], Any]:
        """
        Run fetch against each eligible provider until one succeeds.

        Args:
            feature: Capability name, used to pick providers and in log messages
            fetch: The adapter call to make
            providers: Candidates to try instead of every provider supporting feature

        Returns:
            (provider, result) for the first success, (None, None) if all failed
        """
        if providers is None:
            providers = self.manager.providers_for(feature)

        for provider in providers:
            if not self.health.is_available(provider.name):
                logger.debug(f"Skipping {provider.name} for {feature}: unavailable")
                continue

            try:
                result = await fetch(provider)
            except Exception as e:
                logger.warning(f"{provider.name} failed for {feature}: {e}")
                self.health.record_error(provider.name)
                continue

            self.health.record_success(provider.name)
            logger.debug(f"{feature} served by {provider.name}")
            return provider, result

        return None, None

    async def _detached(self, operation: Awaitable[Any]) -> Any:
        task = asyncio.ensure_future(operation)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return await asyncio.shield(task)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Operation finished with error: {error!r}")


def create_aggregator(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None
) -> Aggregator:
    """Build the production aggregator: default providers, configured durable store."""
    settings = settings or default_settings
    context = DataSourceContext.from_settings(settings, clock=clock)
    return Aggregator(
        ProviderManager.default(context.throttle),
        create_durable_store(settings),
        context,
    )
