"""
Unit Tests for the Watchlist Service

Watchlists resolve their coins through a real Aggregator wired to fake providers.

Run with:
    pytest tests/unit/test_watchlists.py -v
"""

import pytest

from core.aggregator import Aggregator
from core.config import Settings
from core.context import DataSourceContext
from core.provider_manager import ProviderManager
from services.watchlists import DEFAULT_WATCHLIST_NAME, WatchlistNotFound, WatchlistService
from storage import InMemoryDurableStore
from tests.fakes import FakeFullProvider, make_asset


BTC = make_asset("bitcoin", rank=1, price=67000.0, symbol="btc", name="Bitcoin")
ETH = make_asset("ethereum", rank=2, price=3500.0, symbol="eth", name="Ethereum")
PEPE = make_asset("pepe", rank=400, price=0.00001, symbol="pepe", name="Pepe")


class TopOnlyProvider(FakeFullProvider):
    """Lists only the first two assets, like a top-N endpoint, but knows them all."""

    async def list_assets(self, page=1, limit=100):
        self._check("list", page, limit)
        return self.assets[:2]


@pytest.fixture
def store():
    return InMemoryDurableStore()


@pytest.fixture
def provider():
    return TopOnlyProvider("coingecko", assets=[BTC, ETH, PEPE])


@pytest.fixture
def service(clock, store, provider):
    context = DataSourceContext.from_settings(Settings(_env_file=None, durable_backend="memory"), clock=clock)
    aggregator = Aggregator(ProviderManager([provider]), store, context)
    return WatchlistService(store, aggregator, clock=clock)


class TestWatchlistService:

    @pytest.mark.asyncio
    async def test_initialize_creates_default_once(self, service):
        await service.initialize()
        await service.initialize()

        assert [w.name for w in await service.list_all()] == [DEFAULT_WATCHLIST_NAME]

    @pytest.mark.asyncio
    async def test_created_at_comes_from_clock(self, service, clock):
        watchlist = await service.create("Majors")
        assert watchlist.created_at.timestamp() == clock.now()

    @pytest.mark.asyncio
    async def test_coins_resolved_in_membership_order(self, service, provider):
        watchlist = await service.create("Mixed")
        await service.add_coin(watchlist.id, "bitcoin")
        await service.add_coin(watchlist.id, "pepe")
        await service.add_coin(watchlist.id, "ethereum")

        detail = await service.get(watchlist.id)

        assert [c.id for c in detail.coins] == ["ethereum", "pepe", "bitcoin"]
        assert ("list", 1, 250) in provider.calls
        assert ("detail", "pepe") in provider.calls
        assert ("detail", "bitcoin") not in provider.calls

    @pytest.mark.asyncio
    async def test_unknown_coins_are_skipped_but_kept(self, service):
        watchlist = await service.create("Majors")
        await service.add_coin(watchlist.id, "no-such-coin")
        await service.add_coin(watchlist.id, "bitcoin")

        detail = await service.get(watchlist.id)

        assert [c.id for c in detail.coins] == ["bitcoin"]
        assert await service.coin_ids(watchlist.id) == ["bitcoin", "no-such-coin"]

    @pytest.mark.asyncio
    async def test_empty_watchlist_makes_no_provider_calls(self, service, provider):
        watchlist = await service.create("Empty")
        detail = await service.get(watchlist.id)
        assert detail.coins == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_outage_serves_last_known_coins(self, service, provider):
        watchlist = await service.create("Majors")
        await service.add_coin(watchlist.id, "bitcoin")
        await service.get(watchlist.id)

        service.aggregator.cache.clear()
        provider.fail = True
        detail = await service.get(watchlist.id)

        assert [c.id for c in detail.coins] == ["bitcoin"]

    @pytest.mark.asyncio
    async def test_add_to_missing_watchlist_raises(self, service):
        with pytest.raises(WatchlistNotFound):
            await service.add_coin(42, "bitcoin")

    @pytest.mark.asyncio
    async def test_duplicate_coin_is_rejected(self, service):
        watchlist = await service.create("Majors")
        assert await service.add_coin(watchlist.id, "bitcoin")
        assert not await service.add_coin(watchlist.id, "bitcoin")

    @pytest.mark.asyncio
    async def test_missing_watchlist_reads_as_none(self, service):
        assert await service.get(42) is None
        assert not await service.delete(42)
