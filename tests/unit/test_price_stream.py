"""
Unit Tests for the Price Stream

Run with:
    pytest tests/unit/test_price_stream.py -v
"""

import asyncio

import pytest

from services.alerts import AlertService
from services.price_stream import PriceBroadcaster, PriceStreamService
from storage import InMemoryDurableStore
from tests.fakes import make_asset


class StubAggregator:
    def __init__(self, assets=None, fail=False):
        self.assets = assets or []
        self.fail = fail
        self.calls = []

    async def list_assets(self, page=1, limit=100):
        self.calls.append((page, limit))
        if self.fail:
            raise RuntimeError("store unavailable")
        return self.assets[:limit]


class TestPriceBroadcaster:

    def test_publish_reaches_every_subscriber(self):
        broadcaster = PriceBroadcaster()
        first, second = broadcaster.subscribe(), broadcaster.subscribe()

        broadcaster.publish({"type": "prices", "data": []})

        assert first.get_nowait()["type"] == "prices"
        assert second.get_nowait()["type"] == "prices"

    def test_new_subscriber_gets_latest_snapshot(self):
        broadcaster = PriceBroadcaster()
        broadcaster.publish({"n": 1})
        broadcaster.publish({"n": 2})

        queue = broadcaster.subscribe()
        assert queue.get_nowait() == {"n": 2}
        assert queue.empty()

    def test_full_queue_drops_events(self):
        broadcaster = PriceBroadcaster(max_queue_size=2)
        queue = broadcaster.subscribe()
        for n in range(5):
            broadcaster.publish({"n": n})

        assert queue.qsize() == 2
        assert queue.get_nowait() == {"n": 0}

    def test_replay_can_be_disabled(self):
        broadcaster = PriceBroadcaster(replay_latest=False)
        broadcaster.publish({"type": "alerts", "data": []})

        assert broadcaster.subscribe().empty()

    def test_unsubscribe(self):
        broadcaster = PriceBroadcaster()
        queue = broadcaster.subscribe()
        broadcaster.unsubscribe(queue)
        broadcaster.publish({"n": 1})

        assert queue.empty()
        assert broadcaster.subscriber_count == 0


class TestPriceStreamService:

    @pytest.mark.asyncio
    async def test_publish_once(self):
        aggregator = StubAggregator([make_asset("bitcoin", rank=1, price=1.0)])
        broadcaster = PriceBroadcaster()
        service = PriceStreamService(aggregator, broadcaster, interval_seconds=30, coin_limit=5)

        event = await service.publish_once()

        assert aggregator.calls == [(1, 5)]
        assert event["type"] == "prices"
        assert event["data"][0]["id"] == "bitcoin"
        assert broadcaster.latest is event

    @pytest.mark.asyncio
    async def test_loop_publishes_and_stops(self, clock):
        aggregator = StubAggregator([make_asset("bitcoin", rank=1)])
        broadcaster = PriceBroadcaster()
        queue = broadcaster.subscribe()
        service = PriceStreamService(aggregator, broadcaster, interval_seconds=30, coin_limit=5, clock=clock)

        await service.start()
        event = await asyncio.wait_for(queue.get(), timeout=1)
        await service.stop()

        assert event["data"][0]["symbol"] == "BIT"
        assert not service.running
        assert len(aggregator.calls) >= 1

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self, clock):
        aggregator = StubAggregator(fail=True)
        service = PriceStreamService(aggregator, PriceBroadcaster(), interval_seconds=30, coin_limit=5, clock=clock)

        await service.start()
        for _ in range(10):
            await asyncio.sleep(0)
        await service.stop()

        assert len(aggregator.calls) >= 2

    @pytest.mark.asyncio
    async def test_triggered_alerts_are_broadcast(self, clock):
        alerts = AlertService(InMemoryDurableStore(), clock=clock)
        await alerts.create("bitcoin", 60000.0, "above")
        await alerts.create("ethereum", 100.0, "below")
        alert_broadcaster = PriceBroadcaster(replay_latest=False)
        queue = alert_broadcaster.subscribe()
        aggregator = StubAggregator([
            make_asset("bitcoin", rank=1, price=67000.0),
            make_asset("ethereum", rank=2, price=3500.0),
        ])
        service = PriceStreamService(
            aggregator, PriceBroadcaster(), interval_seconds=30, coin_limit=5,
            clock=clock, alerts=alerts, alert_broadcaster=alert_broadcaster,
        )

        await service.publish_once()
        await service.publish_once()

        event = queue.get_nowait()
        assert event["type"] == "alerts"
        assert [a["coin_id"] for a in event["data"]] == ["bitcoin"]
        assert event["data"][0]["triggered"] is True
        assert queue.empty()
