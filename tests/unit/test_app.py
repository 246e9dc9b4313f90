"""
Unit Tests for the FastAPI routes

The module-level aggregator and the watchlist and alert services are replaced by
ones wired to fake providers and the in-memory store, so no request leaves the
process.

Run with:
    pytest tests/unit/test_app.py -v
"""

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

import app.main as main
from core.aggregator import Aggregator
from core.config import Settings
from core.context import DataSourceContext
from core.provider_manager import ProviderManager
from core.schemas import PricePoint, SearchHit
from services.alerts import AlertService
from services.price_stream import PriceBroadcaster
from services.watchlists import WatchlistService
from storage import InMemoryDurableStore
from tests.fakes import FakeFullProvider, FakeListProvider, make_asset


BTC = make_asset("bitcoin", rank=1, price=67000.0, symbol="btc", name="Bitcoin")
ETH = make_asset("ethereum", rank=2, price=3500.0, symbol="eth", name="Ethereum")


@pytest.fixture
def primary(clock):
    return FakeFullProvider(
        "coingecko",
        assets=[BTC, ETH],
        history={"bitcoin": [PricePoint(timestamp=clock.now_ms() - 1000, price=66000.0)]},
        hits=[SearchHit(id="bitcoin", symbol="btc", name="Bitcoin", market_cap_rank=1)],
        trending_ids=["ethereum"],
    )


@pytest.fixture
def fallback():
    return FakeListProvider("coinpaprika", assets=[ETH])


@pytest.fixture
def client(monkeypatch, clock, primary, fallback):
    context = DataSourceContext.from_settings(Settings(_env_file=None, durable_backend="memory"), clock=clock)
    store = InMemoryDurableStore()
    aggregator = Aggregator(ProviderManager([primary, fallback]), store, context)
    monkeypatch.setattr(main, "aggregator", aggregator)
    monkeypatch.setattr(main, "watchlists", WatchlistService(store, aggregator, clock=clock))
    monkeypatch.setattr(main, "alerts", AlertService(store, clock=clock))
    return TestClient(main.app)


class TestSystemRoutes:

    def test_root_lists_providers(self, client):
        body = client.get("/").json()
        assert body["providers"] == ["coingecko", "coinpaprika"]

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["providers"] == {"coingecko": True, "coinpaprika": True}

    def test_health_degraded_when_all_unavailable(self, client):
        for name in ("coingecko", "coinpaprika"):
            for _ in range(3):
                main.aggregator.health.record_error(name)
        assert client.get("/health").json()["status"] == "degraded"

    def test_status(self, client):
        body = client.get("/coins/status").json()
        assert body["success"] is True
        assert [p["name"] for p in body["data"]] == ["coingecko", "coinpaprika"]


class TestCoinRoutes:

    def test_list_coins(self, client):
        response = client.get("/coins", params={"page": 1, "limit": 2})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [c["id"] for c in body["data"]] == ["bitcoin", "ethereum"]
        assert body["data"][0]["symbol"] == "BTC"

    def test_list_limit_is_bounded(self, client):
        assert client.get("/coins", params={"limit": 251}).status_code == 422
        assert client.get("/coins", params={"page": 0}).status_code == 422

    def test_coin_detail(self, client):
        body = client.get("/coins/ethereum").json()
        assert body["data"]["id"] == "ethereum"

    def test_unknown_coin_is_404(self, client):
        assert client.get("/coins/no-such-coin").status_code == 404

    def test_history(self, client):
        body = client.get("/coins/bitcoin/history", params={"days": 7}).json()
        assert [p["price"] for p in body["data"]] == [66000.0]

    def test_history_days_are_bounded(self, client):
        assert client.get("/coins/bitcoin/history", params={"days": 0}).status_code == 422
        assert client.get("/coins/bitcoin/history", params={"days": 366}).status_code == 422

    def test_search(self, client):
        body = client.get("/coins/search", params={"q": "bit"}).json()
        assert [h["id"] for h in body["data"]] == ["bitcoin"]

    def test_short_search_is_empty(self, client, primary):
        body = client.get("/coins/search", params={"q": "b"}).json()
        assert body == {"success": True, "data": []}
        assert primary.calls == []

    def test_trending(self, client):
        body = client.get("/coins/trending").json()
        assert [c["id"] for c in body["data"]] == ["ethereum"]

    def test_outage_still_succeeds(self, client, primary, fallback):
        primary.fail = fallback.fail = True
        response = client.get("/coins")
        assert response.status_code == 200
        assert response.json()["data"] == []


class TestWatchlistRoutes:

    def create(self, client, name="Majors") -> int:
        response = client.post("/watchlists", json={"name": name})
        assert response.status_code == 201
        return response.json()["data"]["id"]

    def test_create_and_list(self, client):
        self.create(client, "Majors")
        self.create(client, "Alts")

        body = client.get("/watchlists").json()
        assert [w["name"] for w in body["data"]] == ["Alts", "Majors"]

    def test_blank_name_is_rejected(self, client):
        assert client.post("/watchlists", json={"name": "   "}).status_code == 422

    def test_watchlist_with_coins(self, client):
        watchlist_id = self.create(client)
        assert client.post(f"/watchlists/{watchlist_id}/coins", json={"coin_id": "Bitcoin"}).status_code == 201
        assert client.post(f"/watchlists/{watchlist_id}/coins", json={"coin_id": "ethereum"}).status_code == 201

        body = client.get(f"/watchlists/{watchlist_id}").json()
        assert body["data"]["name"] == "Majors"
        assert [c["id"] for c in body["data"]["coins"]] == ["ethereum", "bitcoin"]

    def test_duplicate_coin_conflicts(self, client):
        watchlist_id = self.create(client)
        client.post(f"/watchlists/{watchlist_id}/coins", json={"coin_id": "bitcoin"})
        response = client.post(f"/watchlists/{watchlist_id}/coins", json={"coin_id": "bitcoin"})
        assert response.status_code == 409

    def test_missing_watchlist_is_404(self, client):
        assert client.get("/watchlists/99").status_code == 404
        assert client.delete("/watchlists/99").status_code == 404
        assert client.post("/watchlists/99/coins", json={"coin_id": "bitcoin"}).status_code == 404

    def test_remove_coin_and_delete(self, client):
        watchlist_id = self.create(client)
        client.post(f"/watchlists/{watchlist_id}/coins", json={"coin_id": "bitcoin"})

        assert client.delete(f"/watchlists/{watchlist_id}/coins/bitcoin").json()["success"] is True
        assert client.delete(f"/watchlists/{watchlist_id}/coins/bitcoin").status_code == 404
        assert client.delete(f"/watchlists/{watchlist_id}").status_code == 200
        assert client.get(f"/watchlists/{watchlist_id}").status_code == 404

    def test_watchlist_websocket_sends_coins_first(self, client):
        watchlist_id = self.create(client)
        client.post(f"/watchlists/{watchlist_id}/coins", json={"coin_id": "bitcoin"})

        with client.websocket_connect(f"/ws/watchlists/{watchlist_id}") as websocket:
            message = websocket.receive_json()

        assert message["type"] == "prices"
        assert [c["id"] for c in message["data"]] == ["bitcoin"]

    def test_watchlist_websocket_rejects_unknown_id(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws/watchlists/99") as websocket:
                websocket.receive_json()


class TestAlertRoutes:

    def test_create_list_delete(self, client):
        response = client.post(
            "/alerts", json={"coin_id": "bitcoin", "target_price": 70000, "condition": "above"}
        )
        assert response.status_code == 201
        alert = response.json()["data"]
        assert alert["triggered"] is False

        listed = client.get("/alerts").json()["data"]
        assert [a["id"] for a in listed] == [alert["id"]]

        assert client.delete(f"/alerts/{alert['id']}").status_code == 200
        assert client.delete(f"/alerts/{alert['id']}").status_code == 404

    @pytest.mark.parametrize("body", [
        {"coin_id": "bitcoin", "target_price": -1, "condition": "above"},
        {"coin_id": "bitcoin", "target_price": 10, "condition": "sideways"},
        {"target_price": 10, "condition": "above"},
    ])
    def test_invalid_alerts_are_rejected(self, client, body):
        assert client.post("/alerts", json=body).status_code == 422


def test_price_websocket_replays_latest_snapshot(monkeypatch):
    broadcaster = PriceBroadcaster()
    broadcaster.publish({"type": "prices", "data": [{"id": "bitcoin"}]})
    monkeypatch.setattr(main, "broadcaster", broadcaster)

    with TestClient(main.app).websocket_connect("/ws/prices") as websocket:
        message = websocket.receive_json()

    assert message == {"type": "prices", "data": [{"id": "bitcoin"}]}
