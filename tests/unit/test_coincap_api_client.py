"""
Unit Tests for CoinCap API Client

These tests verify that the CoinCapAPIClient parses CoinCap's string-encoded
numbers and leaves unsupported fields as None.

Run with:
    pytest tests/unit/test_coincap_api_client.py -v
"""

import pytest

from core.provider_interface import FetchFailed
from core.throttle import RateThrottle
from providers.coincap import CoinCapProvider
from providers.coincap.api_client import CoinCapAPIClient, history_interval


@pytest.fixture
def api_client():
    return CoinCapAPIClient("https://api.coincap.io/v2", RateThrottle({}))


def mock_get_returning(api_client, monkeypatch, payload, calls=None):
    async def mock_get(path, params=None, timeout=None):
        if calls is not None:
            calls.append((path, params, timeout))
        return payload

    monkeypatch.setattr(api_client, "_get", mock_get)


BTC = {
    "id": "bitcoin",
    "rank": "1",
    "symbol": "BTC",
    "name": "Bitcoin",
    "supply": "19600000.0000000000000000",
    "maxSupply": "21000000.0000000000000000",
    "marketCapUsd": "1320000000000.1234",
    "volumeUsd24Hr": "21000000000.5",
    "priceUsd": "67000.1234",
    "changePercent24Hr": "0.7512",
    "vwap24Hr": "66900.0",
}


class TestGetAssets:

    @pytest.mark.asyncio
    async def test_string_numerics_are_parsed(self, api_client, monkeypatch):
        mock_get_returning(api_client, monkeypatch, {"data": [BTC], "timestamp": 1704067200000})

        asset = (await api_client.get_assets())[0]
        assert asset.current_price == pytest.approx(67000.1234)
        assert asset.market_cap_rank == 1
        assert asset.circulating_supply == pytest.approx(19_600_000)
        assert asset.price_change_percentage_24h == pytest.approx(0.7512)
        assert asset.last_updated.year == 2024

    @pytest.mark.asyncio
    async def test_unsupported_fields_are_none(self, api_client, monkeypatch):
        mock_get_returning(api_client, monkeypatch, {"data": [BTC], "timestamp": 1704067200000})

        asset = (await api_client.get_assets())[0]
        for field in ("image", "price_change_24h", "high_24h", "low_24h", "ath", "atl", "total_supply"):
            assert getattr(asset, field) is None, field

    @pytest.mark.asyncio
    async def test_null_max_supply(self, api_client, monkeypatch):
        mock_get_returning(api_client, monkeypatch, {"data": [dict(BTC, maxSupply=None)]})

        asset = (await api_client.get_assets())[0]
        assert asset.max_supply is None

    @pytest.mark.asyncio
    async def test_pagination_uses_offset(self, api_client, monkeypatch):
        calls = []
        mock_get_returning(api_client, monkeypatch, {"data": []}, calls)

        await api_client.get_assets(page=3, limit=50)
        assert calls[0][0] == "/assets"
        assert calls[0][1] == {"limit": 50, "offset": 100}


class TestGetAsset:

    @pytest.mark.asyncio
    async def test_get_asset(self, api_client, monkeypatch):
        mock_get_returning(api_client, monkeypatch, {"data": BTC, "timestamp": 1704067200000})
        asset = await api_client.get_asset("bitcoin")
        assert asset.id == "bitcoin"

    @pytest.mark.asyncio
    async def test_empty_data_is_a_failure(self, api_client, monkeypatch):
        mock_get_returning(api_client, monkeypatch, {"data": None})
        with pytest.raises(FetchFailed):
            await api_client.get_asset("nope")


class TestGetHistory:

    def test_history_interval(self):
        assert history_interval(1) == "m5"
        assert history_interval(7) == "h1"
        assert history_interval(8) == "d1"
        assert history_interval(365) == "d1"

    @pytest.mark.asyncio
    async def test_history_points(self, api_client, monkeypatch):
        payload = {
            "data": [
                {"priceUsd": "42001.5", "time": 1704070800000},
                {"priceUsd": "42000.1", "time": 1704067200000},
            ]
        }
        calls = []
        mock_get_returning(api_client, monkeypatch, payload, calls)

        points = await api_client.get_history("bitcoin", days=7)

        assert [p.timestamp for p in points] == [1704067200000, 1704070800000]
        assert points[0].price == pytest.approx(42000.1)
        assert points[0].volume is None

        path, params, timeout = calls[0]
        assert path == "/assets/bitcoin/history"
        assert params["interval"] == "h1"
        assert params["end"] - params["start"] == 7 * 24 * 60 * 60 * 1000
        assert timeout == api_client.history_timeout


class TestSearch:

    @pytest.mark.asyncio
    async def test_search_hits(self, api_client, monkeypatch):
        calls = []
        mock_get_returning(api_client, monkeypatch, {"data": [BTC]}, calls)

        hits = await api_client.search("bit")
        assert hits[0].id == "bitcoin"
        assert hits[0].market_cap_rank == 1
        assert hits[0].thumb is None
        assert calls[0][1] == {"search": "bit", "limit": 20}


class TestCanonicalIds:

    @pytest.mark.asyncio
    async def test_listed_ids_are_canonical(self, api_client, monkeypatch):
        xrp = dict(BTC, id="xrp", symbol="XRP", name="XRP", rank="4")
        mock_get_returning(api_client, monkeypatch, {"data": [BTC, xrp]})

        assets = await api_client.get_assets()
        assert [a.id for a in assets] == ["bitcoin", "ripple"]

    @pytest.mark.asyncio
    async def test_requests_use_coincap_ids(self, api_client, monkeypatch):
        calls = []
        payload = {"data": dict(BTC, id="binance-coin", symbol="BNB", name="BNB")}
        mock_get_returning(api_client, monkeypatch, payload, calls)

        asset = await api_client.get_asset("binancecoin")

        assert calls[0][0] == "/assets/binance-coin"
        assert asset.id == "binancecoin"

    @pytest.mark.asyncio
    async def test_history_path_uses_coincap_id(self, api_client, monkeypatch):
        calls = []
        mock_get_returning(api_client, monkeypatch, {"data": []}, calls)

        await api_client.get_history("ripple", days=1)
        assert calls[0][0] == "/assets/xrp/history"

    @pytest.mark.asyncio
    async def test_search_hits_are_canonical(self, api_client, monkeypatch):
        xrp = dict(BTC, id="xrp", symbol="XRP", name="XRP")
        mock_get_returning(api_client, monkeypatch, {"data": [xrp]})

        hits = await api_client.search("xrp")
        assert hits[0].id == "ripple"


class TestProvider:

    def test_provider_has_no_trending(self):
        provider = CoinCapProvider(RateThrottle({}))
        assert provider.supports("history")
        assert provider.supports("search")
        assert not provider.supports("trending")
