"""
CoinGecko REST API Client

CoinGecko is the primary provider: richest schema, plus trending and full-text search.
It is also the strictest on rate limits (~30-50 calls/minute on the public tier),
which is why its throttle interval is the longest.

API Documentation:
    https://docs.coingecko.com/reference/introduction

Endpoints Used:
    GET /coins/markets          - Paged market data ordered by market cap
    GET /coins/{id}             - Asset detail with description and links
    GET /coins/{id}/market_chart - Price and volume chart
    GET /search                 - Search by name/symbol
    GET /search/trending        - Trending coins

Usage:
    async with CoinGeckoAPIClient(throttle) as client:
        assets = await client.get_markets(page=1, limit=100)
"""

from typing import Any, Dict, List

from core.schemas import (
    Asset,
    AssetDetail,
    PricePoint,
    SearchHit,
    SEARCH_RESULT_LIMIT,
    normalize_price_points,
)
from providers.api_client import ProviderAPIClient


class CoinGeckoAPIClient(ProviderAPIClient):
    """
    Async client for the CoinGecko v3 API.

    All methods return normalized schemas; numeric fields map 1:1 and symbols
    are uppercased by the schema validators.
    """

    name = "coingecko"

    async def get_markets(self, page: int = 1, limit: int = 100) -> List[Asset]:
        """
        Fetch one page of assets ordered by market cap.

        CoinGecko Endpoint:
            GET /coins/markets?vs_currency=usd&order=market_cap_desc&per_page=..&page=..

        Response Format:
            [
              {
                "id": "bitcoin", "symbol": "btc", "name": "Bitcoin",
                "image": "https://...", "current_price": 67000.0,
                "market_cap": 1.3e12, "market_cap_rank": 1, ...
              }
            ]
        """
        params = {
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": limit,
            "page": page,
            "sparkline": "false",
        }
        self.logger.info(f"Fetching markets page {page} (limit={limit})")
        data = await self._get("/coins/markets", params)

        with self.parsing("/coins/markets"):
            return [self._market_to_asset(item) for item in data]

    async def get_coin(self, coin_id: str) -> AssetDetail:
        """
        Fetch full detail for one coin.

        CoinGecko Endpoint:
            GET /coins/{id}?localization=false&tickers=false&market_data=true

        Response Format (abridged):
            {
              "id": "bitcoin", "symbol": "btc", "name": "Bitcoin",
              "description": {"en": "..."},
              "links": {"homepage": ["https://bitcoin.org", "", ""]},
              "image": {"thumb": "...", "small": "...", "large": "..."},
              "genesis_date": "2009-01-03",
              "market_cap_rank": 1,
              "market_data": {"current_price": {"usd": 67000.0}, ...}
            }
        """
        path = f"/coins/{coin_id}"
        params = {
            "localization": "false",
            "tickers": "false",
            "market_data": "true",
            "community_data": "false",
            "developer_data": "false",
        }
        self.logger.info(f"Fetching coin detail: {coin_id}")
        data = await self._get(path, params)

        with self.parsing(path):
            md = data["market_data"]
            homepages = [url for url in (data.get("links") or {}).get("homepage") or [] if url]
            return AssetDetail(
                id=data["id"],
                symbol=data["symbol"],
                name=data["name"],
                image=(data.get("image") or {}).get("large"),
                current_price=_usd(md, "current_price"),
                market_cap=_usd(md, "market_cap"),
                market_cap_rank=data.get("market_cap_rank"),
                price_change_24h=md.get("price_change_24h"),
                price_change_percentage_24h=md.get("price_change_percentage_24h"),
                total_volume=_usd(md, "total_volume"),
                high_24h=_usd(md, "high_24h"),
                low_24h=_usd(md, "low_24h"),
                ath=_usd(md, "ath"),
                ath_date=_usd(md, "ath_date"),
                atl=_usd(md, "atl"),
                atl_date=_usd(md, "atl_date"),
                circulating_supply=md.get("circulating_supply"),
                total_supply=md.get("total_supply"),
                max_supply=md.get("max_supply"),
                last_updated=md.get("last_updated") or data.get("last_updated"),
                description=((data.get("description") or {}).get("en") or None),
                homepage=homepages[0] if homepages else None,
                genesis_date=data.get("genesis_date") or None,
                sentiment_votes_up_percentage=data.get("sentiment_votes_up_percentage"),
                sentiment_votes_down_percentage=data.get("sentiment_votes_down_percentage"),
            )

    async def get_market_chart(self, coin_id: str, days: int = 7) -> List[PricePoint]:
        """
        Fetch the USD price chart for the last `days` days.

        CoinGecko Endpoint:
            GET /coins/{id}/market_chart?vs_currency=usd&days=..

        Response Format:
            {
              "prices": [[1704067200000, 42000.1], ...],
              "market_caps": [[...], ...],
              "total_volumes": [[1704067200000, 2.1e10], ...]
            }
        """
        path = f"/coins/{coin_id}/market_chart"
        params = {"vs_currency": "usd", "days": days}
        self.logger.info(f"Fetching market chart: {coin_id} ({days}d)")
        data = await self._get(path, params, timeout=self.history_timeout)

        with self.parsing(path):
            volumes = {int(ts): vol for ts, vol in data.get("total_volumes") or []}
            points = [
                PricePoint(timestamp=int(ts), price=price, volume=volumes.get(int(ts)))
                for ts, price in data["prices"]
            ]
        return normalize_price_points(points)

    async def search(self, query: str) -> List[SearchHit]:
        """
        Search coins by name or symbol.

        CoinGecko Endpoint:
            GET /search?query=..

        Response Format:
            {"coins": [{"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin",
                        "market_cap_rank": 1, "thumb": "https://..."}], ...}
        """
        self.logger.info(f"Searching '{query}'")
        data = await self._get("/search", {"query": query})

        with self.parsing("/search"):
            return [
                SearchHit(
                    id=coin["id"],
                    symbol=coin["symbol"],
                    name=coin["name"],
                    market_cap_rank=coin.get("market_cap_rank"),
                    thumb=coin.get("thumb"),
                )
                for coin in data["coins"][:SEARCH_RESULT_LIMIT]
            ]

    async def get_trending_ids(self) -> List[str]:
        """
        Fetch the ids of currently trending coins.

        CoinGecko Endpoint:
            GET /search/trending

        Response Format:
            {"coins": [{"item": {"id": "pepe", "coin_id": 29850, ...}}, ...]}
        """
        self.logger.info("Fetching trending coins")
        data = await self._get("/search/trending")

        with self.parsing("/search/trending"):
            return [entry["item"]["id"] for entry in data["coins"]]

    @staticmethod
    def _market_to_asset(item: Dict[str, Any]) -> Asset:
        return Asset(
            id=item["id"],
            symbol=item["symbol"],
            name=item["name"],
            image=item.get("image"),
            current_price=item.get("current_price"),
            market_cap=item.get("market_cap"),
            market_cap_rank=item.get("market_cap_rank"),
            price_change_24h=item.get("price_change_24h"),
            price_change_percentage_24h=item.get("price_change_percentage_24h"),
            total_volume=item.get("total_volume"),
            high_24h=item.get("high_24h"),
            low_24h=item.get("low_24h"),
            ath=item.get("ath"),
            ath_date=item.get("ath_date"),
            atl=item.get("atl"),
            atl_date=item.get("atl_date"),
            circulating_supply=item.get("circulating_supply"),
            total_supply=item.get("total_supply"),
            max_supply=item.get("max_supply"),
            last_updated=item.get("last_updated"),
        )


def _usd(market_data: Dict[str, Any], field: str) -> Any:
    """Read market_data[field]["usd"], tolerating a missing or null field."""
    return (market_data.get(field) or {}).get("usd")
