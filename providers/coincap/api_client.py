"""
CoinCap REST API Client

CoinCap is the first fallback. It returns every numeric field as a string and has no
images, 24h absolute change, 24h high/low, ATH/ATL or total supply. Those fields are
normalized to None, never 0.

API Documentation:
    https://docs.coincap.io/

Endpoints Used:
    GET /assets               - Assets ordered by rank (supports search, limit, offset)
    GET /assets/{id}          - One asset
    GET /assets/{id}/history  - Price history (interval m5 | h1 | d1)

Ids:
    CoinCap slugs mostly match the canonical ids. The exceptions are translated by
    providers.ids in both directions: canonical ids in, canonical ids out.

Response Envelope:
    {"data": ..., "timestamp": 1704067200000}
"""

from typing import Any, Dict, List, Optional

from core.schemas import Asset, PricePoint, SearchHit, SEARCH_RESULT_LIMIT, normalize_price_points
from core.utils.time import current_utc_datetime, current_utc_timestamp, to_utc_datetime
from providers.api_client import ProviderAPIClient, to_float, to_int
from providers.ids import coincap_canonical_id, coincap_native_id

DAY_MS = 24 * 60 * 60 * 1000


def history_interval(days: int) -> str:
    """
    Pick the chart resolution for a window length.

    Example:
        >>> history_interval(1), history_interval(7), history_interval(30)
        ('m5', 'h1', 'd1')
    """
    if days <= 1:
        return "m5"
    if days <= 7:
        return "h1"
    return "d1"


class CoinCapAPIClient(ProviderAPIClient):
    """Async client for the CoinCap API."""

    name = "coincap"

    async def get_assets(self, page: int = 1, limit: int = 100) -> List[Asset]:
        """
        Fetch one page of assets ordered by rank.

        CoinCap Endpoint:
            GET /assets?limit=..&offset=..

        Response Format:
            {
              "data": [
                {"id": "bitcoin", "rank": "1", "symbol": "BTC", "name": "Bitcoin",
                 "supply": "19600000.0", "maxSupply": "21000000.0",
                 "marketCapUsd": "1.3e12", "volumeUsd24Hr": "2.1e10",
                 "priceUsd": "67000.12", "changePercent24Hr": "1.23", "vwap24Hr": "..."}
              ],
              "timestamp": 1704067200000
            }
        """
        params = {"limit": limit, "offset": (page - 1) * limit}
        self.logger.info(f"Fetching assets page {page} (limit={limit})")
        data = await self._get("/assets", params)

        with self.parsing("/assets"):
            stamp = self._stamp(data)
            return [self._to_asset(item, stamp) for item in data["data"]]

    async def get_asset(self, asset_id: str) -> Asset:
        """
        Fetch one asset.

        CoinCap Endpoint:
            GET /assets/{id}
        """
        path = f"/assets/{coincap_native_id(asset_id)}"
        self.logger.info(f"Fetching asset: {asset_id}")
        data = await self._get(path)

        with self.parsing(path):
            if not data.get("data"):
                raise KeyError(asset_id)
            return self._to_asset(data["data"], self._stamp(data))

    async def get_history(self, asset_id: str, days: int = 7) -> List[PricePoint]:
        """
        Fetch price history over [now - days, now].

        CoinCap Endpoint:
            GET /assets/{id}/history?interval=h1&start=..&end=..

        Response Format:
            {"data": [{"priceUsd": "42000.1", "time": 1704067200000, "date": "..."}]}
        """
        path = f"/assets/{coincap_native_id(asset_id)}/history"
        end = current_utc_timestamp(milliseconds=True)
        params = {
            "interval": history_interval(days),
            "start": end - days * DAY_MS,
            "end": end,
        }
        self.logger.info(f"Fetching history: {asset_id} ({days}d, interval={params['interval']})")
        data = await self._get(path, params, timeout=self.history_timeout)

        with self.parsing(path):
            points = [
                PricePoint(timestamp=int(point["time"]), price=float(point["priceUsd"]))
                for point in data["data"]
            ]
        return normalize_price_points(points)

    async def search(self, query: str) -> List[SearchHit]:
        """
        Search assets by id, name or symbol.

        CoinCap Endpoint:
            GET /assets?search=..&limit=20
        """
        self.logger.info(f"Searching '{query}'")
        data = await self._get("/assets", {"search": query, "limit": SEARCH_RESULT_LIMIT})

        with self.parsing("/assets"):
            return [
                SearchHit(
                    id=coincap_canonical_id(item["id"]),
                    symbol=item["symbol"],
                    name=item["name"],
                    market_cap_rank=to_int(item.get("rank")),
                    thumb=None,
                )
                for item in data["data"][:SEARCH_RESULT_LIMIT]
            ]

    @staticmethod
    def _stamp(payload: Dict[str, Any]):
        timestamp = payload.get("timestamp")
        return to_utc_datetime(timestamp) if timestamp else current_utc_datetime()

    @staticmethod
    def _to_asset(item: Dict[str, Any], last_updated: Optional[Any] = None) -> Asset:
        return Asset(
            id=coincap_canonical_id(item["id"]),
            symbol=item["symbol"],
            name=item["name"],
            image=None,
            current_price=to_float(item.get("priceUsd")),
            market_cap=to_float(item.get("marketCapUsd")),
            market_cap_rank=to_int(item.get("rank")),
            price_change_24h=None,
            price_change_percentage_24h=to_float(item.get("changePercent24Hr")),
            total_volume=to_float(item.get("volumeUsd24Hr")),
            high_24h=None,
            low_24h=None,
            ath=None,
            ath_date=None,
            atl=None,
            atl_date=None,
            circulating_supply=to_float(item.get("supply")),
            total_supply=None,
            max_supply=to_float(item.get("maxSupply")),
            last_updated=last_updated,
        )
