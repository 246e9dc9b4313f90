"""
CoinPaprika REST API Client

Last-resort provider with generous rate limits. Only the ticker list is used; the
endpoint returns every ticker at once, so paging is applied locally.

API Documentation:
    https://api.coinpaprika.com/

Endpoints Used:
    GET /tickers - All tickers with USD quotes, ordered by rank

Ids:
    CoinPaprika ids have the form "btc-bitcoin". They are mapped to the canonical
    "bitcoin" style by providers.ids.coinpaprika_canonical_id.
"""

from typing import Any, Dict, List

from core.schemas import Asset
from providers.api_client import ProviderAPIClient, to_float, to_int
from providers.ids import coinpaprika_canonical_id


class CoinPaprikaAPIClient(ProviderAPIClient):
    """Async client for the CoinPaprika v1 API."""

    name = "coinpaprika"

    async def get_tickers(self, page: int = 1, limit: int = 100) -> List[Asset]:
        """
        Fetch tickers and return the requested page.

        CoinPaprika Endpoint:
            GET /tickers?quotes=USD

        Response Format:
            [
              {
                "id": "btc-bitcoin", "name": "Bitcoin", "symbol": "BTC", "rank": 1,
                "circulating_supply": 19600000, "total_supply": 19600000,
                "max_supply": 21000000, "last_updated": "2024-01-01T00:00:00Z",
                "quotes": {"USD": {"price": 67000.1, "volume_24h": 2.1e10,
                                   "market_cap": 1.3e12, "percent_change_24h": 1.2,
                                   "ath_price": 73000.0, "ath_date": "2024-03-14T07:10:36Z"}}
              }
            ]
        """
        self.logger.info(f"Fetching tickers page {page} (limit={limit})")
        data = await self._get("/tickers", {"quotes": "USD"})

        start = (page - 1) * limit
        with self.parsing("/tickers"):
            return [self._to_asset(ticker) for ticker in data[start:start + limit]]

    @staticmethod
    def _to_asset(ticker: Dict[str, Any]) -> Asset:
        usd = ticker["quotes"]["USD"]
        return Asset(
            id=coinpaprika_canonical_id(ticker["id"], ticker["symbol"]),
            symbol=ticker["symbol"],
            name=ticker["name"],
            image=None,
            current_price=to_float(usd.get("price")),
            market_cap=to_float(usd.get("market_cap")),
            market_cap_rank=to_int(ticker.get("rank")),
            price_change_24h=None,
            price_change_percentage_24h=to_float(usd.get("percent_change_24h")),
            total_volume=to_float(usd.get("volume_24h")),
            high_24h=None,
            low_24h=None,
            ath=to_float(usd.get("ath_price")),
            ath_date=usd.get("ath_date"),
            atl=None,
            atl_date=None,
            circulating_supply=to_float(ticker.get("circulating_supply")),
            total_supply=to_float(ticker.get("total_supply")),
            max_supply=to_float(ticker.get("max_supply")),
            last_updated=ticker.get("last_updated"),
        )
