"""
Canonical Asset Ids

Every asset is keyed by its CoinGecko-style id ("bitcoin", "ethereum", "ripple")
everywhere: result cache keys, durable rows and watchlist membership. Providers with
their own id scheme are translated at the adapter boundary, so a coin served by any
provider lands on the same row.

CoinCap:
    Mostly the same slugs. The differing ones are listed in COINCAP_IDS and
    translated both ways, because CoinCap detail and history requests take its own id.

CoinPaprika:
    Ids have the form "<symbol>-<slug>" ("btc-bitcoin"). The symbol prefix is
    stripped; the slugs that still differ are listed in COINPAPRIKA_IDS.
"""

from typing import Dict

# CoinCap id -> canonical id
COINCAP_IDS: Dict[str, str] = {
    "binance-coin": "binancecoin",
    "xrp": "ripple",
    "polygon": "matic-network",
    "avalanche": "avalanche-2",
    "multi-collateral-dai": "dai",
    "unus-sed-leo": "leo-token",
    "crypto-com-coin": "crypto-com-chain",
}

_COINCAP_NATIVE: Dict[str, str] = {canonical: native for native, canonical in COINCAP_IDS.items()}

# CoinPaprika id -> canonical id, for slugs that differ after the prefix is stripped
COINPAPRIKA_IDS: Dict[str, str] = {
    "bnb-binance-coin": "binancecoin",
    "xrp-xrp": "ripple",
    "matic-polygon": "matic-network",
    "avax-avalanche": "avalanche-2",
    "leo-leo-token": "leo-token",
    "cro-cryptocom-chain": "crypto-com-chain",
}


def coincap_canonical_id(coincap_id: str) -> str:
    """
    Example:
        >>> coincap_canonical_id("xrp"), coincap_canonical_id("bitcoin")
        ('ripple', 'bitcoin')
    """
    return COINCAP_IDS.get(coincap_id, coincap_id)


def coincap_native_id(asset_id: str) -> str:
    """Inverse of coincap_canonical_id, for request paths."""
    return _COINCAP_NATIVE.get(asset_id, asset_id)


def coinpaprika_canonical_id(paprika_id: str, symbol: str) -> str:
    """
    Example:
        >>> coinpaprika_canonical_id("btc-bitcoin", "BTC")
        'bitcoin'
        >>> coinpaprika_canonical_id("bnb-binance-coin", "BNB")
        'binancecoin'
    """
    if paprika_id in COINPAPRIKA_IDS:
        return COINPAPRIKA_IDS[paprika_id]
    prefix = f"{symbol.lower()}-"
    if paprika_id.startswith(prefix) and len(paprika_id) > len(prefix):
        return paprika_id[len(prefix):]
    return paprika_id
