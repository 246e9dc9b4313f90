"""
Normalized Data Schemas

This module defines Pydantic models for all market data types.
These schemas provide a unified, provider-agnostic data format.

Key Principle:
    Regardless of which provider the data comes from (CoinGecko, CoinCap,
    CoinPaprika), it gets normalized into these standardized schemas. The
    dashboard and the durable cache only ever see these shapes.

Models:
    - Asset: Canonical coin record with nullable market fields
    - AssetDetail: Asset plus descriptive fields (primary provider only)
    - PricePoint: One point of a price chart (epoch-millis timestamp)
    - SearchHit: Lightweight search match
    - ProviderHealth: Availability snapshot of one provider
    - Watchlist / WatchlistDetail: Named list of canonical asset ids
    - PriceAlert: One-shot "price above/below target" notification
    - WatchlistCreate, WatchlistCoinAdd, AlertCreate: Request bodies

Nullability:
    Providers disagree on coverage. A field a provider does not supply is None,
    never 0. Consumers must treat None as "unknown".
"""

from datetime import date, datetime
from typing import Iterable, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


SEARCH_RESULT_LIMIT = 20
"""Maximum number of search hits returned by any provider or the durable cache."""


# ============================================
# Asset Schemas
# ============================================

class Asset(BaseModel):
    """
    Canonical coin record.

    Attributes:
        id: Provider-neutral identifier (e.g. "bitcoin"); join key for caching
        symbol: Ticker symbol, uppercased on validation
        name: Display name
        image: Logo URL (None when the provider has no images)
        current_price .. max_supply: Nullable market fields in USD
        last_updated: When the provider last refreshed this record

    Example:
        >>> Asset(id="bitcoin", symbol="btc", name="Bitcoin").symbol
        'BTC'
    """

    id: str = Field(..., description="Provider-neutral asset identifier", examples=["bitcoin"])
    symbol: str = Field(..., description="Ticker symbol in uppercase", examples=["BTC", "ETH"])
    name: str = Field(..., description="Display name", examples=["Bitcoin"])
    image: Optional[str] = Field(default=None, description="Logo URL")

    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    market_cap_rank: Optional[int] = None
    price_change_24h: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    total_volume: Optional[float] = None
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None
    ath: Optional[float] = None
    ath_date: Optional[datetime] = None
    atl: Optional[float] = None
    atl_date: Optional[datetime] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    last_updated: Optional[datetime] = None

    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.upper()


class AssetDetail(Asset):
    """
    Asset with descriptive fields.

    Only the primary provider populates these; other providers answer detail
    requests with a plain Asset.
    """

    description: Optional[str] = None
    homepage: Optional[str] = None
    genesis_date: Optional[date] = None
    sentiment_votes_up_percentage: Optional[float] = None
    sentiment_votes_down_percentage: Optional[float] = None

    def to_asset(self) -> Asset:
        """Project onto the canonical Asset fields (what the durable cache stores)."""
        return Asset(**self.model_dump(include=set(Asset.model_fields)))


# ============================================
# Price History
# ============================================

class PricePoint(BaseModel):
    """
    One point of a price chart.

    Attributes:
        timestamp: Epoch milliseconds
        price: Price in USD
        volume: 24h volume at that point, when the provider supplies it
    """

    timestamp: int = Field(..., ge=0, description="Epoch milliseconds")
    price: float = Field(..., description="Price in USD")
    volume: Optional[float] = Field(default=None, description="Volume in USD")


def normalize_price_points(points: Iterable[PricePoint]) -> List[PricePoint]:
    """
    Order points ascending by timestamp and collapse duplicates.

    A later point with the same timestamp replaces an earlier one.

    Example:
        >>> pts = [PricePoint(timestamp=2, price=1), PricePoint(timestamp=1, price=1),
        ...        PricePoint(timestamp=2, price=3)]
        >>> [(p.timestamp, p.price) for p in normalize_price_points(pts)]
        [(1, 1.0), (2, 3.0)]
    """
    by_timestamp = {}
    for point in points:
        by_timestamp[point.timestamp] = point
    return [by_timestamp[ts] for ts in sorted(by_timestamp)]


# ============================================
# Search
# ============================================

class SearchHit(BaseModel):
    """Lightweight provider-returned search match."""

    id: str
    symbol: str
    name: str
    market_cap_rank: Optional[int] = None
    thumb: Optional[str] = None

    @field_validator('symbol')
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.upper()


# ============================================
# Provider Health
# ============================================

class ProviderHealth(BaseModel):
    """
    Availability snapshot of one provider.

    Attributes:
        name: Provider identifier (lowercase, e.g. "coingecko")
        display_name: Human readable name (e.g. "CoinGecko")
        available: False while the provider is in cooldown
        last_success_at: Time of the last successful call (None if never)
        consecutive_errors: Errors since the last success or re-enable
    """

    name: str
    display_name: str
    available: bool = True
    last_success_at: Optional[datetime] = None
    consecutive_errors: int = Field(default=0, ge=0)


# ============================================
# Watchlists and Alerts
# ============================================

AlertCondition = Literal["above", "below"]


def _normalize_coin_id(v: str) -> str:
    v = v.strip().lower()
    if not v:
        raise ValueError("coin_id is required")
    return v


class Watchlist(BaseModel):
    """A named list of asset ids."""

    id: int
    name: str
    created_at: datetime


class WatchlistDetail(Watchlist):
    """Watchlist with its coins resolved to assets, most recently added first."""

    coins: List[Asset] = Field(default_factory=list)


class PriceAlert(BaseModel):
    """
    Price alert on one asset.

    An alert fires once: the first time the asset's price reaches the target in the
    given direction it is marked triggered and never evaluated again.

    Example:
        >>> alert = PriceAlert(id=1, coin_id="bitcoin", target_price=70000,
        ...                    condition="above", created_at=datetime.now())
        >>> alert.is_met(69000.0), alert.is_met(70000.0)
        (False, True)
    """

    id: int
    coin_id: str
    target_price: float = Field(..., gt=0)
    condition: AlertCondition
    triggered: bool = False
    triggered_at: Optional[datetime] = None
    created_at: datetime

    def is_met(self, price: Optional[float]) -> bool:
        """Unknown or zero prices never trigger."""
        if not price:
            return False
        if self.condition == "above":
            return price >= self.target_price
        return price <= self.target_price


class WatchlistCreate(BaseModel):
    name: str = Field(..., max_length=100, examples=["Majors"])

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class WatchlistCoinAdd(BaseModel):
    coin_id: str = Field(..., max_length=100, examples=["bitcoin"])

    @field_validator('coin_id')
    @classmethod
    def validate_coin_id(cls, v: str) -> str:
        return _normalize_coin_id(v)


class AlertCreate(BaseModel):
    coin_id: str = Field(..., max_length=100, examples=["bitcoin"])
    target_price: float = Field(..., gt=0, examples=[70000.0])
    condition: AlertCondition

    @field_validator('coin_id')
    @classmethod
    def validate_coin_id(cls, v: str) -> str:
        return _normalize_coin_id(v)
