"""
Market inputs to the scoring model.

``AssetMetrics`` is one asset's market data at one instant. ``ExternalSignals``
is optional enrichment. Every optional field maps to a neutral default inside
the factor functions; absence never raises.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from crypto_detector.taxonomy.classification import Classification


class AssetMetrics(BaseModel):
    """Market snapshot for a single tradable asset.

    Attributes:
        asset_id: Stable identifier (e.g. ``"bitcoin"``).
        symbol: Ticker symbol, upper-cased on construction.
        name: Display name.
        price: Current price in quote currency. Must be > 0.
        market_cap: Market capitalisation; ``None`` when unknown.
        volume_24h: Traded volume over the last 24 hours.
        price_change_24h: Percent change over 24 hours.
        price_change_7d: Percent change over 7 days.
        ath: All-time-high price.
        atl: All-time-low price.
        ath_date: When the ATH was set.
        atl_date: When the ATL was set.
    """

    model_config = ConfigDict(frozen=True)

    asset_id: str
    symbol: str
    name: str = ""
    price: float
    market_cap: Optional[float] = None
    volume_24h: Optional[float] = None
    price_change_24h: Optional[float] = None
    price_change_7d: Optional[float] = None
    ath: Optional[float] = None
    atl: Optional[float] = None
    ath_date: Optional[datetime] = None
    atl_date: Optional[datetime] = None

    @field_validator("symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("price")
    @classmethod
    def positive_price(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"price must be > 0, got {v}.")
        return v


class ExternalSignals(BaseModel):
    """Optional news / social / search / sentiment enrichment for one asset."""

    model_config = ConfigDict(frozen=True)

    news_count: int = 0
    news_sentiment: Optional[float] = None
    reddit_posts: int = 0
    reddit_sentiment: Optional[float] = None
    search_trend_growth: Optional[float] = None
    search_trend: Optional[str] = None
    fear_greed_index: Optional[float] = None

    @field_validator("news_sentiment", "reddit_sentiment")
    @classmethod
    def clamp_sentiment(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return None
        return max(-1.0, min(1.0, v))

    @field_validator("fear_greed_index")
    @classmethod
    def clamp_fear_greed(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return None
        return max(0.0, min(100.0, v))


class PriceQuote(BaseModel):
    """Current price for one asset, as returned by a price-lookup collaborator."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    current_price: float


class ClosedPosition(BaseModel):
    """A realised prediction outcome fed into online calibration.

    Attributes:
        asset_id: Asset identifier.
        classification: Class assigned at prediction time.
        boost_power: BoostPower at prediction time.
        predicted_change: Predicted percent change.
        actual_change: Realised percent change (PnL for closed trades).
        closed_at: When the outcome was realised; replay order.
    """

    model_config = ConfigDict(frozen=True)

    asset_id: str
    classification: Classification
    boost_power: float
    predicted_change: float
    actual_change: float
    closed_at: datetime
