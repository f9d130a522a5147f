"""
Factor functions: raw market and signal values mapped to scores in [0, 1].

Every factor uses fixed, ordered bands instead of a continuous curve so that a
score can be traced back to the exact rule that produced it. Missing inputs map
to a neutral default and no function raises for any documented input.

Potential factors (higher = more upside)
----------------------------------------
atl_proximity   : position between ATL and ATH. Closer to ATL scores higher.
volume_surge    : 24h volume / market cap.
social_momentum : news, Reddit and search-trend activity, additive from 0.3.
news_sentiment  : stepped average news sentiment.
rebound_recency : "dropped over 7d, bouncing over 24h" patterns.

Resistance factors (higher = harder to move)
--------------------------------------------
leverage_ratio   : price / ATL multiple.
market_cap_size  : absolute market cap.
volatility_noise : |24h change|.
fear_overlap     : Fear & Greed index (greed = crowded trade).
"""

from __future__ import annotations

from typing import Optional

from crypto_detector.models.algorithm import ThresholdsConfig
from crypto_detector.models.asset import ExternalSignals

NEUTRAL_ATL_PROXIMITY = 0.3
NEUTRAL_SOCIAL = 0.3
NEUTRAL_NEWS = 0.3
NEUTRAL_REBOUND = 0.30
NEUTRAL_LEVERAGE = 0.5
NEUTRAL_MARKET_CAP = 0.5
NEUTRAL_FEAR = 0.3
MIN_VOLUME_SURGE = 0.2

# (exclusive upper bound on position %, score); above all → 0.15
_ATL_POSITION_BANDS: tuple[tuple[float, float], ...] = (
    (15.0, 1.0),
    (30.0, 0.85),
    (50.0, 0.65),
    (70.0, 0.35),
)
_ATL_POSITION_TOP = 0.15

# (inclusive lower bound on volume/cap, score)
_VOLUME_SURGE_BANDS: tuple[tuple[float, float], ...] = (
    (0.20, 1.0),
    (0.10, 0.8),
    (0.05, 0.6),
    (0.02, 0.4),
)

# (inclusive lower bound on sentiment, score); below all → 0.10
_NEWS_SENTIMENT_BANDS: tuple[tuple[float, float], ...] = (
    (0.5, 0.9),
    (0.2, 0.7),
    (0.0, 0.55),
    (-0.2, 0.40),
    (-0.5, 0.25),
)
_NEWS_SENTIMENT_FLOOR = 0.10

# (inclusive lower bound on price/ATL, score)
_LEVERAGE_BANDS: tuple[tuple[float, float], ...] = (
    (50.0, 0.9),
    (20.0, 0.7),
    (5.0, 0.5),
    (2.0, 0.3),
)

_MARKET_CAP_BANDS: tuple[tuple[float, float], ...] = (
    (10_000_000_000.0, 0.9),
    (1_000_000_000.0, 0.7),
    (100_000_000.0, 0.5),
    (10_000_000.0, 0.3),
)

_VOLATILITY_BANDS: tuple[tuple[float, float], ...] = (
    (20.0, 0.9),
    (10.0, 0.7),
    (5.0, 0.5),
    (2.0, 0.3),
)

_FEAR_GREED_BANDS: tuple[tuple[float, float], ...] = (
    (75.0, 0.9),
    (55.0, 0.6),
    (45.0, 0.3),
    (25.0, 0.2),
)

_BAND_FLOOR = 0.1


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _band_at_least(value: float, bands: tuple[tuple[float, float], ...], floor: float) -> float:
    """First band whose lower bound ``value`` reaches; ``floor`` if none."""
    for bound, score in bands:
        if value >= bound:
            return score
    return floor


# ── Potential factors ─────────────────────────────────────────────────────────


def atl_proximity(price: float, atl: Optional[float], ath: Optional[float]) -> float:
    """Score price position inside the [ATL, ATH] range.

    Returns 1.0 at (or below) the ATL and 0.15 at the ATH. A degenerate range
    (missing bounds, ``ath <= atl``, or ``price <= 0``) returns 0.3.
    """
    if atl is None or ath is None or ath <= atl or price <= 0:
        return NEUTRAL_ATL_PROXIMITY

    position_pct = (price - atl) / (ath - atl) * 100
    for upper, score in _ATL_POSITION_BANDS:
        if position_pct < upper:
            return score
    return _ATL_POSITION_TOP


def volume_surge(volume_24h: Optional[float], market_cap: Optional[float]) -> float:
    """Score turnover: 24h volume as a fraction of market cap."""
    if not volume_24h or not market_cap or volume_24h <= 0 or market_cap <= 0:
        return MIN_VOLUME_SURGE
    ratio = volume_24h / market_cap
    return _band_at_least(ratio, _VOLUME_SURGE_BANDS, MIN_VOLUME_SURGE)


def social_momentum(
    signals: Optional[ExternalSignals],
    thresholds: ThresholdsConfig,
) -> float:
    """Additive social score starting from 0.3, clamped to [0, 1].

    Components:
      - News count tiers (+0.20 / +0.10) plus ``news_sentiment * 0.20``.
      - Reddit post tiers (+0.15 / +0.08) plus ``reddit_sentiment * 0.10``.
      - Search-trend growth tiers (+0.15 / +0.08 / -0.05) plus ±0.05 for a
        rising / falling trend label.
    """
    if signals is None:
        return NEUTRAL_SOCIAL

    score = NEUTRAL_SOCIAL

    if signals.news_count >= thresholds.news_count_high:
        score += 0.20
    elif signals.news_count >= thresholds.news_count_low:
        score += 0.10
    if signals.news_count > 0 and signals.news_sentiment is not None:
        score += signals.news_sentiment * 0.20

    if signals.reddit_posts >= thresholds.reddit_posts_high:
        score += 0.15
    elif signals.reddit_posts >= thresholds.reddit_posts_low:
        score += 0.08
    if signals.reddit_posts > 0 and signals.reddit_sentiment is not None:
        score += signals.reddit_sentiment * 0.10

    growth = signals.search_trend_growth
    if growth is not None:
        if growth >= thresholds.search_growth_high:
            score += 0.15
        elif growth >= thresholds.search_growth_low:
            score += 0.08
        elif growth <= thresholds.search_growth_negative:
            score -= 0.05

    trend = (signals.search_trend or "").strip().lower()
    if trend == "rising":
        score += 0.05
    elif trend == "falling":
        score -= 0.05

    return _clamp(score, 0.0, 1.0)


def news_sentiment(signals: Optional[ExternalSignals]) -> float:
    """Stepped mapping of average news sentiment; 0.3 when there is no news."""
    if signals is None or signals.news_count <= 0 or signals.news_sentiment is None:
        return NEUTRAL_NEWS
    return _band_at_least(signals.news_sentiment, _NEWS_SENTIMENT_BANDS, _NEWS_SENTIMENT_FLOOR)


def rebound_recency(
    change_24h: Optional[float],
    change_7d: Optional[float],
    thresholds: ThresholdsConfig,
) -> float:
    """Detect a weekly drop followed by a daily bounce.

    Rules, first match wins:
      1. Deep 7d drop and strong 24h bounce  → 0.85
      2. Clear 7d drop and any 24h gain      → 0.70
      3. Any 7d loss and a solid 24h bounce  → 0.55
      4. Moderate 7d dip, 24h stabilising    → 0.40
    Otherwise 0.30.
    """
    if change_24h is None or change_7d is None:
        return NEUTRAL_REBOUND

    t = thresholds
    if change_7d <= t.rebound_deep_drop_7d and change_24h >= t.rebound_strong_bounce_24h:
        return 0.85
    if change_7d <= t.rebound_drop_7d and change_24h > 0:
        return 0.70
    if change_7d < 0 and change_24h >= t.rebound_bounce_24h:
        return 0.55
    if change_7d <= t.rebound_dip_7d and change_24h >= t.rebound_stabilise_24h:
        return 0.40
    return NEUTRAL_REBOUND


# ── Resistance factors ────────────────────────────────────────────────────────


def leverage_ratio(price: float, atl: Optional[float]) -> float:
    """How many multiples above its ATL the asset trades."""
    if atl is None or atl <= 0 or price <= 0:
        return NEUTRAL_LEVERAGE
    return _band_at_least(price / atl, _LEVERAGE_BANDS, _BAND_FLOOR)


def market_cap_size(market_cap: Optional[float]) -> float:
    """Larger caps need more capital to move."""
    if market_cap is None or market_cap <= 0:
        return NEUTRAL_MARKET_CAP
    return _band_at_least(market_cap, _MARKET_CAP_BANDS, _BAND_FLOOR)


def volatility_noise(change_24h: Optional[float]) -> float:
    """Absolute 24h move; a missing change reads as a quiet market."""
    return _band_at_least(abs(change_24h or 0.0), _VOLATILITY_BANDS, _BAND_FLOOR)


def fear_overlap(fear_greed_index: Optional[float]) -> float:
    """Greedy markets leave less room for a contrarian move."""
    if fear_greed_index is None:
        return NEUTRAL_FEAR
    return _band_at_least(fear_greed_index, _FEAR_GREED_BANDS, _BAND_FLOOR)
