"""
Tests for crypto_detector/scoring/factors.py.

What we test
------------
Potential factors:
  - atl_proximity bands by position in the [ATL, ATH] range; degenerate ranges → 0.3.
  - volume_surge bands by volume / market cap; missing inputs → 0.2 floor.
  - social_momentum is additive from 0.3 and clamped to [0, 1].
  - news_sentiment stepped bands; no news → 0.3.
  - rebound_recency rule order (first match wins).

Resistance factors:
  - leverage_ratio, market_cap_size, volatility_noise, fear_overlap bands and
    their neutral values for missing inputs.

All factors stay within [0, 1] for every input.
"""

from __future__ import annotations

import pytest

from crypto_detector.models.algorithm import ThresholdsConfig
from crypto_detector.models.asset import ExternalSignals
from crypto_detector.scoring import factors

TH = ThresholdsConfig()


# ── atl_proximity ─────────────────────────────────────────────────────────────

class TestAtlProximity:
    @pytest.mark.parametrize(
        "price, expected",
        [
            (10.0, 1.0),     # at ATL
            (24.0, 1.0),     # 14% of range
            (39.0, 0.85),    # 29%
            (40.0, 0.65),    # 30% boundary falls to next band
            (69.0, 0.35),    # 59%
            (90.0, 0.15),    # 80%
            (110.0, 0.15),   # at ATH
        ],
    )
    def test_position_bands(self, price, expected):
        assert factors.atl_proximity(price, atl=10.0, ath=110.0) == pytest.approx(expected)

    def test_below_atl_scores_top(self):
        assert factors.atl_proximity(5.0, atl=10.0, ath=110.0) == 1.0

    @pytest.mark.parametrize(
        "price, atl, ath",
        [
            (50.0, None, 100.0),
            (50.0, 10.0, None),
            (50.0, 100.0, 100.0),
            (50.0, 120.0, 100.0),
            (0.0, 10.0, 100.0),
        ],
    )
    def test_degenerate_range_is_neutral(self, price, atl, ath):
        assert factors.atl_proximity(price, atl, ath) == pytest.approx(0.3)


# ── volume_surge ──────────────────────────────────────────────────────────────

class TestVolumeSurge:
    @pytest.mark.parametrize(
        "volume, cap, expected",
        [
            (30.0, 100.0, 1.0),
            (10.0, 100.0, 0.8),
            (5.0, 100.0, 0.6),
            (2.0, 100.0, 0.4),
            (1.0, 100.0, 0.2),
        ],
    )
    def test_ratio_bands(self, volume, cap, expected):
        assert factors.volume_surge(volume, cap) == pytest.approx(expected)

    @pytest.mark.parametrize("volume, cap", [(None, 100.0), (10.0, None), (0.0, 100.0), (10.0, 0.0)])
    def test_missing_inputs_floor(self, volume, cap):
        assert factors.volume_surge(volume, cap) == pytest.approx(0.2)


# ── social_momentum ───────────────────────────────────────────────────────────

class TestSocialMomentum:
    def test_no_signals_is_neutral(self):
        assert factors.social_momentum(None, TH) == pytest.approx(0.3)

    def test_empty_signals_is_baseline(self):
        assert factors.social_momentum(ExternalSignals(), TH) == pytest.approx(0.3)

    def test_news_tier_and_sentiment(self):
        signals = ExternalSignals(news_count=5, news_sentiment=0.5)
        assert factors.social_momentum(signals, TH) == pytest.approx(0.3 + 0.20 + 0.10)

    def test_low_news_tier(self):
        signals = ExternalSignals(news_count=2)
        assert factors.social_momentum(signals, TH) == pytest.approx(0.4)

    def test_reddit_tiers(self):
        high = ExternalSignals(reddit_posts=10)
        low = ExternalSignals(reddit_posts=3, reddit_sentiment=-1.0)
        assert factors.social_momentum(high, TH) == pytest.approx(0.45)
        assert factors.social_momentum(low, TH) == pytest.approx(0.3 + 0.08 - 0.10)

    def test_search_growth_and_trend(self):
        rising = ExternalSignals(search_trend_growth=60.0, search_trend="Rising")
        falling = ExternalSignals(search_trend_growth=-30.0, search_trend="falling")
        assert factors.social_momentum(rising, TH) == pytest.approx(0.3 + 0.15 + 0.05)
        assert factors.social_momentum(falling, TH) == pytest.approx(0.3 - 0.05 - 0.05)

    def test_clamped_to_one(self):
        signals = ExternalSignals(
            news_count=10,
            news_sentiment=1.0,
            reddit_posts=20,
            reddit_sentiment=1.0,
            search_trend_growth=100.0,
            search_trend="rising",
        )
        assert factors.social_momentum(signals, TH) == 1.0

    def test_clamped_to_zero(self):
        signals = ExternalSignals(
            news_count=1,
            news_sentiment=-1.0,
            reddit_posts=1,
            reddit_sentiment=-1.0,
            search_trend_growth=-50.0,
            search_trend="falling",
        )
        assert factors.social_momentum(signals, TH) == pytest.approx(0.0)


# ── news_sentiment ────────────────────────────────────────────────────────────

class TestNewsSentiment:
    @pytest.mark.parametrize(
        "sentiment, expected",
        [
            (0.8, 0.9),
            (0.3, 0.7),
            (0.0, 0.55),
            (-0.1, 0.40),
            (-0.4, 0.25),
            (-0.9, 0.10),
        ],
    )
    def test_bands(self, sentiment, expected):
        signals = ExternalSignals(news_count=3, news_sentiment=sentiment)
        assert factors.news_sentiment(signals) == pytest.approx(expected)

    def test_no_news_is_neutral(self):
        assert factors.news_sentiment(None) == pytest.approx(0.3)
        assert factors.news_sentiment(ExternalSignals(news_sentiment=0.9)) == pytest.approx(0.3)


# ── rebound_recency ───────────────────────────────────────────────────────────

class TestReboundRecency:
    @pytest.mark.parametrize(
        "change_24h, change_7d, expected",
        [
            (4.0, -20.0, 0.85),   # deep drop, strong bounce
            (1.0, -10.0, 0.70),   # clear drop, any gain
            (2.5, -3.0, 0.55),    # any loss, solid bounce
            (-0.5, -6.0, 0.40),   # moderate dip, stabilising
            (0.0, 5.0, 0.30),
            (-5.0, -20.0, 0.30),  # still falling
        ],
    )
    def test_rules(self, change_24h, change_7d, expected):
        assert factors.rebound_recency(change_24h, change_7d, TH) == pytest.approx(expected)

    @pytest.mark.parametrize("change_24h, change_7d", [(None, -10.0), (2.0, None)])
    def test_missing_changes_neutral(self, change_24h, change_7d):
        assert factors.rebound_recency(change_24h, change_7d, TH) == pytest.approx(0.30)


# ── Resistance factors ────────────────────────────────────────────────────────

class TestResistanceFactors:
    @pytest.mark.parametrize(
        "price, atl, expected",
        [(100.0, 1.0, 0.9), (25.0, 1.0, 0.7), (6.0, 1.0, 0.5), (3.0, 1.0, 0.3), (1.5, 1.0, 0.1)],
    )
    def test_leverage_ratio(self, price, atl, expected):
        assert factors.leverage_ratio(price, atl) == pytest.approx(expected)

    def test_leverage_ratio_neutral(self):
        assert factors.leverage_ratio(10.0, None) == pytest.approx(0.5)
        assert factors.leverage_ratio(10.0, 0.0) == pytest.approx(0.5)

    @pytest.mark.parametrize(
        "cap, expected",
        [(5e10, 0.9), (5e9, 0.7), (5e8, 0.5), (5e7, 0.3), (1e6, 0.1), (None, 0.5)],
    )
    def test_market_cap_size(self, cap, expected):
        assert factors.market_cap_size(cap) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "change, expected",
        [(-25.0, 0.9), (12.0, 0.7), (-6.0, 0.5), (3.0, 0.3), (0.5, 0.1), (None, 0.1)],
    )
    def test_volatility_noise(self, change, expected):
        assert factors.volatility_noise(change) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "index, expected",
        [(80.0, 0.9), (60.0, 0.6), (50.0, 0.3), (30.0, 0.2), (10.0, 0.1), (None, 0.3)],
    )
    def test_fear_overlap(self, index, expected):
        assert factors.fear_overlap(index) == pytest.approx(expected)


class TestFactorRanges:
    @pytest.mark.parametrize("price", [0.001, 1.0, 55.0, 1e6])
    @pytest.mark.parametrize("change", [-90.0, -3.0, 0.0, 4.0, 250.0])
    def test_all_factors_in_unit_interval(self, price, change):
        values = [
            factors.atl_proximity(price, 0.5, 100.0),
            factors.volume_surge(price * 10, 1e9),
            factors.rebound_recency(change, -change, TH),
            factors.leverage_ratio(price, 0.5),
            factors.market_cap_size(price * 1e6),
            factors.volatility_noise(change),
        ]
        assert all(0.0 <= v <= 1.0 for v in values)
