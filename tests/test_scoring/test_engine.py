"""
Tests for crypto_detector/scoring/engine.py.

What we test
------------
score_asset():
  - A deep-value, high-attention, mid-cap asset classifies INVERTIBLE with HIGH confidence.
  - A large-cap asset near its ATH with no signals is RUIDOSO and predicts 0.
  - BoostPower is always within [0, 1]; non-RUIDOSO predictions within [0.5, 2·target].
  - Missing optional inputs never raise.

score_assets():
  - Pairs each asset with its score, looking up signals by asset id.
  - Applies a stored calibration correction to classes that have one.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from crypto_detector.models.asset import AssetMetrics, ClosedPosition, ExternalSignals
from crypto_detector.scoring.calibration import rebuild_calibration
from crypto_detector.scoring.engine import compute_factor_scores, score_asset, score_assets
from crypto_detector.taxonomy.classification import Classification, ConfidenceTier

STRONG_SIGNALS = ExternalSignals(
    news_count=6,
    news_sentiment=0.6,
    reddit_posts=12,
    reddit_sentiment=0.5,
    search_trend_growth=60.0,
    search_trend="rising",
    fear_greed_index=20.0,
)


@pytest.fixture
def strong_asset(make_asset) -> AssetMetrics:
    return make_asset(
        asset_id="deepvalue",
        symbol="dv",
        price=1.05,
        atl=1.0,
        ath=10.0,
        market_cap=500_000_000.0,
        volume_24h=150_000_000.0,
        price_change_24h=4.0,
        price_change_7d=-20.0,
    )


@pytest.fixture
def weak_asset(make_asset) -> AssetMetrics:
    return make_asset(
        asset_id="megacap",
        symbol="mc",
        price=100.0,
        atl=1.0,
        ath=105.0,
        market_cap=1e12,
        volume_24h=1e8,
        price_change_24h=0.5,
        price_change_7d=1.0,
    )


class TestComputeFactorScores:
    def test_groups_and_names(self, strong_asset, normal_config):
        potential, resistance = compute_factor_scores(strong_asset, STRONG_SIGNALS, normal_config)
        assert set(potential) == {
            "atl_proximity", "volume_surge", "social_momentum", "news_sentiment", "rebound_recency",
        }
        assert set(resistance) == {
            "leverage_ratio", "market_cap_size", "volatility_noise", "fear_overlap",
        }

    def test_strong_asset_factor_values(self, strong_asset, normal_config):
        potential, resistance = compute_factor_scores(strong_asset, STRONG_SIGNALS, normal_config)
        assert potential["atl_proximity"] == 1.0
        assert potential["volume_surge"] == 1.0
        assert potential["social_momentum"] == 1.0
        assert potential["rebound_recency"] == pytest.approx(0.85)
        assert resistance["fear_overlap"] == pytest.approx(0.1)


class TestScoreAsset:
    def test_strong_asset_is_invertible(self, strong_asset, normal_config):
        result = score_asset(strong_asset, normal_config, STRONG_SIGNALS)
        assert result.classification is Classification.INVERTIBLE
        assert result.confidence is ConfidenceTier.HIGH
        assert result.boost_power == pytest.approx(0.8735, abs=1e-4)
        assert 0.5 < result.predicted_change <= 30.0

    def test_weak_asset_is_ruidoso(self, weak_asset, normal_config):
        result = score_asset(weak_asset, normal_config)
        assert result.classification is Classification.RUIDOSO
        assert result.predicted_change == 0.0
        assert result.boost_power < normal_config.classification.apalancado_min_boost

    def test_sparse_asset_does_not_raise(self, normal_config):
        sparse = AssetMetrics(asset_id="x", symbol="x", price=0.01)
        result = score_asset(sparse, normal_config)
        assert 0.0 <= result.boost_power <= 1.0

    @pytest.mark.parametrize("mode_fixture", ["normal_config", "speculative_config"])
    @pytest.mark.parametrize("price", [1.01, 5.0, 9.9])
    @pytest.mark.parametrize("change_24h", [-35.0, -1.0, 0.0, 6.0, 40.0])
    def test_output_bounds(self, request, make_asset, mode_fixture, price, change_24h):
        config = request.getfixturevalue(mode_fixture)
        asset = make_asset(price=price, atl=1.0, ath=10.0, price_change_24h=change_24h)
        result = score_asset(asset, config, STRONG_SIGNALS)
        assert 0.0 <= result.boost_power <= 1.0
        if result.classification is Classification.RUIDOSO:
            assert result.predicted_change == 0.0
        else:
            target = config.prediction.target_for(result.classification)
            assert 0.5 <= result.predicted_change <= 2 * target


class TestScoreAssets:
    def test_signals_looked_up_by_id(self, strong_asset, weak_asset, normal_config):
        scored = score_assets(
            [strong_asset, weak_asset], normal_config, {"deepvalue": STRONG_SIGNALS}
        )
        assert [s.metrics.asset_id for s in scored] == ["deepvalue", "megacap"]
        assert scored[0].score.classification is Classification.INVERTIBLE
        assert scored[1].score.classification is Classification.RUIDOSO

    def test_calibration_applied(self, strong_asset, normal_config):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        # Model consistently predicted 10% where only 2% materialised.
        state = rebuild_calibration(
            ClosedPosition(
                asset_id=f"a{i}",
                classification=Classification.INVERTIBLE,
                boost_power=0.87,
                predicted_change=10.0,
                actual_change=2.0,
                closed_at=start + timedelta(hours=i),
            )
            for i in range(20)
        )
        plain = score_assets([strong_asset], normal_config, {"deepvalue": STRONG_SIGNALS})
        calibrated = score_assets(
            [strong_asset], normal_config, {"deepvalue": STRONG_SIGNALS}, state
        )
        assert plain[0].score.predicted_change > 0.5
        assert calibrated[0].score.predicted_change == 0.5

    def test_calibration_without_samples_is_noop(self, strong_asset, normal_config):
        state = rebuild_calibration([])
        plain = score_assets([strong_asset], normal_config, {"deepvalue": STRONG_SIGNALS})
        calibrated = score_assets(
            [strong_asset], normal_config, {"deepvalue": STRONG_SIGNALS}, state
        )
        assert calibrated[0].score == plain[0].score
