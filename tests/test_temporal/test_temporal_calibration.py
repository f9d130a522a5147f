"""
Tests for crypto_detector/temporal/calibration.py.

What we test
------------
calibrate_from_history():
  - Fewer than MIN_CYCLES cycles → "insufficient_data" with an empty summary.
  - Buckets keyed "<CLASS>_<hours>h"; RUIDOSO and excluded results skipped.
  - No suggestion when the observed ratio is within 0.15 of Φ.
  - Suggests the observed ratio when it diverges.
"""

from __future__ import annotations

import pytest

from crypto_detector.taxonomy.classification import Classification
from crypto_detector.temporal.calibration import MIN_CYCLES, calibrate_from_history
from crypto_detector.temporal.transfer import compute_temporal_scale

TWELVE_HOURS_MS = 12 * 3_600_000


def _completed_cycles(manager, make_scored, config, alpha_price: float, count: int = 3):
    cycles = []
    for _ in range(count):
        cycle = manager.create_cycle(
            [
                make_scored("alpha", predicted_change=10.0),
                make_scored("noise", classification=Classification.RUIDOSO, boost_power=0.2),
            ],
            config,
            TWELVE_HOURS_MS,
        )
        cycles.append(manager.complete_cycle(cycle.id, {"alpha": alpha_price, "noise": 101.0}))
    return cycles


class TestCalibrateFromHistory:
    def test_insufficient_data(self, manager, make_scored, normal_config):
        cycles = _completed_cycles(manager, make_scored, normal_config, 110.0, count=MIN_CYCLES - 1)
        calibration = calibrate_from_history(cycles)
        assert calibration.status == "insufficient_data"
        assert calibration.cycles_used == MIN_CYCLES - 1
        assert calibration.summary == []

    def test_bucket_matches_model(self, manager, make_scored, normal_config):
        cycles = _completed_cycles(manager, make_scored, normal_config, 110.0)
        calibration = calibrate_from_history(cycles)

        assert calibration.status == "calibrated"
        assert calibration.calibrated_at is not None
        assert [b.key for b in calibration.summary] == ["INVERTIBLE_12h"]

        bucket = calibration.summary[0]
        phi = compute_temporal_scale(12, Classification.INVERTIBLE)
        assert bucket.sample_count == 3
        assert bucket.avg_actual_ratio == pytest.approx(1.0)
        assert bucket.current_model_factor == pytest.approx(round(phi, 4))
        assert bucket.avg_prediction_error == pytest.approx(round(abs(10 * phi - 10), 2))
        assert bucket.suggested_adjustment is None

    def test_divergence_suggests_observed_ratio(self, manager, make_scored, normal_config):
        cycles = _completed_cycles(manager, make_scored, normal_config, 120.0)
        bucket = calibrate_from_history(cycles).summary[0]
        assert bucket.avg_actual_ratio == pytest.approx(2.0)
        assert bucket.suggested_adjustment == pytest.approx(2.0)

    def test_excluded_results_skipped(self, manager, make_scored, normal_config):
        cycles = _completed_cycles(manager, make_scored, normal_config, 110.0)
        cycles = [manager.set_excluded_results(c.id, ["alpha"]) for c in cycles]
        calibration = calibrate_from_history(cycles)
        assert calibration.status == "calibrated"
        assert calibration.summary == []
