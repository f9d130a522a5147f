"""Fixtures for scenario tests: one completed 12h cycle with known price moves."""

from __future__ import annotations

import pytest

from crypto_detector.models.cycle import Cycle
from crypto_detector.taxonomy.classification import Classification
from crypto_detector.utils.time_utils import hours_to_ms

# asset id → (classification, base prediction, start price, end price)
MOVES = {
    "rally": (Classification.INVERTIBLE, 10.0, 100.0, 120.0),
    "slide": (Classification.APALANCADO, 6.0, 100.0, 90.0),
    "drift": (Classification.INVERTIBLE, 4.0, 100.0, 102.0),
    "noise": (Classification.RUIDOSO, 0.0, 100.0, 101.0),
}


@pytest.fixture
def completed_cycle(manager, make_scored, normal_config, clock) -> Cycle:
    snapshot = [
        make_scored(
            asset_id,
            price=start,
            classification=cls,
            predicted_change=base,
            boost_power=0.8 if cls is Classification.INVERTIBLE else 0.5,
        )
        for asset_id, (cls, base, start, _) in MOVES.items()
    ]
    cycle = manager.create_cycle(snapshot, normal_config, hours_to_ms(12))
    clock.advance(hours=12)
    return manager.complete_cycle(
        cycle.id, {asset_id: end for asset_id, (_, _, _, end) in MOVES.items()}
    )
