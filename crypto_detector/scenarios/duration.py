"""
Duration scenarios: "what if this cycle had closed earlier?"

For each non-excluded result, the price at the alternative end time is
interpolated from the reconstructed path and the prediction is re-derived from
the unscaled base prediction with Φ. Correctness uses a fixed rule, simpler
than live validation:

    predicted == 0 → correct iff |actual| < 5
    otherwise      → same sign (zero counts as up) and |p − a| < 15

Targets longer than 1.05 × the real window have no data and are reported as
``beyond_actual`` with no metrics.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional

from crypto_detector.cycles.metrics import compute_cycle_metrics
from crypto_detector.models.cycle import Cycle, CycleMetrics, PriceObservation
from crypto_detector.scenarios.price_path import build_price_path, interpolate_price
from crypto_detector.taxonomy.classification import Classification
from crypto_detector.temporal.transfer import compute_temporal_scale
from crypto_detector.utils.time_utils import MS_PER_HOUR, add_ms, format_duration

BEYOND_ACTUAL_FACTOR = 1.05
ACTUAL_MATCH_MS = 10 * 60_000
NOISE_TOLERANCE = 5.0
MAGNITUDE_TOLERANCE = 15.0
STEP_HOURS = 6
HIGH_QUALITY_MIN_OBSERVATIONS = 2


@dataclass(frozen=True)
class SimulatedResult:
    asset_id: str
    symbol: str
    classification: Classification
    start_price: float
    sim_end_price: float
    actual_change: float
    predicted_change: float
    error: float
    correct: bool
    price_path: str


@dataclass(frozen=True)
class DurationScenario:
    duration_ms: int
    duration_hours: float
    status: str
    label: str = ""
    reason: str = ""
    data_quality: Optional[str] = None
    is_actual: bool = False
    results: list[SimulatedResult] = field(default_factory=list)
    metrics: Optional[CycleMetrics] = None


def judge_counterfactual(predicted: float, actual: float) -> bool:
    if predicted == 0:
        return abs(actual) < NOISE_TOLERANCE
    same_direction = (predicted >= 0 and actual >= 0) or (predicted < 0 and actual < 0)
    return same_direction and abs(predicted - actual) < MAGNITUDE_TOLERANCE


def build_scenario_metrics(results: Sequence[SimulatedResult]) -> CycleMetrics:
    """Aggregate simulated results the same way real completions are."""
    return compute_cycle_metrics(results)


def simulate_duration(
    cycle: Cycle,
    target_duration_ms: int,
    observations: Sequence[PriceObservation] = (),
) -> DurationScenario:
    """Replay ``cycle`` as if it had lasted ``target_duration_ms``."""
    hours = target_duration_ms / MS_PER_HOUR
    if target_duration_ms > cycle.duration_ms * BEYOND_ACTUAL_FACTOR:
        return DurationScenario(
            duration_ms=target_duration_ms,
            duration_hours=hours,
            status="beyond_actual",
            label=format_duration(target_duration_ms),
            reason="Longer than the real cycle; no price data available",
        )

    target_end = add_ms(cycle.start_time, target_duration_ms)
    simulated: list[SimulatedResult] = []
    for result in cycle.included_results():
        entry = cycle.entry_for(result.asset_id)
        if entry is None:
            continue
        path = build_price_path(cycle, result.asset_id, observations)
        start_price = entry.snapshot_price
        end_price = interpolate_price(path, target_end)
        if not end_price or start_price == 0:
            continue

        actual = (end_price - start_price) / start_price * 100
        scale = compute_temporal_scale(hours, result.classification, cycle.mode)
        predicted = entry.base_prediction * scale
        simulated.append(SimulatedResult(
            asset_id=result.asset_id,
            symbol=result.symbol,
            classification=result.classification,
            start_price=start_price,
            sim_end_price=round(end_price, 6),
            actual_change=round(actual, 2),
            predicted_change=round(predicted, 2),
            error=round(abs(predicted - actual), 2),
            correct=judge_counterfactual(predicted, actual),
            price_path="real_iterations" if len(path) > 2 else "interpolated",
        ))

    return DurationScenario(
        duration_ms=target_duration_ms,
        duration_hours=hours,
        status="simulated",
        label=format_duration(target_duration_ms),
        data_quality=(
            "high" if len(observations) >= HIGH_QUALITY_MIN_OBSERVATIONS else "estimated"
        ),
        is_actual=abs(target_duration_ms - cycle.duration_ms) < ACTUAL_MATCH_MS,
        results=simulated,
        metrics=build_scenario_metrics(simulated),
    )


def duration_windows(actual_duration_ms: int) -> list[float]:
    """6h steps up to the real duration (hours), always including it."""
    actual_h = actual_duration_ms / MS_PER_HOUR
    windows = {
        min(float(h), actual_h)
        for h in range(STEP_HOURS, math.ceil(actual_h) + 1, STEP_HOURS)
    }
    windows.add(actual_h)
    return sorted(windows)


def simulate_all_durations(
    cycle: Cycle,
    observations: Sequence[PriceObservation] = (),
) -> list[DurationScenario]:
    return [
        simulate_duration(cycle, int(round(h * MS_PER_HOUR)), observations)
        for h in duration_windows(cycle.duration_ms)
    ]
