"""
Full counterfactual analysis of a completed cycle.

Combines duration and trading scenarios and distils an ``OptimizationFeed``:
the horizon with the best simulated success rate and the trading
configuration with the best composite score. Results are computed on demand
and never persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from crypto_detector.cycles.errors import InvalidCycleStateError
from crypto_detector.models.cycle import Cycle, PriceObservation
from crypto_detector.models.trading import TradingParams
from crypto_detector.scenarios.duration import (
    HIGH_QUALITY_MIN_OBSERVATIONS,
    DurationScenario,
    simulate_all_durations,
)
from crypto_detector.scenarios.trading import TradingComparison, simulate_all_trading_configs
from crypto_detector.taxonomy.classification import CycleStatus, ModelMode, TemporalModel
from crypto_detector.utils.time_utils import MS_PER_HOUR, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataQuality:
    has_observations: bool
    observation_count: int
    interpolated_pct: float
    level: str


@dataclass(frozen=True)
class OptimizationFeed:
    best_duration_ms: Optional[int]
    best_duration_hours: Optional[float]
    best_duration_accuracy: Optional[float]
    best_trading_config: Optional[str]
    best_trading_score: Optional[float]
    recommended_params: Optional[TradingParams]


@dataclass(frozen=True)
class ScenarioAnalysis:
    """Everything ``simulate_scenarios`` produces for one cycle.

    ``temporal_model_mismatch`` is True when the cycle's stored predictions were
    scaled with a different temporal model than the one used for the
    counterfactual re-derivation (Φ), so simulated and real accuracy are not
    directly comparable.
    """

    cycle_id: str
    actual_duration_ms: int
    mode: ModelMode
    data_quality: DataQuality
    duration_scenarios: list[DurationScenario]
    trading: TradingComparison
    optimization_feed: OptimizationFeed
    temporal_model_mismatch: bool


def _data_quality(cycle: Cycle, observations: Sequence[PriceObservation]) -> DataQuality:
    count = len(observations)
    hours = max(1.0, cycle.duration_ms / MS_PER_HOUR)
    return DataQuality(
        has_observations=count > 0,
        observation_count=count,
        interpolated_pct=round(100 - min(100.0, count / hours * 100), 1),
        level="high" if count >= HIGH_QUALITY_MIN_OBSERVATIONS else "estimated",
    )


def generate_scenario_analysis(
    cycle: Cycle,
    active_config: Optional[TradingParams] = None,
    observations: Sequence[PriceObservation] = (),
) -> ScenarioAnalysis:
    """Run every duration and trading scenario for a completed cycle.

    Raises:
        InvalidCycleStateError: The cycle has not completed yet.
    """
    if not cycle.is_completed:
        raise InvalidCycleStateError(cycle.id, cycle.status.value, CycleStatus.COMPLETED.value)

    started = utcnow()
    durations = simulate_all_durations(cycle, observations)
    trading = simulate_all_trading_configs(cycle, active_config, observations)

    simulated = [d for d in durations if d.status == "simulated" and d.metrics is not None]
    best_duration = max(simulated, key=lambda d: d.metrics.success_rate, default=None)
    best_trading = trading.scenarios.get(trading.best_config) if trading.best_config else None

    feed = OptimizationFeed(
        best_duration_ms=best_duration.duration_ms if best_duration else None,
        best_duration_hours=best_duration.duration_hours if best_duration else None,
        best_duration_accuracy=best_duration.metrics.success_rate if best_duration else None,
        best_trading_config=trading.best_config,
        best_trading_score=best_trading.summary.composite_score if best_trading else None,
        recommended_params=best_trading.config if best_trading else None,
    )

    mismatch = any(e.temporal_model is not TemporalModel.NON_LINEAR for e in cycle.snapshot)
    if mismatch:
        logger.warning(
            "Cycle %s predictions were scaled with a different temporal model; "
            "duration scenarios re-derive with %s",
            cycle.id, TemporalModel.NON_LINEAR.value,
        )

    elapsed_ms = (utcnow() - started).total_seconds() * 1000
    logger.info(
        "Scenario analysis for %s: %d durations, best trading config=%s (%.0fms)",
        cycle.id, len(durations), trading.best_config, elapsed_ms,
    )
    return ScenarioAnalysis(
        cycle_id=cycle.id,
        actual_duration_ms=cycle.duration_ms,
        mode=cycle.mode,
        data_quality=_data_quality(cycle, observations),
        duration_scenarios=durations,
        trading=trading,
        optimization_feed=feed,
        temporal_model_mismatch=mismatch,
    )


def simulate_scenarios(
    completed_cycle: Cycle,
    active_trading_config: Optional[TradingParams] = None,
    observations: Sequence[PriceObservation] = (),
) -> ScenarioAnalysis:
    """Public entry point; see ``generate_scenario_analysis``."""
    return generate_scenario_analysis(completed_cycle, active_trading_config, observations)
