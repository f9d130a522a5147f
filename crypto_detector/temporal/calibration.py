"""
Offline calibration of Φ against completed-cycle history.

Results are bucketed by ``(classification, round(duration hours))``. For each
bucket the observed ``actual / base_prediction`` ratio is compared with the
modelled scale factor; when they differ by more than ``SUGGESTION_THRESHOLD``
the observed ratio is offered as a replacement value.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from crypto_detector.models.cycle import Cycle
from crypto_detector.taxonomy.classification import Classification, ModelMode
from crypto_detector.temporal.transfer import compute_temporal_scale
from crypto_detector.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

MIN_CYCLES = 3
SUGGESTION_THRESHOLD = 0.15


@dataclass(frozen=True)
class BucketCalibration:
    key: str
    classification: Classification
    duration_hours: int
    sample_count: int
    avg_prediction_error: float
    avg_actual_ratio: float
    current_model_factor: float
    suggested_adjustment: Optional[float]


@dataclass(frozen=True)
class TemporalCalibration:
    """Outcome of ``calibrate_from_history``.

    ``status`` is ``"insufficient_data"`` (fewer than MIN_CYCLES cycles,
    ``summary`` empty) or ``"calibrated"``.
    """

    status: str
    cycles_used: int
    min_cycles: int = MIN_CYCLES
    calibrated_at: Optional[datetime] = None
    summary: list[BucketCalibration] = field(default_factory=list)


@dataclass
class _Bucket:
    classification: Classification
    duration_hours: int
    mode: ModelMode
    errors: list[float] = field(default_factory=list)
    ratios: list[float] = field(default_factory=list)


def calibrate_from_history(cycles: Sequence[Cycle]) -> TemporalCalibration:
    """Compare Φ with realised ratios across completed cycles.

    Excluded results, RUIDOSO results and zero base predictions are skipped.
    A bucket's mode is that of the first cycle contributing to it.
    """
    if len(cycles) < MIN_CYCLES:
        return TemporalCalibration(status="insufficient_data", cycles_used=len(cycles))

    buckets: dict[str, _Bucket] = {}
    for cycle in cycles:
        duration_h = round(cycle.duration_hours)
        for result in cycle.included_results():
            if result.classification is Classification.RUIDOSO:
                continue
            base = result.base_prediction
            if base == 0:
                continue

            key = f"{result.classification.value}_{duration_h}h"
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = _Bucket(result.classification, duration_h, cycle.mode)

            factor = compute_temporal_scale(duration_h, result.classification, bucket.mode)
            bucket.errors.append(abs(base * factor - result.actual_change))
            bucket.ratios.append(result.actual_change / base)

    summary: list[BucketCalibration] = []
    for key, b in buckets.items():
        avg_error = sum(b.errors) / len(b.errors)
        avg_ratio = sum(b.ratios) / len(b.ratios)
        model_factor = compute_temporal_scale(b.duration_hours, b.classification, b.mode)
        suggested = (
            round(avg_ratio, 4)
            if abs(avg_ratio - model_factor) > SUGGESTION_THRESHOLD
            else None
        )
        summary.append(BucketCalibration(
            key=key,
            classification=b.classification,
            duration_hours=b.duration_hours,
            sample_count=len(b.errors),
            avg_prediction_error=round(avg_error, 2),
            avg_actual_ratio=round(avg_ratio, 3),
            current_model_factor=round(model_factor, 4),
            suggested_adjustment=suggested,
        ))

    flagged = sum(1 for s in summary if s.suggested_adjustment is not None)
    logger.info(
        "Temporal calibration over %d cycles: %d buckets, %d flagged",
        len(cycles), len(summary), flagged,
    )
    return TemporalCalibration(
        status="calibrated",
        cycles_used=len(cycles),
        calibrated_at=utcnow(),
        summary=summary,
    )
