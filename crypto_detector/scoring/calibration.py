"""
Online prediction calibration.

Each realised outcome (closed position or completed-cycle result) updates
per-class exponential moving averages of:

  bias  = predicted − actual          (> 0 → model overestimates)
  scale = actual / predicted, clamped (< 1 → model overestimates)
  mae   = |predicted − actual|

INVERTIBLE and APALANCADO are tracked separately, and additionally per
BoostPower sub-range so that high-conviction signals calibrate independently
of marginal ones. RUIDOSO predicts 0 and is never calibrated.

Corrections are damped by ``confidence = min(1, samples / 20)`` so that a
handful of outcomes cannot swing predictions hard.

State is an immutable pydantic record; ``update_calibration`` returns a new
state. Persistence lives in ``crypto_detector.db.repositories.calibration_repo``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from crypto_detector.models.asset import ClosedPosition
from crypto_detector.models.cycle import Cycle
from crypto_detector.models.score import CalibrationCorrection
from crypto_detector.taxonomy.classification import Classification
from crypto_detector.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

CALIBRATION_KEY = "predict-calibration-v2"
EMA_ALPHA = 0.25
MIN_SAMPLES = 3
MAX_HISTORY = 60
CONFIDENCE_SATURATION = 20
SCALE_BOUNDS = (0.1, 5.0)

# (label, exclusive upper bound); last bucket catches the rest
_BOOST_RANGES: dict[Classification, tuple[tuple[str, float], ...]] = {
    Classification.INVERTIBLE: (
        ("0.65-0.75", 0.75),
        ("0.75-0.85", 0.85),
        ("0.85-1.00", float("inf")),
    ),
    Classification.APALANCADO: (
        ("0.40-0.55", 0.55),
        ("0.55-0.65", float("inf")),
    ),
}


# ── State ─────────────────────────────────────────────────────────────────────


class RangeCalibration(BaseModel):
    model_config = ConfigDict(frozen=True)

    n: int = 0
    bias_ema: float = 0.0
    scale_ema: float = 1.0


class CalibrationSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset_id: str
    predicted: float
    actual: float
    error: float
    scale: float
    boost_power: float
    closed_at: datetime


class ClassCalibration(BaseModel):
    model_config = ConfigDict(frozen=True)

    samples: int = 0
    bias_ema: float = 0.0
    scale_ema: float = 1.0
    mae_ema: float = 0.0
    history: list[CalibrationSample] = []
    by_boost_range: dict[str, RangeCalibration] = {}


class CalibrationState(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int = 2
    updated_at: Optional[datetime] = None
    invertible: ClassCalibration = ClassCalibration(
        by_boost_range={label: RangeCalibration() for label, _ in _BOOST_RANGES[Classification.INVERTIBLE]}
    )
    apalancado: ClassCalibration = ClassCalibration(
        by_boost_range={label: RangeCalibration() for label, _ in _BOOST_RANGES[Classification.APALANCADO]}
    )

    def for_class(self, classification: Classification) -> Optional[ClassCalibration]:
        if classification is Classification.RUIDOSO:
            return None
        return getattr(self, classification.value.lower())


def empty_calibration() -> CalibrationState:
    return CalibrationState()


def boost_range(boost_power: float, classification: Classification) -> Optional[str]:
    """Sub-range label for ``boost_power`` within its class, or ``None``."""
    for label, upper in _BOOST_RANGES.get(classification, ()):
        if boost_power < upper:
            return label
    return None


def _ema(previous: float, value: float, first: bool) -> float:
    return value if first else previous * (1 - EMA_ALPHA) + value * EMA_ALPHA


# ── Update ────────────────────────────────────────────────────────────────────


def update_calibration(state: CalibrationState, position: ClosedPosition) -> CalibrationState:
    """Fold one realised outcome into the calibration state.

    RUIDOSO outcomes and zero predictions leave the state unchanged.
    """
    entry = state.for_class(position.classification)
    if entry is None or position.predicted_change == 0:
        return state

    predicted = position.predicted_change
    actual = position.actual_change
    error = predicted - actual
    lo, hi = SCALE_BOUNDS
    scale = max(lo, min(hi, actual / predicted))
    first = entry.samples == 0

    sample = CalibrationSample(
        asset_id=position.asset_id,
        predicted=round(predicted, 2),
        actual=round(actual, 2),
        error=round(error, 2),
        scale=round(scale, 3),
        boost_power=round(position.boost_power, 3),
        closed_at=position.closed_at,
    )

    ranges = dict(entry.by_boost_range)
    label = boost_range(position.boost_power, position.classification)
    if label is not None and label in ranges:
        r = ranges[label]
        ranges[label] = RangeCalibration(
            n=r.n + 1,
            bias_ema=_ema(r.bias_ema, error, r.n == 0),
            scale_ema=_ema(r.scale_ema, scale, r.n == 0),
        )

    updated = entry.model_copy(update={
        "samples": entry.samples + 1,
        "bias_ema": _ema(entry.bias_ema, error, first),
        "scale_ema": _ema(entry.scale_ema, scale, first),
        "mae_ema": _ema(entry.mae_ema, abs(error), first),
        "history": [sample, *entry.history][:MAX_HISTORY],
        "by_boost_range": ranges,
    })
    return state.model_copy(update={
        position.classification.value.lower(): updated,
        "updated_at": utcnow(),
    })


def rebuild_calibration(positions: Iterable[ClosedPosition]) -> CalibrationState:
    """Replay outcomes oldest-first into a fresh state."""
    state = empty_calibration()
    ordered = sorted(
        (p for p in positions if p.classification.is_actionable),
        key=lambda p: p.closed_at,
    )
    for position in ordered:
        state = update_calibration(state, position)
    logger.info("Calibration rebuilt from %d outcomes", len(ordered))
    return state


def observations_from_cycle(cycle: Cycle) -> list[ClosedPosition]:
    """Convert a completed cycle's included results into calibration inputs.

    Corrections are applied to the canonical 12h prediction, so outcomes are
    brought back to that horizon: the unscaled base prediction is compared
    with the realised change divided by the cycle's temporal scale factor.
    """
    closed_at = cycle.completed_at or cycle.end_time
    positions: list[ClosedPosition] = []
    for r in cycle.included_results():
        if not r.classification.is_actionable:
            continue
        entry = cycle.entry_for(r.asset_id)
        scale = entry.temporal_scale_factor if entry is not None else 1.0
        if scale <= 0:
            continue
        positions.append(ClosedPosition(
            asset_id=r.asset_id,
            classification=r.classification,
            boost_power=r.boost_power,
            predicted_change=r.base_prediction,
            actual_change=r.actual_change / scale,
            closed_at=closed_at,
        ))
    return positions


# ── Corrections ───────────────────────────────────────────────────────────────


def get_correction_factors(
    state: CalibrationState,
    classification: Classification,
    boost_power: float,
) -> Optional[CalibrationCorrection]:
    """Damped correction for a class / BoostPower, or ``None`` below MIN_SAMPLES.

    The BoostPower sub-range correction is preferred once it holds at least
    MIN_SAMPLES observations; otherwise the class-wide EMA is used.
    """
    entry = state.for_class(classification)
    if entry is None or entry.samples < MIN_SAMPLES:
        return None

    label = boost_range(boost_power, classification)
    range_entry = entry.by_boost_range.get(label) if label else None
    use_range = range_entry is not None and range_entry.n >= MIN_SAMPLES
    bias = range_entry.bias_ema if use_range else entry.bias_ema
    scale = range_entry.scale_ema if use_range else entry.scale_ema

    confidence = min(1.0, entry.samples / CONFIDENCE_SATURATION)
    return CalibrationCorrection(
        bias_correction=round(bias * confidence, 3),
        scale_correction=round(1 + (scale - 1) * confidence, 4),
        confidence=round(confidence, 3),
        samples=entry.samples,
        source=f"range:{label}" if use_range else "global",
    )


# ── Report ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ClassCalibrationReport:
    samples: int
    has_enough: bool
    bias: float
    scale: float
    mae: float
    quality: str
    diagnosis: str
    recent_history: list[CalibrationSample] = field(default_factory=list)


@dataclass(frozen=True)
class CalibrationReport:
    version: int
    updated_at: Optional[datetime]
    classes: dict[str, ClassCalibrationReport]


def _diagnose(entry: ClassCalibration) -> str:
    if entry.samples < MIN_SAMPLES:
        return "Not enough data"

    parts: list[str] = []
    if abs(entry.bias_ema) > 5:
        if entry.bias_ema > 0:
            parts.append(f"Systematically overestimating by ~{entry.bias_ema:.1f}%")
        else:
            parts.append(f"Systematically underestimating by ~{abs(entry.bias_ema):.1f}%")

    if entry.scale_ema < 0.5:
        parts.append(f"Assets deliver only {entry.scale_ema * 100:.0f}% of the prediction")
    elif entry.scale_ema > 2:
        parts.append(
            f"Assets deliver {entry.scale_ema * 100:.0f}% of the prediction; model too conservative"
        )

    if entry.mae_ema > 15:
        parts.append(f"High mean error (MAE {entry.mae_ema:.1f}%)")
    elif entry.mae_ema < 5:
        parts.append(f"Low mean error (MAE {entry.mae_ema:.1f}%)")

    return ". ".join(parts) if parts else "Calibration within normal range"


def build_calibration_report(state: CalibrationState) -> CalibrationReport:
    classes: dict[str, ClassCalibrationReport] = {}
    for cls in (Classification.INVERTIBLE, Classification.APALANCADO):
        entry = state.for_class(cls)
        assert entry is not None
        if entry.samples >= 10:
            quality = "good"
        elif entry.samples >= MIN_SAMPLES:
            quality = "growing"
        else:
            quality = "insufficient"
        classes[cls.value] = ClassCalibrationReport(
            samples=entry.samples,
            has_enough=entry.samples >= MIN_SAMPLES,
            bias=round(entry.bias_ema, 2),
            scale=round(entry.scale_ema, 3),
            mae=round(entry.mae_ema, 2),
            quality=quality,
            diagnosis=_diagnose(entry),
            recent_history=entry.history[:10],
        )
    return CalibrationReport(version=state.version, updated_at=state.updated_at, classes=classes)
