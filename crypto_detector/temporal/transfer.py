"""
Temporal transfer function Φ(hours, classification, mode).

Rescales a canonical 12h prediction to another horizon. Three phases per
classification:

    Phase 1  momentum     hours ≤ half_life
             min(h/12 · (1 + 0.08·sin(π·h/half_life)) · alpha, max_multiplier)

    Phase 2  saturation   half_life < hours ≤ reversion_start
             v_hl · (1 + log_alpha · log2(1 + progress)), capped at max_multiplier
             v_hl is the phase-1 value at half_life; progress runs 0 → 1.

    Phase 3  reversion    hours > reversion_start
             v_rs · exp(−0.045 · reversion_boost · (h − reversion_start)),
             floored at (12/h) · 0.40

Φ is continuous at both phase boundaries. RUIDOSO always scales to 0.

``linear_scale`` is the pro-rata alternative used when cycles are created with
``TemporalModel.LINEAR``.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from crypto_detector.taxonomy.classification import (
    Classification,
    ModelMode,
    TemporalModel,
    normalize_classification,
)
from crypto_detector.utils.time_utils import MS_PER_HOUR

BASE_HORIZON_HOURS = 12.0
BASE_HORIZON_MS = int(BASE_HORIZON_HOURS * MS_PER_HOUR)
MOMENTUM_WAVE_AMPLITUDE = 0.08
DECAY_RATE_PER_HOUR = 0.045
RESIDUAL_FLOOR = 0.40
LINEAR_SCALE_BOUNDS = (0.1, 2.0)
DEFAULT_PROFILE_WINDOWS: tuple[float, ...] = (6, 12, 18, 24, 30, 36, 48, 72)


@dataclass(frozen=True)
class TemporalParams:
    momentum_half_life: float
    log_alpha: float
    reversion_start: float
    max_multiplier: float


@dataclass(frozen=True)
class ModeModifier:
    alpha: float
    reversion_boost: float


TEMPORAL_PARAMS: dict[Classification, TemporalParams] = {
    Classification.INVERTIBLE: TemporalParams(18.0, 0.55, 36.0, 2.8),
    Classification.APALANCADO: TemporalParams(10.0, 0.40, 20.0, 1.5),
    Classification.RUIDOSO: TemporalParams(6.0, 0.30, 12.0, 1.0),
}

MODE_MODIFIERS: dict[ModelMode, ModeModifier] = {
    ModelMode.NORMAL: ModeModifier(alpha=1.0, reversion_boost=1.0),
    ModelMode.SPECULATIVE: ModeModifier(alpha=1.15, reversion_boost=1.35),
}


def _phase_one(hours: float, p: TemporalParams, alpha: float) -> float:
    wave = 1 + MOMENTUM_WAVE_AMPLITUDE * math.sin(math.pi * hours / p.momentum_half_life)
    return min(hours / BASE_HORIZON_HOURS * wave * alpha, p.max_multiplier)


def _phase_two(hours: float, p: TemporalParams, alpha: float) -> float:
    at_half_life = _phase_one(p.momentum_half_life, p, alpha)
    span = p.reversion_start - p.momentum_half_life
    progress = min(max((hours - p.momentum_half_life) / span, 0.0), 1.0) if span > 0 else 1.0
    peak = at_half_life * (1 + p.log_alpha * math.log2(1 + progress))
    return min(peak, p.max_multiplier)


def compute_temporal_scale(
    hours: float,
    classification: Classification | str,
    mode: ModelMode | str = ModelMode.NORMAL,
) -> float:
    """Φ: scale factor from the 12h canonical horizon to ``hours``.

    Returns 0 for RUIDOSO and for non-positive horizons.
    """
    cls = normalize_classification(classification)
    if cls is Classification.RUIDOSO or hours <= 0:
        return 0.0

    p = TEMPORAL_PARAMS[cls]
    mod = MODE_MODIFIERS[ModelMode(mode)]

    if hours <= p.momentum_half_life:
        return _phase_one(hours, p, mod.alpha)
    if hours <= p.reversion_start:
        return _phase_two(hours, p, mod.alpha)

    at_reversion = _phase_two(p.reversion_start, p, mod.alpha)
    decayed = at_reversion * math.exp(
        -DECAY_RATE_PER_HOUR * mod.reversion_boost * (hours - p.reversion_start)
    )
    floor = (BASE_HORIZON_HOURS / hours) * RESIDUAL_FLOOR
    return max(decayed, min(floor, at_reversion))


def linear_scale(duration_ms: int | float) -> float:
    """Pro-rata scale ``clamp(duration / 12h, 0.1, 2.0)``."""
    lo, hi = LINEAR_SCALE_BOUNDS
    return max(lo, min(hi, duration_ms / BASE_HORIZON_MS))


def scale_for_duration(
    duration_ms: int | float,
    classification: Classification | str,
    mode: ModelMode,
    model: TemporalModel,
) -> float:
    """Scale factor for a cycle of ``duration_ms`` under ``model``."""
    if normalize_classification(classification) is Classification.RUIDOSO:
        return 0.0
    if model is TemporalModel.LINEAR:
        return linear_scale(duration_ms)
    return compute_temporal_scale(duration_ms / MS_PER_HOUR, classification, mode)


# ── Applying the model ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TemporalPrediction:
    base_prediction: float
    predicted_change: float
    temporal_scale_factor: float
    temporal_model: TemporalModel


def apply_temporal_model(
    base_prediction: float,
    classification: Classification | str,
    target_hours: float,
    mode: ModelMode = ModelMode.NORMAL,
) -> TemporalPrediction:
    """Scale a canonical prediction to ``target_hours`` with Φ."""
    scale = compute_temporal_scale(target_hours, classification, mode)
    return TemporalPrediction(
        base_prediction=base_prediction,
        predicted_change=round(base_prediction * scale, 2),
        temporal_scale_factor=round(scale, 4),
        temporal_model=TemporalModel.NON_LINEAR,
    )


@dataclass(frozen=True)
class ProfilePoint:
    hours: float
    scale_factor: float
    predicted_change: float
    linear_equivalent: float
    phase: str


def _phase_name(hours: float, p: TemporalParams) -> str:
    if hours <= p.momentum_half_life:
        return "momentum"
    if hours <= p.reversion_start:
        return "saturation"
    return "reversion"


def build_temporal_profile(
    base_prediction: float,
    classification: Classification | str,
    mode: ModelMode = ModelMode.NORMAL,
    windows: Sequence[float] = DEFAULT_PROFILE_WINDOWS,
) -> list[ProfilePoint]:
    """Φ evaluated over a set of horizons, alongside the pro-rata equivalent."""
    classification = normalize_classification(classification)
    p = TEMPORAL_PARAMS[classification]
    points: list[ProfilePoint] = []
    for hours in windows:
        scale = compute_temporal_scale(hours, classification, mode)
        linear = 0.0 if classification is Classification.RUIDOSO else hours / BASE_HORIZON_HOURS
        points.append(ProfilePoint(
            hours=hours,
            scale_factor=round(scale, 4),
            predicted_change=round(base_prediction * scale, 2),
            linear_equivalent=round(base_prediction * linear, 2),
            phase=_phase_name(hours, p),
        ))
    return points
