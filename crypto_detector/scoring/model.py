"""
Aggregation, classification and prediction.

BoostPower
----------
    potential  = Σ(score·w) / Σw   over potential factors
    resistance = Σ(score·w) / Σw   over resistance factors
    raw        = potential·meta.potential − resistance·meta.resistance   (≈ [−0.4, 0.6])
    boost      = clamp01(raw + 0.4)

A group whose weights sum to 0 scores 0. That is kept as a neutral outcome;
``validate_algorithm_config`` reports the misconfiguration separately.

Classification (first match wins)
---------------------------------
    1. boost ≥ invertible_min_boost AND cap within ceiling AND atl_prox ≥ min → INVERTIBLE
    2. boost ≥ invertible_min_boost, a structural gate failed              → APALANCADO
    3. boost ≥ apalancado_min_boost                                        → APALANCADO
    4. otherwise                                                           → RUIDOSO

Prediction (percent, canonical 12h horizon)
-------------------------------------------
    band        = clamp(dailyVolProxy·0.60, 1.0, 2·target)
    magnitude   = 0.3 + max(0, directional)·1.2
    volume      = 0.5 + volume_surge
    noise       = 1 − (volatility_noise·0.20 + fear_overlap·0.10)
    confidence  = 0.6 + normalize(boost, classBpMin, 1.0)·0.8
    prediction  = max(band·magnitude·volume·noise·confidence, 0.5)
then optional calibration, then a final clamp to [0.5, 2·target]. RUIDOSO
predicts exactly 0.
"""

from __future__ import annotations

import math
from typing import Optional

from crypto_detector.models.algorithm import AlgorithmConfig, ClassificationConfig
from crypto_detector.models.score import (
    CalibrationCorrection,
    ClassificationDecision,
    FactorContribution,
    ScoreBreakdown,
)
from crypto_detector.taxonomy.classification import Classification, ConfidenceTier

BOOST_OFFSET = 0.4
MIN_PREDICTION = 0.5
MIN_VOLATILITY_BAND = 1.0
CALIBRATION_MIN_CONFIDENCE = 0.1
CALIBRATION_MAX_SCALE = 5.0

_CLASS_BP_MIN: dict[Classification, float] = {
    Classification.INVERTIBLE: 0.65,
    Classification.APALANCADO: 0.40,
}


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _normalize(value: float, lo: float, hi: float) -> float:
    if hi <= lo:
        return 0.0
    return _clamp((value - lo) / (hi - lo), 0.0, 1.0)


# ── Aggregation ───────────────────────────────────────────────────────────────


def weighted_group(
    scores: dict[str, float],
    weights: dict[str, float],
) -> tuple[float, dict[str, FactorContribution]]:
    """Weighted mean of the factors present in both ``scores`` and ``weights``.

    Returns:
        (group score, per-factor contributions). Score is 0 when the present
        weights sum to 0.
    """
    contributions: dict[str, FactorContribution] = {}
    total_weight = 0.0
    total = 0.0
    for name, raw in scores.items():
        weight = weights.get(name, 0.0)
        contributions[name] = FactorContribution(raw=raw, weight=weight, weighted=raw * weight)
        total += raw * weight
        total_weight += weight

    if total_weight <= 0:
        return 0.0, contributions
    return total / total_weight, contributions


def compute_boost_power(
    potential_scores: dict[str, float],
    resistance_scores: dict[str, float],
    config: AlgorithmConfig,
) -> tuple[float, ScoreBreakdown]:
    """Net potential against resistance into a [0, 1] BoostPower."""
    potential, pot_parts = weighted_group(
        potential_scores, config.potential_weights.model_dump()
    )
    resistance, res_parts = weighted_group(
        resistance_scores, config.resistance_weights.model_dump()
    )
    raw = (
        potential * config.meta_weights.potential
        - resistance * config.meta_weights.resistance
    )
    boost = _clamp(raw + BOOST_OFFSET, 0.0, 1.0)

    breakdown = ScoreBreakdown(
        potential=pot_parts,
        resistance=res_parts,
        potential_score=round(potential, 4),
        resistance_score=round(resistance, 4),
        raw_signal=round(raw, 4),
    )
    return boost, breakdown


# ── Classification ────────────────────────────────────────────────────────────


def classify(
    boost_power: float,
    market_cap: Optional[float],
    atl_proximity: float,
    config: AlgorithmConfig | ClassificationConfig,
) -> ClassificationDecision:
    """Assign a class using ordered rules; first match wins."""
    gates = config.classification if isinstance(config, AlgorithmConfig) else config
    cap_ceiling = gates.invertible_max_market_cap

    if boost_power >= gates.invertible_min_boost:
        cap_ok = cap_ceiling <= 0 or (market_cap is not None and market_cap <= cap_ceiling)
        atl_ok = atl_proximity >= gates.invertible_min_atl_prox
        if cap_ok and atl_ok:
            tier = (
                ConfidenceTier.HIGH
                if boost_power >= gates.invertible_min_boost + 0.10
                else ConfidenceTier.MEDIUM
            )
            return ClassificationDecision(
                classification=Classification.INVERTIBLE,
                reason=(
                    f"BoostPower {boost_power:.2f} clears {gates.invertible_min_boost:.2f} "
                    "with structural gates passed"
                ),
                confidence=tier,
            )

        failed: list[str] = []
        if not cap_ok:
            if market_cap is None:
                failed.append("market cap unknown")
            else:
                failed.append(f"market cap {market_cap:,.0f} above ceiling {cap_ceiling:,.0f}")
        if not atl_ok:
            failed.append(
                f"ATL proximity {atl_proximity:.2f} below {gates.invertible_min_atl_prox:.2f}"
            )
        return ClassificationDecision(
            classification=Classification.APALANCADO,
            reason="Downgraded from INVERTIBLE: " + "; ".join(failed),
            confidence=ConfidenceTier.MEDIUM,
        )

    if boost_power >= gates.apalancado_min_boost:
        if atl_proximity <= gates.near_ath_atl_prox:
            reason = f"BoostPower {boost_power:.2f} moderate; price trading near all-time high"
        else:
            reason = f"BoostPower {boost_power:.2f} moderate; room to run from all-time low"
        midpoint = (gates.apalancado_min_boost + gates.invertible_min_boost) / 2
        tier = ConfidenceTier.MEDIUM if boost_power >= midpoint else ConfidenceTier.LOW
        return ClassificationDecision(
            classification=Classification.APALANCADO,
            reason=reason,
            confidence=tier,
        )

    return ClassificationDecision(
        classification=Classification.RUIDOSO,
        reason=f"BoostPower {boost_power:.2f} below {gates.apalancado_min_boost:.2f}",
        confidence=ConfidenceTier.LOW,
    )


# ── Prediction ────────────────────────────────────────────────────────────────


def volatility_band(
    change_24h: Optional[float],
    change_7d: Optional[float],
    target: float,
) -> float:
    """Expected absolute move from recent realised volatility."""
    target_cap = 2 * target
    if change_24h is None and change_7d is None:
        daily_vol_proxy = target / 2
    else:
        daily_vol_proxy = abs(change_24h or 0.0) * 0.70 + abs(change_7d or 0.0) / 7 * 0.30
    return _clamp(daily_vol_proxy * 0.60, MIN_VOLATILITY_BAND, max(target_cap, MIN_VOLATILITY_BAND))


def directional_composite(
    change_24h: Optional[float],
    factor_scores: dict[str, float],
) -> float:
    return (
        math.tanh((change_24h or 0.0) / 12) * 0.40
        + (factor_scores["atl_proximity"] - 0.5) * 0.25
        + (factor_scores["social_momentum"] - 0.3) * 0.20
        + (factor_scores["news_sentiment"] - 0.3) * 0.10
        + (factor_scores["rebound_recency"] - 0.3) * 0.05
    )


def predict_change(
    classification: Classification,
    boost_power: float,
    change_24h: Optional[float],
    change_7d: Optional[float],
    factor_scores: dict[str, float],
    config: AlgorithmConfig,
    calibration: Optional[CalibrationCorrection] = None,
) -> float:
    """Predicted percent change over the canonical 12h horizon.

    Args:
        classification: Class from ``classify``.
        boost_power: BoostPower in [0, 1].
        change_24h: 24h percent change (may be ``None``).
        change_7d: 7d percent change (may be ``None``).
        factor_scores: All nine raw factor scores by name.
        config: Algorithm config for the active mode.
        calibration: Optional online correction.

    Returns:
        0.0 for RUIDOSO, otherwise a value in [0.5, 2·class target].
    """
    if classification is Classification.RUIDOSO:
        return 0.0

    target = config.prediction.target_for(classification)
    target_cap = max(2 * target, MIN_PREDICTION)

    band = volatility_band(change_24h, change_7d, target)
    directional = directional_composite(change_24h, factor_scores)
    magnitude_mult = 0.3 + max(0.0, directional) * 1.2
    volume_mult = 0.5 + factor_scores["volume_surge"]
    noise_penalty = 1 - (
        factor_scores["volatility_noise"] * 0.20 + factor_scores["fear_overlap"] * 0.10
    )
    confidence_mult = 0.6 + _normalize(boost_power, _CLASS_BP_MIN[classification], 1.0) * 0.8

    prediction = max(
        band * magnitude_mult * volume_mult * noise_penalty * confidence_mult,
        MIN_PREDICTION,
    )

    if calibration is not None and calibration.confidence > CALIBRATION_MIN_CONFIDENCE:
        prediction -= calibration.bias_correction
        if 0 < calibration.scale_correction < CALIBRATION_MAX_SCALE:
            prediction *= calibration.scale_correction

    return round(_clamp(prediction, MIN_PREDICTION, target_cap), 2)
