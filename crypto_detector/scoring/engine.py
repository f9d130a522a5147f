"""
Scoring entry point: one asset (plus optional signals) → ``ScoreResult``.

Pipeline per asset::

    AssetMetrics + ExternalSignals
        → factor scores (factors.py)
        → BoostPower + breakdown (model.compute_boost_power)
        → classification (model.classify)
        → canonical 12h prediction (model.predict_change)

Pure functions only; the config and any calibration are passed in explicitly.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Optional

from crypto_detector.models.algorithm import AlgorithmConfig
from crypto_detector.models.asset import AssetMetrics, ExternalSignals
from crypto_detector.models.score import CalibrationCorrection, ScoredAsset, ScoreResult
from crypto_detector.scoring import factors
from crypto_detector.scoring.calibration import CalibrationState, get_correction_factors
from crypto_detector.scoring.model import classify, compute_boost_power, predict_change

logger = logging.getLogger(__name__)


def compute_factor_scores(
    asset: AssetMetrics,
    signals: Optional[ExternalSignals],
    config: AlgorithmConfig,
) -> tuple[dict[str, float], dict[str, float]]:
    """Return (potential scores, resistance scores) keyed by factor name."""
    th = config.thresholds
    potential = {
        "atl_proximity": factors.atl_proximity(asset.price, asset.atl, asset.ath),
        "volume_surge": factors.volume_surge(asset.volume_24h, asset.market_cap),
        "social_momentum": factors.social_momentum(signals, th),
        "news_sentiment": factors.news_sentiment(signals),
        "rebound_recency": factors.rebound_recency(
            asset.price_change_24h, asset.price_change_7d, th
        ),
    }
    resistance = {
        "leverage_ratio": factors.leverage_ratio(asset.price, asset.atl),
        "market_cap_size": factors.market_cap_size(asset.market_cap),
        "volatility_noise": factors.volatility_noise(asset.price_change_24h),
        "fear_overlap": factors.fear_overlap(
            signals.fear_greed_index if signals is not None else None
        ),
    }
    return potential, resistance


def score_asset(
    asset: AssetMetrics,
    config: AlgorithmConfig,
    signals: Optional[ExternalSignals] = None,
    calibration: Optional[CalibrationCorrection] = None,
) -> ScoreResult:
    """Score, classify and predict for one asset.

    Args:
        asset: Market snapshot.
        config: Algorithm config for the active mode.
        signals: Optional enrichment; ``None`` uses neutral defaults.
        calibration: Optional online correction for the prediction.

    Returns:
        A fully populated ``ScoreResult``.
    """
    potential, resistance = compute_factor_scores(asset, signals, config)
    boost, breakdown = compute_boost_power(potential, resistance, config)
    decision = classify(boost, asset.market_cap, potential["atl_proximity"], config)

    predicted = predict_change(
        decision.classification,
        boost,
        asset.price_change_24h,
        asset.price_change_7d,
        {**potential, **resistance},
        config,
        calibration=calibration,
    )

    return ScoreResult(
        boost_power=round(boost, 4),
        classification=decision.classification,
        reason=decision.reason,
        confidence=decision.confidence,
        predicted_change=predicted,
        breakdown=breakdown,
    )


def score_assets(
    assets: Iterable[AssetMetrics],
    config: AlgorithmConfig,
    signals: Optional[Mapping[str, ExternalSignals]] = None,
    calibration: Optional[CalibrationState] = None,
) -> list[ScoredAsset]:
    """Score a batch, applying per-class online calibration when available.

    Calibration needs the class first, so assets with a usable correction are
    scored twice: once to classify, once with the correction applied.
    """
    signals = signals or {}
    scored: list[ScoredAsset] = []
    for asset in assets:
        asset_signals = signals.get(asset.asset_id)
        result = score_asset(asset, config, asset_signals)
        if calibration is not None:
            correction = get_correction_factors(
                calibration, result.classification, result.boost_power
            )
            if correction is not None:
                result = score_asset(asset, config, asset_signals, correction)
        scored.append(ScoredAsset(metrics=asset, score=result))

    logger.info(
        "Scored %d assets (mode=%s, calibrated=%s)",
        len(scored), config.model_type.value, calibration is not None,
    )
    return scored
