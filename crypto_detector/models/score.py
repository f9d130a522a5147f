"""
Scoring outputs.

``ScoreResult`` is produced by ``crypto_detector.scoring.engine.score_asset``
and only persisted inside a cycle snapshot entry. ``breakdown`` keeps every
raw factor score and its weighted contribution for audit and reporting.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from crypto_detector.models.asset import AssetMetrics
from crypto_detector.taxonomy.classification import Classification, ConfidenceTier


class FactorContribution(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: float
    weight: float
    weighted: float


class ScoreBreakdown(BaseModel):
    """Per-factor audit trail behind a BoostPower value."""

    model_config = ConfigDict(frozen=True)

    potential: dict[str, FactorContribution]
    resistance: dict[str, FactorContribution]
    potential_score: float
    resistance_score: float
    raw_signal: float

    def raw_score(self, factor: str) -> float:
        """Return a factor's raw [0, 1] score from either group."""
        if factor in self.potential:
            return self.potential[factor].raw
        return self.resistance[factor].raw


class ScoreResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    boost_power: float
    classification: Classification
    reason: str
    confidence: ConfidenceTier
    predicted_change: float
    breakdown: ScoreBreakdown


class ScoredAsset(BaseModel):
    """An asset paired with its score: the input record for cycle creation."""

    model_config = ConfigDict(frozen=True)

    metrics: AssetMetrics
    score: ScoreResult


class ClassificationDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    classification: Classification
    reason: str
    confidence: ConfidenceTier


class ValidationOutcome(BaseModel):
    """Verdict for one prediction against its realised change.

    ``method`` is one of ``noise_check``, ``direction``, ``direction_magnitude``.
    """

    model_config = ConfigDict(frozen=True)

    correct: bool
    method: str
    reason: str


class CalibrationCorrection(BaseModel):
    """Online-calibration adjustment applied after the raw prediction."""

    model_config = ConfigDict(frozen=True)

    bias_correction: float = 0.0
    scale_correction: float = 1.0
    confidence: float = 0.0
    samples: int = 0
    source: Optional[str] = None
