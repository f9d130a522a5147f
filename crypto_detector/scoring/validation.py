"""
Prediction validation against realised price changes.

    RUIDOSO or predicted == 0 → "noise_check":  correct iff |actual| ≤ tol
    sign mismatch             → "direction":    incorrect
    otherwise                 → "direction_magnitude": correct iff |p − a| ≤ 2·tol
"""

from __future__ import annotations

from crypto_detector.models.algorithm import AlgorithmConfig
from crypto_detector.models.score import ValidationOutcome
from crypto_detector.taxonomy.classification import Classification, normalize_classification


def validate_prediction(
    predicted: float,
    actual: float,
    classification: Classification | str,
    tolerance: float,
) -> ValidationOutcome:
    """Judge one prediction.

    Args:
        predicted: Predicted percent change.
        actual: Realised percent change.
        classification: Class at prediction time (labels are normalised).
        tolerance: Magnitude tolerance in percentage points.
    """
    cls = normalize_classification(classification)

    if cls is Classification.RUIDOSO or predicted == 0:
        correct = abs(actual) <= tolerance
        verdict = "stayed within" if correct else "moved beyond"
        return ValidationOutcome(
            correct=correct,
            method="noise_check",
            reason=f"Price {verdict} ±{tolerance:g}% (actual {actual:+.2f}%)",
        )

    same_direction = (predicted > 0 and actual > 0) or (predicted < 0 and actual < 0)
    if not same_direction:
        return ValidationOutcome(
            correct=False,
            method="direction",
            reason=f"Direction mismatch: predicted {predicted:+.2f}%, actual {actual:+.2f}%",
        )

    error = abs(predicted - actual)
    allowed = 2 * tolerance
    correct = error <= allowed
    return ValidationOutcome(
        correct=correct,
        method="direction_magnitude",
        reason=(
            f"Direction matched; magnitude error {error:.2f} "
            f"{'within' if correct else 'exceeds'} {allowed:g}"
        ),
    )


def validate(
    predicted: float,
    actual: float,
    classification: Classification | str,
    config: AlgorithmConfig,
) -> ValidationOutcome:
    """``validate_prediction`` using the config's magnitude tolerance."""
    return validate_prediction(
        predicted, actual, classification, config.prediction.magnitude_tolerance
    )
