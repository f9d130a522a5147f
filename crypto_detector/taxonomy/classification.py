"""
Classification and mode taxonomy.

Every classification value that crosses into the scoring, cycle, or scenario
code is a ``Classification`` member. Callers holding a raw label (``"invertible"``),
a nested record (``{"classification": "INVERTIBLE", ...}``) or ``None`` must pass
it through ``normalize_classification`` first.

Classes
-------
INVERTIBLE : strong, structurally gated buy signal.
APALANCADO : moderate signal with leveraged risk.
RUIDOSO    : no actionable signal; always predicts 0.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class Classification(StrEnum):
    """Categorical outcome of the scoring model."""

    INVERTIBLE = "INVERTIBLE"
    APALANCADO = "APALANCADO"
    RUIDOSO = "RUIDOSO"

    @property
    def is_actionable(self) -> bool:
        """True for classes that open a position in trading scenarios."""
        return self is not Classification.RUIDOSO


class ModelMode(StrEnum):
    """Algorithm mode. Each mode carries its own independent configuration."""

    NORMAL = "normal"
    SPECULATIVE = "speculative"


class TemporalModel(StrEnum):
    """Horizon-scaling model applied to a canonical 12h prediction."""

    LINEAR = "linear-v0"
    NON_LINEAR = "non-linear-v1"


class ConfidenceTier(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def normalize_classification(value: Any) -> Classification:
    """Coerce a boundary value into a ``Classification``.

    Accepts an enum member, a case-insensitive label, or a mapping carrying
    the label under ``classification`` (possibly nested again). Anything
    unrecognised normalises to ``RUIDOSO``, the class that never trades.

    Examples::

        normalize_classification("invertible")                      # INVERTIBLE
        normalize_classification({"classification": "APALANCADO"})  # APALANCADO
        normalize_classification(None)                              # RUIDOSO
    """
    for _ in range(3):
        if isinstance(value, dict):
            value = value.get("classification", value.get("label"))
        else:
            break

    if isinstance(value, Classification):
        return value
    if isinstance(value, str):
        try:
            return Classification(value.strip().upper())
        except ValueError:
            return Classification.RUIDOSO
    return Classification.RUIDOSO


class CycleStatus(StrEnum):
    """Cycle lifecycle state. ``COMPLETED`` and ``CANCELLED`` are terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
