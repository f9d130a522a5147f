"""
Cycle records: the persisted prediction-and-validation unit.

A ``Cycle`` is created ``active`` with a snapshot of scored assets and becomes
``completed`` exactly once, when realised prices are reconciled against the
stored predictions. Records are frozen; every transition produces a new
record via ``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crypto_detector.models.algorithm import AlgorithmConfig
from crypto_detector.models.asset import AssetMetrics
from crypto_detector.models.score import ScoreResult
from crypto_detector.taxonomy.classification import (
    Classification,
    CycleStatus,
    ModelMode,
    TemporalModel,
)
from crypto_detector.utils.time_utils import ensure_utc, ms_to_hours

MIN_CYCLE_DURATION_MS = 60_000


class SnapshotEntry(BaseModel):
    """One asset captured at cycle start.

    Attributes:
        metrics: Market data at snapshot time.
        score: Scoring output (its ``predicted_change`` is the 12h canonical value).
        base_prediction: Unscaled canonical prediction.
        predicted_change: Horizon-scaled prediction validated at completion.
        temporal_scale_factor: Factor applied to ``base_prediction``.
        temporal_model: Model that produced ``temporal_scale_factor``.
    """

    model_config = ConfigDict(frozen=True)

    metrics: AssetMetrics
    score: ScoreResult
    base_prediction: float
    predicted_change: float
    temporal_scale_factor: float
    temporal_model: TemporalModel

    @property
    def asset_id(self) -> str:
        return self.metrics.asset_id

    @property
    def classification(self) -> Classification:
        return self.score.classification

    @property
    def boost_power(self) -> float:
        return self.score.boost_power

    @property
    def snapshot_price(self) -> float:
        return self.metrics.price


class CycleResult(BaseModel):
    """Realised outcome for one snapshot asset."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    symbol: str
    name: str = ""
    classification: Classification
    boost_power: float
    snapshot_price: float
    current_price: float
    base_prediction: float
    predicted_change: float
    actual_change: float
    error: float
    correct: bool
    method: str
    reason: str = ""


class ClassMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    correct: int = 0
    success_rate: float = 0.0


class CycleMetrics(BaseModel):
    """Aggregate accuracy for a completed cycle (or a simulated variant)."""

    model_config = ConfigDict(frozen=True)

    total: int
    correct: int
    success_rate: float
    invertible: ClassMetrics = ClassMetrics()
    apalancado: ClassMetrics = ClassMetrics()
    ruidoso: ClassMetrics = ClassMetrics()
    avg_error: float = 0.0
    max_error: float = 0.0

    def for_class(self, classification: Classification) -> ClassMetrics:
        return getattr(self, classification.value.lower())


class PriceObservation(BaseModel):
    """An intra-cycle price reading used to rebuild price paths."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    observed_at: datetime
    price: float
    source: str = "iteration"

    @field_validator("observed_at")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class Cycle(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    start_time: datetime
    end_time: datetime
    duration_ms: int = Field(ge=MIN_CYCLE_DURATION_MS)
    mode: ModelMode
    config: AlgorithmConfig
    status: CycleStatus = CycleStatus.ACTIVE
    snapshot: list[SnapshotEntry]
    results: list[CycleResult] = []
    metrics: Optional[CycleMetrics] = None
    excluded_results: list[str] = []
    completed_at: Optional[datetime] = None

    @property
    def duration(self) -> timedelta:
        return timedelta(milliseconds=self.duration_ms)

    @property
    def duration_hours(self) -> float:
        return ms_to_hours(self.duration_ms)

    @property
    def is_completed(self) -> bool:
        return self.status is CycleStatus.COMPLETED

    def is_due(self, now: datetime) -> bool:
        """True when the cycle is active and its window has closed."""
        return self.status is CycleStatus.ACTIVE and now >= self.end_time

    def entry_for(self, asset_id: str) -> Optional[SnapshotEntry]:
        for entry in self.snapshot:
            if entry.asset_id == asset_id:
                return entry
        return None

    def included_results(self) -> list[CycleResult]:
        """Results not manually excluded from statistics."""
        excluded = set(self.excluded_results)
        return [r for r in self.results if r.asset_id not in excluded]
