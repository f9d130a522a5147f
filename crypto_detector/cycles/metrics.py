"""
Cycle accuracy metrics.

Metric definitions
------------------
success_rate
  ``correct / total × 100``, overall and independently per classification
  (INVERTIBLE / APALANCADO / RUIDOSO). An empty group reports 0.

avg_error / max_error
  Mean and maximum of ``|predicted − actual|`` across evaluated results.
  RUIDOSO results contribute their |actual| since they predict 0.

The same aggregation serves real completions (``CycleResult``) and simulated
duration scenarios; anything exposing ``classification``, ``correct`` and
``error`` qualifies.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Protocol

from crypto_detector.models.cycle import ClassMetrics, CycleMetrics
from crypto_detector.taxonomy.classification import Classification


class Evaluated(Protocol):
    @property
    def classification(self) -> Classification: ...

    @property
    def correct(self) -> bool: ...

    @property
    def error(self) -> float: ...


def success_rate(correct: int, total: int) -> float:
    return round(correct / total * 100, 2) if total else 0.0


def _class_metrics(records: Sequence[Evaluated]) -> ClassMetrics:
    correct = sum(1 for r in records if r.correct)
    return ClassMetrics(
        total=len(records),
        correct=correct,
        success_rate=success_rate(correct, len(records)),
    )


def compute_cycle_metrics(records: Iterable[Evaluated]) -> CycleMetrics:
    """Aggregate overall and per-classification accuracy."""
    records = list(records)
    by_class: dict[Classification, list[Evaluated]] = defaultdict(list)
    for r in records:
        by_class[r.classification].append(r)

    errors = [abs(r.error) for r in records]
    overall = _class_metrics(records)

    return CycleMetrics(
        total=overall.total,
        correct=overall.correct,
        success_rate=overall.success_rate,
        invertible=_class_metrics(by_class[Classification.INVERTIBLE]),
        apalancado=_class_metrics(by_class[Classification.APALANCADO]),
        ruidoso=_class_metrics(by_class[Classification.RUIDOSO]),
        avg_error=round(sum(errors) / len(errors), 2) if errors else 0.0,
        max_error=round(max(errors), 2) if errors else 0.0,
    )
