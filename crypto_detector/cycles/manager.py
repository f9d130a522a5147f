"""
Cycle lifecycle: active → completed.

``CycleManager`` is an explicit context object holding the repository, a
clock, the completed-history cap and the temporal model used at creation.
Every transition reads a frozen ``Cycle``, builds a new one, and writes it
back; nothing is cached between calls.

Creation
--------
Each snapshot entry keeps the canonical 12h prediction as ``base_prediction``
and stores the horizon-scaled value as ``predicted_change``. RUIDOSO entries
stay at 0. The temporal model that produced the scale is recorded per entry.

Completion
----------
Assets without a resolvable current price are skipped. If none resolve,
``IncompleteDataError`` is raised and the cycle is left untouched. Completing
an already-completed cycle returns the stored record without writing.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from crypto_detector.cycles.errors import (
    CycleNotFoundError,
    IncompleteDataError,
    InvalidCycleStateError,
)
from crypto_detector.cycles.metrics import compute_cycle_metrics
from crypto_detector.db.repositories.cycle_repo import CycleRepository
from crypto_detector.models.algorithm import AlgorithmConfig
from crypto_detector.models.asset import PriceQuote
from crypto_detector.models.cycle import (
    MIN_CYCLE_DURATION_MS,
    Cycle,
    CycleResult,
    PriceObservation,
    SnapshotEntry,
)
from crypto_detector.models.score import ScoredAsset
from crypto_detector.scoring.validation import validate_prediction
from crypto_detector.taxonomy.classification import (
    Classification,
    CycleStatus,
    ModelMode,
    TemporalModel,
)
from crypto_detector.temporal.transfer import scale_for_duration
from crypto_detector.utils.time_utils import add_ms, utcnow

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

PriceInput = Mapping[str, float] | Iterable[PriceQuote | Mapping[str, Any]]


class PriceLookup(Protocol):
    """Returns current prices for the requested asset ids."""

    def __call__(self, asset_ids: Sequence[str]) -> Sequence[PriceQuote]: ...


def resolve_prices(current_prices: PriceInput) -> dict[str, float]:
    """Normalise price inputs to ``{asset_id: price}``, dropping non-positive prices.

    Accepts a mapping, ``PriceQuote`` objects, or ``{"id"|"asset_id", "current_price"}``
    dicts as returned by price-lookup collaborators.
    """
    if isinstance(current_prices, Mapping):
        items = [(str(k), v) for k, v in current_prices.items()]
    else:
        items = []
        for quote in current_prices:
            if isinstance(quote, PriceQuote):
                items.append((quote.asset_id, quote.current_price))
            else:
                asset_id = quote.get("asset_id", quote.get("id"))
                if asset_id is not None:
                    items.append((str(asset_id), quote.get("current_price")))

    prices: dict[str, float] = {}
    for asset_id, price in items:
        try:
            value = float(price)
        except (TypeError, ValueError):
            continue
        if value > 0:
            prices[asset_id] = value
    return prices


def _new_cycle_id(now: datetime) -> str:
    return f"cycle_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:6]}"


# ── Result types ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CompletionReport:
    """Outcome of a ``complete_due`` sweep."""

    completed: list[str] = field(default_factory=list)
    incomplete: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CycleSummary:
    cycle_id: str
    success_rate: float
    total: int


@dataclass(frozen=True)
class GlobalStats:
    total_cycles: int
    total_predictions: int
    avg_success_rate: float
    best_cycle: Optional[CycleSummary]
    worst_cycle: Optional[CycleSummary]


# ── Manager ───────────────────────────────────────────────────────────────────


class CycleManager:
    """Creates, completes and queries cycles.

    Args:
        repository: Cycle persistence.
        clock: Returns "now" as an aware UTC datetime.
        history_limit: Completed ids retained in the completed list.
        temporal_model: Scaling applied to predictions at creation.
    """

    def __init__(
        self,
        repository: CycleRepository,
        clock: Callable[[], datetime] = utcnow,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        temporal_model: TemporalModel = TemporalModel.LINEAR,
    ) -> None:
        self.repository = repository
        self.clock = clock
        self.history_limit = history_limit
        self.temporal_model = temporal_model

    # ── Creation ──────────────────────────────────────────────────────────────

    def create_cycle(
        self,
        snapshot: Sequence[ScoredAsset],
        config: AlgorithmConfig,
        duration_ms: int,
        mode: Optional[ModelMode] = None,
    ) -> Cycle:
        """Snapshot scored assets into a new active cycle.

        Raises:
            ValueError: Empty snapshot or ``duration_ms`` below one minute.
        """
        if duration_ms < MIN_CYCLE_DURATION_MS:
            raise ValueError(
                f"duration_ms must be >= {MIN_CYCLE_DURATION_MS}, got {duration_ms}."
            )
        if not snapshot:
            raise ValueError("Cannot create a cycle from an empty snapshot.")

        mode = ModelMode(mode) if mode is not None else config.model_type
        now = self.clock()

        entries: list[SnapshotEntry] = []
        for scored in snapshot:
            cls = scored.score.classification
            base = scored.score.predicted_change
            scale = scale_for_duration(duration_ms, cls, mode, self.temporal_model)
            entries.append(SnapshotEntry(
                metrics=scored.metrics,
                score=scored.score,
                base_prediction=base,
                predicted_change=0.0 if cls is Classification.RUIDOSO else round(base * scale, 2),
                temporal_scale_factor=round(scale, 4),
                temporal_model=self.temporal_model,
            ))

        cycle = Cycle(
            id=_new_cycle_id(now),
            start_time=now,
            end_time=add_ms(now, duration_ms),
            duration_ms=duration_ms,
            mode=mode,
            config=config,
            snapshot=entries,
        )
        self.repository.save(cycle)
        self.repository.add_active(cycle.id)

        logger.info(
            "Cycle %s created: %d assets, %.1fh, mode=%s, temporal_model=%s",
            cycle.id, len(entries), cycle.duration_hours, mode.value, self.temporal_model.value,
        )
        return cycle

    # ── Queries ───────────────────────────────────────────────────────────────

    def get_cycle(self, cycle_id: str) -> Cycle:
        cycle = self.repository.get(cycle_id)
        if cycle is None:
            raise CycleNotFoundError(cycle_id)
        return cycle

    def list_active(self) -> list[Cycle]:
        return self.repository.get_many(self.repository.active_ids())

    def list_completed(self, limit: Optional[int] = None) -> list[Cycle]:
        """Completed cycles, newest first."""
        ids = self.repository.completed_ids()
        if limit is not None:
            ids = ids[:limit]
        return self.repository.get_many(ids)

    def detect_pending(self, now: Optional[datetime] = None) -> list[Cycle]:
        """Active cycles whose window has closed."""
        now = now or self.clock()
        return [c for c in self.list_active() if c.is_due(now)]

    # ── Completion ────────────────────────────────────────────────────────────

    def complete_cycle(
        self,
        cycle_id: str,
        current_prices: PriceInput,
        config: Optional[AlgorithmConfig] = None,
    ) -> Cycle:
        """Validate stored predictions against current prices.

        Args:
            cycle_id: Cycle to complete.
            current_prices: Prices by asset id (see ``resolve_prices``).
            config: Supplies the magnitude tolerance; defaults to the config
                stored on the cycle.

        Raises:
            CycleNotFoundError: Unknown ``cycle_id``.
            InvalidCycleStateError: The cycle was cancelled.
            IncompleteDataError: No snapshot asset resolved a price.
        """
        cycle = self.get_cycle(cycle_id)
        if cycle.is_completed:
            logger.info("Cycle %s already completed; returning stored record", cycle_id)
            return cycle
        if cycle.status is not CycleStatus.ACTIVE:
            raise InvalidCycleStateError(cycle_id, cycle.status.value, CycleStatus.ACTIVE.value)

        tolerance = (config or cycle.config).prediction.magnitude_tolerance
        prices = resolve_prices(current_prices)

        results: list[CycleResult] = []
        for entry in cycle.snapshot:
            current = prices.get(entry.asset_id)
            if current is None or entry.snapshot_price <= 0:
                continue
            actual = (current - entry.snapshot_price) / entry.snapshot_price * 100
            outcome = validate_prediction(
                entry.predicted_change, actual, entry.classification, tolerance
            )
            results.append(CycleResult(
                asset_id=entry.asset_id,
                symbol=entry.metrics.symbol,
                name=entry.metrics.name,
                classification=entry.classification,
                boost_power=entry.boost_power,
                snapshot_price=entry.snapshot_price,
                current_price=current,
                base_prediction=entry.base_prediction,
                predicted_change=entry.predicted_change,
                actual_change=round(actual, 4),
                error=round(abs(entry.predicted_change - actual), 4),
                correct=outcome.correct,
                method=outcome.method,
                reason=outcome.reason,
            ))

        if not results:
            raise IncompleteDataError(cycle_id, len(cycle.snapshot))

        skipped = len(cycle.snapshot) - len(results)
        if skipped:
            logger.warning("Cycle %s: %d asset(s) had no current price; skipped", cycle_id, skipped)

        completed = cycle.model_copy(update={
            "status": CycleStatus.COMPLETED,
            "results": results,
            "metrics": compute_cycle_metrics(
                r for r in results if r.asset_id not in set(cycle.excluded_results)
            ),
            "completed_at": self.clock(),
        })
        self.repository.save(completed)
        self.repository.mark_completed(cycle_id, self.history_limit)

        logger.info(
            "Cycle %s completed: %d/%d correct (%.1f%%)",
            cycle_id, completed.metrics.correct, completed.metrics.total,
            completed.metrics.success_rate,
        )
        return completed

    def complete_due(
        self,
        price_lookup: PriceLookup,
        now: Optional[datetime] = None,
    ) -> CompletionReport:
        """Complete every due cycle; incomplete ones stay active for retry."""
        report = CompletionReport()
        for cycle in self.detect_pending(now):
            asset_ids = [e.asset_id for e in cycle.snapshot]
            try:
                self.complete_cycle(cycle.id, price_lookup(asset_ids))
                report.completed.append(cycle.id)
            except IncompleteDataError as exc:
                logger.warning("%s", exc)
                report.incomplete.append(cycle.id)
        return report

    # ── Edits ─────────────────────────────────────────────────────────────────

    def set_excluded_results(self, cycle_id: str, asset_ids: Iterable[str]) -> Cycle:
        """Replace the excluded-result set and recompute metrics.

        Raises:
            CycleNotFoundError: Unknown ``cycle_id``.
            InvalidCycleStateError: The cycle is still active.
        """
        cycle = self.get_cycle(cycle_id)
        if not cycle.is_completed:
            raise InvalidCycleStateError(cycle_id, cycle.status.value, CycleStatus.COMPLETED.value)

        known = {r.asset_id for r in cycle.results}
        excluded = sorted({a for a in asset_ids if a in known})
        updated = cycle.model_copy(update={
            "excluded_results": excluded,
            "metrics": compute_cycle_metrics(
                r for r in cycle.results if r.asset_id not in set(excluded)
            ),
        })
        self.repository.save(updated)
        logger.info("Cycle %s: %d result(s) excluded", cycle_id, len(excluded))
        return updated

    def cancel_cycle(self, cycle_id: str) -> None:
        """Mark an active cycle cancelled and drop it from the active list.

        The record is kept with status ``cancelled``; it can no longer be
        completed and never enters the completed list or statistics.

        Raises:
            CycleNotFoundError: Unknown ``cycle_id``.
            InvalidCycleStateError: The cycle is not active.
        """
        cycle = self.get_cycle(cycle_id)
        if cycle.status is not CycleStatus.ACTIVE:
            raise InvalidCycleStateError(cycle_id, cycle.status.value, CycleStatus.ACTIVE.value)
        self.repository.save(cycle.model_copy(update={"status": CycleStatus.CANCELLED}))
        self.repository.remove_active(cycle_id)
        logger.info("Cycle %s cancelled", cycle_id)

    def record_observations(
        self,
        cycle_id: str,
        observations: Sequence[PriceObservation],
    ) -> int:
        """Append intra-cycle price readings for later path reconstruction.

        Returns:
            Total observations stored for the cycle.
        """
        cycle = self.get_cycle(cycle_id)
        if cycle.status is not CycleStatus.ACTIVE:
            raise InvalidCycleStateError(cycle_id, cycle.status.value, CycleStatus.ACTIVE.value)
        return self.repository.append_observations(cycle_id, observations)

    def get_observations(self, cycle_id: str) -> list[PriceObservation]:
        return self.repository.get_observations(cycle_id)

    # ── Statistics ────────────────────────────────────────────────────────────

    def global_stats(self) -> GlobalStats:
        """Aggregate over retained completed cycles."""
        summaries = [
            CycleSummary(c.id, c.metrics.success_rate, c.metrics.total)
            for c in self.list_completed()
            if c.metrics is not None
        ]
        if not summaries:
            return GlobalStats(0, 0, 0.0, None, None)

        ranked = sorted(summaries, key=lambda s: s.success_rate)
        return GlobalStats(
            total_cycles=len(summaries),
            total_predictions=sum(s.total for s in summaries),
            avg_success_rate=round(sum(s.success_rate for s in summaries) / len(summaries), 2),
            best_cycle=ranked[-1],
            worst_cycle=ranked[0],
        )
