"""
Cycle persistence over a ``KeyValueStore``.

Layout:
  ``active_cycles``            list of active ids (append order)
  ``completed_cycles``         list of completed ids, newest first, capped
  ``<cycle_id>``               Cycle record as JSON-compatible dict
  ``<cycle_id>:observations``  intra-cycle price observations

The id lists are updated read-modify-write with no locking or version check.
Two writers racing on the same list can lose an update; callers needing
stronger guarantees must serialise list updates themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Optional

from pydantic import ValidationError

from crypto_detector.db.kv import KeyValueStore, decode_value
from crypto_detector.models.cycle import Cycle, PriceObservation

logger = logging.getLogger(__name__)

ACTIVE_CYCLES_KEY = "active_cycles"
COMPLETED_CYCLES_KEY = "completed_cycles"


def observations_key(cycle_id: str) -> str:
    return f"{cycle_id}:observations"


class CycleRepository:
    """Reads and writes Cycle records and the active / completed id lists."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    # ── Records ───────────────────────────────────────────────────────────────

    def get(self, cycle_id: str) -> Optional[Cycle]:
        raw = decode_value(self.store.get(cycle_id), None, key=cycle_id)
        if not isinstance(raw, dict):
            return None
        try:
            return Cycle.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Cycle %s failed validation on load: %s", cycle_id, exc)
            return None

    def save(self, cycle: Cycle) -> None:
        self.store.set(cycle.id, cycle.model_dump(mode="json"))

    def get_many(self, cycle_ids: Sequence[str]) -> list[Cycle]:
        """Load records in id order, skipping ids with no readable record."""
        cycles: list[Cycle] = []
        for cycle_id in cycle_ids:
            cycle = self.get(cycle_id)
            if cycle is not None:
                cycles.append(cycle)
        return cycles

    # ── Id lists ──────────────────────────────────────────────────────────────

    def _get_ids(self, key: str) -> list[str]:
        raw = decode_value(self.store.get(key), [], key=key)
        if not isinstance(raw, list):
            logger.warning("Id list %r is not a list; treating as empty", key)
            return []
        return [str(i) for i in raw]

    def active_ids(self) -> list[str]:
        return self._get_ids(ACTIVE_CYCLES_KEY)

    def completed_ids(self) -> list[str]:
        return self._get_ids(COMPLETED_CYCLES_KEY)

    def add_active(self, cycle_id: str) -> None:
        ids = self.active_ids()
        if cycle_id not in ids:
            ids.append(cycle_id)
        self.store.set(ACTIVE_CYCLES_KEY, ids)

    def remove_active(self, cycle_id: str) -> None:
        self.store.set(ACTIVE_CYCLES_KEY, [i for i in self.active_ids() if i != cycle_id])

    def mark_completed(self, cycle_id: str, history_limit: int) -> None:
        """Move ``cycle_id`` to the head of the completed list, capped."""
        self.remove_active(cycle_id)
        completed = [cycle_id] + [i for i in self.completed_ids() if i != cycle_id]
        self.store.set(COMPLETED_CYCLES_KEY, completed[:history_limit])

    # ── Observations ──────────────────────────────────────────────────────────

    def get_observations(self, cycle_id: str) -> list[PriceObservation]:
        key = observations_key(cycle_id)
        raw = decode_value(self.store.get(key), [], key=key)
        if not isinstance(raw, list):
            return []
        observations: list[PriceObservation] = []
        for item in raw:
            try:
                observations.append(PriceObservation.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping invalid observation for %s: %s", cycle_id, exc)
        return observations

    def append_observations(
        self,
        cycle_id: str,
        observations: Sequence[PriceObservation],
    ) -> int:
        existing = self.get_observations(cycle_id)
        merged = existing + list(observations)
        self.store.set(
            observations_key(cycle_id),
            [o.model_dump(mode="json") for o in merged],
        )
        return len(merged)
