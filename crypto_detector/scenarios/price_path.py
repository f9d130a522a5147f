"""
Per-asset price-path reconstruction and interpolation.

A path is built from:
  1. the snapshot price at cycle start,
  2. any recorded intra-cycle observations for the asset,
  3. the completion price at cycle end, only when it differs from the start
     price and no point already sits within a minute of the window end.

Interpolation is linear between bracketing points and clamps to the first /
last price outside the recorded range.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from crypto_detector.models.cycle import Cycle, PriceObservation

END_POINT_MARGIN = timedelta(minutes=1)


@dataclass(frozen=True)
class PricePoint:
    timestamp: datetime
    price: float
    source: str


def build_price_path(
    cycle: Cycle,
    asset_id: str,
    observations: Sequence[PriceObservation] = (),
) -> list[PricePoint]:
    """Time-ordered price points for ``asset_id``; empty if not in the snapshot."""
    entry = cycle.entry_for(asset_id)
    if entry is None:
        return []

    start_price = entry.snapshot_price
    path = [PricePoint(cycle.start_time, start_price, "snapshot")]

    for obs in observations:
        if obs.asset_id == asset_id and obs.price > 0:
            path.append(PricePoint(obs.observed_at, obs.price, obs.source))

    result = next((r for r in cycle.results if r.asset_id == asset_id), None)
    end_price = result.current_price if result is not None else start_price
    if end_price and end_price != start_price:
        latest = max(p.timestamp for p in path)
        if latest < cycle.end_time - END_POINT_MARGIN:
            path.append(PricePoint(cycle.end_time, end_price, "result"))

    return sorted(path, key=lambda p: p.timestamp)


def interpolate_price(path: Sequence[PricePoint], at: datetime) -> Optional[float]:
    """Linearly interpolated price at ``at``; ``None`` for an empty path."""
    if not path:
        return None
    if len(path) == 1 or at <= path[0].timestamp:
        return path[0].price
    if at >= path[-1].timestamp:
        return path[-1].price

    for p1, p2 in zip(path, path[1:]):
        if p1.timestamp <= at <= p2.timestamp:
            span = (p2.timestamp - p1.timestamp).total_seconds()
            if span <= 0:
                return p2.price
            t = (at - p1.timestamp).total_seconds() / span
            return p1.price + t * (p2.price - p1.price)

    return path[-1].price
