"""
Trading-configuration scenarios.

Each INVERTIBLE / APALANCADO result (not excluded) is treated as a position
opened at the snapshot price. The cycle window is split into
``max_hold_cycles`` equal checkpoints; at each one the interpolated price is
tested against take-profit then stop-loss, exiting at the first breach or at
the final checkpoint ("max_hold").

Composite score
---------------
    0.4 · win_rate/100
  + 0.4 · clamp(avg_pnl/20, −1, 1) · 0.5
  + 0.2
  + 0.2 · consistency_bonus

``consistency_bonus`` is 1.1 with no stop-loss exits, else
``1 − sl_hits/positions · 0.3``. Higher is better.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from crypto_detector.models.cycle import Cycle, PriceObservation
from crypto_detector.models.trading import TRADING_PROFILES, TradingParams
from crypto_detector.scenarios.price_path import build_price_path, interpolate_price
from crypto_detector.taxonomy.classification import Classification
from crypto_detector.utils.time_utils import add_ms

ACTIVE_CONFIG_KEY = "actual"


@dataclass(frozen=True)
class SimulatedPosition:
    asset_id: str
    symbol: str
    classification: Classification
    entry_price: float
    exit_price: float
    tp_price: float
    sl_price: float
    exit_reason: str
    exit_time: datetime
    hold_cycles: int
    pnl_pct: float

    @property
    def won(self) -> bool:
        return self.pnl_pct > 0


@dataclass(frozen=True)
class TradingSummary:
    total_positions: int
    wins: int
    losses: int
    win_rate: float
    avg_pnl_pct: float
    avg_win_pnl: float
    avg_loss_pnl: float
    tp_hits: int
    sl_hits: int
    max_hold_hits: int
    composite_score: float


@dataclass(frozen=True)
class TradingScenario:
    config_key: str
    config: TradingParams
    positions: list[SimulatedPosition]
    summary: TradingSummary


@dataclass(frozen=True)
class TradingComparison:
    scenarios: dict[str, TradingScenario]
    ranking: list[tuple[str, float]] = field(default_factory=list)
    best_config: Optional[str] = None


def composite_score(win_rate: float, avg_pnl: float, sl_hits: int, positions: int) -> float:
    consistency_bonus = 1.1 if sl_hits == 0 else 1 - sl_hits / max(positions, 1) * 0.3
    return (
        win_rate / 100 * 0.4
        + max(-1.0, min(1.0, avg_pnl / 20)) * 0.5 * 0.4
        + 0.2
        + consistency_bonus * 0.2
    )


def _simulate_position(
    cycle: Cycle,
    asset_id: str,
    params: TradingParams,
    observations: Sequence[PriceObservation],
) -> Optional[SimulatedPosition]:
    entry = cycle.entry_for(asset_id)
    if entry is None:
        return None
    path = build_price_path(cycle, asset_id, observations)
    entry_price = path[0].price if path else entry.snapshot_price
    if entry_price <= 0:
        return None

    tp_price = entry_price * (1 + params.take_profit_pct / 100)
    sl_price = entry_price * (1 - params.stop_loss_pct / 100)
    interval_ms = cycle.duration_ms / params.max_hold_cycles

    exit_price: Optional[float] = None
    exit_reason = "max_hold"
    exit_time = cycle.end_time
    hold_cycles = 0
    for i in range(1, params.max_hold_cycles + 1):
        at = add_ms(cycle.start_time, i * interval_ms)
        price = interpolate_price(path, at)
        if not price:
            continue
        hold_cycles = i
        if price >= tp_price:
            exit_price, exit_reason, exit_time = price, "take_profit", at
            break
        if price <= sl_price:
            exit_price, exit_reason, exit_time = price, "stop_loss", at
            break
        if i == params.max_hold_cycles:
            exit_price, exit_reason, exit_time = price, "max_hold", at

    if not exit_price:
        exit_price = path[-1].price if path else entry_price
        exit_reason = "max_hold"

    pnl = (exit_price - entry_price) / entry_price * 100
    return SimulatedPosition(
        asset_id=asset_id,
        symbol=entry.metrics.symbol,
        classification=entry.classification,
        entry_price=entry_price,
        exit_price=round(exit_price, 6),
        tp_price=round(tp_price, 6),
        sl_price=round(sl_price, 6),
        exit_reason=exit_reason,
        exit_time=exit_time,
        hold_cycles=hold_cycles,
        pnl_pct=round(pnl, 2),
    )


def summarize_positions(positions: Sequence[SimulatedPosition]) -> TradingSummary:
    n = len(positions)
    wins = [p for p in positions if p.won]
    losses = [p for p in positions if not p.won]
    sl_hits = sum(1 for p in positions if p.exit_reason == "stop_loss")
    avg_pnl = sum(p.pnl_pct for p in positions) / n if n else 0.0
    win_rate = len(wins) / n * 100 if n else 0.0

    return TradingSummary(
        total_positions=n,
        wins=len(wins),
        losses=len(losses),
        win_rate=round(win_rate, 1),
        avg_pnl_pct=round(avg_pnl, 2),
        avg_win_pnl=round(sum(p.pnl_pct for p in wins) / len(wins), 2) if wins else 0.0,
        avg_loss_pnl=round(sum(p.pnl_pct for p in losses) / len(losses), 2) if losses else 0.0,
        tp_hits=sum(1 for p in positions if p.exit_reason == "take_profit"),
        sl_hits=sl_hits,
        max_hold_hits=sum(1 for p in positions if p.exit_reason == "max_hold"),
        composite_score=round(composite_score(win_rate, avg_pnl, sl_hits, n), 4),
    )


def simulate_trading_config(
    cycle: Cycle,
    params: TradingParams,
    config_key: str = "custom",
    observations: Sequence[PriceObservation] = (),
) -> TradingScenario:
    """Replay ``cycle`` under one take-profit / stop-loss / max-hold setting."""
    positions: list[SimulatedPosition] = []
    for result in cycle.included_results():
        if not result.classification.is_actionable:
            continue
        position = _simulate_position(cycle, result.asset_id, params, observations)
        if position is not None:
            positions.append(position)

    return TradingScenario(
        config_key=config_key,
        config=params,
        positions=positions,
        summary=summarize_positions(positions),
    )


def simulate_all_trading_configs(
    cycle: Cycle,
    active_config: Optional[TradingParams] = None,
    observations: Sequence[PriceObservation] = (),
) -> TradingComparison:
    """Fixed profiles plus the active configuration, ranked by composite score."""
    scenarios = {
        key: simulate_trading_config(cycle, params, key, observations)
        for key, params in TRADING_PROFILES.items()
    }
    if active_config is not None:
        scenarios[ACTIVE_CONFIG_KEY] = simulate_trading_config(
            cycle, active_config, ACTIVE_CONFIG_KEY, observations
        )

    ranking = sorted(
        ((key, s.summary.composite_score) for key, s in scenarios.items()),
        key=lambda item: item[1],
        reverse=True,
    )
    return TradingComparison(
        scenarios=scenarios,
        ranking=ranking,
        best_config=ranking[0][0] if ranking else None,
    )
