"""
Trade-management parameters: take-profit, stop-loss and max-hold.

Used both for the active configuration (``AppConfig.trading``) and for the
fixed profiles the scenario simulator compares against it.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TradingParams(BaseModel):
    """One trade-management configuration.

    Attributes:
        take_profit_pct: Exit once price rises this percent above entry.
        stop_loss_pct: Exit once price falls this percent below entry.
        max_hold_cycles: Evaluation checkpoints across the cycle window;
            the position closes at the last one if neither threshold hit.
        label: Display name.
        description: One-line summary.
    """

    model_config = ConfigDict(frozen=True)

    take_profit_pct: float = Field(default=10.0, gt=0)
    stop_loss_pct: float = Field(default=5.0, gt=0)
    max_hold_cycles: int = Field(default=3, ge=1)
    label: str = "Active"
    description: str = "Configuration currently in use"


TRADING_PROFILES: dict[str, TradingParams] = {
    "conservative": TradingParams(
        take_profit_pct=5.0,
        stop_loss_pct=3.0,
        max_hold_cycles=2,
        label="Conservative",
        description="Small quick profits, tight stop",
    ),
    "moderate": TradingParams(
        take_profit_pct=10.0,
        stop_loss_pct=5.0,
        max_hold_cycles=3,
        label="Moderate",
        description="Balanced risk and reward",
    ),
    "aggressive": TradingParams(
        take_profit_pct=18.0,
        stop_loss_pct=9.0,
        max_hold_cycles=6,
        label="Aggressive",
        description="Wide targets, longer holds",
    ),
}
