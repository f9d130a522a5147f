"""
Shared pytest fixtures for the Crypto Detector test suite.

Provides:
  - ``store``: A fresh ``InMemoryKeyValueStore`` per test.
  - ``sqlite_store``: A ``SQLiteKeyValueStore`` over an in-memory database
    with the schema applied.
  - ``clock`` / ``manager``: A controllable clock and a ``CycleManager``
    wired to it (linear temporal model, the creation default).
  - ``normal_config`` / ``speculative_config``: Default algorithm configs.
  - ``make_asset`` / ``make_signals`` / ``make_scored``: Factories for domain
    objects, returning fresh instances with keyword overrides.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Generator

import pytest

from crypto_detector.cycles.manager import CycleManager
from crypto_detector.db.connection import get_connection
from crypto_detector.db.kv import InMemoryKeyValueStore
from crypto_detector.db.repositories.cycle_repo import CycleRepository
from crypto_detector.db.repositories.kv_repo import SQLiteKeyValueStore
from crypto_detector.db.schema import apply_schema
from crypto_detector.models.algorithm import AlgorithmConfig, default_algorithm_config
from crypto_detector.models.asset import AssetMetrics, ExternalSignals
from crypto_detector.models.score import ScoreBreakdown, ScoredAsset, ScoreResult
from crypto_detector.taxonomy.classification import (
    Classification,
    ConfidenceTier,
    ModelMode,
)

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float = 0.0, minutes: float = 0.0) -> datetime:
        self.now = self.now + timedelta(hours=hours, minutes=minutes)
        return self.now


# ── Store fixtures ────────────────────────────────────────────────────────────

@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def sqlite_store() -> Generator[SQLiteKeyValueStore, None, None]:
    """``SQLiteKeyValueStore`` on ``:memory:``; closed after the test."""
    with get_connection(":memory:") as conn:
        apply_schema(conn)
        yield SQLiteKeyValueStore(conn)


# ── Cycle fixtures ────────────────────────────────────────────────────────────

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(store, clock) -> CycleManager:
    return CycleManager(CycleRepository(store), clock=clock)


# ── Config fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def normal_config() -> AlgorithmConfig:
    return default_algorithm_config(ModelMode.NORMAL)


@pytest.fixture
def speculative_config() -> AlgorithmConfig:
    return default_algorithm_config(ModelMode.SPECULATIVE)


# ── Domain object factories ───────────────────────────────────────────────────

@pytest.fixture
def make_asset() -> Callable[..., AssetMetrics]:
    """Factory for ``AssetMetrics``; defaults describe a mid-cap mid-range asset."""

    def _make(**overrides) -> AssetMetrics:
        fields = {
            "asset_id": "alpha",
            "symbol": "alp",
            "name": "Alpha",
            "price": 100.0,
            "market_cap": 500_000_000.0,
            "volume_24h": 25_000_000.0,
            "price_change_24h": 1.0,
            "price_change_7d": -2.0,
            "ath": 300.0,
            "atl": 20.0,
        }
        fields.update(overrides)
        return AssetMetrics(**fields)

    return _make


@pytest.fixture
def make_signals() -> Callable[..., ExternalSignals]:
    def _make(**overrides) -> ExternalSignals:
        return ExternalSignals(**overrides)

    return _make


@pytest.fixture
def make_scored(make_asset) -> Callable[..., ScoredAsset]:
    """Factory for ``ScoredAsset`` with a chosen class and canonical prediction.

    Bypasses the scoring model so cycle tests control predictions exactly.
    """

    def _make(
        asset_id: str = "alpha",
        price: float = 100.0,
        classification: Classification = Classification.INVERTIBLE,
        predicted_change: float = 10.0,
        boost_power: float = 0.80,
    ) -> ScoredAsset:
        metrics = make_asset(asset_id=asset_id, symbol=asset_id[:4], price=price)
        score = ScoreResult(
            boost_power=boost_power,
            classification=classification,
            reason="fixture",
            confidence=ConfidenceTier.MEDIUM,
            predicted_change=0.0 if classification is Classification.RUIDOSO else predicted_change,
            breakdown=ScoreBreakdown(
                potential={},
                resistance={},
                potential_score=0.0,
                resistance_score=0.0,
                raw_signal=0.0,
            ),
        )
        return ScoredAsset(metrics=metrics, score=score)

    return _make
