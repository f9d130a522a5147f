"""
Online-calibration state persistence over a ``KeyValueStore``.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from crypto_detector.db.kv import KeyValueStore, decode_value
from crypto_detector.scoring.calibration import (
    CALIBRATION_KEY,
    CalibrationState,
    empty_calibration,
)

logger = logging.getLogger(__name__)


class CalibrationRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def load(self) -> CalibrationState:
        """Stored state, or a fresh one when missing or unreadable."""
        raw = decode_value(self.store.get(CALIBRATION_KEY), None, key=CALIBRATION_KEY)
        if not isinstance(raw, dict):
            return empty_calibration()
        try:
            return CalibrationState.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Stored calibration state invalid; starting fresh: %s", exc)
            return empty_calibration()

    def save(self, state: CalibrationState) -> None:
        self.store.set(CALIBRATION_KEY, state.model_dump(mode="json"))
