"""
JSON file loaders for asset snapshots, external signals, prices and
intra-cycle observations.

Asset rows may use this package's field names or the common market-data API
names, which are mapped on load:

  id                                   → asset_id
  current_price                        → price
  total_volume                         → volume_24h
  price_change_percentage_24h          → price_change_24h
  price_change_percentage_7d_in_currency, price_change_percentage_7d
                                       → price_change_7d

All rows are validated before any are returned. If any row fails, a single
``ValueError`` lists the first 10 failures.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from crypto_detector.models.asset import AssetMetrics, ExternalSignals, PriceQuote
from crypto_detector.models.cycle import PriceObservation

logger = logging.getLogger(__name__)

_ASSET_ALIASES: dict[str, str] = {
    "id": "asset_id",
    "current_price": "price",
    "total_volume": "volume_24h",
    "price_change_percentage_24h": "price_change_24h",
    "price_change_percentage_7d_in_currency": "price_change_7d",
    "price_change_percentage_7d": "price_change_7d",
}

_MAX_REPORTED_ERRORS = 10

ModelT = TypeVar("ModelT", bound=BaseModel)


def _read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _rows(payload: Any, container_key: str) -> list[Any]:
    if isinstance(payload, dict) and container_key in payload:
        payload = payload[container_key]
    if not isinstance(payload, list):
        raise ValueError(f"Expected a JSON list (or an object with '{container_key}').")
    return payload


def _validate_rows(rows: list[Any], model: type[ModelT], path: Path) -> list[ModelT]:
    parsed: list[ModelT] = []
    errors: list[str] = []
    for idx, row in enumerate(rows):
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as exc:
            errors.append(f"  row {idx}: {exc.errors()[0]['loc']} {exc.errors()[0]['msg']}")

    if errors:
        shown = "\n".join(errors[:_MAX_REPORTED_ERRORS])
        more = len(errors) - _MAX_REPORTED_ERRORS
        suffix = f"\n  ... and {more} more" if more > 0 else ""
        raise ValueError(f"{len(errors)} invalid row(s) in {path}:\n{shown}{suffix}")

    logger.info("Loaded %d %s row(s) from %s", len(parsed), model.__name__, path)
    return parsed


def _normalize_asset_row(row: Any) -> Any:
    if not isinstance(row, dict):
        return row
    out: dict[str, Any] = {}
    for key, value in row.items():
        target = _ASSET_ALIASES.get(key, key)
        if target not in out or out[target] is None:
            out[target] = value
    out.setdefault("symbol", out.get("asset_id", ""))
    return out


def load_assets(path: Path) -> list[AssetMetrics]:
    rows = [_normalize_asset_row(r) for r in _rows(_read_json(path), "assets")]
    return _validate_rows(rows, AssetMetrics, path)


def load_signals(path: Path) -> dict[str, ExternalSignals]:
    """Signals keyed by asset id: ``{"bitcoin": {"news_count": 4, ...}, ...}``."""
    payload = _read_json(path)
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object keyed by asset id in {path}.")
    ids = list(payload)
    parsed = _validate_rows([payload[i] for i in ids], ExternalSignals, path)
    return dict(zip(ids, parsed))


def load_prices(path: Path) -> list[PriceQuote]:
    """Prices as ``[{"id": ..., "current_price": ...}]`` or ``{"id": price}``."""
    payload = _read_json(path)
    if isinstance(payload, dict) and "prices" not in payload:
        rows: list[Any] = [{"asset_id": k, "current_price": v} for k, v in payload.items()]
    else:
        rows = [
            {**r, "asset_id": r.get("asset_id", r.get("id"))} if isinstance(r, dict) else r
            for r in _rows(payload, "prices")
        ]
    return _validate_rows(rows, PriceQuote, path)


def load_observations(path: Path) -> list[PriceObservation]:
    return _validate_rows(_rows(_read_json(path), "observations"), PriceObservation, path)
