"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      committed static defaults
  2. ``config/local.toml``        optional local overrides (gitignored)
  3. ``.env``                     local overrides (gitignored)
  4. Environment variables        ``CRYPTO_DETECTOR_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Algorithm configs are built per mode by ``build_algorithm_config``: the mode's
documented defaults, deep-merged with the ``[algorithm.<mode>]`` override
tables. Normal and speculative are never merged with each other.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

from crypto_detector.models.algorithm import AlgorithmConfig, default_algorithm_config
from crypto_detector.models.trading import TradingParams
from crypto_detector.taxonomy.classification import ModelMode, TemporalModel
from crypto_detector.utils.time_utils import hours_to_ms

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite key-value store settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/crypto_detector.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/crypto_detector.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class CyclesConfig(BaseModel):
    """Cycle lifecycle defaults."""

    model_config = ConfigDict(frozen=True)

    default_duration_hours: float = 12.0
    history_limit: int = 50
    temporal_model: TemporalModel = TemporalModel.LINEAR
    default_mode: ModelMode = ModelMode.NORMAL

    @field_validator("default_duration_hours")
    @classmethod
    def validate_duration(cls, v: float) -> float:
        if v * 60 < 1:
            raise ValueError(f"default_duration_hours must be at least one minute, got {v}.")
        return v

    @property
    def default_duration_ms(self) -> int:
        return hours_to_ms(self.default_duration_hours)


class AppConfig(BaseModel):
    """Complete application configuration.

    CLI commands receive an ``AppConfig``; per-mode algorithm configs come
    from ``algorithm_config(mode)``.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    cycles: CyclesConfig = CyclesConfig()
    trading: TradingParams = TradingParams()
    algorithm: dict[str, dict[str, Any]] = {}
    debug: bool = False

    def algorithm_config(self, mode: ModelMode | str) -> AlgorithmConfig:
        mode = ModelMode(mode)
        return build_algorithm_config(mode, self.algorithm.get(mode.value, {}))


# ── Algorithm config builder ──────────────────────────────────────────────────


def build_algorithm_config(
    mode: ModelMode | str,
    overrides: Optional[dict[str, Any]] = None,
) -> AlgorithmConfig:
    """Mode defaults with ``overrides`` deep-merged on top.

    ``model_type`` always follows ``mode``. Cross-field invariants are not
    checked here; call ``validate_algorithm_config`` on the result.

    Raises:
        pydantic.ValidationError: An override has the wrong type.
    """
    mode = ModelMode(mode)
    base = default_algorithm_config(mode).model_dump()
    merged = _deep_merge(base, overrides or {})
    merged["model_type"] = mode
    return AlgorithmConfig.model_validate(merged)


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Raises:
        FileNotFoundError: If the config file does not exist.
        pydantic.ValidationError: If merged values fail validation.
    """
    root = _find_project_root()
    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            raw = _deep_merge(raw, tomllib.load(f))

    raw = _apply_env_overrides(raw)
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply CRYPTO_DETECTOR_* env vars to the raw config dict.

    Supported overrides:
      CRYPTO_DETECTOR_DB_PATH    → raw["database"]["db_path"]
      CRYPTO_DETECTOR_LOG_LEVEL  → raw["logging"]["level"]
      CRYPTO_DETECTOR_MODE       → raw["cycles"]["default_mode"]
      CRYPTO_DETECTOR_DEBUG      → raw["debug"]
    """
    if db_path := os.environ.get("CRYPTO_DETECTOR_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("CRYPTO_DETECTOR_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if mode := os.environ.get("CRYPTO_DETECTOR_MODE"):
        raw.setdefault("cycles", {})["default_mode"] = mode.lower()

    if debug := os.environ.get("CRYPTO_DETECTOR_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to the ``AppConfig`` structure."""
    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        cycles=CyclesConfig(**raw.get("cycles", {})),
        trading=TradingParams(**raw.get("trading", {})),
        algorithm=raw.get("algorithm", {}),
        debug=raw.get("debug", False),
    )
