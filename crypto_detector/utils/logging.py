"""
Logging setup for Crypto Detector.

Call ``configure_logging(config)`` once at CLI entry, before any scoring or
cycle work. Library modules only ever use ``logging.getLogger(__name__)`` and
never call ``configure_logging`` or ``basicConfig`` themselves.

JSON format (``json_format = true`` under ``[logging]``) emits one object per
line, with any ``extra=`` fields merged in at the top level::

    {"ts": "2026-02-24T15:00:00Z", "level": "INFO", "logger": "...", "msg": "..."}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from crypto_detector.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class _JsonFormatter(logging.Formatter):
    """One JSON object per record: ``ts``, ``level``, ``logger``, ``msg`` + extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                LOG_DATE_FORMAT
            ),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        for key, val in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = val
        return json.dumps(payload, default=str)


def _build_handlers(
    config: "LoggingConfig", level: int, console: bool = True
) -> list[logging.Handler]:
    formatter: logging.Formatter
    if config.json_format:
        formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)] if console else []
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def configure_logging(config: "LoggingConfig", console: bool = True) -> None:
    """Configure the root logger from a ``LoggingConfig`` instance.

    Sets up a stdout handler, an optional file handler (parent directories
    are created), and the JSON formatter when ``config.json_format`` is set.
    With ``console=False`` nothing is written to the terminal, so commands
    emitting machine-readable stdout stay parseable.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    handlers = _build_handlers(config, level, console)
    if not handlers:
        handlers = [logging.NullHandler()]
    logging.basicConfig(level=level, handlers=handlers, force=True)
