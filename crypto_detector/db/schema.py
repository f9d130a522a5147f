"""
SQLite schema DDL.

The engine persists everything through a key-value contract, so the schema is
a single ``kv_store`` table: one row per key, the value held as JSON text.

Keys in use:
  active_cycles               JSON list of active cycle ids
  completed_cycles            JSON list of completed cycle ids, newest first
  <cycle_id>                  JSON-encoded Cycle record
  <cycle_id>:observations     JSON list of intra-cycle PriceObservation
  predict-calibration-v2      JSON-encoded CalibrationState

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

_DDL_KV_STORE = """
CREATE TABLE IF NOT EXISTS kv_store (
    key         TEXT    NOT NULL PRIMARY KEY,
    value       TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_ALL_DDL: list[str] = [_DDL_KV_STORE]

ALL_TABLE_NAMES: list[str] = ["kv_store"]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``. Idempotent."""
    logger.debug("Applying schema to database...")
    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)
    conn.commit()
    logger.info("Schema applied: %d table(s) created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]
