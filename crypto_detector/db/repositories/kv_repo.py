"""
SQLite implementation of the ``KeyValueStore`` protocol.

Values are stored as JSON text in ``kv_store``. Reads return the decoded
structure; a row whose text is not valid JSON (a bare legacy string) is
returned as the raw string for ``decode_value`` to handle upstream.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from crypto_detector.db.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class SQLiteKeyValueStore(BaseRepository):
    """``get`` / ``set`` over the ``kv_store`` table."""

    def get(self, key: str) -> Optional[Any]:
        row = self.fetchone("SELECT value FROM kv_store WHERE key = ?;", (key,))
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return row["value"]

    def set(self, key: str, value: Any) -> None:
        self.execute(
            """
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (?, ?, strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
            ON CONFLICT(key) DO UPDATE SET
                value      = excluded.value,
                updated_at = excluded.updated_at;
            """,
            (key, json.dumps(value, default=str)),
        )

