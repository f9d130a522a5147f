"""
Key-value store contract.

The cycle engine only needs ``get(key) -> value | None`` and
``set(key, value)`` with structured (JSON-compatible) values. Production
backends live behind this protocol; ``SQLiteKeyValueStore`` and
``InMemoryKeyValueStore`` are the two shipped implementations.

Older writers stored some values as JSON-encoded strings instead of structured
records. ``decode_value`` tolerates both and falls back to a default when a
string cannot be decoded.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Optional[Any]:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def keys(self) -> list[str]:
        return list(self._data)


def decode_value(raw: Any, default: Any, key: str = "") -> Any:
    """Return ``raw`` as a structured value.

    Strings are treated as legacy JSON encodings and decoded; undecodable
    strings and ``None`` yield ``default``.
    """
    if raw is None:
        return default
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Undecodable legacy value under key %r; using default", key)
            return default
    return raw
