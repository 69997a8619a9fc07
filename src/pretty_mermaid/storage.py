"""
Durable key-value storage for the editor (code, preset, custom theme).

A single JSON object on disk.  Keys are read once at startup and written
on every mutation; a missing or unreadable file behaves as an empty store.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class KeyValueStore:
    """String-valued key/value store persisted as a JSON file."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path
        self._data: dict[str, str] = {}
        if path is not None:
            self._data = self._load(path)

    @staticmethod
    def _load(path: Path) -> dict[str, str]:
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable store %s: %s", path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring store %s: expected a JSON object", path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def keys(self) -> list[str]:
        return sorted(self._data)

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
