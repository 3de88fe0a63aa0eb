"""
Local persisted state for the client, modelled as a small key-value
capability so the tracker can run without a real storage backend.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

RECORDS_CACHE_KEY = "feeding_records"
D3_CACHE_KEY = "d3_status"


class LocalCache(Protocol):
    """Minimal get/set/clear interface over JSON-serializable values."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def clear(self) -> None:
        ...


@dataclass
class InMemoryLocalCache:
    """Test double for local persistence."""

    items: dict = field(default_factory=dict)

    def get(self, key: str) -> Optional[Any]:
        stored = self.items.get(key)
        if stored is None:
            return None
        # Round-trip through JSON so callers never share mutable state.
        return json.loads(stored)

    def set(self, key: str, value: Any) -> None:
        self.items[key] = json.dumps(value)

    def clear(self) -> None:
        self.items.clear()


class JsonFileCache:
    """Stores every key in a single JSON document on disk."""

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
