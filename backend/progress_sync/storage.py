"""Key/value persistence backends for the offline-capable local store."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """String key/value storage with whole-value writes."""

    def get_item(self, key: str) -> Optional[str]:  # pragma: no cover - protocol definition
        ...

    def set_item(self, key: str, value: str) -> None:  # pragma: no cover - protocol definition
        ...

    def remove_item(self, key: str) -> None:  # pragma: no cover - protocol definition
        ...


class MemoryStorage:
    """Process-local storage used for local-only sessions and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileStorage:
    """JSON-file backed storage; every write rewrites the whole file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError):
            logger.warning("Local storage file %s is unreadable; treating it as empty", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Local storage file %s is not a mapping; treating it as empty", self._path)
            return {}
        return {key: value for key, value in raw.items() if isinstance(value, str)}

    def _write_unlocked(self, items: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(items, handle, indent=2)
        tmp_path.replace(self._path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load_unlocked().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            items = self._load_unlocked()
            items[key] = value
            self._write_unlocked(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._load_unlocked()
            if key not in items:
                return
            items.pop(key)
            self._write_unlocked(items)


__all__ = ["JsonFileStorage", "KeyValueStorage", "MemoryStorage"]
