from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Protocol

logger = logging.getLogger(__name__)

WATCHLIST_STORAGE_KEY = "moodflix_watchlist"


class StoragePort(Protocol):
    """Key/value string storage, the Python stand-in for a browser's local storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """All keys kept in one JSON object on disk."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.exception("Could not read %s; treating it as empty", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self._path)

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._save(data)


def read_local_items(storage: StoragePort) -> list[dict[str, Any]]:
    raw = storage.get(WATCHLIST_STORAGE_KEY)
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except json.JSONDecodeError:
        logger.error("Corrupt local watchlist data; ignoring it")
        return []
    if not isinstance(items, list):
        logger.error("Local watchlist data is not a list; ignoring it")
        return []
    return [i for i in items if isinstance(i, dict)]


def write_local_items(storage: StoragePort, items: list[dict[str, Any]]) -> None:
    storage.set(WATCHLIST_STORAGE_KEY, json.dumps(items))
