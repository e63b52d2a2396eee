"""
Local Key-Value Stores

Session and preference data (the mocked login, the theme) live in a small
local store rather than the shared ledger. The file-backed store keeps the
whole map in one JSON document and rewrites it on every change.
"""

import json
from pathlib import Path
from typing import Any, Optional

import structlog

from splitledger.services.storage.interface import KeyValueStoreInterface, StorageError


logger = structlog.get_logger(__name__)


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Key-value store that lives as long as the process."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStoreInterface):
    """
    Key-value store persisted to a JSON file.

    A missing file is an empty store. A corrupt file is logged and treated
    as empty; the next write replaces it.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("session_store_unreadable", path=str(self._path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write session store {self._path}: {e}")

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()
