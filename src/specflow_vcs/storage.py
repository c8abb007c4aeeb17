"""Key/value configuration stores for preferences and integration settings."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from specflow_vcs.util.logging import get_logger

TEAM_MODE_KEY = "version_control_team_mode"


class StorageError(RuntimeError):
    """Raised when the backing store cannot be read or written."""


class KeyValueStore(ABC):
    """Abstract string-keyed store holding JSON-compatible values."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value stored under ``key`` or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, mainly for tests and one-shot commands."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any | None:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """Store persisted as a single JSON object on disk.

    The file is re-read on every access so that edits made by other processes
    (for example an integration settings page) are picked up immediately.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON document. It is created on first write.
        """

        self._path = path.expanduser()
        self._logger = get_logger(self.__class__.__name__)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Any | None:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._write(data)

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Unable to read store at {self._path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StorageError(f"Store at {self._path} must contain a JSON object.")
        return payload

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Unable to write store at {self._path}: {exc}") from exc
        self._logger.debug("Persisted %s keys to %s.", len(data), self._path)


def load_team_mode(store: KeyValueStore) -> bool:
    """Return the persisted team-mode preference (False when unset or unreadable)."""

    value = store.get(TEAM_MODE_KEY)
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return False
    return value is True


def save_team_mode(store: KeyValueStore, enabled: bool) -> None:
    """Persist the team-mode preference as a JSON boolean."""

    store.set(TEAM_MODE_KEY, bool(enabled))
