"""Durable local key/value storage for client-side state."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class LocalStorage:
    """Key/value store backed by a JSON file.

    Plays the part of browser local storage: string keys, JSON values,
    every write goes straight to disk.
    """

    def __init__(self, storage_file: Optional[str] = None) -> None:
        """
        Initialize the storage.

        Args:
            storage_file: Path of the backing file. Defaults to ~/.storefront_storage.json
        """
        if storage_file is None:
            storage_file = str(Path.home() / ".storefront_storage.json")
        self.storage_file = storage_file

    def _read_all(self) -> dict[str, Any]:
        if not os.path.exists(self.storage_file):
            return {}
        try:
            with open(self.storage_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read storage file {self.storage_file}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed storage file {self.storage_file}")
            return {}
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        with open(self.storage_file, "w", encoding="utf-8") as f:
            json.dump(data, f, default=str)
        os.chmod(self.storage_file, 0o600)

    def get_item(self, key: str) -> Any:
        """Return the stored value for key, or None."""
        return self._read_all().get(key)

    def set_item(self, key: str, value: Any) -> None:
        """Store value under key."""
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        """Delete key if present."""
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class MemoryStorage:
    """In-memory storage with the LocalStorage interface."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self.data: dict[str, Any] = dict(initial or {})

    def get_item(self, key: str) -> Any:
        return self.data.get(key)

    def set_item(self, key: str, value: Any) -> None:
        self.data[key] = value

    def remove_item(self, key: str) -> None:
        self.data.pop(key, None)
