"""String key-value stores backing the repository and the session snapshot.

Values are whole JSON documents replaced on every write. The directory
store keeps one file per key so that a corrupt entry only affects itself.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

from quiz_shelf.core.errors import StorageFailure, StorageQuotaExceeded

logger = logging.getLogger(__name__)

_FILE_SUFFIX = ".json"


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...

    def clear(self) -> None: ...


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class InMemoryStore:
    """Process-local store; used for the session snapshot and in tests."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageFailure(f"Value for '{key}' must be a string, got {type(value).__name__}.")
        if self._quota_bytes is not None:
            used = sum(_entry_size(k, v) for k, v in self._items.items() if k != key)
            required = used + _entry_size(key, value)
            if required > self._quota_bytes:
                raise StorageQuotaExceeded(key, required, self._quota_bytes)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()


class JsonDirectoryStore:
    """Durable store keeping each key in its own file under ``root``."""

    def __init__(self, root: Path, quota_bytes: int | None = None) -> None:
        self._root = root
        self._quota_bytes = quota_bytes

    def get_root(self) -> Path:
        return self._root

    def get_item(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read storage entry %s: %s", path, exc)
            return None

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageFailure(f"Value for '{key}' must be a string, got {type(value).__name__}.")
        if self._quota_bytes is not None:
            required = self._used_bytes(excluding=key) + _entry_size(key, value)
            if required > self._quota_bytes:
                raise StorageQuotaExceeded(key, required, self._quota_bytes)

        path = self._path_for(key)
        temp_path = path.with_name(path.name + ".tmp")
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(value, encoding="utf-8")
            os.replace(temp_path, path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise StorageFailure(f"Could not write storage entry '{key}': {exc}") from exc

    def remove_item(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Could not remove storage entry '{key}': {exc}") from exc

    def keys(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            unquote(path.name[: -len(_FILE_SUFFIX)])
            for path in self._root.iterdir()
            if path.is_file() and path.name.endswith(_FILE_SUFFIX)
        )

    def clear(self) -> None:
        for key in self.keys():
            self.remove_item(key)

    def _path_for(self, key: str) -> Path:
        if not key:
            raise ValueError("Storage key must not be empty.")
        return self._root / f"{quote(key, safe='-_.')}{_FILE_SUFFIX}"

    def _used_bytes(self, excluding: str) -> int:
        total = 0
        for key in self.keys():
            if key == excluding:
                continue
            value = self.get_item(key)
            if value is not None:
                total += _entry_size(key, value)
        return total
