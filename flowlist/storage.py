"""Durable key-value storage used by the task store.

Both primitives are synchronous and total: they either succeed or raise
``StorageReadError`` / ``StorageWriteError``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from flowlist.errors import StorageReadError, StorageWriteError
from flowlist.fileio import read_text_or_none, write_text_atomic

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class FileStorage:
    """One file per key: ``<root>/<key>.json``, written atomically."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._root / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            return read_text_or_none(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Storage read failed key=%s path=%s: %s", key, path, e)
            raise StorageReadError(f"Cannot read {path}: {e}", key=key) from e

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        try:
            write_text_atomic(path, value)
        except OSError as e:
            logger.error("Storage write failed key=%s path=%s: %s", key, path, e)
            raise StorageWriteError(f"Cannot write {path}: {e}", key=key) from e
        logger.debug("Storage write key=%s bytes=%d", key, len(value.encode("utf-8")))


class MemoryStorage:
    """In-process storage for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value
