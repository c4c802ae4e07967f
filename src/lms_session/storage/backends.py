"""Durable key/value storage used to keep a session across restarts.

Two backends are provided.  ``MemoryStorage`` lives only as long as the
process and is what tests use.  ``FileStorage`` keeps every key in a single
JSON document on disk; a write replaces the whole document atomically so a
crash mid-write leaves the previous contents intact.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
import tempfile
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage backed by a dict."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileStorage:
    """Storage persisted as a JSON object of string values at *path*."""

    def __init__(self, path: str | pathlib.Path) -> None:
        self._path = pathlib.Path(path).expanduser()

    @property
    def path(self) -> pathlib.Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    # -- private helpers -----------------------------------------------------

    def _read(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable storage file %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring storage file %s: top level is not an object", self._path)
            return {}
        return data

    def _write(self, data: dict[str, object]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".session-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_name, self._path)
        except BaseException:
            pathlib.Path(tmp_name).unlink(missing_ok=True)
            raise
