"""String-keyed storage primitives underneath the local profile cache."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]:  # pragma: no cover - protocol definition
        ...

    def set(self, key: str, value: str) -> None:  # pragma: no cover - protocol definition
        ...

    def remove(self, key: str) -> None:  # pragma: no cover - protocol definition
        ...


class MemoryStorage:
    """Process-local storage; contents vanish with the process."""

    def __init__(self) -> None:
        self._values: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)


class JsonFileStorage:
    """Durable storage kept as one JSON object on disk.

    Every write goes to a temporary file in the same directory and is moved into
    place with ``os.replace`` so readers never observe a half-written document.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
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
            logger.exception("Failed to read key-value storage at %s", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring non-object key-value storage at %s", self._path)
            return {}
        return {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def _write_unlocked(self, values: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(values, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except Exception:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load_unlocked().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            values = self._load_unlocked()
            values[key] = value
            self._write_unlocked(values)

    def remove(self, key: str) -> None:
        with self._lock:
            values = self._load_unlocked()
            if values.pop(key, None) is not None:
                self._write_unlocked(values)


__all__ = ["JsonFileStorage", "KeyValueStorage", "MemoryStorage"]
