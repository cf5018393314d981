"""Structured sync events fanned out to in-process listeners and the log."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, Iterator, List

logger = logging.getLogger("quizsync.telemetry")

Listener = Callable[["TelemetryEvent"], None]


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]


_listeners: List[Listener] = []
_lock = RLock()


def register_listener(listener: Listener) -> None:
    with _lock:
        _listeners.append(listener)


def unregister_listener(listener: Listener) -> None:
    with _lock:
        if listener in _listeners:
            _listeners.remove(listener)


@contextmanager
def capture_events() -> Iterator[List[TelemetryEvent]]:
    """Collect every event emitted inside the block (used by tests and diagnostics)."""
    captured: List[TelemetryEvent] = []
    register_listener(captured.append)
    try:
        yield captured
    finally:
        unregister_listener(captured.append)


def emit_event(name: str, **fields: Any) -> None:
    payload = {key: _plain(value) for key, value in fields.items()}
    event = TelemetryEvent(name=name, payload=payload)

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    logger.info("TELEMETRY %s", json.dumps({"event": name, **payload}, default=str))


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


__all__ = [
    "TelemetryEvent",
    "capture_events",
    "emit_event",
    "register_listener",
    "unregister_listener",
]
