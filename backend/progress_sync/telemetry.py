"""Structured telemetry for sync, claim and migration activity.

Events are logged as one JSON line on the ``progress_sync.telemetry`` logger and
fanned out to in-process listeners. Listeners must not raise into the caller;
failures are logged and the remaining listeners still run.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import BaseModel

logger = logging.getLogger("progress_sync.telemetry")

Listener = Callable[["TelemetryEvent"], None]


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_listeners: List[Listener] = []
_lock = RLock()


def register_listener(listener: Listener) -> Callable[[], None]:
    """Register an in-process listener; returns a callable that removes it again."""
    with _lock:
        _listeners.append(listener)

    def _unregister() -> None:
        with _lock:
            if listener in _listeners:
                _listeners.remove(listener)

    return _unregister


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


@contextmanager
def capture_events(name: Optional[str] = None) -> Iterator[List[TelemetryEvent]]:
    """Collect events emitted inside the block, optionally only those called ``name``."""
    captured: List[TelemetryEvent] = []

    def _collect(event: TelemetryEvent) -> None:
        if name is None or event.name == name:
            captured.append(event)

    unregister = register_listener(_collect)
    try:
        yield captured
    finally:
        unregister()


def emit_event(name: str, **fields: Any) -> TelemetryEvent:
    event = TelemetryEvent(name=name, payload={key: _plain(value) for key, value in fields.items()})

    with _lock:
        listeners = list(_listeners)
    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    if logger.isEnabledFor(logging.INFO):
        logger.info("TELEMETRY %s", json.dumps({"event": name, **event.payload}, default=str, sort_keys=True))
    return event


def _plain(value: Any) -> Any:
    """Reduce enums, timestamps and pydantic models to JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, dict):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_plain(item) for item in value]
    return value


__all__ = [
    "TelemetryEvent",
    "capture_events",
    "clear_listeners",
    "emit_event",
    "register_listener",
]
