"""Progress events emitted by the editing loop.

Sinks are observers only: :func:`emit_safely` swallows and logs any failure
so a broken sink never changes how a run proceeds.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Protocol, TextIO

from ...utils import logging as logging_utils

LOGGER = logging.getLogger(__name__)

__all__ = [
    "EditEventType",
    "EditEvent",
    "EditEventSink",
    "NullEventSink",
    "LoggingEventSink",
    "CollectingEventSink",
    "JsonlEventSink",
    "emit_safely",
]


class EditEventType(str, Enum):
    START = "start"
    PHASE = "phase"
    ITERATION = "iteration"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    CONTENT = "content"
    STREAM = "stream"
    VERIFICATION = "verification"
    CHECKPOINT = "checkpoint"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class EditEvent:
    type: EditEventType
    run_id: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.type.value,
            "run_id": self.run_id,
            "timestamp": self.timestamp,
            **dict(self.payload),
        }


class EditEventSink(Protocol):
    def emit(self, event: EditEvent) -> None:
        ...


class NullEventSink:
    """Sink used when nobody is listening."""

    def emit(self, event: EditEvent) -> None:  # noqa: D401
        return


class LoggingEventSink:
    """Forward events to a logger at DEBUG level; stream chunks are skipped."""

    def __init__(self, logger: logging.Logger | None = None, *, level: int = logging.DEBUG) -> None:
        self._logger = logger or LOGGER
        self._level = level

    def emit(self, event: EditEvent) -> None:
        if event.type is EditEventType.STREAM:
            return
        self._logger.log(self._level, "[%s] %s %s", event.run_id, event.type.value, dict(event.payload))


class CollectingEventSink:
    """Keep every event in memory; handy for callers that render progress later."""

    def __init__(self) -> None:
        self.events: list[EditEvent] = []

    def emit(self, event: EditEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EditEventType) -> list[EditEvent]:
        return [event for event in self.events if event.type is event_type]


class JsonlEventSink:
    """Write one JSON object per event, one file per run.

    A file is opened on the run's ``start`` event and closed on ``complete``
    or ``error``.
    """

    def __init__(self, base_dir: Path | str | None = None, *, include_stream: bool = False) -> None:
        self._base_dir = Path(base_dir) if base_dir else logging_utils.get_event_log_dir()
        self._include_stream = include_stream
        self._files: dict[str, TextIO] = {}
        self.paths: dict[str, Path] = {}

    def emit(self, event: EditEvent) -> None:
        if event.type is EditEventType.STREAM and not self._include_stream:
            return
        handle = self._files.get(event.run_id)
        if handle is None:
            handle = self._open(event.run_id)
        json.dump(_safe_json(event.to_dict()), handle, ensure_ascii=False)
        handle.write("\n")
        handle.flush()
        if event.type in (EditEventType.COMPLETE, EditEventType.ERROR):
            self._close(event.run_id)

    def close(self) -> None:
        for run_id in list(self._files):
            self._close(run_id)

    def _open(self, run_id: str) -> TextIO:
        self._base_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
        safe_run_id = "".join(ch for ch in run_id if ch.isalnum())[:12] or "run"
        path = self._base_dir / f"edit-{timestamp}-{safe_run_id}.jsonl"
        handle = path.open("a", encoding="utf-8")
        self._files[run_id] = handle
        self.paths[run_id] = path
        LOGGER.debug("Edit event log started: %s", path)
        return handle

    def _close(self, run_id: str) -> None:
        handle = self._files.pop(run_id, None)
        if handle is None:
            return
        try:
            handle.close()
        except OSError:
            LOGGER.debug("Failed to close event log for run %s", run_id, exc_info=True)


def _safe_json(value: Any, *, depth: int = 0) -> Any:
    if depth > 6:
        return repr(value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(key): _safe_json(val, depth=depth + 1) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_safe_json(item, depth=depth + 1) for item in value]
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return _safe_json(to_dict(), depth=depth + 1)
    return repr(value)


def emit_safely(sink: EditEventSink | None, event: EditEvent) -> None:
    """Deliver *event* to *sink*, logging and discarding any sink failure."""
    if sink is None:
        return
    try:
        sink.emit(event)
    except Exception:
        LOGGER.debug("Event sink failed on %s event", event.type.value, exc_info=True)
