"""Tests for orchestration/events.py."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from inkloop.ai.orchestration.events import (
    CollectingEventSink,
    EditEvent,
    EditEventType,
    JsonlEventSink,
    LoggingEventSink,
    NullEventSink,
    emit_safely,
)
from inkloop.ai.orchestration.types import RunStatus
from inkloop.utils import logging as logging_utils


def make_event(event_type: EditEventType, run_id: str = "run-1", **payload) -> EditEvent:
    return EditEvent(type=event_type, run_id=run_id, payload=payload, timestamp=1.0)


class TestEditEvent:
    def test_to_dict_flattens_payload(self) -> None:
        event = make_event(EditEventType.TOOL_CALL, tool="patch")

        assert event.to_dict() == {"event": "tool_call", "run_id": "run-1", "timestamp": 1.0, "tool": "patch"}


class TestSinks:
    def test_null_sink_accepts_everything(self) -> None:
        NullEventSink().emit(make_event(EditEventType.START))

    def test_collecting_sink(self) -> None:
        sink = CollectingEventSink()
        sink.emit(make_event(EditEventType.START))
        sink.emit(make_event(EditEventType.ITERATION, step=1))
        sink.emit(make_event(EditEventType.ITERATION, step=2))

        assert len(sink.events) == 3
        assert [event.payload["step"] for event in sink.of_type(EditEventType.ITERATION)] == [1, 2]

    def test_logging_sink_skips_stream_chunks(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("edit-events-test")
        sink = LoggingEventSink(logger)

        with caplog.at_level(logging.DEBUG, logger="edit-events-test"):
            sink.emit(make_event(EditEventType.STREAM, chunk="partial"))
            sink.emit(make_event(EditEventType.PHASE, phase="executing"))

        messages = [record.getMessage() for record in caplog.records if record.name == "edit-events-test"]
        assert messages == ["[run-1] phase {'phase': 'executing'}"]


class TestJsonlEventSink:
    def test_one_file_per_run(self, tmp_path: Path) -> None:
        sink = JsonlEventSink(tmp_path)

        sink.emit(make_event(EditEventType.START, goal="Add docs"))
        sink.emit(make_event(EditEventType.STREAM, chunk="ignored"))
        sink.emit(make_event(EditEventType.COMPLETE, status=RunStatus.COMPLETED))

        path = sink.paths["run-1"]
        assert path.parent == tmp_path
        assert path.name.startswith("edit-") and path.name.endswith("-run1.jsonl")
        lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        assert [line["event"] for line in lines] == ["start", "complete"]
        assert lines[1]["status"] == "completed"

    def test_defaults_to_the_event_log_dir(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(logging_utils, "_LOG_PATH", tmp_path / "logs" / "inkloop.log")
        sink = JsonlEventSink()

        sink.emit(make_event(EditEventType.ERROR, error="boom"))

        assert sink.paths["run-1"].parent == tmp_path / "logs" / "events"

    def test_stream_chunks_can_be_included(self, tmp_path: Path) -> None:
        sink = JsonlEventSink(tmp_path, include_stream=True)

        sink.emit(make_event(EditEventType.STREAM, chunk="abc"))
        sink.close()

        lines = sink.paths["run-1"].read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[0])["chunk"] == "abc"

    def test_payload_objects_are_serialized(self, tmp_path: Path) -> None:
        class Snapshot:
            def to_dict(self) -> dict:
                return {"chars": 3, "tags": {"a", "a"}}

        sink = JsonlEventSink(tmp_path)
        sink.emit(make_event(EditEventType.CHECKPOINT, checkpoint=Snapshot(), raw=b"bytes"))
        sink.emit(make_event(EditEventType.ERROR, error="boom"))

        first = json.loads(sink.paths["run-1"].read_text(encoding="utf-8").splitlines()[0])
        assert first["checkpoint"] == {"chars": 3, "tags": ["a"]}
        assert first["raw"] == "bytes"


class TestEmitSafely:
    def test_sink_failure_is_swallowed(self) -> None:
        class BrokenSink:
            def emit(self, event: EditEvent) -> None:
                raise RuntimeError("sink down")

        emit_safely(BrokenSink(), make_event(EditEventType.START))

    def test_none_sink(self) -> None:
        emit_safely(None, make_event(EditEventType.START))

    def test_delivers_event(self) -> None:
        sink = CollectingEventSink()

        emit_safely(sink, make_event(EditEventType.START))

        assert len(sink.events) == 1
