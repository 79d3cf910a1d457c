"""Tests for the editing loop in orchestration/orchestrator.py."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from inkloop.ai.orchestration import (
    CollectingEventSink,
    EditEventType,
    EditOrchestrator,
    OrchestratorConfig,
    RunStatus,
    StaticIntentDetector,
)
from inkloop.ai.orchestration.types import Complexity, DocumentState, GoalStatus
from inkloop.ai.tools.errors import ErrorCode
from inkloop.services.document_store import InMemoryDocumentStore
from inkloop.utils import logging as logging_utils

GUARD = "if (typeof x !== 'number') throw new Error('bad'); return x"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


class ScriptedOracle:
    """Plays back replies in order.

    A reply is a string, an exception to raise, or a zero-argument callable
    returning an async iterator of chunks.
    """

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.calls: list[list] = []

    async def generate(self, messages, config):
        self.calls.append(list(messages))
        if not self.replies:
            raise RuntimeError("script exhausted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply()
        return reply


def stream(*chunks: str, stall: float = 0.0):
    async def generator():
        for chunk in chunks:
            yield chunk
        if stall:
            await asyncio.sleep(stall)

    return generator


async def no_sleep(delay: float) -> None:
    return None


def make_document(content: str = "function f(x){return x}", *, title: str = "app.js") -> DocumentState:
    return DocumentState(title=title, content=content, language="javascript", document_id=title)


def make_patch(search: str, replace: str, *, claim: str = "") -> str:
    return (
        "<thought>guard the input</thought>\n"
        "<replace_in_file><path>app.js</path><content>\n"
        f"<<<<<<< SEARCH\n{search}\n======= REPLACE\n{replace}\n>>>>>>> REPLACE\n"
        f"</content></replace_in_file>{claim}"
    )


def make_write(content: str, *, title: str = "app.js", claim: str = "") -> str:
    return f"<write_to_file>\n<path>{title}</path>\n<content>\n{content}\n</content>\n</write_to_file>{claim}"


def make_orchestrator(oracle: ScriptedOracle, **kwargs: Any) -> EditOrchestrator:
    config = kwargs.pop("config", None) or OrchestratorConfig(stream_responses=False)
    kwargs.setdefault("intent_detector", StaticIntentDetector(goal="add input validation"))
    return EditOrchestrator(oracle, config=config, sleep=no_sleep, **kwargs)


def user_messages(call: list) -> list[str]:
    return [message.content for message in call if message.role == "user"]


# -----------------------------------------------------------------------------
# Tests: successful runs
# -----------------------------------------------------------------------------


class TestSuccessfulRuns:
    @pytest.mark.asyncio
    async def test_patch_then_claim_completes(self) -> None:
        oracle = ScriptedOracle(make_patch("return x", GUARD), "GOAL ACHIEVED")
        orchestrator = make_orchestrator(oracle)

        result = await orchestrator.run_goal("add input validation", make_document())

        assert result.status is RunStatus.COMPLETED
        assert result.goal_achieved
        assert result.changes_count == 1
        assert result.edited_content == f"function f(x){{{GUARD}}}"
        assert result.document.version == 1
        assert result.reason == "Goal explicitly claimed complete with verified changes"
        assert result.summary == "Goal achieved with 1 change(s) in 2 iteration(s)"
        assert [record.step for record in result.records] == [1, 2]
        assert result.records[0].rationale == "guard the input"
        assert result.records[0].verification is not None
        assert result.records[1].goal_status is GoalStatus.ACHIEVED
        assert [cp.description for cp in result.checkpoints] == ["Initial state", "After replace_in_file"]
        assert result.checkpoints[0].content == "function f(x){return x}"
        assert result.stats.iteration_count == 2
        assert result.stats.prompt_tokens > 0

    @pytest.mark.asyncio
    async def test_second_prompt_reports_the_change(self) -> None:
        oracle = ScriptedOracle(make_patch("return x", GUARD), "GOAL ACHIEVED")

        await make_orchestrator(oracle).run_goal("add input validation", make_document())

        second_prompt = user_messages(oracle.calls[1])[-1]
        assert second_prompt.startswith("=== ITERATION 2/12 ===")
        assert "Last: replace_in_file -> OK" in second_prompt
        assert "CHANGES MADE:" in second_prompt

    @pytest.mark.asyncio
    async def test_claim_with_tool_call_applies_the_call_first(self) -> None:
        oracle = ScriptedOracle(
            "<read_file></read_file>",
            make_write("function f(x){return +x}", claim="\nGOAL ACHIEVED"),
        )

        result = await make_orchestrator(oracle).run_goal("add input validation", make_document())

        assert result.status is RunStatus.COMPLETED
        assert result.edited_content == "function f(x){return +x}"
        assert len(result.records) == 2
        assert result.records[1].tool_call is not None

    @pytest.mark.asyncio
    async def test_streamed_response_emits_chunks(self) -> None:
        sink = CollectingEventSink()
        oracle = ScriptedOracle(
            stream("<write_to_file><path>app.js</path><content>", "function f(x){return +x}", "</content></write_to_file>"),
            stream("GOAL ", "ACHIEVED"),
        )
        orchestrator = make_orchestrator(oracle, config=OrchestratorConfig(), event_sink=sink)

        result = await orchestrator.run_goal("add input validation", make_document())

        assert result.status is RunStatus.COMPLETED
        assert [event.payload["chunk"] for event in sink.of_type(EditEventType.STREAM)][:3] == [
            "<write_to_file><path>app.js</path><content>",
            "function f(x){return +x}",
            "</content></write_to_file>",
        ]

    @pytest.mark.asyncio
    async def test_run_detects_intent_first(self) -> None:
        oracle = ScriptedOracle(
            '{"edit": true, "confidence": 0.9, "goal": "Rename x to y", "complexity": "trivial"}',
            make_write("function f(y){return y}", claim="\nGOAL ACHIEVED"),
            "GOAL ACHIEVED",
        )
        orchestrator = EditOrchestrator(oracle, config=OrchestratorConfig(stream_responses=False))

        result = await orchestrator.run("please rename x to y", make_document())

        assert result.status is RunStatus.COMPLETED
        assert result.goal is not None
        assert result.goal.description == "Rename x to y"
        assert result.goal.complexity is Complexity.TRIVIAL
        assert result.edited_content == "function f(y){return y}"


# -----------------------------------------------------------------------------
# Tests: recovery inside the loop
# -----------------------------------------------------------------------------


class TestRecovery:
    @pytest.mark.asyncio
    async def test_premature_claim_is_rejected(self) -> None:
        oracle = ScriptedOracle(
            "GOAL ACHIEVED",
            make_write("function f(x){return +x}"),
            "GOAL ACHIEVED",
        )

        result = await make_orchestrator(oracle).run_goal("add input validation", make_document())

        assert result.status is RunStatus.COMPLETED
        assert len(result.records) == 3
        first = result.records[0]
        assert first.completion is not None and first.completion.rejected
        assert "Claim rejected" in first.note
        assert any("did not change the document" in text for text in user_messages(oracle.calls[1]))

    @pytest.mark.asyncio
    async def test_search_not_found_gets_guidance(self) -> None:
        oracle = ScriptedOracle(
            make_patch("absent text", "x"),
            make_write("function f(x){return +x}", claim="\nGOAL ACHIEVED"),
        )
        orchestrator = make_orchestrator(oracle)

        result = await orchestrator.run_goal("add input validation", make_document())

        assert result.status is RunStatus.COMPLETED
        failed = result.records[0].tool_result
        assert failed is not None and failed.error_code == ErrorCode.SEARCH_NOT_FOUND
        assert any("SEARCH text was NOT found" in text for text in user_messages(oracle.calls[1]))
        assert orchestrator.executor.circuit_breaker.get_state("patch").failures == 0

    @pytest.mark.asyncio
    async def test_unparseable_first_response_blocks(self) -> None:
        oracle = ScriptedOracle("I would change the function to check its input.")

        result = await make_orchestrator(oracle).run_goal("add input validation", make_document())

        assert result.status is RunStatus.BLOCKED
        assert result.reason == "No tool call could be parsed: No valid tool call found"
        assert result.records[0].parse_failure is not None
        assert result.document == make_document()

    @pytest.mark.asyncio
    async def test_tool_named_in_thought_does_not_overwrite_document(self) -> None:
        response = (
            "<thought>Using <write_to_file> would be wasteful, so I'll patch.</thought>\n"
            "<replace_in_file><path>app.js</path><content>\n"
            "<<<<<<< SEARCH\nreturn x\n======= REPLACE\nreturn y\n>>>>>>> REPLACE\n"
            "</content></replace_in_file>"
        )
        oracle = ScriptedOracle(response, "GOAL ACHIEVED")

        result = await make_orchestrator(oracle).run_goal("add input validation", make_document())

        assert result.status is RunStatus.COMPLETED
        assert result.edited_content == "function f(x){return y}"
        assert result.records[0].tool_result is not None
        assert result.records[0].tool_result.tool_name == "patch"

    @pytest.mark.asyncio
    async def test_prose_after_changes_completes_implicitly(self) -> None:
        oracle = ScriptedOracle(make_write("function f(x){return +x}"), "That covers the validation.")

        result = await make_orchestrator(oracle).run_goal("add input validation", make_document())

        assert result.status is RunStatus.COMPLETED
        assert result.reason == "Changes made and LLM stopped using tools"

    @pytest.mark.asyncio
    async def test_prose_after_changes_without_early_termination(self) -> None:
        oracle = ScriptedOracle(
            make_write("function f(x){return +x}"),
            "That covers the validation.",
            "GOAL ACHIEVED",
        )
        config = OrchestratorConfig(stream_responses=False, early_termination=False)

        result = await make_orchestrator(oracle, config=config).run_goal("add input validation", make_document())

        assert result.status is RunStatus.COMPLETED
        assert len(result.records) == 3
        assert any("could not find a valid tool call" in text for text in user_messages(oracle.calls[2]))

    @pytest.mark.asyncio
    async def test_read_output_is_fed_back(self) -> None:
        oracle = ScriptedOracle("<read_file></read_file>", "<read_file></read_file>")
        config = OrchestratorConfig(stream_responses=False, max_iterations=2)

        result = await make_orchestrator(oracle, config=config).run_goal("add input validation", make_document())

        assert result.status is RunStatus.BLOCKED
        assert result.reason == "Reached the iteration limit (2) without completing the goal"
        assert any(text.startswith("read_file result:") for text in user_messages(oracle.calls[1]))

    @pytest.mark.asyncio
    async def test_transcript_is_trimmed(self) -> None:
        oracle = ScriptedOracle(*["<read_file></read_file>"] * 4)
        config = OrchestratorConfig(stream_responses=False, max_iterations=4)

        await make_orchestrator(oracle, config=config).run_goal("add input validation", make_document())

        for call in oracle.calls:
            assert len(call) <= 6
            assert call[0].role == "system"


# -----------------------------------------------------------------------------
# Tests: terminal failures
# -----------------------------------------------------------------------------


class TestTerminalFailures:
    @pytest.mark.asyncio
    async def test_oracle_failure_ends_in_error(self) -> None:
        sink = CollectingEventSink()
        oracle = ScriptedOracle(RuntimeError("boom"), RuntimeError("boom"))

        result = await make_orchestrator(oracle, event_sink=sink).run_goal("add input validation", make_document())

        assert result.status is RunStatus.ERROR
        assert result.error == "Oracle call failed: boom"
        assert len(oracle.calls) == 2
        assert sink.events[-1].type is EditEventType.ERROR

    @pytest.mark.asyncio
    async def test_oracle_recovers_on_retry(self) -> None:
        oracle = ScriptedOracle(RuntimeError("flaky"), make_write("function f(x){return +x}"), "GOAL ACHIEVED")

        result = await make_orchestrator(oracle).run_goal("add input validation", make_document())

        assert result.status is RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_iteration_timeout_blocks(self) -> None:
        oracle = ScriptedOracle(stream("Thinking about", stall=5.0))
        config = OrchestratorConfig(iteration_timeout=0.05)

        result = await make_orchestrator(oracle, config=config).run_goal("add input validation", make_document())

        assert result.status is RunStatus.BLOCKED
        assert result.reason == "Iteration deadline of 0.05s exceeded"
        assert result.records[0].goal_status is GoalStatus.BLOCKED
        assert result.records[0].note == "Iteration deadline of 0.05s exceeded"

    @pytest.mark.asyncio
    async def test_partial_write_is_recovered_after_iteration_timeout(self) -> None:
        body = "def f(x):\n" + "    x += 1\n" * 60
        oracle = ScriptedOracle(
            stream("<write_to_file>\n<path>mod.py</path>\n<content>\n", body, stall=5.0),
            "GOAL ACHIEVED",
        )
        config = OrchestratorConfig(iteration_timeout=0.05)
        document = DocumentState(title="mod.py", content="def f(x):\n    return x", language="python")

        result = await make_orchestrator(oracle, config=config).run_goal("increment x", document)

        assert result.status is RunStatus.COMPLETED
        assert result.edited_content == body.strip()
        assert result.records[0].note == "Accepted partial response after iteration timeout"

    @pytest.mark.asyncio
    async def test_total_timeout_keeps_progress(self) -> None:
        oracle = ScriptedOracle(make_patch("return x", GUARD), stream(stall=5.0))
        config = OrchestratorConfig(stream_responses=False, total_timeout=0.3, iteration_timeout=10.0)

        result = await make_orchestrator(oracle, config=config).run_goal("add input validation", make_document())

        assert result.status is RunStatus.BLOCKED
        assert result.reason == "Total run deadline of 0.3s exceeded"
        assert result.changes_count == 1
        assert len(result.records) == 1
        assert len(result.checkpoints) == 2
        assert result.edited_content == f"function f(x){{{GUARD}}}"

    @pytest.mark.asyncio
    async def test_no_edit_intent(self) -> None:
        oracle = ScriptedOracle()
        detector = StaticIntentDetector(should_edit=False, confidence=0.2)

        result = await make_orchestrator(oracle, intent_detector=detector).run("what does f do?", make_document())

        assert result.status is RunStatus.NO_EDIT
        assert result.reason == "No edit requested (confidence 0.20)"
        assert result.document == make_document()
        assert oracle.calls == []


# -----------------------------------------------------------------------------
# Tests: events, checkpoints and stores
# -----------------------------------------------------------------------------


class TestObservers:
    @pytest.mark.asyncio
    async def test_log_records_are_bound_to_the_run(self) -> None:
        seen: list[str] = []

        class RecordingOracle(ScriptedOracle):
            async def generate(self, messages, config):
                seen.append(logging_utils.current_run_id())
                return await super().generate(messages, config)

        oracle = RecordingOracle(make_patch("return x", GUARD), "GOAL ACHIEVED")

        result = await make_orchestrator(oracle).run_goal("add input validation", make_document())

        assert seen == [result.run_id, result.run_id]
        assert logging_utils.current_run_id() == "-"

    @pytest.mark.asyncio
    async def test_event_sequence(self) -> None:
        sink = CollectingEventSink()
        oracle = ScriptedOracle(make_patch("return x", GUARD), "GOAL ACHIEVED")

        await make_orchestrator(oracle, event_sink=sink).run_goal("add input validation", make_document())

        types = [event.type for event in sink.events]
        assert types[0] is EditEventType.START
        assert types[-1] is EditEventType.COMPLETE
        assert types.count(EditEventType.TOOL_CALL) == 1
        assert types.count(EditEventType.CHECKPOINT) == 2
        assert types.count(EditEventType.ITERATION) == 2
        assert sink.events[-1].payload["status"] == "completed"
        phases = [event.payload["phase"] for event in sink.of_type(EditEventType.PHASE)]
        assert phases == ["planning", "executing", "complete"]

    @pytest.mark.asyncio
    async def test_broken_sink_does_not_change_the_run(self) -> None:
        class BrokenSink:
            def emit(self, event) -> None:
                raise RuntimeError("sink down")

        oracle = ScriptedOracle(make_patch("return x", GUARD), "GOAL ACHIEVED")

        result = await make_orchestrator(oracle, event_sink=BrokenSink()).run_goal(
            "add input validation", make_document()
        )

        assert result.status is RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_checkpoints_can_be_disabled(self) -> None:
        oracle = ScriptedOracle(make_patch("return x", GUARD), "GOAL ACHIEVED")
        config = OrchestratorConfig(stream_responses=False, enable_checkpoints=False)

        result = await make_orchestrator(oracle, config=config).run_goal("add input validation", make_document())

        assert result.checkpoints == ()

    @pytest.mark.asyncio
    async def test_to_dict(self) -> None:
        oracle = ScriptedOracle(make_patch("return x", GUARD), "GOAL ACHIEVED")

        result = await make_orchestrator(oracle).run_goal("add input validation", make_document())
        payload = result.to_dict()

        assert payload["status"] == "completed"
        assert payload["checkpoints"] == ["cp_1_0", "cp_2_1"]
        assert payload["iterations"][0]["tool_call"]["tool"] == "patch"


class TestEditDocument:
    @pytest.mark.asyncio
    async def test_saves_achieved_result(self) -> None:
        store = InMemoryDocumentStore()
        store.add("app.js", "function f(x){return x}", language="javascript")
        oracle = ScriptedOracle(make_patch("return x", GUARD), "GOAL ACHIEVED")

        result = await make_orchestrator(oracle).edit_document(store, "app.js", "add input validation")

        assert result.goal_achieved
        saved = store.load("app.js")
        assert saved.content == f"function f(x){{{GUARD}}}"
        assert saved.version == 1

    @pytest.mark.asyncio
    async def test_dry_run_leaves_store_untouched(self) -> None:
        store = InMemoryDocumentStore()
        original = store.add("app.js", "function f(x){return x}")
        oracle = ScriptedOracle(make_patch("return x", GUARD), "GOAL ACHIEVED")

        result = await make_orchestrator(oracle).edit_document(
            store, "app.js", "add input validation", dry_run=True
        )

        assert result.goal_achieved
        assert store.load("app.js") == original
