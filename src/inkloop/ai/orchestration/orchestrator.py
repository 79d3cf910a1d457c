"""Editing orchestrator: the goal-directed loop around the oracle.

One run walks ``idle -> detecting -> planning -> executing`` and ends in
``complete``, ``blocked`` or ``error``. Each iteration asks the oracle for
the next action, parses it into a tool call, executes it, verifies and
checkpoints the result, and decides whether the goal has been met.

Example:
    orchestrator = EditOrchestrator(AIClientOracle(client))
    result = await orchestrator.run("add input validation", document)
    if result.goal_achieved:
        save(result.document)
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..ai_types import TokenCounterProtocol
from ..prompts import (
    IterationState,
    build_claim_rejection_message,
    build_iteration_prompt,
    build_parse_failure_guidance,
    build_system_prompt,
    build_tool_failure_guidance,
    build_tool_output_message,
    create_document_window,
)
from ..tools.builtin import build_default_registry
from ...utils import logging as logging_utils
from ..utils.tokens import estimate_message_tokens, estimate_tokens
from .checkpoints import Checkpoint, CheckpointManager
from .completion import CompletionDetector, CompletionVerdict
from .errors import DeadlineExceeded, OracleUnavailable
from .events import EditEvent, EditEventSink, EditEventType, emit_safely
from .goals import build_goal
from .intent import IntentDetector, OracleIntentDetector
from .oracle import Oracle, OracleConfig, collect_response
from .tool_call_parser import (
    ParsedToolCall,
    ParseFailure,
    ToolCallParser,
    extract_rationale,
    recover_partial_response,
)
from .tools.circuit_breaker import CircuitBreaker
from .tools.executor import ToolExecutor
from .tools.registry import ToolRegistry
from .types import (
    ChangeRecord,
    Complexity,
    DocumentState,
    EditGoal,
    EditRunResult,
    GoalStatus,
    IterationRecord,
    Message,
    RunPhase,
    RunStats,
    RunStatus,
    ToolContext,
    ToolResult,
)
from .verifier import EditVerifier, VerificationResult

if TYPE_CHECKING:
    from ...services.document_store import DocumentStore

__all__ = ["EditOrchestrator", "OrchestratorConfig"]

LOGGER = logging.getLogger(__name__)

SleepFunction = Callable[[float], Awaitable[Any]]

_EXCERPT_CHARS = 200


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class OrchestratorConfig:
    """Configuration for the editing loop.

    Attributes:
        max_iterations: Iteration slots available to one run.
        iteration_timeout: Seconds allowed for one oracle call.
        total_timeout: Seconds allowed for the whole run.
        enable_checkpoints: Whether snapshots are recorded.
        checkpoint_limit: Capacity of the checkpoint ring.
        early_termination: Stop once changes exist and the oracle stops calling tools.
        token_budget: Soft prompt budget; exceeding it is logged.
        intent_threshold: Minimum intent confidence for an edit run.
        model: Model override passed to the oracle.
        temperature: Sampling temperature for edit iterations.
        max_tokens: Response cap passed to the oracle.
        stream_responses: Request streamed responses from the oracle.
        max_transcript_messages: Transcript length that triggers trimming.
        retained_messages: Most recent messages kept after trimming.
        oracle_attempts: Attempts per oracle call before the run errors.
    """

    max_iterations: int = 12
    iteration_timeout: float = 240.0
    total_timeout: float = 900.0
    enable_checkpoints: bool = True
    checkpoint_limit: int = 5
    early_termination: bool = True
    token_budget: int = 200_000
    intent_threshold: float = 0.6
    model: str | None = None
    temperature: float = 0.4
    max_tokens: int | None = None
    stream_responses: bool = True
    max_transcript_messages: int = 6
    retained_messages: int = 4
    oracle_attempts: int = 2

    def oracle_config(self) -> OracleConfig:
        return OracleConfig(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stream=self.stream_responses,
        )


# -----------------------------------------------------------------------------
# Run State
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class _RunState:
    """Mutable bookkeeping for one run; owned by the loop only."""

    run_id: str
    goal: EditGoal
    original: DocumentState
    document: DocumentState
    started: float
    parser: ToolCallParser
    checkpoints: CheckpointManager | None = None
    phase: RunPhase = RunPhase.IDLE
    messages: list[Message] = field(default_factory=list)
    records: list[IterationRecord] = field(default_factory=list)
    changes: list[ChangeRecord] = field(default_factory=list)
    iteration: int = 0
    previous_content: str | None = None
    last_tool: str | None = None
    last_result: ToolResult | None = None
    warnings: tuple[str, ...] = ()
    prompt_tokens: int = 0
    status: RunStatus | None = None
    reason: str = ""
    error: str | None = None

    @property
    def step(self) -> int:
        return len(self.records) + 1

    def finish(self, status: RunStatus, reason: str, *, error: str | None = None) -> None:
        self.status = status
        self.reason = reason
        self.error = error


_TERMINAL_PHASES = {
    RunStatus.COMPLETED: RunPhase.COMPLETE,
    RunStatus.NO_EDIT: RunPhase.COMPLETE,
    RunStatus.BLOCKED: RunPhase.BLOCKED,
    RunStatus.ERROR: RunPhase.ERROR,
}


# -----------------------------------------------------------------------------
# Orchestrator
# -----------------------------------------------------------------------------


class EditOrchestrator:
    """Drive an oracle through parse, execute, verify and checkpoint cycles.

    Collaborators are injected; anything omitted gets a default. A
    :class:`CircuitBreaker` shared between orchestrators isolates failing
    tools across concurrent runs.
    """

    def __init__(
        self,
        oracle: Oracle,
        *,
        config: OrchestratorConfig | None = None,
        registry: ToolRegistry | None = None,
        executor: ToolExecutor | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        intent_detector: IntentDetector | None = None,
        verifier: EditVerifier | None = None,
        completion: CompletionDetector | None = None,
        event_sink: EditEventSink | None = None,
        token_counter: TokenCounterProtocol | None = None,
        clock: Callable[[], float] | None = None,
        sleep: SleepFunction | None = None,
    ) -> None:
        self._oracle = oracle
        self._config = config or OrchestratorConfig()
        self._executor = executor or ToolExecutor(
            registry or build_default_registry(),
            circuit_breaker=circuit_breaker,
            sleep=sleep,
        )
        self._intent = intent_detector or OracleIntentDetector(
            oracle,
            threshold=self._config.intent_threshold,
            model=self._config.model,
        )
        self._verifier = verifier or EditVerifier()
        self._completion = completion or CompletionDetector(early_termination=self._config.early_termination)
        self._events = event_sink
        self._counter = token_counter
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def executor(self) -> ToolExecutor:
        return self._executor

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(
        self,
        instruction: str,
        document: DocumentState,
        *,
        recent_context: str | None = None,
    ) -> EditRunResult:
        """Detect intent for *instruction* and, if it asks for an edit, run the loop."""
        run_id = uuid.uuid4().hex[:12]
        with logging_utils.bind_run_id(run_id):
            started = self._clock()
            self._emit(EditEventType.START, run_id, instruction=instruction, title=document.title)
            self._emit(EditEventType.PHASE, run_id, phase=RunPhase.DETECTING.value)

            intent = await self._intent.detect(instruction, document, recent_context=recent_context)
            if not intent.should_edit:
                reason = intent.error or f"No edit requested (confidence {intent.confidence:.2f})"
                LOGGER.info("Run %s: %s", run_id, reason)
                result = EditRunResult(
                    run_id=run_id,
                    status=RunStatus.NO_EDIT,
                    original=document,
                    document=document,
                    summary="No edit was made",
                    reason=reason,
                    stats=RunStats(duration_ms=(self._clock() - started) * 1000),
                )
                self._emit(EditEventType.COMPLETE, run_id, status=result.status.value, reason=reason)
                return result

            goal = build_goal(intent.goal or instruction, document.content, complexity=intent.complexity)
            return await self._execute(run_id, goal, document, started)

    async def run_goal(
        self,
        goal: EditGoal | str,
        document: DocumentState,
        *,
        complexity: Complexity | str | None = None,
    ) -> EditRunResult:
        """Run the loop for a goal that is already known; intent detection is skipped."""
        run_id = uuid.uuid4().hex[:12]
        with logging_utils.bind_run_id(run_id):
            started = self._clock()
            if isinstance(goal, str):
                goal = build_goal(goal, document.content, complexity=complexity)
            self._emit(EditEventType.START, run_id, instruction=goal.description, title=document.title)
            return await self._execute(run_id, goal, document, started)

    async def edit_document(
        self,
        store: DocumentStore,
        document_id: str,
        instruction: str,
        *,
        dry_run: bool = False,
    ) -> EditRunResult:
        """Load a document, run the loop and persist the result when it changed."""
        document = store.load(document_id)
        result = await self.run(instruction, document)
        if result.goal_achieved and not dry_run:
            store.save(result.document)
            LOGGER.info("Saved %s after %d change(s)", document_id, result.changes_count)
        return result

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def _execute(
        self,
        run_id: str,
        goal: EditGoal,
        document: DocumentState,
        started: float,
    ) -> EditRunResult:
        config = self._config
        state = _RunState(
            run_id=run_id,
            goal=goal,
            original=document,
            document=document,
            started=started,
            parser=ToolCallParser(default_path=document.title),
        )

        self._set_phase(state, RunPhase.PLANNING, goal=goal.to_dict())
        if config.enable_checkpoints:
            state.checkpoints = CheckpointManager(config.checkpoint_limit)
            self._checkpoint(state, 0, "Initial state")

        window = create_document_window(document.content)
        state.messages.append(Message.system(build_system_prompt(goal, document, window)))

        self._set_phase(state, RunPhase.EXECUTING)
        remaining = max(0.0, config.total_timeout - (self._clock() - started))
        try:
            await asyncio.wait_for(self._loop(state), timeout=remaining)
        except asyncio.TimeoutError:
            deadline = DeadlineExceeded("Total run", config.total_timeout)
            LOGGER.warning("Run %s: %s", run_id, deadline.message)
            state.finish(RunStatus.BLOCKED, deadline.message)
        except Exception as exc:
            LOGGER.exception("Run %s failed", run_id)
            state.finish(RunStatus.ERROR, "Unexpected failure", error=str(exc) or type(exc).__name__)

        if state.status is None:
            state.finish(RunStatus.BLOCKED, "Run ended without a verdict")
        return self._result(state)

    async def _loop(self, state: _RunState) -> None:
        config = self._config
        while state.iteration < config.max_iterations:
            if self._clock() - state.started >= config.total_timeout:
                state.finish(RunStatus.BLOCKED, DeadlineExceeded("Total run", config.total_timeout).message)
                return
            if not await self._iterate(state):
                return
            state.iteration += 1
        state.finish(
            RunStatus.BLOCKED,
            f"Reached the iteration limit ({config.max_iterations}) without completing the goal",
        )

    async def _iterate(self, state: _RunState) -> bool:
        """Run one iteration; return False once the run has a terminal status."""
        iteration_start = self._clock()
        content_at_start = state.document.content

        self._send_iteration_prompt(state)
        try:
            text, timed_out = await self._ask_oracle(state)
        except OracleUnavailable as exc:
            LOGGER.error("Run %s: %s", state.run_id, exc.message)
            self._append_record(
                state,
                iteration_start,
                rationale="",
                goal_status=GoalStatus.BLOCKED,
                note=exc.message,
            )
            state.finish(RunStatus.ERROR, "Oracle unavailable", error=exc.message)
            return False

        note = ""
        if timed_out:
            recovered = self._recover_partial(state, text)
            if recovered is None:
                deadline = DeadlineExceeded("Iteration", self._config.iteration_timeout)
                self._append_record(
                    state,
                    iteration_start,
                    rationale=extract_rationale(text),
                    goal_status=GoalStatus.BLOCKED,
                    note=deadline.message,
                )
                state.finish(RunStatus.BLOCKED, deadline.message)
                return False
            text = recovered
            note = "Accepted partial response after iteration timeout"

        state.messages.append(Message.assistant(text))
        parsed = state.parser.parse(text)
        had_tool_call = isinstance(parsed, ParsedToolCall)
        verdict = self._completion.evaluate(
            text,
            had_tool_call,
            len(state.changes),
            state.iteration,
            state.previous_content,
            state.document.content,
        )
        rationale = extract_rationale(text)

        if isinstance(parsed, ParsedToolCall):
            keep_going = await self._handle_tool_call(state, iteration_start, rationale, verdict, parsed, note)
        else:
            keep_going = self._handle_no_tool_call(state, iteration_start, rationale, verdict, parsed, note)
        state.previous_content = content_at_start
        return keep_going

    # ------------------------------------------------------------------
    # Iteration outcomes
    # ------------------------------------------------------------------

    def _handle_no_tool_call(
        self,
        state: _RunState,
        iteration_start: float,
        rationale: str,
        verdict: CompletionVerdict,
        failure: ParseFailure,
        note: str,
    ) -> bool:
        if verdict.is_complete:
            self._append_record(
                state,
                iteration_start,
                rationale=rationale,
                goal_status=GoalStatus.ACHIEVED,
                completion=verdict,
                note=note,
            )
            state.finish(RunStatus.COMPLETED, verdict.reason)
            return False

        if verdict.rejected:
            LOGGER.info("Run %s: rejected completion claim without changes", state.run_id)
            state.messages.append(Message.user(build_claim_rejection_message(state.document.content)))
            self._append_record(
                state,
                iteration_start,
                rationale=rationale,
                completion=verdict,
                parse_failure=failure,
                note=_join_notes(note, verdict.reason),
            )
            return True

        if not state.changes:
            self._append_record(
                state,
                iteration_start,
                rationale=rationale,
                goal_status=GoalStatus.BLOCKED,
                completion=verdict,
                parse_failure=failure,
                note=note,
            )
            state.finish(RunStatus.BLOCKED, f"No tool call could be parsed: {failure.reason}")
            return False

        if self._config.early_termination:
            self._append_record(
                state,
                iteration_start,
                rationale=rationale,
                goal_status=GoalStatus.ACHIEVED,
                completion=verdict,
                parse_failure=failure,
                note=_join_notes(note, "Implicit completion: no tool call after changes"),
            )
            state.finish(RunStatus.COMPLETED, "Changes made and no further tool call")
            return False

        state.messages.append(Message.user(build_parse_failure_guidance(failure, state.document.title)))
        self._append_record(
            state,
            iteration_start,
            rationale=rationale,
            completion=verdict,
            parse_failure=failure,
            note=note,
        )
        return True

    async def _handle_tool_call(
        self,
        state: _RunState,
        iteration_start: float,
        rationale: str,
        verdict: CompletionVerdict,
        parsed: ParsedToolCall,
        note: str,
    ) -> bool:
        step = state.step
        if parsed.corrections:
            LOGGER.debug("Run %s: parser corrections %s", state.run_id, list(parsed.corrections))
        self._emit(EditEventType.TOOL_CALL, state.run_id, step=step, call=parsed.to_dict())

        context = ToolContext(document=state.document, run_id=state.run_id, call_id=f"{state.run_id}-{step}")
        result = await self._executor.execute(parsed.tool_name, parsed.params(), context)
        self._emit(EditEventType.TOOL_RESULT, state.run_id, step=step, result=result.to_dict())

        verification: VerificationResult | None = None
        if result.changed_document:
            verification = self._apply(state, parsed, result)
        elif not result.success:
            state.warnings = ()
            state.messages.append(
                Message.user(
                    build_tool_failure_guidance(parsed.wire_tag, result, state.document.content, state.document.title)
                )
            )
        else:
            output = build_tool_output_message(parsed.wire_tag, result)
            if output:
                state.messages.append(Message.user(output))

        state.last_tool = parsed.wire_tag
        state.last_result = result

        done = verdict.is_complete and result.success
        if verdict.rejected:
            note = _join_notes(note, verdict.reason)
        self._append_record(
            state,
            iteration_start,
            rationale=rationale,
            tool_call=parsed,
            tool_result=result,
            goal_status=GoalStatus.ACHIEVED if done else GoalStatus.IN_PROGRESS,
            completion=verdict,
            verification=verification,
            note=note,
        )
        if done:
            state.finish(RunStatus.COMPLETED, verdict.reason)
            return False
        return True

    def _apply(self, state: _RunState, parsed: ParsedToolCall, result: ToolResult) -> VerificationResult:
        before = state.document.content
        after = result.new_content or ""
        state.document = state.document.with_content(after)
        verification = self._verifier.verify(
            before,
            after,
            state.goal.description,
            state.document.language,
            complexity=state.goal.complexity,
        )
        state.warnings = tuple(verification.warnings)
        state.changes.append(
            ChangeRecord(
                step=state.step,
                tool_name=parsed.tool_name,
                description=result.message,
                before_excerpt=before[:_EXCERPT_CHARS],
                after_excerpt=after[:_EXCERPT_CHARS],
            )
        )
        LOGGER.info(
            "Run %s: %s applied (%s, confidence %.2f)",
            state.run_id,
            parsed.wire_tag,
            verification.diff_summary,
            verification.confidence,
        )
        self._emit(EditEventType.VERIFICATION, state.run_id, step=state.step, verification=verification.to_dict())
        self._emit(
            EditEventType.CONTENT,
            state.run_id,
            step=state.step,
            version=state.document.version,
            content=state.document.content,
        )
        self._checkpoint(state, state.step, f"After {parsed.wire_tag}")
        return verification

    # ------------------------------------------------------------------
    # Oracle plumbing
    # ------------------------------------------------------------------

    def _send_iteration_prompt(self, state: _RunState) -> None:
        config = self._config
        window = create_document_window(state.document.content)
        prompt = build_iteration_prompt(
            IterationState(
                iteration=state.iteration,
                max_iterations=config.max_iterations,
                changes_applied=len(state.changes),
                current_content=state.document.content,
                original_content=state.original.content,
                last_tool=state.last_tool,
                last_result=state.last_result,
                warnings=state.warnings,
                sub_goals=state.goal.sub_goals,
            ),
            window,
        )
        state.messages.append(Message.user(prompt))
        if len(state.messages) > config.max_transcript_messages:
            state.messages[:] = [state.messages[0], *state.messages[-config.retained_messages :]]

        tokens = estimate_message_tokens((message.content for message in state.messages), counter=self._counter)
        state.prompt_tokens += tokens
        if state.prompt_tokens > config.token_budget:
            LOGGER.warning(
                "Run %s: prompt tokens %d exceed budget %d", state.run_id, state.prompt_tokens, config.token_budget
            )
        self._emit(
            EditEventType.ITERATION,
            state.run_id,
            iteration=state.iteration,
            max_iterations=config.max_iterations,
            changes=len(state.changes),
            prompt_tokens=tokens,
        )

    async def _ask_oracle(self, state: _RunState) -> tuple[str, bool]:
        """Return ``(text, timed_out)``; partial text is kept on timeout."""
        config = self._config
        oracle_config = config.oracle_config()
        messages = list(state.messages)
        chunks: list[str] = []

        def on_chunk(chunk: str) -> None:
            self._emit(EditEventType.STREAM, state.run_id, iteration=state.iteration, chunk=chunk)

        retrying = AsyncRetrying(
            reraise=True,
            sleep=self._sleep,
            stop=stop_after_attempt(max(1, config.oracle_attempts)),
            wait=wait_exponential(multiplier=0.5, max=4),
            retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(asyncio.TimeoutError),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    chunks.clear()
                    text = await asyncio.wait_for(
                        collect_response(self._oracle.generate(messages, oracle_config), chunks, on_chunk),
                        timeout=config.iteration_timeout,
                    )
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Run %s: oracle timed out after %.0fs on iteration %d",
                state.run_id,
                config.iteration_timeout,
                state.iteration,
            )
            return "".join(chunks), True
        except Exception as exc:
            raise OracleUnavailable(f"Oracle call failed: {exc or type(exc).__name__}") from exc
        return text or "", False

    def _recover_partial(self, state: _RunState, text: str) -> str | None:
        if not text.strip():
            return None
        if isinstance(state.parser.parse(text), ParsedToolCall):
            return text
        return recover_partial_response(text, state.document.title)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _append_record(
        self,
        state: _RunState,
        iteration_start: float,
        *,
        rationale: str,
        tool_call: ParsedToolCall | None = None,
        tool_result: ToolResult | None = None,
        goal_status: GoalStatus = GoalStatus.IN_PROGRESS,
        completion: CompletionVerdict | None = None,
        verification: VerificationResult | None = None,
        parse_failure: ParseFailure | None = None,
        note: str = "",
    ) -> IterationRecord:
        record = IterationRecord(
            step=state.step,
            rationale=rationale,
            tool_call=tool_call,
            tool_result=tool_result,
            duration_ms=(self._clock() - iteration_start) * 1000,
            goal_status=goal_status,
            completion=completion,
            verification=verification,
            parse_failure=parse_failure,
            note=note,
        )
        state.records.append(record)
        return record

    def _checkpoint(self, state: _RunState, iteration: int, description: str) -> Checkpoint | None:
        if state.checkpoints is None:
            return None
        checkpoint = state.checkpoints.create(state.document, iteration, description)
        self._emit(
            EditEventType.CHECKPOINT,
            state.run_id,
            checkpoint_id=checkpoint.checkpoint_id,
            iteration=iteration,
            description=description,
        )
        return checkpoint

    def _set_phase(self, state: _RunState, phase: RunPhase, **payload: Any) -> None:
        state.phase = phase
        self._emit(EditEventType.PHASE, state.run_id, phase=phase.value, **payload)

    def _result(self, state: _RunState) -> EditRunResult:
        status = state.status or RunStatus.BLOCKED
        self._set_phase(state, _TERMINAL_PHASES[status])
        duration_ms = (self._clock() - state.started) * 1000
        iterations = len(state.records)
        tokens_saved = max(0, estimate_tokens(state.original.content) * iterations * 2 - state.prompt_tokens)
        result = EditRunResult(
            run_id=state.run_id,
            status=status,
            original=state.original,
            document=state.document,
            goal=state.goal,
            changes=tuple(state.changes),
            records=tuple(state.records),
            checkpoints=tuple(state.checkpoints.list()) if state.checkpoints is not None else (),
            summary=_summarize(state, status),
            reason=state.reason,
            error=state.error,
            stats=RunStats(
                duration_ms=duration_ms,
                iteration_count=iterations,
                prompt_tokens=state.prompt_tokens,
                tokens_saved=tokens_saved,
                tool_stats=self._executor.get_stats().to_dict(),
            ),
        )
        LOGGER.info(
            "Run %s finished %s after %d iteration(s), %d change(s): %s",
            state.run_id,
            status.value,
            iterations,
            len(state.changes),
            state.reason,
        )
        if status is RunStatus.ERROR:
            self._emit(EditEventType.ERROR, state.run_id, error=state.error, reason=state.reason)
        else:
            self._emit(
                EditEventType.COMPLETE,
                state.run_id,
                status=status.value,
                reason=state.reason,
                changes=len(state.changes),
                iterations=iterations,
            )
        return result

    def _emit(self, event_type: EditEventType, run_id: str, **payload: Any) -> None:
        emit_safely(self._events, EditEvent(type=event_type, run_id=run_id, payload=payload))


def _join_notes(*notes: str) -> str:
    return "; ".join(note for note in notes if note)


def _summarize(state: _RunState, status: RunStatus) -> str:
    changes = len(state.changes)
    iterations = len(state.records)
    if status is RunStatus.COMPLETED:
        return f"Goal achieved with {changes} change(s) in {iterations} iteration(s)"
    if status is RunStatus.BLOCKED:
        return f"Blocked after {iterations} iteration(s) with {changes} change(s): {state.reason}"
    return f"Run failed after {iterations} iteration(s): {state.error or state.reason}"
