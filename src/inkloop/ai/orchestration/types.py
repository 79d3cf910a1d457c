"""Core type definitions for the editing loop.

This module defines the immutable dataclasses that flow through an editing
run. All types are frozen so a state handed to a tool, the verifier or an
observer can never be mutated behind the loop's back.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Mapping, Sequence

from openai.types.chat import ChatCompletionMessageParam

if TYPE_CHECKING:
    from .checkpoints import Checkpoint
    from .completion import CompletionVerdict
    from .tool_call_parser import ParsedToolCall, ParseFailure
    from .verifier import VerificationResult

__all__ = [
    # Messages
    "Message",
    # Goals
    "Complexity",
    "EditGoal",
    # Document state
    "DocumentState",
    # Tool plumbing
    "ToolContext",
    "ToolResult",
    # Run bookkeeping
    "GoalStatus",
    "RunPhase",
    "RunStatus",
    "ChangeRecord",
    "IterationRecord",
    "RunStats",
    "EditRunResult",
]


# -----------------------------------------------------------------------------
# Helper
# -----------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


# -----------------------------------------------------------------------------
# Message Type
# -----------------------------------------------------------------------------

MessageRole = Literal["system", "user", "assistant"]


@dataclass(slots=True, frozen=True)
class Message:
    """Immutable chat message exchanged with the oracle.

    Attributes:
        role: The role of the message sender.
        content: The text content of the message.
        metadata: Additional metadata (never sent to the oracle).
    """

    role: MessageRole
    content: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_chat_param(self) -> ChatCompletionMessageParam:
        """Convert to OpenAI's ChatCompletionMessageParam format."""
        return {"role": self.role, "content": self.content}  # type: ignore[return-value]

    @classmethod
    def system(cls, content: str, **metadata: Any) -> Message:
        """Create a system message."""
        return cls(role="system", content=content, metadata=metadata)

    @classmethod
    def user(cls, content: str, **metadata: Any) -> Message:
        """Create a user message."""
        return cls(role="user", content=content, metadata=metadata)

    @classmethod
    def assistant(cls, content: str, **metadata: Any) -> Message:
        """Create an assistant message."""
        return cls(role="assistant", content=content, metadata=metadata)


# -----------------------------------------------------------------------------
# Goals
# -----------------------------------------------------------------------------


class Complexity(str, Enum):
    """Coarse size class of an edit goal."""

    TRIVIAL = "trivial"
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"

    @classmethod
    def coerce(cls, value: Any) -> Complexity | None:
        """Return the matching member for *value*, or ``None`` if unrecognized."""
        if isinstance(value, Complexity):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def estimated_changes(self) -> int:
        if self is Complexity.TRIVIAL:
            return 1
        if self is Complexity.SIMPLE:
            return 2
        return 4


@dataclass(slots=True, frozen=True)
class EditGoal:
    """Target of one editing run; immutable once the run starts.

    Attributes:
        description: Free-text statement of what the edit must achieve.
        approach: Short hint about how to get there.
        complexity: Coarse size class used to pick prompts and thresholds.
        estimated_changes: Expected number of mutating tool calls.
        sub_goals: Ordered decomposition used for prompting and progress only.
    """

    description: str
    approach: str = "targeted changes"
    complexity: Complexity = Complexity.SIMPLE
    estimated_changes: int = 2
    sub_goals: tuple[str, ...] = ()

    def with_sub_goals(self, sub_goals: Sequence[str]) -> EditGoal:
        return replace(self, sub_goals=tuple(sub_goals))

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "approach": self.approach,
            "complexity": self.complexity.value,
            "estimated_changes": self.estimated_changes,
            "sub_goals": list(self.sub_goals),
        }


# -----------------------------------------------------------------------------
# Document State
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class DocumentState:
    """Immutable snapshot of the document being edited.

    A run replaces its current state after every successful mutation;
    ``version`` increases by one on each replacement.
    """

    title: str
    content: str
    language: str | None = None
    document_id: str | None = None
    version: int = 0

    def with_content(self, content: str) -> DocumentState:
        """Return the successor state carrying *content*."""
        return replace(self, content=content, version=self.version + 1)

    def content_hash(self) -> str:
        return hashlib.sha1(self.content.encode("utf-8")).hexdigest()

    def line_count(self) -> int:
        return self.content.count("\n") + 1

    def char_count(self) -> int:
        return len(self.content)

    def summary(self, *, preview_chars: int = 200) -> str:
        """Describe the document briefly for intent detection prompts."""
        language = self.language or "text"
        preview = self.content[:preview_chars].replace("\n", " ")
        if len(self.content) > preview_chars:
            preview += "..."
        return f"{self.title} ({language}, {self.line_count()} lines): {preview}"


# -----------------------------------------------------------------------------
# Tool Plumbing
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolContext:
    """Read-only context lent to a tool for one call."""

    document: DocumentState
    run_id: str = ""
    call_id: str = ""

    def with_document(self, document: DocumentState) -> ToolContext:
        return replace(self, document=document)


@dataclass(slots=True, frozen=True)
class ToolResult:
    """Outcome of a single tool call.

    Attributes:
        tool_name: Registry name of the tool that ran.
        success: Whether the call succeeded.
        message: Human-readable outcome, echoed back to the oracle.
        new_content: Replacement document text for mutating tools.
        data: Optional structured payload (search matches, corrections...).
        error_code: Machine-readable error identifier on failure.
        suggestion: Recovery hint on failure.
        attempts: Number of attempts the executor made.
        duration_ms: Wall-clock execution time including retries.
    """

    tool_name: str
    success: bool
    message: str
    new_content: str | None = None
    data: Mapping[str, Any] = field(default_factory=dict)
    error_code: str | None = None
    suggestion: str = ""
    attempts: int = 1
    duration_ms: float = 0.0

    @classmethod
    def ok(
        cls,
        tool_name: str,
        message: str,
        *,
        new_content: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> ToolResult:
        return cls(
            tool_name=tool_name,
            success=True,
            message=message,
            new_content=new_content,
            data=dict(data or {}),
        )

    @classmethod
    def failure(
        cls,
        tool_name: str,
        message: str,
        *,
        error_code: str,
        suggestion: str = "",
        data: Mapping[str, Any] | None = None,
        attempts: int = 0,
    ) -> ToolResult:
        return cls(
            tool_name=tool_name,
            success=False,
            message=message,
            error_code=error_code,
            suggestion=suggestion,
            data=dict(data or {}),
            attempts=attempts,
        )

    @property
    def changed_document(self) -> bool:
        return self.success and self.new_content is not None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "tool": self.tool_name,
            "success": self.success,
            "message": self.message,
            "attempts": self.attempts,
            "duration_ms": round(self.duration_ms, 3),
        }
        if self.error_code:
            payload["error"] = self.error_code
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        if self.data:
            payload["data"] = dict(self.data)
        if self.new_content is not None:
            payload["new_content_chars"] = len(self.new_content)
        return payload


# -----------------------------------------------------------------------------
# Run Bookkeeping
# -----------------------------------------------------------------------------


class GoalStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    ACHIEVED = "achieved"
    BLOCKED = "blocked"


class RunPhase(str, Enum):
    """States of the editing state machine."""

    IDLE = "idle"
    DETECTING = "detecting"
    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETE = "complete"
    BLOCKED = "blocked"
    ERROR = "error"


class RunStatus(str, Enum):
    """Terminal outcome reported to the caller."""

    COMPLETED = "completed"
    NO_EDIT = "no_edit"
    BLOCKED = "blocked"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class ChangeRecord:
    """One successful document mutation."""

    step: int
    tool_name: str
    description: str
    before_excerpt: str
    after_excerpt: str


@dataclass(slots=True, frozen=True)
class IterationRecord:
    """One slot in a run's audit trail.

    Attributes:
        step: 1-based step number, strictly increasing within a run.
        rationale: Reasoning text extracted from the oracle response.
        tool_call: Parsed call, when the response carried one.
        tool_result: Executor outcome, when a call was dispatched.
        duration_ms: Wall-clock duration of the iteration.
        goal_status: Progress tag for this step.
        completion: Completion verdict with its individual signals.
        verification: Verifier output for mutating steps.
        parse_failure: Parser failure, when parsing was attempted and failed.
        note: Free-form annotation (timeouts, rejected claims...).
    """

    step: int
    rationale: str
    tool_call: ParsedToolCall | None = None
    tool_result: ToolResult | None = None
    duration_ms: float = 0.0
    goal_status: GoalStatus = GoalStatus.IN_PROGRESS
    completion: CompletionVerdict | None = None
    verification: VerificationResult | None = None
    parse_failure: ParseFailure | None = None
    note: str = ""
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "step": self.step,
            "rationale": self.rationale,
            "duration_ms": round(self.duration_ms, 3),
            "goal_status": self.goal_status.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.tool_call is not None:
            payload["tool_call"] = self.tool_call.to_dict()
        if self.tool_result is not None:
            payload["tool_result"] = self.tool_result.to_dict()
        if self.completion is not None:
            payload["completion"] = self.completion.to_dict()
        if self.verification is not None:
            payload["verification"] = self.verification.to_dict()
        if self.parse_failure is not None:
            payload["parse_failure"] = self.parse_failure.to_dict()
        if self.note:
            payload["note"] = self.note
        return payload


@dataclass(slots=True, frozen=True)
class RunStats:
    duration_ms: float = 0.0
    iteration_count: int = 0
    prompt_tokens: int = 0
    tokens_saved: int = 0
    tool_stats: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_ms": round(self.duration_ms, 3),
            "iteration_count": self.iteration_count,
            "prompt_tokens": self.prompt_tokens,
            "tokens_saved": self.tokens_saved,
            "tool_stats": dict(self.tool_stats),
        }


@dataclass(slots=True, frozen=True)
class EditRunResult:
    """Everything a caller gets back from one run.

    ``document`` is always the last-known-good state: the original when
    nothing was applied, otherwise the output of the last successful
    mutation.
    """

    run_id: str
    status: RunStatus
    original: DocumentState
    document: DocumentState
    goal: EditGoal | None = None
    changes: tuple[ChangeRecord, ...] = ()
    records: tuple[IterationRecord, ...] = ()
    checkpoints: tuple[Checkpoint, ...] = ()
    summary: str = ""
    reason: str = ""
    error: str | None = None
    stats: RunStats = field(default_factory=RunStats)

    @property
    def success(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def goal_achieved(self) -> bool:
        return self.status is RunStatus.COMPLETED and bool(self.changes)

    @property
    def changes_count(self) -> int:
        return len(self.changes)

    @property
    def edited_content(self) -> str:
        return self.document.content

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "goal": self.goal.to_dict() if self.goal else None,
            "title": self.document.title,
            "changes": len(self.changes),
            "iterations": [record.to_dict() for record in self.records],
            "checkpoints": [checkpoint.checkpoint_id for checkpoint in self.checkpoints],
            "summary": self.summary,
            "reason": self.reason,
            "error": self.error,
            "stats": self.stats.to_dict(),
        }
