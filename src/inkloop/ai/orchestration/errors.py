"""Failure taxonomy for editing runs.

Tool- and parse-level failures are recovered inside the loop; only oracle
and deadline failures end a run. :func:`recovery_strategy` maps each kind to
the remedy the loop applies.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from ..tools.errors import ErrorCode, ToolError
from .types import ToolResult

__all__ = [
    "FailureKind",
    "RecoveryStrategy",
    "OrchestrationError",
    "TransientToolFailure",
    "StructuralToolFailure",
    "CircuitOpenFailure",
    "OracleUnavailable",
    "DeadlineExceeded",
    "classify_result",
    "recovery_strategy",
]


class FailureKind(str, Enum):
    TRANSIENT_TOOL = "transient_tool"
    STRUCTURAL_TOOL = "structural_tool"
    PARSE = "parse"
    CIRCUIT_OPEN = "circuit_open"
    ORACLE_UNAVAILABLE = "oracle_unavailable"
    DEADLINE_EXCEEDED = "deadline_exceeded"


class RecoveryStrategy(str, Enum):
    RETRY = "retry"
    CORRECTIVE_PROMPT = "corrective_prompt"
    SKIP = "skip"
    ABORT = "abort"


# Structural failures are the tool-level ToolError hierarchy.
StructuralToolFailure = ToolError


class OrchestrationError(Exception):
    """Base class for run-level failures."""

    kind: FailureKind = FailureKind.TRANSIENT_TOOL
    recoverable: bool = True
    default_suggestion: str = ""

    def __init__(self, message: str, *, suggestion: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion if suggestion is not None else self.default_suggestion

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "suggestion": self.suggestion,
        }


class TransientToolFailure(OrchestrationError):
    """A tool kept failing (timeouts, I/O errors) after all retries."""

    kind = FailureKind.TRANSIENT_TOOL
    default_suggestion = "Simplify the change or try a different tool"

    def __init__(
        self,
        tool_name: str,
        attempts: int,
        last_error: BaseException | str,
        *,
        timed_out: bool = False,
    ) -> None:
        self.tool_name = tool_name
        self.attempts = attempts
        self.last_error = str(last_error) or type(last_error).__name__
        self.timed_out = timed_out
        super().__init__(
            f"Tool '{tool_name}' failed after {attempts} attempt(s): {self.last_error}"
        )

    def to_result(self) -> ToolResult:
        return ToolResult.failure(
            self.tool_name,
            self.message,
            error_code=ErrorCode.TIMEOUT if self.timed_out else ErrorCode.TRANSIENT_FAILURE,
            suggestion=self.suggestion,
            data={"last_error": self.last_error},
            attempts=self.attempts,
        )


class CircuitOpenFailure(OrchestrationError):
    """Calls to a tool are short-circuited until its cooldown elapses."""

    kind = FailureKind.CIRCUIT_OPEN
    default_suggestion = "Use a different tool; this one is cooling down"

    def __init__(self, tool_name: str, failures: int) -> None:
        self.tool_name = tool_name
        self.failures = failures
        super().__init__(
            f"Tool '{tool_name}' is temporarily disabled after {failures} consecutive failures"
        )

    def to_result(self) -> ToolResult:
        return ToolResult.failure(
            self.tool_name,
            self.message,
            error_code=ErrorCode.CIRCUIT_OPEN,
            suggestion=self.suggestion,
            data={"failures": self.failures},
        )


class OracleUnavailable(OrchestrationError):
    """The generative collaborator could not produce a response."""

    kind = FailureKind.ORACLE_UNAVAILABLE
    recoverable = False
    default_suggestion = "Check the model endpoint, API key and network connectivity"


class DeadlineExceeded(OrchestrationError):
    """A per-iteration or total-run deadline elapsed."""

    kind = FailureKind.DEADLINE_EXCEEDED
    recoverable = False
    default_suggestion = "Raise the timeout or split the goal into smaller edits"

    def __init__(self, scope: str, seconds: float) -> None:
        self.scope = scope
        self.seconds = seconds
        super().__init__(f"{scope} deadline of {seconds:g}s exceeded")


_STRATEGIES: dict[FailureKind, RecoveryStrategy] = {
    FailureKind.TRANSIENT_TOOL: RecoveryStrategy.RETRY,
    FailureKind.STRUCTURAL_TOOL: RecoveryStrategy.CORRECTIVE_PROMPT,
    FailureKind.PARSE: RecoveryStrategy.CORRECTIVE_PROMPT,
    FailureKind.CIRCUIT_OPEN: RecoveryStrategy.SKIP,
    FailureKind.ORACLE_UNAVAILABLE: RecoveryStrategy.ABORT,
    FailureKind.DEADLINE_EXCEEDED: RecoveryStrategy.ABORT,
}

_TRANSIENT_CODES = frozenset({ErrorCode.TIMEOUT, ErrorCode.TRANSIENT_FAILURE})


def classify_result(result: ToolResult) -> FailureKind | None:
    """Return the failure kind of a tool result, ``None`` for successes."""
    if result.success:
        return None
    if result.error_code == ErrorCode.CIRCUIT_OPEN:
        return FailureKind.CIRCUIT_OPEN
    if result.error_code in _TRANSIENT_CODES:
        return FailureKind.TRANSIENT_TOOL
    return FailureKind.STRUCTURAL_TOOL


def recovery_strategy(kind: FailureKind) -> RecoveryStrategy:
    return _STRATEGIES[kind]
