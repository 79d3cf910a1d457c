"""Tests for the run-level failure taxonomy."""

from __future__ import annotations

import pytest

from inkloop.ai.orchestration.errors import (
    CircuitOpenFailure,
    DeadlineExceeded,
    FailureKind,
    OracleUnavailable,
    RecoveryStrategy,
    StructuralToolFailure,
    TransientToolFailure,
    classify_result,
    recovery_strategy,
)
from inkloop.ai.orchestration.types import ToolResult
from inkloop.ai.tools.errors import ErrorCode, SearchNotFoundError


@pytest.mark.parametrize(
    ("kind", "strategy"),
    [
        (FailureKind.TRANSIENT_TOOL, RecoveryStrategy.RETRY),
        (FailureKind.STRUCTURAL_TOOL, RecoveryStrategy.CORRECTIVE_PROMPT),
        (FailureKind.PARSE, RecoveryStrategy.CORRECTIVE_PROMPT),
        (FailureKind.CIRCUIT_OPEN, RecoveryStrategy.SKIP),
        (FailureKind.ORACLE_UNAVAILABLE, RecoveryStrategy.ABORT),
        (FailureKind.DEADLINE_EXCEEDED, RecoveryStrategy.ABORT),
    ],
)
def test_recovery_strategy(kind: FailureKind, strategy: RecoveryStrategy) -> None:
    assert recovery_strategy(kind) is strategy


@pytest.mark.parametrize(
    ("error_code", "kind"),
    [
        (ErrorCode.CIRCUIT_OPEN, FailureKind.CIRCUIT_OPEN),
        (ErrorCode.TIMEOUT, FailureKind.TRANSIENT_TOOL),
        (ErrorCode.TRANSIENT_FAILURE, FailureKind.TRANSIENT_TOOL),
        (ErrorCode.SEARCH_NOT_FOUND, FailureKind.STRUCTURAL_TOOL),
        (ErrorCode.INVALID_PARAMETER, FailureKind.STRUCTURAL_TOOL),
    ],
)
def test_classify_failed_results(error_code: str, kind: FailureKind) -> None:
    result = ToolResult.failure("replace_in_file", "failed", error_code=error_code)

    assert classify_result(result) is kind


def test_successful_results_have_no_failure_kind() -> None:
    assert classify_result(ToolResult.ok("read_file", "read")) is None


def test_structural_failures_are_tool_errors() -> None:
    error = SearchNotFoundError.for_searches(["missing text"])

    assert isinstance(error, StructuralToolFailure)
    assert error.retryable is False


def test_transient_failure_result_reports_timeout() -> None:
    failure = TransientToolFailure("read_file", 2, TimeoutError(), timed_out=True)

    result = failure.to_result()

    assert failure.message == "Tool 'read_file' failed after 2 attempt(s): TimeoutError"
    assert result.success is False
    assert result.error_code == ErrorCode.TIMEOUT
    assert result.attempts == 2
    assert result.suggestion == "Simplify the change or try a different tool"


def test_transient_failure_result_without_timeout() -> None:
    result = TransientToolFailure("write_to_file", 3, OSError("disk full")).to_result()

    assert result.error_code == ErrorCode.TRANSIENT_FAILURE
    assert result.data == {"last_error": "disk full"}


def test_circuit_open_failure() -> None:
    failure = CircuitOpenFailure("search_files", 3)

    result = failure.to_result()

    assert result.error_code == ErrorCode.CIRCUIT_OPEN
    assert "temporarily disabled after 3 consecutive failures" in result.message
    assert failure.to_dict()["kind"] == "circuit_open"


def test_run_level_failures_are_not_recoverable() -> None:
    oracle = OracleUnavailable("Oracle call failed: boom")
    deadline = DeadlineExceeded("Total run", 1.5)

    assert oracle.recoverable is False
    assert oracle.to_dict() == {
        "kind": "oracle_unavailable",
        "message": "Oracle call failed: boom",
        "recoverable": False,
        "suggestion": "Check the model endpoint, API key and network connectivity",
    }
    assert str(deadline) == "Total run deadline of 1.5s exceeded"
    assert deadline.recoverable is False
