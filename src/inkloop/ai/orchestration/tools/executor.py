"""Tool executor for the editing loop.

The executor owns dispatch policy: registry lookup, circuit checks,
parameter validation, per-tool timeouts and retry with exponential backoff.
Every outcome is returned as a :class:`ToolResult`; nothing raised by a tool
escapes :meth:`ToolExecutor.execute`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Mapping, Sequence

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...tools.errors import ErrorCode, InvalidParameterError, ToolError
from ..errors import CircuitOpenFailure, TransientToolFailure
from ..types import ToolContext, ToolResult
from .circuit_breaker import CircuitBreaker
from .registry import ToolRegistry
from .types import Tool, ToolReliability, ToolSpec

__all__ = [
    "ToolExecutor",
    "ExecutorConfig",
    "ToolInvocation",
    "ToolStats",
    "ExecutorStats",
]

LOGGER = logging.getLogger(__name__)

SleepFunction = Callable[[float], Awaitable[Any]]


# -----------------------------------------------------------------------------
# Executor Configuration
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ExecutorConfig:
    """Configuration for the tool executor.

    Attributes:
        default_reliability: Profile for tools that do not declare one.
        log_arguments: Whether to log tool arguments (may contain document text).
        log_results: Whether to log tool results.
        history_limit: Number of executions retained for statistics.
    """

    default_reliability: ToolReliability = field(default_factory=ToolReliability)
    log_arguments: bool = False
    log_results: bool = False
    history_limit: int = 1000


@dataclass(slots=True, frozen=True)
class ToolInvocation:
    """A tool name and its parameters, as queued for ``execute_many``."""

    name: str
    params: Mapping[str, Any] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Statistics
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolStats:
    count: int = 0
    failures: int = 0
    average_duration_ms: float = 0.0


@dataclass(slots=True, frozen=True)
class ExecutorStats:
    """Aggregate view over the executor's bounded execution history."""

    total_executions: int = 0
    successes: int = 0
    success_rate: float = 0.0
    average_duration_ms: float = 0.0
    by_tool: Mapping[str, ToolStats] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_executions": self.total_executions,
            "successes": self.successes,
            "success_rate": round(self.success_rate, 4),
            "average_duration_ms": round(self.average_duration_ms, 3),
            "by_tool": {
                name: {
                    "count": stats.count,
                    "failures": stats.failures,
                    "average_duration_ms": round(stats.average_duration_ms, 3),
                }
                for name, stats in self.by_tool.items()
            },
        }


@dataclass(slots=True, frozen=True)
class _Execution:
    tool_name: str
    success: bool
    duration_ms: float


# -----------------------------------------------------------------------------
# Tool Executor
# -----------------------------------------------------------------------------


class ToolExecutor:
    """Run registered tools with circuit breaking, timeouts and retries.

    Example:
        executor = ToolExecutor(registry, circuit_breaker=shared_breaker)
        result = await executor.execute("patch", params, ToolContext(document))
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: ExecutorConfig | None = None,
        *,
        circuit_breaker: CircuitBreaker | None = None,
        sleep: SleepFunction | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or ExecutorConfig()
        self._breaker = circuit_breaker or CircuitBreaker()
        self._sleep = sleep or asyncio.sleep
        self._history: deque[_Execution] = deque(maxlen=max(1, self._config.history_limit))

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    # ------------------------------------------------------------------
    # Single dispatch
    # ------------------------------------------------------------------

    async def execute(
        self,
        name: str,
        params: Mapping[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        """Execute one tool call and return its result.

        Order of checks: registration, circuit, parameter schema. Structural
        failures (:class:`ToolError`) are returned without retry and leave the
        circuit untouched; any other exception or a timeout is retried and,
        once attempts are exhausted, counts as one circuit failure.
        """
        if self._config.log_arguments:
            LOGGER.debug("Executing tool %s (call_id=%s) with arguments: %s", name, context.call_id, params)
        else:
            LOGGER.debug("Executing tool %s (call_id=%s)", name, context.call_id)

        tool = self._registry.get(name)
        if tool is None:
            LOGGER.warning("Tool '%s' not found or disabled", name)
            return ToolResult.failure(
                name,
                f"Tool '{name}' not found or disabled",
                error_code=ErrorCode.TOOL_NOT_FOUND,
                suggestion="Available tools: " + ", ".join(self._registry.list_names()),
            )

        if self._breaker.is_open(name):
            state = self._breaker.get_state(name)
            LOGGER.info("Skipping %s: circuit open", name)
            return CircuitOpenFailure(name, state.failures).to_result()

        spec = tool.spec
        problems = spec.validate(params)
        if problems:
            error = InvalidParameterError(problems=tuple(problems))
            self._record(name, False, 0.0)
            return ToolResult.failure(
                name,
                error.message,
                error_code=error.error_code,
                data=error.details,
            )

        reliability = spec.reliability or self._config.default_reliability
        start = time.perf_counter()
        attempts = 0
        try:
            async for attempt in self._retrying(name, reliability):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    raw = await self._invoke(tool, params, context, reliability.timeout)
        except ToolError as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            LOGGER.info("Tool %s failed structurally: %s", name, exc.message)
            self._record(name, False, duration_ms)
            return ToolResult(
                tool_name=name,
                success=False,
                message=exc.message,
                error_code=exc.error_code,
                suggestion=exc.suggestion,
                data=dict(exc.details),
                attempts=attempts,
                duration_ms=duration_ms,
            )
        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            failure = TransientToolFailure(
                name, attempts, exc, timed_out=isinstance(exc, asyncio.TimeoutError)
            )
            LOGGER.warning("%s (%.1fms)", failure.message, duration_ms)
            self._breaker.record_failure(name)
            self._record(name, False, duration_ms)
            return replace(failure.to_result(), duration_ms=duration_ms)

        duration_ms = (time.perf_counter() - start) * 1000
        result = replace(
            _coerce_result(name, raw, spec),
            attempts=attempts,
            duration_ms=duration_ms,
        )
        if result.success:
            self._breaker.record_success(name)
        self._record(name, result.success, duration_ms)
        if self._config.log_results:
            LOGGER.debug("Tool %s completed in %.1fms with result: %s", name, duration_ms, result.to_dict())
        else:
            LOGGER.debug("Tool %s completed in %.1fms", name, duration_ms)
        return result

    async def _invoke(
        self,
        tool: Tool,
        params: Mapping[str, Any],
        context: ToolContext,
        timeout: float | None,
    ) -> Any:
        if timeout is not None and timeout > 0:
            return await asyncio.wait_for(tool.execute(params, context), timeout=timeout)
        return await tool.execute(params, context)

    def _retrying(self, name: str, reliability: ToolReliability) -> AsyncRetrying:
        def _log_retry(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome
            error = outcome.exception() if outcome is not None else None
            LOGGER.info(
                "Retrying tool %s after attempt %d: %s",
                name,
                retry_state.attempt_number,
                error,
            )

        return AsyncRetrying(
            reraise=True,
            sleep=self._sleep,
            stop=stop_after_attempt(max(1, reliability.max_attempts)),
            wait=wait_exponential(
                multiplier=reliability.base_delay,
                exp_base=reliability.backoff_multiplier,
                min=0,
            ),
            # Cancellation is a BaseException and must never be retried.
            retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(ToolError),
            before_sleep=_log_retry,
        )

    # ------------------------------------------------------------------
    # Batch dispatch
    # ------------------------------------------------------------------

    async def execute_many(
        self,
        calls: Sequence[ToolInvocation | tuple[str, Mapping[str, Any]]],
        context: ToolContext,
    ) -> list[ToolResult]:
        """Execute a batch of calls; results are aligned with *calls*.

        Parallel-safe tools are dispatched concurrently against the batch's
        starting document. Sequential tools run in declared order, each seeing
        the document produced by earlier successful sequential writes. A failed
        sequential call to a document-writing tool skips the remaining
        sequential calls; parallel calls already dispatched still complete.
        """
        invocations = [_as_invocation(call) for call in calls]
        results: list[ToolResult | None] = [None] * len(invocations)

        parallel_indices: list[int] = []
        sequential_indices: list[int] = []
        for index, invocation in enumerate(invocations):
            spec = self._registry.get_spec(invocation.name)
            if spec is None or spec.parallel_safe:
                parallel_indices.append(index)
            else:
                sequential_indices.append(index)

        parallel_batch = asyncio.gather(
            *(
                self.execute(invocations[index].name, invocations[index].params, context)
                for index in parallel_indices
            )
        )

        current = context
        halted_by: str | None = None
        try:
            for index in sequential_indices:
                invocation = invocations[index]
                if halted_by is not None:
                    results[index] = ToolResult.failure(
                        invocation.name,
                        f"Skipped: earlier call to '{halted_by}' failed",
                        error_code=ErrorCode.SKIPPED,
                    )
                    continue
                result = await self.execute(invocation.name, invocation.params, current)
                results[index] = result
                if result.changed_document:
                    current = current.with_document(current.document.with_content(result.new_content or ""))
                elif not result.success and self._writes_document(invocation.name):
                    LOGGER.info("Halting sequential batch after %s failed", invocation.name)
                    halted_by = invocation.name
        finally:
            parallel_results = await parallel_batch

        for index, result in zip(parallel_indices, parallel_results):
            results[index] = result
        return [result for result in results if result is not None]

    def _writes_document(self, name: str) -> bool:
        spec = self._registry.get_spec(name)
        return bool(spec and spec.writes_document)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _record(self, name: str, success: bool, duration_ms: float) -> None:
        self._history.append(_Execution(tool_name=name, success=success, duration_ms=duration_ms))

    def get_stats(self) -> ExecutorStats:
        history = list(self._history)
        if not history:
            return ExecutorStats()
        successes = sum(1 for item in history if item.success)
        per_tool: dict[str, list[_Execution]] = {}
        for item in history:
            per_tool.setdefault(item.tool_name, []).append(item)
        by_tool = {
            name: ToolStats(
                count=len(items),
                failures=sum(1 for item in items if not item.success),
                average_duration_ms=sum(item.duration_ms for item in items) / len(items),
            )
            for name, items in per_tool.items()
        }
        return ExecutorStats(
            total_executions=len(history),
            successes=successes,
            success_rate=successes / len(history),
            average_duration_ms=sum(item.duration_ms for item in history) / len(history),
            by_tool=by_tool,
        )

    def reset_stats(self) -> None:
        self._history.clear()

    def has_tool(self, name: str) -> bool:
        return self._registry.has(name)

    def list_tools(self) -> list[str]:
        return self._registry.list_names()


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _as_invocation(call: ToolInvocation | tuple[str, Mapping[str, Any]]) -> ToolInvocation:
    if isinstance(call, ToolInvocation):
        return call
    name, params = call
    return ToolInvocation(name=name, params=params)


def _coerce_result(name: str, raw: Any, spec: ToolSpec) -> ToolResult:
    """Normalize whatever a tool returned into a :class:`ToolResult`."""
    if isinstance(raw, ToolResult):
        return raw if raw.tool_name == name else replace(raw, tool_name=name)
    if isinstance(raw, Mapping):
        data = dict(raw)
        new_content = data.pop("new_content", None) if spec.writes_document else None
        message = str(data.pop("message", "ok"))
        return ToolResult.ok(name, message, new_content=new_content, data=data)
    if raw is None:
        return ToolResult.ok(name, "ok")
    return ToolResult.ok(name, str(raw))
