"""Per-tool circuit breaker shared across runs.

The breaker is the only state shared between concurrent runs, so every
transition happens under a lock. It is an ordinary object: build one at
startup and pass it to each executor that should share it.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

__all__ = ["CircuitState", "CircuitBreaker"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CircuitState:
    """Snapshot of one tool's circuit.

    Attributes:
        tool_name: Tool the circuit guards.
        failures: Consecutive failed executions.
        last_failure_at: Clock reading of the latest failure.
        is_open: Whether calls are currently short-circuited.
    """

    tool_name: str
    failures: int = 0
    last_failure_at: float | None = None
    is_open: bool = False


class CircuitBreaker:
    """Open a tool's circuit after consecutive failures, close it after a cooldown."""

    def __init__(
        self,
        *,
        failure_threshold: int = 3,
        reset_after: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._threshold = max(1, int(failure_threshold))
        self._reset_after = max(0.0, float(reset_after))
        self._clock = clock
        self._lock = threading.Lock()
        self._states: dict[str, CircuitState] = {}

    @property
    def failure_threshold(self) -> int:
        return self._threshold

    @property
    def reset_after(self) -> float:
        return self._reset_after

    def is_open(self, tool_name: str) -> bool:
        """Return whether *tool_name* is short-circuited.

        An open circuit whose cooldown has elapsed is closed here.
        """
        with self._lock:
            state = self._states.get(tool_name)
            if state is None or not state.is_open:
                return False
            last_failure = state.last_failure_at or 0.0
            if self._clock() - last_failure >= self._reset_after:
                self._states[tool_name] = CircuitState(tool_name=tool_name)
                LOGGER.info("Circuit for %s closed after cooldown", tool_name)
                return False
            return True

    def record_failure(self, tool_name: str) -> CircuitState:
        with self._lock:
            previous = self._states.get(tool_name) or CircuitState(tool_name=tool_name)
            failures = previous.failures + 1
            state = CircuitState(
                tool_name=tool_name,
                failures=failures,
                last_failure_at=self._clock(),
                is_open=failures >= self._threshold,
            )
            self._states[tool_name] = state
        if state.is_open and not previous.is_open:
            LOGGER.warning(
                "Circuit for %s opened after %d consecutive failures", tool_name, failures
            )
        return state

    def record_success(self, tool_name: str) -> None:
        with self._lock:
            if tool_name in self._states:
                self._states[tool_name] = CircuitState(tool_name=tool_name)

    def get_state(self, tool_name: str) -> CircuitState:
        with self._lock:
            return self._states.get(tool_name) or CircuitState(tool_name=tool_name)

    def reset(self, tool_name: str | None = None) -> None:
        """Close one circuit, or every circuit when *tool_name* is ``None``."""
        with self._lock:
            if tool_name is None:
                self._states.clear()
            else:
                self._states.pop(tool_name, None)
        LOGGER.debug("Circuit reset: %s", tool_name or "all tools")

    def snapshot(self) -> dict[str, CircuitState]:
        with self._lock:
            return dict(self._states)
