"""Bounded checkpoint ring for a single editing run.

Checkpoints are immutable snapshots of the document taken after each
successful mutation. They exist for audit and for callers that choose to
revert after the fact; the loop itself never reads them to make progress.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from .types import DocumentState
from .verifier import line_diff

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Checkpoint Data
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Checkpoint:
    """A saved document state.

    Attributes:
        checkpoint_id: Identifier of the form ``cp_<sequence>_<iteration>``.
        state: The document snapshot.
        iteration: Iteration index whose record produced this state.
        description: Brief description of the change that led here.
        timestamp: Creation time (UTC).
    """

    checkpoint_id: str
    state: DocumentState
    iteration: int
    description: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def content(self) -> str:
        return self.state.content

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.checkpoint_id,
            "iteration": self.iteration,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "chars": self.state.char_count(),
            "version": self.state.version,
        }


@dataclass(slots=True, frozen=True)
class CheckpointDiff:
    """Difference between a checkpoint and a later document state."""

    checkpoint_id: str
    has_changes: bool
    lines_added: int = 0
    lines_removed: int = 0
    chars_added: int = 0
    chars_removed: int = 0


class CheckpointListener(Protocol):
    """Callback for checkpoint events."""

    def on_checkpoint_created(self, checkpoint: Checkpoint) -> None:
        ...


# -----------------------------------------------------------------------------
# Checkpoint Manager
# -----------------------------------------------------------------------------


class CheckpointManager:
    """FIFO ring of at most ``max_checkpoints`` checkpoints.

    The manager is purely additive during a run; :meth:`rollback_to` is an
    explicit escape hatch that drops every checkpoint newer than its target.
    """

    def __init__(self, max_checkpoints: int = 5, *, listener: CheckpointListener | None = None) -> None:
        self._max = max(1, int(max_checkpoints))
        self._listener = listener
        self._lock = threading.RLock()
        self._checkpoints: OrderedDict[str, Checkpoint] = OrderedDict()
        self._sequence = itertools.count(1)

    @property
    def max_checkpoints(self) -> int:
        return self._max

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(self, state: DocumentState, iteration: int, description: str = "") -> Checkpoint:
        with self._lock:
            checkpoint = Checkpoint(
                checkpoint_id=f"cp_{next(self._sequence)}_{iteration}",
                state=state,
                iteration=iteration,
                description=description,
            )
            self._checkpoints[checkpoint.checkpoint_id] = checkpoint
            while len(self._checkpoints) > self._max:
                evicted, _ = self._checkpoints.popitem(last=False)
                LOGGER.debug("Evicted checkpoint %s", evicted)

        if self._listener is not None:
            try:
                self._listener.on_checkpoint_created(checkpoint)
            except Exception:
                LOGGER.debug("Listener failed on checkpoint created", exc_info=True)

        LOGGER.debug("Created checkpoint %s (%s)", checkpoint.checkpoint_id, description)
        return checkpoint

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def list(self) -> list[Checkpoint]:
        """Return checkpoints oldest first."""
        with self._lock:
            return list(self._checkpoints.values())

    def get(self, checkpoint_id: str) -> Checkpoint | None:
        with self._lock:
            return self._checkpoints.get(checkpoint_id)

    def latest(self) -> Checkpoint | None:
        with self._lock:
            if not self._checkpoints:
                return None
            return next(reversed(self._checkpoints.values()))

    def from_iterations_ago(self, count: int) -> Checkpoint | None:
        """Return the checkpoint *count* positions before the latest one."""
        with self._lock:
            ordered = list(self._checkpoints.values())
            index = len(ordered) - 1 - count
            if count < 0 or index < 0:
                return None
            return ordered[index]

    def find_by_iteration(self, iteration: int) -> Checkpoint | None:
        """Return the newest checkpoint recorded for *iteration*."""
        with self._lock:
            for checkpoint in reversed(self._checkpoints.values()):
                if checkpoint.iteration == iteration:
                    return checkpoint
            return None

    def diff_from(self, checkpoint_id: str, current: DocumentState) -> CheckpointDiff | None:
        checkpoint = self.get(checkpoint_id)
        if checkpoint is None:
            return None
        before = checkpoint.state.content
        after = current.content
        if before == after:
            return CheckpointDiff(checkpoint_id=checkpoint_id, has_changes=False)
        diff = line_diff(before, after)
        return CheckpointDiff(
            checkpoint_id=checkpoint_id,
            has_changes=True,
            lines_added=diff.added,
            lines_removed=diff.removed,
            chars_added=max(0, len(after) - len(before)),
            chars_removed=max(0, len(before) - len(after)),
        )

    # ------------------------------------------------------------------
    # Rollback / Cleanup
    # ------------------------------------------------------------------

    def rollback_to(self, checkpoint_id: str) -> DocumentState | None:
        """Drop every checkpoint after *checkpoint_id* and return its state.

        Returns ``None`` when the checkpoint is unknown (for example evicted).
        """
        with self._lock:
            checkpoint = self._checkpoints.get(checkpoint_id)
            if checkpoint is None:
                LOGGER.warning("Checkpoint not found: %s", checkpoint_id)
                return None
            ids = list(self._checkpoints)
            removed = ids[ids.index(checkpoint_id) + 1 :]
            for later in removed:
                del self._checkpoints[later]
        LOGGER.info("Rolled back to %s, removed %d later checkpoints", checkpoint_id, len(removed))
        return checkpoint.state

    def clear(self) -> int:
        with self._lock:
            count = len(self._checkpoints)
            self._checkpoints.clear()
        LOGGER.debug("Cleared %d checkpoints", count)
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._checkpoints)


__all__ = [
    "Checkpoint",
    "CheckpointDiff",
    "CheckpointListener",
    "CheckpointManager",
]
