"""inkloop: a goal-directed editing loop around a chat model."""

from __future__ import annotations

# The orchestration package pulls in prompts and the built-in tools; load it
# before any of its submodules can be imported on their own.
from . import ai as ai
from .ai import orchestration as orchestration
from .ai.orchestration import DocumentState, EditOrchestrator, EditRunResult, OrchestratorConfig, RunStatus

__version__ = "0.1.0"

__all__ = [
    "DocumentState",
    "EditOrchestrator",
    "EditRunResult",
    "OrchestratorConfig",
    "RunStatus",
    "__version__",
]
