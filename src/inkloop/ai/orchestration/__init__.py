"""Autonomous editing orchestration: parser, executor, verifier and the loop."""

# Core types
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

# Tool call parsing
from .tool_call_parser import (
    ParsedToolCall,
    ParseFailure,
    ToolCallParser,
    ToolKind,
    extract_rationale,
    parse_patch_blocks,
    recover_partial_response,
)

# Failure taxonomy
from .errors import (
    CircuitOpenFailure,
    DeadlineExceeded,
    OracleUnavailable,
    OrchestrationError,
    RecoveryStrategy,
    StructuralToolFailure,
    TransientToolFailure,
    recovery_strategy,
)

# Loop components
from .checkpoints import Checkpoint, CheckpointManager
from .completion import CompletionDetector, CompletionVerdict
from .verifier import EditVerifier, VerificationResult, VerifierConfig
from .goals import build_goal, estimate_complexity, plan_sub_goals
from .oracle import AIClientOracle, Oracle, OracleConfig
from .intent import IntentResult, OracleIntentDetector, StaticIntentDetector
from .events import (
    CollectingEventSink,
    EditEvent,
    EditEventSink,
    EditEventType,
    JsonlEventSink,
    LoggingEventSink,
    NullEventSink,
)

# Orchestrator facade
from .orchestrator import EditOrchestrator, OrchestratorConfig

__all__ = [
    # Types
    "ChangeRecord",
    "Complexity",
    "DocumentState",
    "EditGoal",
    "EditRunResult",
    "GoalStatus",
    "IterationRecord",
    "Message",
    "RunPhase",
    "RunStats",
    "RunStatus",
    "ToolContext",
    "ToolResult",
    # Parsing
    "ParsedToolCall",
    "ParseFailure",
    "ToolCallParser",
    "ToolKind",
    "extract_rationale",
    "parse_patch_blocks",
    "recover_partial_response",
    # Errors
    "CircuitOpenFailure",
    "DeadlineExceeded",
    "OracleUnavailable",
    "OrchestrationError",
    "RecoveryStrategy",
    "StructuralToolFailure",
    "TransientToolFailure",
    "recovery_strategy",
    # Components
    "Checkpoint",
    "CheckpointManager",
    "CompletionDetector",
    "CompletionVerdict",
    "EditVerifier",
    "VerificationResult",
    "VerifierConfig",
    "build_goal",
    "estimate_complexity",
    "plan_sub_goals",
    "AIClientOracle",
    "Oracle",
    "OracleConfig",
    "IntentResult",
    "OracleIntentDetector",
    "StaticIntentDetector",
    "CollectingEventSink",
    "EditEvent",
    "EditEventSink",
    "EditEventType",
    "JsonlEventSink",
    "LoggingEventSink",
    "NullEventSink",
    # Orchestrator
    "EditOrchestrator",
    "OrchestratorConfig",
]
