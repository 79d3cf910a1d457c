"""Tool system for the editing loop.

This package provides the registry, executor and circuit breaker used to
dispatch parsed tool calls against a document.

Example:
    from inkloop.ai.orchestration.tools import ToolExecutor, ToolRegistry, ToolSpec

    registry = ToolRegistry()
    registry.register_function(
        spec=ToolSpec(name="count", description="Count lines"),
        handler=lambda args, ctx: f"{ctx.document.line_count()} lines",
    )

    executor = ToolExecutor(registry)
    result = await executor.execute("count", {}, ToolContext(document))
"""

from .types import (
    Tool,
    ToolSpec,
    ToolHandler,
    AsyncToolHandler,
    SimpleTool,
    ToolCategory,
    ToolReliability,
    ParameterSchema,
)

from .registry import (
    ToolRegistry,
    ToolRegistration,
    DuplicateToolError,
    ToolNotFoundError,
)

from .circuit_breaker import (
    CircuitBreaker,
    CircuitState,
)

from .executor import (
    ToolExecutor,
    ExecutorConfig,
    ExecutorStats,
    ToolInvocation,
    ToolStats,
)

__all__ = [
    # types.py
    "Tool",
    "ToolSpec",
    "ToolHandler",
    "AsyncToolHandler",
    "SimpleTool",
    "ToolCategory",
    "ToolReliability",
    "ParameterSchema",
    # registry.py
    "ToolRegistry",
    "ToolRegistration",
    "DuplicateToolError",
    "ToolNotFoundError",
    # circuit_breaker.py
    "CircuitBreaker",
    "CircuitState",
    # executor.py
    "ToolExecutor",
    "ExecutorConfig",
    "ExecutorStats",
    "ToolInvocation",
    "ToolStats",
]
