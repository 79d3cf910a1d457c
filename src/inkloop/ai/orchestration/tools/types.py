"""Tool system types for the editing loop.

This module defines the specification, parameter schema and reliability
profile attached to every registered tool, plus the protocol tools
implement.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence, Union, runtime_checkable

from ..types import ToolContext, ToolResult

__all__ = [
    "ToolCategory",
    "ParameterSchema",
    "ToolReliability",
    "ToolSpec",
    "ToolHandler",
    "AsyncToolHandler",
    "Tool",
    "SimpleTool",
]


# -----------------------------------------------------------------------------
# Tool Categories
# -----------------------------------------------------------------------------


class ToolCategory:
    """Standard tool categories for organization."""

    READ = "read"
    WRITE = "write"
    SEARCH = "search"


# -----------------------------------------------------------------------------
# Parameter Schema
# -----------------------------------------------------------------------------

_JSON_TYPES: Mapping[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict, Mapping),
}


@dataclass(slots=True, frozen=True)
class ParameterSchema:
    """Schema for a single tool parameter.

    Attributes:
        name: Parameter name.
        type: JSON Schema type (string, integer, number, boolean, array, object).
        description: Human-readable description.
        required: Whether the parameter is required.
        enum: Allowed values, if restricted.
    """

    name: str
    type: str
    description: str = ""
    required: bool = False
    enum: Sequence[Any] | None = None

    def validate(self, value: Any) -> str | None:
        """Return a problem description for *value*, or ``None`` when valid."""
        expected = _JSON_TYPES.get(self.type)
        if expected is not None:
            # bool is an int subclass; keep numeric parameters strict.
            if isinstance(value, bool) and self.type in ("integer", "number"):
                return f"'{self.name}' must be of type {self.type}"
            if not isinstance(value, expected):
                return f"'{self.name}' must be of type {self.type}"
        if self.enum is not None and value not in self.enum:
            allowed = ", ".join(repr(item) for item in self.enum)
            return f"'{self.name}' must be one of {allowed}"
        return None

    def to_json_schema(self) -> dict[str, Any]:
        """Convert to JSON Schema format."""
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


# -----------------------------------------------------------------------------
# Reliability Profile
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolReliability:
    """Timeout and retry profile for one tool.

    Attributes:
        timeout: Per-attempt timeout in seconds (``None`` disables it).
        max_attempts: Total attempts including the first one.
        base_delay: Delay before the first retry, in seconds.
        backoff_multiplier: Factor applied to the delay after each retry.
    """

    timeout: float | None = 30.0
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0


# -----------------------------------------------------------------------------
# Tool Specification
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ToolSpec:
    """Specification for a tool's interface.

    Attributes:
        name: Unique identifier for the tool.
        description: Human-readable description of what the tool does.
        parameters: Parameter schemas validated before every call.
        category: Tool category for organization.
        writes_document: Whether the tool returns replacement document text.
        parallel_safe: Whether ``execute_many`` may run the tool concurrently.
        reliability: Timeout/retry profile; ``None`` uses the executor default.
    """

    name: str
    description: str
    parameters: Sequence[ParameterSchema] = field(default_factory=tuple)
    category: str = ToolCategory.READ
    writes_document: bool = False
    parallel_safe: bool = False
    reliability: ToolReliability | None = None

    def validate(self, arguments: Mapping[str, Any]) -> list[str]:
        """Validate *arguments* against the parameter schemas.

        Returns:
            A list of problems; empty when the arguments are acceptable.
        """
        problems: list[str] = []
        if not isinstance(arguments, Mapping):
            return ["arguments must be an object"]
        for schema in self.parameters:
            value = arguments.get(schema.name)
            if value is None:
                if schema.required:
                    problems.append(f"missing required parameter '{schema.name}'")
                continue
            problem = schema.validate(value)
            if problem:
                problems.append(problem)
        return problems

    def to_json_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {schema.name: schema.to_json_schema() for schema in self.parameters},
            "required": [schema.name for schema in self.parameters if schema.required],
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.to_json_schema(),
            "category": self.category,
            "writes_document": self.writes_document,
            "parallel_safe": self.parallel_safe,
        }


# -----------------------------------------------------------------------------
# Tool Handler Types
# -----------------------------------------------------------------------------

ToolHandler = Callable[[Mapping[str, Any], ToolContext], Union[ToolResult, Mapping[str, Any], str]]

AsyncToolHandler = Callable[
    [Mapping[str, Any], ToolContext], Awaitable[Union[ToolResult, Mapping[str, Any], str]]
]


# -----------------------------------------------------------------------------
# Tool Protocol
# -----------------------------------------------------------------------------


@runtime_checkable
class Tool(Protocol):
    """Protocol for tool implementations."""

    @property
    def name(self) -> str:
        ...

    @property
    def spec(self) -> ToolSpec:
        ...

    async def execute(self, arguments: Mapping[str, Any], context: ToolContext) -> Any:
        """Execute the tool against the document lent through *context*.

        Raises:
            ToolError: For structural failures that must not be retried.
            Exception: Anything else is treated as transient.
        """
        ...


# -----------------------------------------------------------------------------
# Simple Tool Implementation
# -----------------------------------------------------------------------------


@dataclass
class SimpleTool:
    """Tool implementation wrapping a callable.

    Synchronous handlers run in a worker thread so the executor's timeout
    applies to them as well.
    """

    spec: ToolSpec
    handler: ToolHandler | AsyncToolHandler
    _is_async: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        self._is_async = inspect.iscoroutinefunction(self.handler)

    @property
    def name(self) -> str:
        return self.spec.name

    async def execute(self, arguments: Mapping[str, Any], context: ToolContext) -> Any:
        if self._is_async:
            return await self.handler(arguments, context)  # type: ignore[misc]
        return await asyncio.to_thread(self.handler, arguments, context)
