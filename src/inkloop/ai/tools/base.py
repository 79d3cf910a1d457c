"""Base class for the built-in document tools.

This module provides the abstract base that turns a synchronous, pure
document operation into an object satisfying the orchestration ``Tool``
protocol.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Mapping, Sequence

from ..orchestration.tools.types import ParameterSchema, ToolCategory, ToolReliability, ToolSpec
from ..orchestration.types import ToolContext, ToolResult

LOGGER = logging.getLogger(__name__)


class DocumentTool(ABC):
    """Abstract base class for all built-in document tools.

    Subclasses declare their interface through class variables and implement
    :meth:`run`, which receives the read-only document lent by the loop and
    either returns a :class:`ToolResult` or raises a ``ToolError``.

    Example:
        class CountLinesTool(DocumentTool):
            name = "count"
            description = "Count document lines"

            def run(self, params, context):
                return ToolResult.ok(self.name, f"{context.document.line_count()} lines")
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    category: ClassVar[str] = ToolCategory.READ
    parameters: ClassVar[Sequence[ParameterSchema]] = ()
    writes_document: ClassVar[bool] = False
    parallel_safe: ClassVar[bool] = False
    reliability: ClassVar[ToolReliability | None] = None

    @property
    def spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters=tuple(self.parameters),
            category=self.category,
            writes_document=self.writes_document,
            parallel_safe=self.parallel_safe,
            reliability=self.reliability,
        )

    async def execute(self, arguments: Mapping[str, Any], context: ToolContext) -> ToolResult:
        # Runs in a worker thread so the executor timeout can interrupt the wait.
        return await asyncio.to_thread(self.run, arguments, context)

    @abstractmethod
    def run(self, params: Mapping[str, Any], context: ToolContext) -> ToolResult:
        """Apply the tool to ``context.document``."""


__all__ = ["DocumentTool"]
