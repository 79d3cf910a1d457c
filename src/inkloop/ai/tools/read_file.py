"""Tool returning the current document text (wire tag ``<read_file>``)."""

from __future__ import annotations

from typing import Any, ClassVar, Mapping, Sequence

from ..orchestration.tools.types import ParameterSchema, ToolCategory, ToolReliability
from ..orchestration.types import ToolContext, ToolResult
from .base import DocumentTool


class ReadFileTool(DocumentTool):
    """Return the document text as structured data without mutating it.

    Parameters:
        path: Optional document path; the loop only ever edits one document,
            so the value is echoed back rather than resolved.
    """

    name: ClassVar[str] = "read"
    description: ClassVar[str] = "Read the full text of the document being edited"
    category: ClassVar[str] = ToolCategory.READ
    parameters: ClassVar[Sequence[ParameterSchema]] = (
        ParameterSchema("path", "string", "Document path (defaults to the document title)"),
    )
    parallel_safe: ClassVar[bool] = True
    reliability: ClassVar[ToolReliability | None] = ToolReliability(
        timeout=10.0, max_attempts=2, base_delay=0.5, backoff_multiplier=2.0
    )

    def run(self, params: Mapping[str, Any], context: ToolContext) -> ToolResult:
        document = context.document
        return ToolResult.ok(
            self.name,
            f"Read {document.title}",
            data={
                "path": params.get("path") or document.title,
                "content": document.content,
                "lines": document.line_count(),
                "chars": document.char_count(),
                "version": document.version,
            },
        )


__all__ = ["ReadFileTool"]
