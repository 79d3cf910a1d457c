"""Tool replacing the whole document (wire tag ``<write_to_file>``)."""

from __future__ import annotations

from typing import Any, ClassVar, Mapping, Sequence

from ..orchestration.tools.types import ParameterSchema, ToolCategory, ToolReliability
from ..orchestration.types import ToolContext, ToolResult
from .base import DocumentTool
from .errors import ContentRequiredError


class WriteToFileTool(DocumentTool):
    """Overwrite the document with the supplied content.

    Empty or whitespace-only content raises :class:`ContentRequiredError`.
    """

    name: ClassVar[str] = "overwrite"
    description: ClassVar[str] = "Replace the entire document with new content"
    category: ClassVar[str] = ToolCategory.WRITE
    parameters: ClassVar[Sequence[ParameterSchema]] = (
        ParameterSchema("content", "string", "Complete new document text", required=True),
        ParameterSchema("path", "string", "Document path (defaults to the document title)"),
    )
    writes_document: ClassVar[bool] = True
    reliability: ClassVar[ToolReliability | None] = ToolReliability(
        timeout=60.0, max_attempts=3, base_delay=1.0, backoff_multiplier=2.0
    )

    def run(self, params: Mapping[str, Any], context: ToolContext) -> ToolResult:
        content = params.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ContentRequiredError()
        line_count = len(content.split("\n"))
        return ToolResult.ok(
            self.name,
            f"Wrote {line_count} lines",
            new_content=content,
            data={"lines": line_count, "previous_lines": context.document.line_count()},
        )


__all__ = ["WriteToFileTool"]
