"""Tool searching the document line by line (wire tag ``<search_files>``)."""

from __future__ import annotations

import re
from typing import Any, ClassVar, Mapping, Sequence

from ..orchestration.tools.types import ParameterSchema, ToolCategory, ToolReliability
from ..orchestration.types import ToolContext, ToolResult
from .base import DocumentTool
from .errors import MissingParameterError, PatternInvalidError

# Maximum number of matches returned in the result data
MAX_RESULTS = 50


class SearchFilesTool(DocumentTool):
    """Case-insensitive regular-expression search over document lines.

    Parameters:
        pattern: Regular expression, matched against each line.
        path: Optional document path.
    """

    name: ClassVar[str] = "search"
    description: ClassVar[str] = "Find lines of the document matching a regular expression"
    category: ClassVar[str] = ToolCategory.SEARCH
    parameters: ClassVar[Sequence[ParameterSchema]] = (
        ParameterSchema("pattern", "string", "Regular expression to search for", required=True),
        ParameterSchema("path", "string", "Document path (defaults to the document title)"),
    )
    parallel_safe: ClassVar[bool] = True
    reliability: ClassVar[ToolReliability | None] = ToolReliability(
        timeout=15.0, max_attempts=2, base_delay=0.5, backoff_multiplier=2.0
    )

    def run(self, params: Mapping[str, Any], context: ToolContext) -> ToolResult:
        pattern = params.get("pattern")
        if not isinstance(pattern, str) or not pattern:
            raise MissingParameterError(parameter="pattern")
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as exc:
            raise PatternInvalidError(pattern=pattern, reason=str(exc)) from exc

        matches = [
            {"line": number, "text": line}
            for number, line in enumerate(context.document.content.split("\n"), start=1)
            if regex.search(line)
        ]
        return ToolResult.ok(
            self.name,
            f"Found {len(matches)} matches",
            data={
                "pattern": pattern,
                "total": len(matches),
                "matches": matches[:MAX_RESULTS],
                "truncated": len(matches) > MAX_RESULTS,
            },
        )


__all__ = ["SearchFilesTool", "MAX_RESULTS"]
