"""Tool applying SEARCH/REPLACE blocks (wire tag ``<replace_in_file>``).

Each block replaces the first occurrence of its search text. Matching falls
back from an exact match to a trimmed match and finally to a
whitespace-flexible match; every fallback is reported in the result data.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, ClassVar, Mapping, Sequence

from ..orchestration.tool_call_parser import SearchReplaceBlock, parse_patch_blocks
from ..orchestration.tools.types import ParameterSchema, ToolCategory, ToolReliability
from ..orchestration.types import ToolContext, ToolResult
from .base import DocumentTool
from .errors import InvalidPatchFormatError, SearchNotFoundError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class BlockMatch:
    """Where and how one block matched."""

    start: int
    end: int
    replacement: str
    strategy: str


def find_block(text: str, block: SearchReplaceBlock) -> BlockMatch | None:
    """Locate the first occurrence of ``block.search`` in *text*."""
    search = block.search
    if search:
        index = text.find(search)
        if index >= 0:
            return BlockMatch(index, index + len(search), block.replace, "exact")

    trimmed = search.strip()
    if not trimmed:
        return None
    index = text.find(trimmed)
    if index >= 0:
        return BlockMatch(index, index + len(trimmed), block.replace.strip(), "trimmed")

    pattern = r"\s+".join(re.escape(word) for word in trimmed.split())
    match = re.search(pattern, text)
    if match is not None:
        return BlockMatch(match.start(), match.end(), block.replace.strip(), "whitespace")
    return None


def apply_blocks(text: str, blocks: Sequence[SearchReplaceBlock]) -> tuple[str, int, list[str], list[str]]:
    """Apply *blocks* in order.

    Returns:
        The new text, the number of applied blocks, the corrections used and
        the search texts that did not match.
    """
    applied = 0
    corrections: list[str] = []
    failed: list[str] = []
    for position, block in enumerate(blocks, start=1):
        found = find_block(text, block)
        if found is None:
            failed.append(block.search.strip() or block.search)
            continue
        text = text[: found.start] + found.replacement + text[found.end :]
        applied += 1
        if found.strategy != "exact":
            corrections.append(f"block {position}: matched with {found.strategy} comparison")
    return text, applied, corrections, failed


class ReplaceInFileTool(DocumentTool):
    """Apply targeted SEARCH/REPLACE edits to the document.

    Parameters:
        blocks: Ordered ``{"search", "replace"}`` pairs.
        content: Raw patch text, parsed when ``blocks`` is empty.
        path: Optional document path.
    """

    name: ClassVar[str] = "patch"
    description: ClassVar[str] = "Replace sections of the document using SEARCH/REPLACE blocks"
    category: ClassVar[str] = ToolCategory.WRITE
    parameters: ClassVar[Sequence[ParameterSchema]] = (
        ParameterSchema("blocks", "array", "Ordered search/replace pairs"),
        ParameterSchema("content", "string", "Raw SEARCH/REPLACE text"),
        ParameterSchema("path", "string", "Document path (defaults to the document title)"),
    )
    writes_document: ClassVar[bool] = True
    reliability: ClassVar[ToolReliability | None] = ToolReliability(
        timeout=30.0, max_attempts=3, base_delay=1.0, backoff_multiplier=2.0
    )

    def run(self, params: Mapping[str, Any], context: ToolContext) -> ToolResult:
        blocks = self._blocks(params)
        if not blocks:
            raise InvalidPatchFormatError()

        new_content, applied, corrections, failed = apply_blocks(context.document.content, blocks)
        if applied == 0:
            raise SearchNotFoundError.for_searches(failed)

        if corrections:
            LOGGER.debug("Patch applied with relaxed matching: %s", "; ".join(corrections))
        data: dict[str, Any] = {"applied": applied, "blocks": len(blocks)}
        if corrections:
            data["corrections"] = corrections
        if failed:
            data["failed_searches"] = [search[:50] for search in failed]
        return ToolResult.ok(
            self.name,
            f"Applied {applied} replacement(s)",
            new_content=new_content,
            data=data,
        )

    @staticmethod
    def _blocks(params: Mapping[str, Any]) -> list[SearchReplaceBlock]:
        blocks: list[SearchReplaceBlock] = []
        for raw in params.get("blocks") or ():
            if isinstance(raw, SearchReplaceBlock):
                blocks.append(raw)
            elif isinstance(raw, Mapping) and isinstance(raw.get("search"), str):
                blocks.append(SearchReplaceBlock(search=raw["search"], replace=str(raw.get("replace") or "")))
        if not blocks and isinstance(params.get("content"), str):
            blocks.extend(parse_patch_blocks(params["content"]).blocks)
        return [block for block in blocks if block.search.strip()]


__all__ = ["ReplaceInFileTool", "BlockMatch", "find_block", "apply_blocks"]
