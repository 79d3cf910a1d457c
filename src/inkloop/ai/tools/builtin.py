"""Registry wiring for the built-in document tools."""

from __future__ import annotations

from ..orchestration.tools.registry import ToolRegistry
from .base import DocumentTool
from .read_file import ReadFileTool
from .replace_in_file import ReplaceInFileTool
from .search_files import SearchFilesTool
from .write_to_file import WriteToFileTool

BUILTIN_TOOLS: tuple[type[DocumentTool], ...] = (
    ReadFileTool,
    WriteToFileTool,
    ReplaceInFileTool,
    SearchFilesTool,
)


def register_builtin_tools(registry: ToolRegistry, *, allow_override: bool = False) -> ToolRegistry:
    """Register read, overwrite, patch and search on *registry*."""
    for tool_cls in BUILTIN_TOOLS:
        registry.register(tool_cls(), allow_override=allow_override)
    return registry


def build_default_registry() -> ToolRegistry:
    """Return a fresh registry holding only the built-in tools."""
    return register_builtin_tools(ToolRegistry())


__all__ = ["BUILTIN_TOOLS", "register_builtin_tools", "build_default_registry"]
