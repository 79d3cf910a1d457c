"""Tests for orchestration/tools/registry.py."""

from __future__ import annotations

from typing import Any, Mapping

import pytest

from inkloop.ai.orchestration.tools import (
    DuplicateToolError,
    ParameterSchema,
    SimpleTool,
    Tool,
    ToolCategory,
    ToolNotFoundError,
    ToolRegistry,
    ToolSpec,
)
from inkloop.ai.orchestration.types import DocumentState, ToolContext


# -----------------------------------------------------------------------------
# Test Fixtures and Helpers
# -----------------------------------------------------------------------------


def make_spec(name: str = "test_tool", *, category: str = ToolCategory.READ) -> ToolSpec:
    return ToolSpec(
        name=name,
        description="A test tool",
        parameters=(ParameterSchema(name="arg", type="string", required=True),),
        category=category,
    )


class MockTool:
    """Minimal object satisfying the Tool protocol."""

    def __init__(self, name: str = "mock_tool") -> None:
        self._spec = make_spec(name)

    @property
    def name(self) -> str:
        return self._spec.name

    @property
    def spec(self) -> ToolSpec:
        return self._spec

    async def execute(self, arguments: Mapping[str, Any], context: ToolContext) -> Any:
        return f"mock {arguments.get('arg')}"


# -----------------------------------------------------------------------------
# Registration
# -----------------------------------------------------------------------------


class TestRegistration:
    def test_register_tool(self) -> None:
        registry = ToolRegistry()
        tool = MockTool()

        registration = registry.register(tool, metadata={"source": "test"})

        assert isinstance(tool, Tool)
        assert registration.name == "mock_tool"
        assert registration.metadata == {"source": "test"}
        assert registry.get("mock_tool") is tool
        assert "mock_tool" in registry
        assert len(registry) == 1

    def test_duplicate_registration_fails(self) -> None:
        registry = ToolRegistry()
        registry.register(MockTool())

        with pytest.raises(DuplicateToolError) as excinfo:
            registry.register(MockTool())

        assert excinfo.value.name == "mock_tool"

    def test_allow_override_replaces_tool(self) -> None:
        registry = ToolRegistry()
        registry.register(MockTool())
        replacement = MockTool()

        registry.register(replacement, allow_override=True)

        assert registry.get("mock_tool") is replacement

    def test_register_function_wraps_simple_tool(self) -> None:
        registry = ToolRegistry()

        registry.register_function(make_spec("echo"), lambda args, ctx: args["arg"])

        assert isinstance(registry.get("echo"), SimpleTool)

    def test_unregister(self) -> None:
        registry = ToolRegistry()
        registry.register(MockTool())

        assert registry.unregister("mock_tool") is True
        assert registry.unregister("mock_tool") is False
        assert registry.get("mock_tool") is None


# -----------------------------------------------------------------------------
# Lookup and enablement
# -----------------------------------------------------------------------------


class TestLookup:
    def test_get_required_raises_for_unknown(self) -> None:
        with pytest.raises(ToolNotFoundError) as excinfo:
            ToolRegistry().get_required("nope")

        assert str(excinfo.value) == "Tool 'nope' not found"

    def test_disabled_tools_are_hidden(self) -> None:
        registry = ToolRegistry()
        registry.register(MockTool("a"))
        registry.register(MockTool("b"), enabled=False)

        assert registry.has("a") is True
        assert registry.has("b") is False
        assert registry.get("b") is None
        assert registry.list_names() == ["a"]
        assert registry.list_names(include_disabled=True) == ["a", "b"]
        assert registry.get_spec("b") is not None

    def test_enable_and_disable(self) -> None:
        registry = ToolRegistry()
        registry.register(MockTool())

        assert registry.disable("mock_tool") is True
        assert registry.has("mock_tool") is False
        assert registry.enable("mock_tool") is True
        assert registry.has("mock_tool") is True
        assert registry.enable("unknown") is False

    def test_list_tools_returns_specs(self) -> None:
        registry = ToolRegistry()
        registry.register(MockTool("a"))

        specs = registry.list_tools()

        assert [spec.name for spec in specs] == ["a"]

    def test_clear(self) -> None:
        registry = ToolRegistry()
        registry.register(MockTool())

        registry.clear()

        assert len(registry) == 0


# -----------------------------------------------------------------------------
# Tool specs
# -----------------------------------------------------------------------------


class TestToolSpec:
    def test_validate_reports_missing_and_mistyped(self) -> None:
        spec = ToolSpec(
            name="t",
            description="d",
            parameters=(
                ParameterSchema(name="path", type="string", required=True),
                ParameterSchema(name="limit", type="integer"),
                ParameterSchema(name="mode", type="string", enum=("a", "b")),
            ),
        )

        assert spec.validate({"path": "x", "limit": 3, "mode": "a"}) == []
        assert spec.validate({"limit": True}) == [
            "missing required parameter 'path'",
            "'limit' must be of type integer",
        ]
        assert spec.validate({"path": "x", "mode": "c"}) == ["'mode' must be one of 'a', 'b'"]
        assert spec.validate(["not", "a", "mapping"]) == ["arguments must be an object"]  # type: ignore[arg-type]

    def test_to_dict_includes_json_schema(self) -> None:
        payload = make_spec("read", category=ToolCategory.READ).to_dict()

        assert payload["name"] == "read"
        assert payload["category"] == "read"
        assert payload["parameters"] == {
            "type": "object",
            "properties": {"arg": {"type": "string", "description": ""}},
            "required": ["arg"],
        }


@pytest.mark.asyncio
async def test_simple_tool_runs_sync_and_async_handlers() -> None:
    context = ToolContext(document=DocumentState(title="d", content="body"))

    async def async_handler(args: Mapping[str, Any], ctx: ToolContext) -> str:
        return f"async {ctx.document.content}"

    sync_tool = SimpleTool(spec=make_spec("sync"), handler=lambda args, ctx: f"sync {args['arg']}")
    async_tool = SimpleTool(spec=make_spec("async"), handler=async_handler)

    assert await sync_tool.execute({"arg": "x"}, context) == "sync x"
    assert await async_tool.execute({}, context) == "async body"
