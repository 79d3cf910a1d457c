"""Tests for the built-in document tools in ai/tools."""

from __future__ import annotations

import pytest

from inkloop.ai.orchestration.tool_call_parser import SearchReplaceBlock
from inkloop.ai.orchestration.tools import ToolExecutor
from inkloop.ai.orchestration.types import DocumentState, ToolContext
from inkloop.ai.tools.builtin import BUILTIN_TOOLS, build_default_registry
from inkloop.ai.tools.errors import (
    ContentRequiredError,
    ErrorCode,
    InvalidPatchFormatError,
    PatternInvalidError,
    SearchNotFoundError,
)
from inkloop.ai.tools.read_file import ReadFileTool
from inkloop.ai.tools.replace_in_file import ReplaceInFileTool, apply_blocks, find_block
from inkloop.ai.tools.search_files import MAX_RESULTS, SearchFilesTool
from inkloop.ai.tools.write_to_file import WriteToFileTool


def make_context(content: str, *, title: str = "app.js") -> ToolContext:
    return ToolContext(document=DocumentState(title=title, content=content, language="javascript"))


def make_blocks(*pairs: tuple[str, str]) -> list[dict[str, str]]:
    return [{"search": search, "replace": replace} for search, replace in pairs]


# -----------------------------------------------------------------------------
# Tests: registry wiring
# -----------------------------------------------------------------------------


class TestBuiltinRegistry:
    def test_registers_the_closed_tool_set(self) -> None:
        registry = build_default_registry()

        assert sorted(registry.list_names()) == ["overwrite", "patch", "read", "search"]
        assert len(BUILTIN_TOOLS) == 4

    @pytest.mark.parametrize(
        ("name", "parallel_safe", "writes", "timeout", "attempts", "delay"),
        [
            ("read", True, False, 10.0, 2, 0.5),
            ("search", True, False, 15.0, 2, 0.5),
            ("overwrite", False, True, 60.0, 3, 1.0),
            ("patch", False, True, 30.0, 3, 1.0),
        ],
    )
    def test_reliability_profiles(
        self,
        name: str,
        parallel_safe: bool,
        writes: bool,
        timeout: float,
        attempts: int,
        delay: float,
    ) -> None:
        spec = build_default_registry().get_spec(name)

        assert spec is not None
        assert spec.parallel_safe is parallel_safe
        assert spec.writes_document is writes
        assert spec.reliability is not None
        assert spec.reliability.timeout == timeout
        assert spec.reliability.max_attempts == attempts
        assert spec.reliability.base_delay == delay
        assert spec.reliability.backoff_multiplier == 2.0


# -----------------------------------------------------------------------------
# Tests: read and overwrite
# -----------------------------------------------------------------------------


class TestReadFileTool:
    def test_returns_content_as_data(self) -> None:
        result = ReadFileTool().run({}, make_context("a\nb"))

        assert result.success
        assert result.new_content is None
        assert result.data["content"] == "a\nb"
        assert result.data["lines"] == 2
        assert result.data["path"] == "app.js"


class TestWriteToFileTool:
    def test_overwrites_document(self) -> None:
        result = WriteToFileTool().run({"content": "one\ntwo\nthree"}, make_context("old"))

        assert result.new_content == "one\ntwo\nthree"
        assert result.message == "Wrote 3 lines"

    @pytest.mark.parametrize("content", ["", "   \n  ", None])
    def test_requires_content(self, content) -> None:
        with pytest.raises(ContentRequiredError):
            WriteToFileTool().run({"content": content}, make_context("old"))


# -----------------------------------------------------------------------------
# Tests: patch
# -----------------------------------------------------------------------------


class TestReplaceInFileTool:
    def test_replaces_first_occurrence_only(self) -> None:
        context = make_context("x = 1\nx = 1\n")

        result = ReplaceInFileTool().run({"blocks": make_blocks(("x = 1", "x = 2"))}, context)

        assert result.new_content == "x = 2\nx = 1\n"
        assert result.message == "Applied 1 replacement(s)"
        assert "corrections" not in result.data

    def test_guarded_return_scenario(self) -> None:
        context = make_context("function f(x){return x}")
        blocks = make_blocks(("return x", "if (typeof x !== 'number') throw new Error('bad'); return x"))

        result = ReplaceInFileTool().run({"blocks": blocks}, context)

        assert result.new_content == (
            "function f(x){if (typeof x !== 'number') throw new Error('bad'); return x}"
        )

    def test_blocks_apply_in_order(self) -> None:
        result = ReplaceInFileTool().run(
            {"blocks": make_blocks(("a", "b"), ("b", "c"))},
            make_context("a"),
        )

        assert result.new_content == "c"

    def test_trimmed_match_is_recorded(self) -> None:
        result = ReplaceInFileTool().run(
            {"blocks": make_blocks(("\n  value = 1  \n", "value = 2"))},
            make_context("def f():\n    value = 1\n"),
        )

        assert result.new_content == "def f():\n    value = 2\n"
        assert result.data["corrections"] == ["block 1: matched with trimmed comparison"]

    def test_whitespace_flexible_match(self) -> None:
        result = ReplaceInFileTool().run(
            {"blocks": make_blocks(("if (a &&\n    b)", "if (a && b && c)"))},
            make_context("if (a && b) {\n}"),
        )

        assert result.new_content == "if (a && b && c) {\n}"
        assert result.data["corrections"] == ["block 1: matched with whitespace comparison"]

    def test_partial_application_lists_failed_searches(self) -> None:
        result = ReplaceInFileTool().run(
            {"blocks": make_blocks(("alpha", "ALPHA"), ("missing", "x"))},
            make_context("alpha beta"),
        )

        assert result.success
        assert result.new_content == "ALPHA beta"
        assert result.data["applied"] == 1
        assert result.data["failed_searches"] == ["missing"]

    def test_no_match_raises_structural_failure(self) -> None:
        with pytest.raises(SearchNotFoundError) as excinfo:
            ReplaceInFileTool().run({"blocks": make_blocks(("nope", "x"))}, make_context("alpha"))

        assert excinfo.value.message == 'Search text not found in document. Tried: "nope"'
        assert excinfo.value.error_code == ErrorCode.SEARCH_NOT_FOUND

    def test_raw_content_is_parsed(self) -> None:
        content = "<<<<<<< SEARCH\nalpha\n======= REPLACE\nomega\n>>>>>>> REPLACE"

        result = ReplaceInFileTool().run({"content": content}, make_context("alpha"))

        assert result.new_content == "omega"

    def test_missing_blocks_raise_format_error(self) -> None:
        with pytest.raises(InvalidPatchFormatError) as excinfo:
            ReplaceInFileTool().run({"content": "no markers here"}, make_context("alpha"))

        assert excinfo.value.message.startswith("No SEARCH/REPLACE blocks found")

    def test_find_block_returns_none_for_blank_search(self) -> None:
        assert find_block("text", SearchReplaceBlock("   ", "x")) is None

    def test_apply_blocks_reports_counts(self) -> None:
        text, applied, corrections, failed = apply_blocks(
            "one two",
            [SearchReplaceBlock("one", "1"), SearchReplaceBlock("three", "3")],
        )

        assert (text, applied, corrections, failed) == ("1 two", 1, [], ["three"])


# -----------------------------------------------------------------------------
# Tests: search
# -----------------------------------------------------------------------------


class TestSearchFilesTool:
    def test_case_insensitive_line_matches(self) -> None:
        result = SearchFilesTool().run({"pattern": "todo"}, make_context("a\n// TODO: x\nb\ntodo later"))

        assert result.message == "Found 2 matches"
        assert result.data["matches"] == [
            {"line": 2, "text": "// TODO: x"},
            {"line": 4, "text": "todo later"},
        ]

    def test_matches_are_capped(self) -> None:
        content = "\n".join("hit" for _ in range(MAX_RESULTS + 5))

        result = SearchFilesTool().run({"pattern": "hit"}, make_context(content))

        assert result.data["total"] == MAX_RESULTS + 5
        assert len(result.data["matches"]) == MAX_RESULTS
        assert result.data["truncated"] is True

    def test_invalid_pattern_is_structural(self) -> None:
        with pytest.raises(PatternInvalidError) as excinfo:
            SearchFilesTool().run({"pattern": "(unclosed"}, make_context("x"))

        assert excinfo.value.details["pattern"] == "(unclosed"


# -----------------------------------------------------------------------------
# Tests: through the executor
# -----------------------------------------------------------------------------


class TestBuiltinToolsThroughExecutor:
    @pytest.mark.asyncio
    async def test_structural_failure_returns_guidance_result(self) -> None:
        executor = ToolExecutor(build_default_registry())

        result = await executor.execute(
            "patch",
            {"blocks": make_blocks(("absent", "x"))},
            make_context("present"),
        )

        assert not result.success
        assert result.error_code == ErrorCode.SEARCH_NOT_FOUND
        assert result.attempts == 1
        assert executor.circuit_breaker.get_state("patch").failures == 0

    @pytest.mark.asyncio
    async def test_overwrite_without_content_fails_validation(self) -> None:
        executor = ToolExecutor(build_default_registry())

        result = await executor.execute("overwrite", {}, make_context("x"))

        assert result.error_code == ErrorCode.INVALID_PARAMETER

    @pytest.mark.asyncio
    async def test_successful_patch_yields_exact_content(self) -> None:
        executor = ToolExecutor(build_default_registry())

        result = await executor.execute(
            "patch",
            {"blocks": make_blocks(("T", "R"))},
            make_context("aTbT"),
        )

        assert result.new_content == "aRbT"
