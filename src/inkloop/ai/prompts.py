"""Prompt templates for the editing loop.

System prompts are tiered by goal complexity: trivial goals see the whole
document and a single rewrite tool, simple goals get a document window and
both edit tools, moderate and complex goals add an outline, a structured
thinking frame and recovery guidance. Iteration prompts show a diff summary
instead of the full document once the first iteration has passed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

from .orchestration.tool_call_parser import END_MARKER, SEARCH_MARKER, SEPARATOR_MARKER, ParseFailure
from .orchestration.types import Complexity, DocumentState, EditGoal, ToolResult
from .tools.errors import ErrorCode

# Document windowing
MAX_CONTEXT_LINES = 150
MAX_CONTEXT_CHARS = 8_000
WINDOW_PADDING = 10
MIN_WINDOW_LINES = 50

# Iteration prompts
ITERATION_CONTENT_LIMIT = 3_000
PROGRESS_SLOTS = 5
FAILURE_PREVIEW_LINES = 15
OUTLINE_LIMIT = 8

_RULE = "-" * 40


# -----------------------------------------------------------------------------
# Document Windowing
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class DocumentWindow:
    """Slice of the document shown to the oracle.

    ``start_line`` and ``end_line`` are 1-based and inclusive. A windowed
    slice carries ``N| `` line-number prefixes; a whole document does not.
    """

    content: str
    start_line: int
    end_line: int
    total_lines: int
    has_more_before: bool = False
    has_more_after: bool = False

    @property
    def windowed(self) -> bool:
        return self.has_more_before or self.has_more_after


def create_document_window(
    content: str,
    *,
    target_pattern: str | None = None,
    target_lines: tuple[int, int] | None = None,
) -> DocumentWindow:
    """Return the whole document when small, else a numbered window.

    The window centres on *target_lines* (0-based, inclusive) or on the first
    line matching *target_pattern*, is widened to at least
    ``MIN_WINDOW_LINES`` and capped at ``MAX_CONTEXT_LINES``.
    """
    lines = content.split("\n")
    total = len(lines)
    if total <= MAX_CONTEXT_LINES and len(content) <= MAX_CONTEXT_CHARS:
        return DocumentWindow(content=content, start_line=1, end_line=total, total_lines=total)

    focus_start, focus_end = 0, total - 1
    if target_lines is not None:
        focus_start = max(0, target_lines[0] - WINDOW_PADDING)
        focus_end = min(total - 1, target_lines[1] + WINDOW_PADDING)
    elif target_pattern:
        try:
            regex = re.compile(target_pattern, re.IGNORECASE)
        except re.error:
            regex = re.compile(re.escape(target_pattern), re.IGNORECASE)
        for index, line in enumerate(lines):
            if regex.search(line):
                focus_start = max(0, index - WINDOW_PADDING)
                focus_end = min(total - 1, index + WINDOW_PADDING)
                break

    size = focus_end - focus_start + 1
    if size < MIN_WINDOW_LINES:
        expand = (MIN_WINDOW_LINES - size) // 2
        focus_start = max(0, focus_start - expand)
        focus_end = min(total - 1, focus_end + expand)
    if focus_end - focus_start > MAX_CONTEXT_LINES:
        focus_end = focus_start + MAX_CONTEXT_LINES

    numbered = "\n".join(
        f"{focus_start + offset + 1}| {line}" for offset, line in enumerate(lines[focus_start : focus_end + 1])
    )
    return DocumentWindow(
        content=numbered,
        start_line=focus_start + 1,
        end_line=focus_end + 1,
        total_lines=total,
        has_more_before=focus_start > 0,
        has_more_after=focus_end < total - 1,
    )


def create_diff_summary(before: str, after: str, *, max_samples: int = 5) -> str:
    """Summarize changed lines as ``+A/-R lines`` plus a few samples."""
    before_lines = before.split("\n")
    after_lines = after.split("\n")
    before_set = set(before_lines)
    after_set = set(after_lines)

    samples: list[str] = []
    added = removed = 0
    for line in after_lines:
        if line not in before_set and line.strip():
            added += 1
            if len(samples) < min(3, max_samples):
                samples.append(f"+ {_clip(line, 60)}")
    for line in before_lines:
        if line not in after_set and line.strip():
            removed += 1
            if len(samples) < max_samples:
                samples.append(f"- {_clip(line, 60)}")
    return "\n".join([f"+{added}/-{removed} lines", *samples])


_JS_LANGUAGES = frozenset({"typescript", "javascript", "ts", "js", "tsx", "jsx"})
_PY_LANGUAGES = frozenset({"python", "py"})
_JS_FUNCTION_RE = re.compile(r"^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s+(\w+)")
_JS_CLASS_RE = re.compile(r"^(?:export\s+)?(?:default\s+)?class\s+(\w+)")
_JS_ARROW_RE = re.compile(r"^(?:export\s+)?(?:const|let)\s+(\w+)\s*=")
_PY_DEF_RE = re.compile(r"^(?:async\s+)?def\s+(\w+)")
_PY_CLASS_RE = re.compile(r"^class\s+(\w+)")


def build_outline(content: str, language: str | None) -> str:
    """Return a one-line outline of top-level functions and classes."""
    lang = (language or "").lower()
    sections: list[str] = []
    for number, raw in enumerate(content.split("\n"), start=1):
        if len(sections) >= OUTLINE_LIMIT:
            break
        line = raw.strip()
        if lang in _JS_LANGUAGES:
            if match := _JS_FUNCTION_RE.match(line):
                sections.append(f"L{number}: fn {match.group(1)}")
            elif match := _JS_CLASS_RE.match(line):
                sections.append(f"L{number}: class {match.group(1)}")
            elif (match := _JS_ARROW_RE.match(line)) and ("=>" in line or "function" in line):
                sections.append(f"L{number}: fn {match.group(1)}")
        elif lang in _PY_LANGUAGES and raw == raw.lstrip():
            if match := _PY_DEF_RE.match(line):
                sections.append(f"L{number}: def {match.group(1)}")
            elif match := _PY_CLASS_RE.match(line):
                sections.append(f"L{number}: class {match.group(1)}")
    if not sections:
        return ""
    return "OUTLINE: " + " | ".join(sections)


# -----------------------------------------------------------------------------
# Wire Format Snippets
# -----------------------------------------------------------------------------


def write_to_file_format(path: str, body: str = "[COMPLETE NEW DOCUMENT CONTENT]") -> str:
    return f"<write_to_file>\n<path>{path}</path>\n<content>\n{body}\n</content>\n</write_to_file>"


def replace_in_file_format(
    path: str,
    search: str = "[exact text copied from the document]",
    replace: str = "[new text]",
) -> str:
    return (
        f"<replace_in_file><path>{path}</path><content>\n"
        f"{SEARCH_MARKER}\n{search}\n{SEPARATOR_MARKER}\n{replace}\n{END_MARKER}\n"
        "</content></replace_in_file>"
    )


# -----------------------------------------------------------------------------
# System Prompts
# -----------------------------------------------------------------------------


def _intro() -> str:
    return """You are a careful document and code editor working autonomously.
You change the document ONLY by calling a tool. Saying "GOAL ACHIEVED" without
having used a tool changes nothing."""


def _checklist() -> str:
    return """BEFORE SAYING "GOAL ACHIEVED":
  - Did a tool call actually modify the document?
  - Does the result achieve the stated goal?
  - Are brackets, quotes and indentation intact?
  - Is existing behaviour you were not asked to change preserved?"""


def _structured_thinking() -> str:
    return """Think before editing:
<thought>
  <understand>What exactly needs to change and why</understand>
  <plan>The steps, in order</plan>
  <validate>What could break</validate>
  <tool_choice>Which tool, and the fallback if it fails</tool_choice>
</thought>"""


def _recovery_guidance() -> str:
    return """IF A TOOL FAILS:
  - replace_in_file "not found": the SEARCH text must match exactly; use write_to_file instead.
  - Syntax warnings after a write: re-check brackets, quotes and imports.
  - Timeouts: split the change into smaller steps.
  - Unexpected result: re-read the goal and the section you edited."""


def _sub_goal_section(goal: EditGoal) -> str:
    if len(goal.sub_goals) <= 1:
        return ""
    steps = "\n".join(f"  {index}. {step}" for index, step in enumerate(goal.sub_goals, start=1))
    return f"STEPS:\n{steps}\n"


def _fenced(content: str, language: str | None) -> str:
    return f"```{language or ''}\n{content}\n```"


def build_trivial_prompt(goal: EditGoal, document: DocumentState) -> str:
    return f"""{_intro()}

GOAL: {goal.description}
FILE: {document.title} ({document.language or 'text'})

CURRENT DOCUMENT:
{_fenced(document.content, document.language)}

{_RULE}
INSTRUCTIONS:
1. Use <write_to_file> with the COMPLETE new document, not just the change.
2. Say "GOAL ACHIEVED" only after the tool call has been executed.

{write_to_file_format(document.title)}

{_checklist()}"""


def build_simple_prompt(goal: EditGoal, document: DocumentState, window: DocumentWindow) -> str:
    location = (
        f"\nShowing lines {window.start_line}-{window.end_line} of {window.total_lines}"
        if window.windowed
        else ""
    )
    return f"""{_intro()}

GOAL: {goal.description}
FILE: {document.title} ({document.language or 'text'}, {window.total_lines} lines){location}
{_sub_goal_section(goal)}
CURRENT DOCUMENT:
{_fenced(window.content, document.language)}

{_RULE}
WORKFLOW:
1. <thought>Briefly analyse what needs to change</thought>
2. Call exactly one tool to make the change.
3. Say "GOAL ACHIEVED" only after the tool succeeded.

TOOLS:
Full rewrite (most reliable):
{write_to_file_format(document.title)}

Surgical change (SEARCH must match the document exactly):
{replace_in_file_format(document.title)}

If replace_in_file fails, switch to write_to_file."""


def build_complex_prompt(goal: EditGoal, document: DocumentState, window: DocumentWindow) -> str:
    outline = build_outline(document.content, document.language)
    outline_line = f"{outline}\n" if outline else ""
    return f"""{_intro()}
Mode: focused multi-step editing.

GOAL: {goal.description}
APPROACH: {goal.approach}
FILE: {document.title} ({document.language or 'text'}, {window.total_lines} lines)
{outline_line}{_sub_goal_section(goal)}
CURRENT DOCUMENT (L{window.start_line}-{window.end_line}):
{_fenced(window.content, document.language)}

{_structured_thinking()}

{_RULE}
THEN USE ONE TOOL PER TURN:
{write_to_file_format(document.title)}

For 1-2 line changes only:
{replace_in_file_format(document.title)}

To inspect the document:
<search_files>
<pattern>regular expression</pattern>
</search_files>

{_recovery_guidance()}

{_checklist()}"""


def build_system_prompt(goal: EditGoal, document: DocumentState, window: DocumentWindow | None = None) -> str:
    """Select the system prompt tier for ``goal.complexity``."""
    window = window or create_document_window(document.content)
    if goal.complexity is Complexity.TRIVIAL:
        return build_trivial_prompt(goal, document)
    if goal.complexity is Complexity.SIMPLE:
        return build_simple_prompt(goal, document, window)
    return build_complex_prompt(goal, document, window)


# -----------------------------------------------------------------------------
# Iteration Prompts
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class IterationState:
    """What the oracle is told at the start of an iteration."""

    iteration: int
    max_iterations: int
    changes_applied: int
    current_content: str
    original_content: str
    last_tool: str | None = None
    last_result: ToolResult | None = None
    warnings: Sequence[str] = field(default_factory=tuple)
    sub_goals: Sequence[str] = field(default_factory=tuple)


def progress_bar(changes: int, slots: int = PROGRESS_SLOTS) -> str:
    filled = min(changes, slots)
    return "#" * filled + "." * (slots - filled)


def build_iteration_prompt(state: IterationState, window: DocumentWindow) -> str:
    lines = [
        f"=== ITERATION {state.iteration + 1}/{state.max_iterations} ===",
        f"Progress: [{progress_bar(state.changes_applied)}] {state.changes_applied} changes",
    ]
    if state.sub_goals and len(state.sub_goals) > 1:
        index = min(state.changes_applied, len(state.sub_goals) - 1)
        lines.append(f"Current step: {state.sub_goals[index]}")

    if state.last_result is not None:
        mark = "OK" if state.last_result.success else "FAILED"
        lines.append(f"Last: {state.last_tool} -> {mark} {state.last_result.message}")
        if not state.last_result.success and state.last_tool == "replace_in_file":
            lines.append("TIP: <write_to_file> is more reliable than replace_in_file.")

    if state.warnings:
        lines.append("VERIFICATION WARNINGS:")
        lines.extend(f"  - {warning}" for warning in state.warnings)

    lines.append("")
    if state.iteration == 0:
        lines.append(f"```\n{window.content}\n```")
    else:
        lines.append(_iteration_diff(state))
    lines.append("")
    lines.append('Make the next change with a tool, or say "GOAL ACHIEVED" if the goal is fully met.')
    return "\n".join(lines)


def _iteration_diff(state: IterationState) -> str:
    if state.current_content == state.original_content:
        return "No changes yet."
    summary = create_diff_summary(state.original_content, state.current_content)
    current = state.current_content
    truncated = current[:ITERATION_CONTENT_LIMIT]
    suffix = "\n...[truncated]" if len(current) > ITERATION_CONTENT_LIMIT else ""
    line_count = len(current.split("\n"))
    return f"CHANGES MADE:\n{summary}\n\nCURRENT ({line_count} lines):\n```\n{truncated}{suffix}\n```"


# -----------------------------------------------------------------------------
# Corrective Messages
# -----------------------------------------------------------------------------


def build_claim_rejection_message(current_content: str) -> str:
    return f"""You claimed the goal is achieved but you did not change the document.

You MUST use <write_to_file> or <replace_in_file> to modify the document.

The current document content is:
```
{current_content}
```

Use a tool NOW, then say "GOAL ACHIEVED" only after the tool has been executed."""


def build_tool_failure_guidance(wire_tag: str, result: ToolResult, current_content: str, title: str) -> str:
    """Return corrective guidance for a failed tool call."""
    code = result.error_code
    if code == ErrorCode.SEARCH_NOT_FOUND or (wire_tag == "replace_in_file" and "not found" in result.message):
        preview = "\n".join(current_content.split("\n")[:FAILURE_PREVIEW_LINES])
        return f"""TOOL FAILED: the SEARCH text was NOT found in the document.
{result.message}

Common causes: whitespace or indentation differs, the text was paraphrased,
or line endings differ.

RECOMMENDATION: use <write_to_file> to rewrite the whole document with your changes.

ACTUAL document content (first {FAILURE_PREVIEW_LINES} lines):
```
{preview}
```

Try again with <write_to_file> and include the COMPLETE new document."""

    if code == ErrorCode.INVALID_PATCH_FORMAT or "No SEARCH/REPLACE" in result.message:
        return f"""TOOL FAILED: your replace_in_file format was incorrect.

Correct format:
{replace_in_file_format(title)}

Or use <write_to_file> for a complete rewrite."""

    if code == ErrorCode.CONTENT_REQUIRED or (wire_tag == "write_to_file" and "No content" in result.message):
        return f"""TOOL FAILED: no content was provided for write_to_file.

Correct format:
{write_to_file_format(title, "[YOUR COMPLETE DOCUMENT CONTENT HERE]")}"""

    if code == ErrorCode.CIRCUIT_OPEN:
        return f"""TOOL UNAVAILABLE: {result.message}

Use a different tool for now; <write_to_file> rewrites the whole document."""

    hint = f"\n{result.suggestion}" if result.suggestion else ""
    return (
        f'Tool "{wire_tag}" failed: {result.message}{hint}\n\n'
        "Try a different approach or use <write_to_file> for a complete rewrite."
    )


def build_tool_output_message(wire_tag: str, result: ToolResult, *, max_matches: int = 20) -> str | None:
    """Return the output of a successful read-only tool for the transcript."""
    if not result.success or result.new_content is not None:
        return None
    data = result.data
    if "matches" in data:
        matches = list(data.get("matches") or ())
        lines = [f"{wire_tag} result: {result.message}"]
        for match in matches[:max_matches]:
            lines.append(f"  L{match.get('line')}: {_clip(str(match.get('text', '')), 120)}")
        if len(matches) > max_matches:
            lines.append(f"  ... {len(matches) - max_matches} more")
        return "\n".join(lines)
    if "content" in data:
        content = str(data["content"])
        suffix = "\n...[truncated]" if len(content) > ITERATION_CONTENT_LIMIT else ""
        return f"{wire_tag} result: {result.message}\n```\n{content[:ITERATION_CONTENT_LIMIT]}{suffix}\n```"
    return f"{wire_tag} result: {result.message}"


def build_parse_failure_guidance(failure: ParseFailure, title: str) -> str:
    suggestions = "\n".join(f"  - {item}" for item in failure.suggestions)
    suggestion_block = f"\n{suggestions}\n" if suggestions else "\n"
    return f"""I could not find a valid tool call in your response: {failure.reason}
{suggestion_block}
Respond with exactly one tool call, for example:
{write_to_file_format(title)}"""


# -----------------------------------------------------------------------------
# Intent Detection
# -----------------------------------------------------------------------------


def build_intent_prompt(message: str, document_summary: str, recent_context: str | None = None) -> str:
    context = f"CONTEXT: {recent_context}\n" if recent_context else ""
    return f"""Analyze if this message requests document EDITS.

{context}DOCUMENT: {document_summary}

MESSAGE: "{message}"

EDIT if: fix, add, change, modify, update, remove, refactor, implement
NOT EDIT if: question, explain, review, discuss, "what if"

Reply JSON only:
{{"edit":true/false,"confidence":0.0-1.0,"goal":"one sentence if edit","complexity":"trivial|simple|moderate|complex"}}"""


def _clip(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


__all__ = [
    "MAX_CONTEXT_LINES",
    "MAX_CONTEXT_CHARS",
    "WINDOW_PADDING",
    "MIN_WINDOW_LINES",
    "ITERATION_CONTENT_LIMIT",
    "DocumentWindow",
    "IterationState",
    "create_document_window",
    "create_diff_summary",
    "build_outline",
    "write_to_file_format",
    "replace_in_file_format",
    "build_system_prompt",
    "build_trivial_prompt",
    "build_simple_prompt",
    "build_complex_prompt",
    "build_iteration_prompt",
    "progress_bar",
    "build_claim_rejection_message",
    "build_tool_failure_guidance",
    "build_tool_output_message",
    "build_parse_failure_guidance",
    "build_intent_prompt",
]
