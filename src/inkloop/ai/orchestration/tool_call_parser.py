"""Tool call parsing for tagged oracle responses.

The oracle proposes actions as tagged blocks::

    <replace_in_file><path>app.js</path><content>
    <<<<<<< SEARCH
    return x
    ======= REPLACE
    return validate(x)
    >>>>>>> REPLACE
    </content></replace_in_file>

:class:`ToolCallParser` turns such text into one of the typed call variants
(:class:`ReadCall`, :class:`OverwriteCall`, :class:`PatchCall`,
:class:`SearchCall`) wrapped in a :class:`ParsedToolCall`, or returns a
:class:`ParseFailure`. Parsing never raises. Every tolerance rule that fires
is listed in ``corrections`` and lowers ``confidence``.
"""

from __future__ import annotations

import difflib
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Mapping, Sequence, Union

__all__ = [
    "ToolKind",
    "WIRE_TAGS",
    "SearchReplaceBlock",
    "ReadCall",
    "OverwriteCall",
    "PatchCall",
    "SearchCall",
    "ToolCall",
    "ParsedToolCall",
    "ParseFailure",
    "ParseOutcome",
    "PatchBlockParse",
    "ToolCallParser",
    "parse_patch_blocks",
    "normalize_tag_glyphs",
    "extract_rationale",
    "recover_partial_response",
]


# -----------------------------------------------------------------------------
# Tool Vocabulary
# -----------------------------------------------------------------------------


class ToolKind(str, Enum):
    """Internal names of the closed tool set."""

    READ = "read"
    OVERWRITE = "overwrite"
    PATCH = "patch"
    SEARCH = "search"

    @property
    def wire_tag(self) -> str:
        return WIRE_TAGS[self]


WIRE_TAGS: Mapping[ToolKind, str] = {
    ToolKind.READ: "read_file",
    ToolKind.OVERWRITE: "write_to_file",
    ToolKind.PATCH: "replace_in_file",
    ToolKind.SEARCH: "search_files",
}

_TAG_TO_KIND: Mapping[str, ToolKind] = {tag: kind for kind, tag in WIRE_TAGS.items()}

# Misspellings seen in oracle output, mapped to the canonical tag.
_TAG_TYPOS: Mapping[str, str] = {
    "replace_file": "replace_in_file",
    "replaceinfile": "replace_in_file",
    "file_replace": "replace_in_file",
    "readfile": "read_file",
    "writefile": "write_to_file",
    "write_file": "write_to_file",
    "searchfiles": "search_files",
    "search_file": "search_files",
    "find_files": "search_files",
}

# Tags used for reasoning scaffolds; they never denote a tool call.
_REASONING_TAGS = frozenset(
    {"thought", "thinking", "understand", "plan", "validate", "tool_choice", "reasoning", "analysis"}
)
_PARAM_TAGS = frozenset({"path", "content", "pattern", "diff"})

# Normalizes stylized bracket glyphs some models emit around tags.
TAG_GLYPH_TRANSLATION = str.maketrans(
    {
        ord("＜"): "<",
        ord("﹤"): "<",
        ord("＞"): ">",
        ord("﹥"): ">",
    }
)

_TAG_RE = re.compile(r"<[ \t]*(/?)[ \t]*([A-Za-z_][\w-]*)[ \t]*>")

_SEARCH_MARKER_RE = re.compile(r"^[ \t]*<{3,}[ \t]*SEARCH[ \t]*$", re.IGNORECASE)
_SEPARATOR_MARKER_RE = re.compile(r"^[ \t]*={3,}[ \t]*(REPLACE)?[ \t]*$", re.IGNORECASE)
_END_MARKER_RE = re.compile(r"^[ \t]*>{3,}[ \t]*REPLACE[ \t]*$", re.IGNORECASE)

SEARCH_MARKER = "<<<<<<< SEARCH"
SEPARATOR_MARKER = "======= REPLACE"
END_MARKER = ">>>>>>> REPLACE"

# Confidence multipliers, applied at most once per category.
_PENALTIES: Mapping[str, float] = {
    "glyphs": 0.95,
    "tag_whitespace": 0.9,
    "typo": 0.9,
    "missing_close": 0.8,
    "param_close": 0.9,
    "param_alias": 0.95,
    "body_as_content": 0.85,
    "code_fence": 0.95,
    "marker": 0.9,
    "unterminated_block": 0.8,
    "bare_block": 1.0,
}
BARE_BLOCK_CONFIDENCE = 0.6

_DEFAULT_PATH = "document"


# -----------------------------------------------------------------------------
# Tool Call Variants
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class SearchReplaceBlock:
    """One literal search/replace pair of a patch."""

    search: str
    replace: str

    def to_wire(self) -> str:
        return f"{SEARCH_MARKER}\n{self.search}\n{SEPARATOR_MARKER}\n{self.replace}\n{END_MARKER}"


@dataclass(slots=True, frozen=True)
class ReadCall:
    path: str | None = None

    kind: ClassVar[ToolKind] = ToolKind.READ

    def params(self) -> dict[str, Any]:
        return {"path": self.path} if self.path else {}

    def to_wire(self) -> str:
        return f"<read_file>\n<path>{self.path or _DEFAULT_PATH}</path>\n</read_file>"


@dataclass(slots=True, frozen=True)
class OverwriteCall:
    content: str
    path: str | None = None

    kind: ClassVar[ToolKind] = ToolKind.OVERWRITE

    def params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"content": self.content}
        if self.path:
            params["path"] = self.path
        return params

    def to_wire(self) -> str:
        return (
            f"<write_to_file>\n<path>{self.path or _DEFAULT_PATH}</path>\n"
            f"<content>\n{self.content}\n</content>\n</write_to_file>"
        )


@dataclass(slots=True, frozen=True)
class PatchCall:
    """Patch call; ``raw_content`` is kept when no block could be parsed."""

    blocks: tuple[SearchReplaceBlock, ...]
    path: str | None = None
    raw_content: str = ""

    kind: ClassVar[ToolKind] = ToolKind.PATCH

    def params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "blocks": [{"search": block.search, "replace": block.replace} for block in self.blocks]
        }
        if not self.blocks and self.raw_content:
            params["content"] = self.raw_content
        if self.path:
            params["path"] = self.path
        return params

    def to_wire(self) -> str:
        body = "\n".join(block.to_wire() for block in self.blocks) or self.raw_content
        return (
            f"<replace_in_file><path>{self.path or _DEFAULT_PATH}</path><content>\n"
            f"{body}\n</content></replace_in_file>"
        )


@dataclass(slots=True, frozen=True)
class SearchCall:
    pattern: str
    path: str | None = None

    kind: ClassVar[ToolKind] = ToolKind.SEARCH

    def params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"pattern": self.pattern}
        if self.path:
            params["path"] = self.path
        return params

    def to_wire(self) -> str:
        return f"<search_files>\n<pattern>{self.pattern}</pattern>\n</search_files>"


ToolCall = Union[ReadCall, OverwriteCall, PatchCall, SearchCall]


# -----------------------------------------------------------------------------
# Parse Results
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ParsedToolCall:
    """A successfully parsed call plus how much tolerance it needed.

    Attributes:
        call: The typed call variant.
        confidence: 1.0 for a canonical call, lower for each correction.
        corrections: Human-readable description of each tolerance rule applied.
        raw: The tool block as it appeared in the response.
    """

    call: ToolCall
    confidence: float = 1.0
    corrections: tuple[str, ...] = ()
    raw: str = ""

    ok: ClassVar[bool] = True

    @property
    def kind(self) -> ToolKind:
        return self.call.kind

    @property
    def tool_name(self) -> str:
        return self.call.kind.value

    @property
    def wire_tag(self) -> str:
        return self.call.kind.wire_tag

    def params(self) -> dict[str, Any]:
        return self.call.params()

    def to_dict(self) -> dict[str, Any]:
        params = self.params()
        if "content" in params:
            params["content"] = f"<{len(params['content'])} chars>"
        return {
            "tool": self.tool_name,
            "wire_tag": self.wire_tag,
            "params": params,
            "confidence": round(self.confidence, 3),
            "corrections": list(self.corrections),
        }


@dataclass(slots=True, frozen=True)
class ParseFailure:
    """Structured parse failure returned instead of raising."""

    reason: str
    suggestions: tuple[str, ...] = ()
    excerpt: str = ""

    ok: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "suggestions": list(self.suggestions),
            "excerpt": self.excerpt,
        }


ParseOutcome = Union[ParsedToolCall, ParseFailure]


@dataclass(slots=True, frozen=True)
class PatchBlockParse:
    """Blocks found in a patch body plus the marker relaxations used."""

    blocks: tuple[SearchReplaceBlock, ...] = ()
    corrections: tuple[str, ...] = ()
    penalties: frozenset[str] = frozenset()


# -----------------------------------------------------------------------------
# Patch Block Grammar
# -----------------------------------------------------------------------------


def parse_patch_blocks(text: str) -> PatchBlockParse:
    """Scan *text* line by line for SEARCH/REPLACE blocks.

    The scanner is a three-state machine (outside, in-search, in-replace).
    Marker lines may use any run of three or more marker characters and any
    surrounding whitespace; the separator may omit its ``REPLACE`` word. A
    block still open at the end of the text is closed implicitly.
    """
    blocks: list[SearchReplaceBlock] = []
    corrections: list[str] = []
    penalties: set[str] = set()

    def note(message: str, penalty: str) -> None:
        if message not in corrections:
            corrections.append(message)
        penalties.add(penalty)

    state = "outside"
    search_lines: list[str] = []
    replace_lines: list[str] = []

    for line in text.split("\n"):
        stripped = line.rstrip("\r")
        if state == "outside":
            if _SEARCH_MARKER_RE.match(stripped):
                if stripped.strip() != SEARCH_MARKER:
                    note(f"Relaxed search marker {stripped.strip()!r}", "marker")
                state = "search"
                search_lines = []
            continue
        if state == "search":
            separator = _SEPARATOR_MARKER_RE.match(stripped)
            if separator:
                if stripped.strip() != SEPARATOR_MARKER:
                    note(f"Relaxed separator marker {stripped.strip()!r}", "marker")
                state = "replace"
                replace_lines = []
            elif _SEARCH_MARKER_RE.match(stripped):
                note("Discarded a SEARCH section that had no separator", "unterminated_block")
                search_lines = []
            else:
                search_lines.append(stripped)
            continue
        # state == "replace"
        if _END_MARKER_RE.match(stripped):
            if stripped.strip() != END_MARKER:
                note(f"Relaxed end marker {stripped.strip()!r}", "marker")
            blocks.append(SearchReplaceBlock("\n".join(search_lines), "\n".join(replace_lines)))
            state = "outside"
        elif _SEARCH_MARKER_RE.match(stripped):
            note("Closed a block that was missing its end marker", "unterminated_block")
            blocks.append(SearchReplaceBlock("\n".join(search_lines), "\n".join(replace_lines)))
            state = "search"
            search_lines = []
        else:
            replace_lines.append(stripped)

    if state == "replace":
        while replace_lines and not replace_lines[-1].strip():
            replace_lines.pop()
        note("Closed a block that was missing its end marker", "unterminated_block")
        blocks.append(SearchReplaceBlock("\n".join(search_lines), "\n".join(replace_lines)))
    elif state == "search":
        note("Discarded a SEARCH section that had no separator", "unterminated_block")

    kept = tuple(block for block in blocks if block.search.strip())
    if len(kept) != len(blocks):
        note("Dropped a block with an empty SEARCH section", "unterminated_block")
    return PatchBlockParse(blocks=kept, corrections=tuple(corrections), penalties=frozenset(penalties))


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class _Tag:
    closing: bool
    name: str
    start: int
    end: int
    canonical: bool


@dataclass(slots=True)
class _Corrections:
    messages: list[str] = field(default_factory=list)
    penalties: set[str] = field(default_factory=set)

    def add(self, message: str, penalty: str) -> None:
        if message not in self.messages:
            self.messages.append(message)
        self.penalties.add(penalty)

    def extend(self, block_parse: PatchBlockParse) -> None:
        for message in block_parse.corrections:
            if message not in self.messages:
                self.messages.append(message)
        self.penalties.update(block_parse.penalties)

    def confidence(self, base: float = 1.0) -> float:
        value = base
        for penalty in sorted(self.penalties):
            value *= _PENALTIES.get(penalty, 1.0)
        return round(value, 4)


class ToolCallParser:
    """Parse one tool call out of an oracle response.

    Resolution order:

    1. The first tag that names a known tool, directly or through a known
       misspelling.
    2. A bare SEARCH/REPLACE block with no surrounding tool tag.
    3. Otherwise a :class:`ParseFailure` explaining what was found.
    """

    def __init__(self, *, default_path: str | None = None) -> None:
        self._default_path = default_path

    def parse(self, text: str | None) -> ParseOutcome:
        if not text or not text.strip():
            return ParseFailure(
                reason="Empty response",
                suggestions=("Respond with a tool call such as <write_to_file>...</write_to_file>",),
            )

        corrections = _Corrections()
        normalized = normalize_tag_glyphs(text.replace("\r\n", "\n"))
        if normalized != text.replace("\r\n", "\n"):
            corrections.add("Normalized stylized tag brackets", "glyphs")

        tags = [
            _Tag(
                closing=bool(match.group(1)),
                name=match.group(2).lower(),
                start=match.start(),
                end=match.end(),
                canonical=match.group(0) == f"<{match.group(1)}{match.group(2)}>",
            )
            for match in _TAG_RE.finditer(normalized)
        ]

        selected = self._select_tool_tag(tags)
        if selected is not None:
            index, kind, canonical_tag = selected
            tag = tags[index]
            if tag.name != canonical_tag:
                corrections.add(f"Corrected tool tag <{tag.name}> to <{canonical_tag}>", "typo")
            if not tag.canonical:
                corrections.add(f"Removed whitespace inside <{tag.name}> tag", "tag_whitespace")
            body, raw, cut_short = self._tool_body(normalized, tags, index, canonical_tag, corrections)
            return self._build_call(kind, canonical_tag, body, raw, corrections, cut_short=cut_short)

        if any(_SEARCH_MARKER_RE.match(line) for line in normalized.split("\n")):
            block_parse = parse_patch_blocks(normalized)
            if block_parse.blocks:
                corrections.add(
                    "Extracted SEARCH/REPLACE block without a <replace_in_file> tag", "bare_block"
                )
                corrections.extend(block_parse)
                return ParsedToolCall(
                    call=PatchCall(blocks=block_parse.blocks, path=self._default_path),
                    confidence=corrections.confidence(BARE_BLOCK_CONFIDENCE),
                    corrections=tuple(corrections.messages),
                    raw=normalized,
                )

        return self._failure(normalized, tags)

    # ------------------------------------------------------------------
    # Tool body extraction
    # ------------------------------------------------------------------

    def _select_tool_tag(self, tags: Sequence[_Tag]) -> tuple[int, ToolKind, str] | None:
        """Pick the tool tag to parse.

        Tags inside a closed reasoning block are mentions, not calls. The
        first closed tool block wins; an unclosed tool tag is used only when
        no closed block follows it.
        """
        unclosed: tuple[int, ToolKind, str] | None = None
        index = 0
        while index < len(tags):
            tag = tags[index]
            if tag.closing:
                index += 1
                continue
            if tag.name in _REASONING_TAGS:
                end = _find_closing(tags, index, lambda name: name == tag.name)
                index = end + 1 if end is not None else index + 1
                continue
            kind, canonical_tag = _resolve_tool_tag(tag.name)
            if kind is not None:
                if _find_closing(tags, index, _same_tool(canonical_tag)) is not None:
                    return index, kind, canonical_tag
                if unclosed is None:
                    unclosed = (index, kind, canonical_tag)
            index += 1
        return unclosed

    def _tool_body(
        self,
        text: str,
        tags: Sequence[_Tag],
        index: int,
        canonical_tag: str,
        corrections: _Corrections,
    ) -> tuple[str, str, bool]:
        opening = tags[index]
        closing_index = _find_closing(tags, index, _same_tool(canonical_tag))
        if closing_index is not None:
            candidate = tags[closing_index]
            if not candidate.canonical:
                corrections.add(f"Removed whitespace inside </{candidate.name}> tag", "tag_whitespace")
            return text[opening.end:candidate.start], text[opening.start:candidate.end], False

        # No closing tag: read until the next tool opening or the end of text.
        stop = len(text)
        cut_short = False
        for candidate in tags[index + 1:]:
            if candidate.closing:
                continue
            kind, _ = _resolve_tool_tag(candidate.name)
            if kind is not None:
                stop = candidate.start
                cut_short = True
                break
        corrections.add(f"Missing closing </{canonical_tag}> tag", "missing_close")
        return text[opening.end:stop], text[opening.start:stop], cut_short

    def _build_call(
        self,
        kind: ToolKind,
        tag: str,
        body: str,
        raw: str,
        corrections: _Corrections,
        *,
        cut_short: bool = False,
    ) -> ParseOutcome:
        path = _extract_param(body, "path", corrections)
        path = path.strip() if path is not None else None
        path = path or self._default_path

        if kind is ToolKind.READ:
            call: ToolCall = ReadCall(path=path)

        elif kind is ToolKind.SEARCH:
            pattern = _extract_param(body, "pattern", corrections)
            if pattern is None or not pattern.strip():
                return ParseFailure(
                    reason="search_files requires a <pattern>",
                    suggestions=("<search_files><pattern>regex</pattern></search_files>",),
                    excerpt=_excerpt(raw),
                )
            call = SearchCall(pattern=pattern.strip(), path=path)

        elif kind is ToolKind.OVERWRITE:
            content = _extract_param(body, "content", corrections, greedy=True)
            if content is None:
                if cut_short:
                    return ParseFailure(
                        reason="write_to_file was not closed before the next tool tag",
                        suggestions=(
                            "Close each call: <write_to_file><content>...</content></write_to_file>",
                            "Mention tool names without angle brackets outside a call",
                        ),
                        excerpt=_excerpt(raw),
                    )
                content = _body_without_params(body)
                if not content.strip():
                    return ParseFailure(
                        reason="write_to_file requires <content>",
                        suggestions=(
                            "<write_to_file><path>file</path><content>\n...complete document...\n"
                            "</content></write_to_file>",
                        ),
                        excerpt=_excerpt(raw),
                    )
                corrections.add("Used the tool body as content (missing <content> tag)", "body_as_content")
            call = OverwriteCall(content=_clean_block(content, corrections), path=path)

        else:
            content = _extract_param(body, "content", corrections, greedy=True)
            if content is None:
                content = _extract_param(body, "diff", corrections, greedy=True)
                if content is not None:
                    corrections.add("Accepted <diff> in place of <content>", "param_alias")
            if content is None:
                content = _body_without_params(body)
                if content.strip():
                    corrections.add(
                        "Used the tool body as content (missing <content> tag)", "body_as_content"
                    )
            if not content.strip():
                return ParseFailure(
                    reason="replace_in_file requires <content> with SEARCH/REPLACE blocks",
                    suggestions=(_patch_format_hint(),),
                    excerpt=_excerpt(raw),
                )
            block_parse = parse_patch_blocks(content)
            corrections.extend(block_parse)
            call = PatchCall(
                blocks=block_parse.blocks,
                path=path,
                raw_content="" if block_parse.blocks else content.strip("\n"),
            )

        return ParsedToolCall(
            call=call,
            confidence=corrections.confidence(),
            corrections=tuple(corrections.messages),
            raw=raw,
        )

    # ------------------------------------------------------------------
    # Failure reporting
    # ------------------------------------------------------------------

    def _failure(self, text: str, tags: Sequence[_Tag]) -> ParseFailure:
        suggestions: list[str] = []
        closed_names = {tag.name for tag in tags if tag.closing}
        unknown = [
            tag.name
            for tag in tags
            if not tag.closing
            and tag.name in closed_names
            and tag.name not in _REASONING_TAGS
            and tag.name not in _PARAM_TAGS
        ]
        if unknown:
            name = unknown[0]
            close = difflib.get_close_matches(name, list(_TAG_TO_KIND), n=1, cutoff=0.5)
            if close:
                suggestions.append(f"Did you mean <{close[0]}>?")
            suggestions.append("Available tools: " + ", ".join(f"<{tag}>" for tag in _TAG_TO_KIND))
            return ParseFailure(
                reason=f"Unknown tool: {name}",
                suggestions=tuple(suggestions),
                excerpt=_excerpt(text),
            )

        if "<" not in text:
            suggestions.append("Wrap the call in tool tags, e.g. <write_to_file>...</write_to_file>")
        if "```" in text:
            suggestions.append(
                "Code blocks are not applied; put the new text inside "
                "<write_to_file><content>...</content></write_to_file>"
            )
        lowered = text.lower()
        for tag in _TAG_TO_KIND:
            if tag in lowered:
                suggestions.append(f"You mentioned {tag} but did not use its tags: <{tag}>...</{tag}>")
                break
        return ParseFailure(
            reason="No valid tool call found",
            suggestions=tuple(suggestions),
            excerpt=_excerpt(text),
        )


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def normalize_tag_glyphs(text: str) -> str:
    """Normalize stylized bracket glyphs to ASCII ``<`` and ``>``."""
    return text.translate(TAG_GLYPH_TRANSLATION)


def _resolve_tool_tag(name: str) -> tuple[ToolKind | None, str]:
    if name in _TAG_TO_KIND:
        return _TAG_TO_KIND[name], name
    corrected = _TAG_TYPOS.get(name)
    if corrected is not None:
        return _TAG_TO_KIND[corrected], corrected
    return None, name


def _same_tool(canonical_tag: str) -> Callable[[str], bool]:
    def matches(name: str) -> bool:
        kind, resolved = _resolve_tool_tag(name)
        return kind is not None and resolved == canonical_tag

    return matches


def _find_closing(tags: Sequence[_Tag], index: int, matches: Callable[[str], bool]) -> int | None:
    """Index of the first closing tag after ``tags[index]`` accepted by *matches*."""
    for position in range(index + 1, len(tags)):
        candidate = tags[position]
        if candidate.closing and matches(candidate.name):
            return position
    return None


def _param_patterns(name: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    opening = re.compile(rf"<[ \t]*{name}[ \t]*>", re.IGNORECASE)
    closing = re.compile(rf"<[ \t]*/[ \t]*{name}[ \t]*>", re.IGNORECASE)
    return opening, closing


def _extract_param(
    body: str,
    name: str,
    corrections: _Corrections,
    *,
    greedy: bool = False,
) -> str | None:
    opening_re, closing_re = _param_patterns(name)
    opening = opening_re.search(body)
    if opening is None:
        return None
    if opening.group(0) != f"<{name}>":
        corrections.add(f"Removed whitespace inside <{name}> tag", "tag_whitespace")
    closings = list(closing_re.finditer(body, opening.end()))
    if not closings:
        corrections.add(f"Missing closing </{name}> tag", "param_close")
        return body[opening.end():]
    closing = closings[-1] if greedy else closings[0]
    return body[opening.end():closing.start()]


def _body_without_params(body: str) -> str:
    opening_re, closing_re = _param_patterns("path")
    opening = opening_re.search(body)
    if opening is None:
        return body
    closing = closing_re.search(body, opening.end())
    if closing is None:
        return body[:opening.start()]
    return body[:opening.start()] + body[closing.end():]


def _clean_block(content: str, corrections: _Corrections) -> str:
    """Strip the newline framing of a content block and a wrapping code fence."""
    if content.startswith("\n"):
        content = content[1:]
    elif content.startswith("\r\n"):
        content = content[2:]
    stripped = content.rstrip(" \t")
    if stripped.endswith("\n"):
        content = stripped[:-1]
    lines = content.split("\n")
    if len(lines) >= 2 and lines[0].strip().startswith("```") and lines[-1].strip() == "```":
        corrections.add("Removed code fence around content", "code_fence")
        content = "\n".join(lines[1:-1])
    return content


def _patch_format_hint() -> str:
    return (
        "<replace_in_file><path>file</path><content>\n"
        f"{SEARCH_MARKER}\n[exact text to find]\n{SEPARATOR_MARKER}\n[new text]\n{END_MARKER}\n"
        "</content></replace_in_file>"
    )


def _excerpt(text: str, limit: int = 200) -> str:
    text = text.strip()
    return text[:limit] + ("..." if len(text) > limit else "")


_THOUGHT_RE = re.compile(r"<thought>([\s\S]*?)</thought>", re.IGNORECASE)
_INNER_TAG_RE = re.compile(r"<[^>]+>")
_WRITE_PARTIAL_RE = re.compile(r"<write_to_file>[\s\S]*?<content>([\s\S]*)")
_CODE_STRUCTURE_MARKERS = ("def ", "function ", "class ", "import ", "const ", "let ")

RATIONALE_LIMIT = 200
PARTIAL_RECOVERY_MIN_CHARS = 500


def extract_rationale(text: str | None) -> str:
    """Return the oracle's short rationale for audit records.

    Prefers the ``<thought>`` block (inner tags flattened); otherwise joins the
    first three lines that do not start with a tag.
    """
    if not text:
        return ""
    match = _THOUGHT_RE.search(text)
    if match:
        flattened = _INNER_TAG_RE.sub(" ", match.group(1))
        return " ".join(flattened.split())[:RATIONALE_LIMIT]
    lines = [line for line in text.split("\n") if not line.strip().startswith("<")]
    return " ".join(lines[:3]).strip()[:RATIONALE_LIMIT]


def recover_partial_response(text: str, title: str) -> str | None:
    """Close a truncated ``write_to_file`` so it parses.

    Returns ``None`` unless the truncated content is long enough and looks
    like code.
    """
    match = _WRITE_PARTIAL_RE.search(text or "")
    if match is None:
        return None
    content = match.group(1)
    if len(content) < PARTIAL_RECOVERY_MIN_CHARS:
        return None
    if not any(marker in content for marker in _CODE_STRUCTURE_MARKERS):
        return None
    return (
        f"<write_to_file>\n<path>{title}</path>\n<content>\n{content.strip()}\n"
        "</content>\n</write_to_file>"
    )
