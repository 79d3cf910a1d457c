"""Edit verification for applied tool calls.

Verification is advisory: the loop never rejects a mutation because of it,
but warnings are surfaced in the next iteration prompt so the oracle can
correct itself.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from .types import Complexity

__all__ = [
    "LineDiff",
    "VerifierConfig",
    "VerificationResult",
    "EditVerifier",
    "line_diff",
    "unified_preview",
    "brackets_balanced",
]

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Line Diff
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class LineDiff:
    """Line-level diff counts between two texts."""

    added: int = 0
    removed: int = 0
    changed: int = 0

    @property
    def total(self) -> int:
        return self.added + self.removed

    @property
    def summary(self) -> str:
        return f"+{self.added} lines, -{self.removed} lines"


def line_diff(before: str, after: str) -> LineDiff:
    """Count added, removed and changed lines using ``difflib``.

    A replaced region counts its longer side as changed lines.
    """
    if before == after:
        return LineDiff()
    matcher = difflib.SequenceMatcher(None, before.split("\n"), after.split("\n"), autojunk=False)
    added = removed = changed = 0
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        removed += i2 - i1
        added += j2 - j1
        changed += max(i2 - i1, j2 - j1)
    return LineDiff(added=added, removed=removed, changed=changed)


def unified_preview(before: str, after: str, *, max_lines: int = 40, name: str = "document") -> str:
    diff = list(
        difflib.unified_diff(
            before.split("\n"),
            after.split("\n"),
            fromfile=f"{name} (before)",
            tofile=f"{name} (after)",
            lineterm="",
            n=1,
        )
    )
    if len(diff) > max_lines:
        hidden = len(diff) - max_lines
        diff = diff[:max_lines] + [f"... ({hidden} more diff lines)"]
    return "\n".join(diff)


# -----------------------------------------------------------------------------
# Syntax Heuristics
# -----------------------------------------------------------------------------

_PAIRS = {")": "(", "]": "[", "}": "{"}
_OPENERS = frozenset(_PAIRS.values())

_HASH_COMMENT_LANGUAGES = frozenset({"python", "py", "ruby", "rb", "shell", "bash", "sh", "yaml", "yml"})
_SLASH_COMMENT_LANGUAGES = frozenset(
    {
        "javascript", "js", "jsx", "typescript", "ts", "tsx", "java", "c", "cpp", "c++",
        "csharp", "cs", "go", "rust", "rs", "kotlin", "swift", "php", "scala",
    }
)
CODE_LANGUAGES = _HASH_COMMENT_LANGUAGES | _SLASH_COMMENT_LANGUAGES | frozenset({"json"})


def brackets_balanced(content: str, language: str | None) -> bool:
    """Check bracket balance, skipping string literals and comments.

    Unknown or prose languages always pass.
    """
    lang = (language or "").lower()
    if lang not in CODE_LANGUAGES:
        return True
    hash_comments = lang in _HASH_COMMENT_LANGUAGES
    slash_comments = lang in _SLASH_COMMENT_LANGUAGES

    stack: list[str] = []
    quote: str | None = None
    index = 0
    length = len(content)
    while index < length:
        char = content[index]
        if quote is not None:
            if char == "\\":
                index += 2
                continue
            if content.startswith(quote, index):
                index += len(quote)
                quote = None
                continue
            if char == "\n" and len(quote) == 1 and quote != "`":
                quote = None
            index += 1
            continue

        if hash_comments and char == "#":
            newline = content.find("\n", index)
            index = length if newline < 0 else newline
            continue
        if slash_comments and content.startswith("//", index):
            newline = content.find("\n", index)
            index = length if newline < 0 else newline
            continue
        if slash_comments and content.startswith("/*", index):
            end = content.find("*/", index + 2)
            index = length if end < 0 else end + 2
            continue
        if char in "\"'`":
            triple = content[index : index + 3]
            quote = triple if lang in ("python", "py") and triple in ('"""', "'''") else char
            index += len(quote)
            continue
        if char in _OPENERS:
            stack.append(char)
        elif char in _PAIRS:
            if not stack or stack.pop() != _PAIRS[char]:
                return False
        index += 1
    return not stack


# -----------------------------------------------------------------------------
# Verifier
# -----------------------------------------------------------------------------

_DEFAULT_RATIO_LIMITS: Mapping[Complexity, float] = {
    Complexity.TRIVIAL: 0.2,
    Complexity.SIMPLE: 0.35,
    Complexity.MODERATE: 0.5,
    Complexity.COMPLEX: 0.8,
}


@dataclass(slots=True, frozen=True)
class VerifierConfig:
    """Thresholds and penalty factors for :class:`EditVerifier`.

    Attributes:
        ratio_limits: Maximum changed-lines / original-lines ratio per complexity.
        default_ratio_limit: Ratio used when complexity is unknown.
        large_change_factor: Confidence multiplier for an oversized change.
        syntax_factor: Confidence multiplier when the bracket check fails.
        warning_factor: Confidence multiplier when any warning was raised.
        preview_lines: Maximum unified-diff lines kept in the result.
    """

    ratio_limits: Mapping[Complexity, float] = field(default_factory=lambda: dict(_DEFAULT_RATIO_LIMITS))
    default_ratio_limit: float = 0.5
    large_change_factor: float = 0.7
    syntax_factor: float = 0.6
    warning_factor: float = 0.9
    preview_lines: int = 40


@dataclass(slots=True, frozen=True)
class VerificationResult:
    """Outcome of verifying one mutation."""

    diff_summary: str
    lines_added: int = 0
    lines_removed: int = 0
    lines_changed: int = 0
    confidence: float = 1.0
    warnings: tuple[str, ...] = ()
    syntax_valid: bool = True
    valid: bool = True
    unexpected_changes: bool = False
    diff_preview: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "diff_summary": self.diff_summary,
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "lines_changed": self.lines_changed,
            "confidence": round(self.confidence, 4),
            "warnings": list(self.warnings),
            "syntax_valid": self.syntax_valid,
            "valid": self.valid,
            "unexpected_changes": self.unexpected_changes,
        }


class EditVerifier:
    """Score a before/after pair and flag suspicious edits."""

    def __init__(self, config: VerifierConfig | None = None) -> None:
        self._config = config or VerifierConfig()

    @property
    def config(self) -> VerifierConfig:
        return self._config

    def verify(
        self,
        before: str,
        after: str,
        change_description: str,
        language: str | None = None,
        *,
        complexity: Complexity | None = None,
    ) -> VerificationResult:
        config = self._config
        diff = line_diff(before, after)
        if diff.total == 0:
            return VerificationResult(
                diff_summary="No changes detected",
                confidence=0.0,
                warnings=("Edit produced no changes - SEARCH text may not have matched",),
                valid=False,
            )

        warnings: list[str] = []
        total_lines = max(1, before.count("\n") + 1)
        ratio = diff.total / total_lines
        limit = (
            config.ratio_limits.get(complexity, config.default_ratio_limit)
            if complexity is not None
            else config.default_ratio_limit
        )
        unexpected = ratio > limit and "rewrite" not in change_description.lower()
        if unexpected:
            warnings.append(f"Large change ratio: {round(ratio * 100)}% of document modified")

        syntax_valid = brackets_balanced(after, language)
        if not syntax_valid:
            warnings.append("Syntax validation failed - output may have errors")

        confidence = 1.0
        if unexpected:
            confidence *= config.large_change_factor
        if not syntax_valid:
            confidence *= config.syntax_factor
        if warnings:
            confidence *= config.warning_factor

        result = VerificationResult(
            diff_summary=diff.summary,
            lines_added=diff.added,
            lines_removed=diff.removed,
            lines_changed=diff.changed,
            confidence=confidence,
            warnings=tuple(warnings),
            syntax_valid=syntax_valid,
            valid=True,
            unexpected_changes=unexpected,
            diff_preview=unified_preview(before, after, max_lines=config.preview_lines),
        )
        LOGGER.debug(
            "Verified edit: %s (confidence=%.2f, warnings=%d)",
            result.diff_summary,
            result.confidence,
            len(result.warnings),
        )
        return result
