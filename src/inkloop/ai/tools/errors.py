"""Standardized error types for document tools.

Structural failures (bad input, text not found, malformed patch blocks) are
raised as :class:`ToolError` subclasses. The executor never retries them and
never counts them against a tool's circuit; the orchestrator turns them into
corrective guidance for the oracle instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Sequence


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes used in tool results."""

    # Patch errors
    SEARCH_NOT_FOUND = "search_not_found"
    INVALID_PATCH_FORMAT = "invalid_patch_format"

    # Content errors
    CONTENT_REQUIRED = "content_required"

    # Search errors
    PATTERN_INVALID = "pattern_invalid"

    # Parameter errors
    MISSING_PARAMETER = "missing_parameter"
    INVALID_PARAMETER = "invalid_parameter"

    # Dispatch errors
    TOOL_NOT_FOUND = "tool_not_found"
    CIRCUIT_OPEN = "circuit_open"
    TIMEOUT = "timeout"
    TRANSIENT_FAILURE = "transient_failure"
    SKIPPED = "skipped"

    # General errors
    INTERNAL_ERROR = "internal_error"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class ToolError(Exception):
    """Base exception class for structural tool failures.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
        suggestion: Actionable guidance for recovery.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    retryable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for transcripts and event payloads."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        if self.suggestion:
            result["suggestion"] = self.suggestion
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# -----------------------------------------------------------------------------
# Patch Errors
# -----------------------------------------------------------------------------

@dataclass
class SearchNotFoundError(ToolError):
    """Raised when no SEARCH block of a patch matches the document."""

    error_code: str = field(default=ErrorCode.SEARCH_NOT_FOUND)
    message: str = field(default="Search text not found in document")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(
        default="Copy the search text exactly from the document, or rewrite it with write_to_file"
    )

    @classmethod
    def for_searches(cls, searches: Sequence[str]) -> "SearchNotFoundError":
        previews = [_preview(search) for search in searches]
        tried = '", "'.join(previews)
        return cls(
            message=f'Search text not found in document. Tried: "{tried}"',
            details={"failed_searches": previews},
        )


@dataclass
class InvalidPatchFormatError(ToolError):
    """Raised when a patch carries no usable SEARCH/REPLACE block."""

    error_code: str = field(default=ErrorCode.INVALID_PATCH_FORMAT)
    message: str = field(
        default=(
            "No SEARCH/REPLACE blocks found - use <<<<<<< SEARCH ... "
            "======= REPLACE ... >>>>>>> REPLACE format"
        )
    )
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Wrap each edit in SEARCH/REPLACE markers")


# -----------------------------------------------------------------------------
# Content / Search Errors
# -----------------------------------------------------------------------------

@dataclass
class ContentRequiredError(ToolError):
    """Raised when a write is attempted without content."""

    error_code: str = field(default=ErrorCode.CONTENT_REQUIRED)
    message: str = field(default="No content provided")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Put the complete new document inside <content>...</content>")


@dataclass
class PatternInvalidError(ToolError):
    """Raised when a search pattern is not a valid regular expression."""

    error_code: str = field(default=ErrorCode.PATTERN_INVALID)
    message: str = field(default="Invalid search pattern")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="Escape regex metacharacters or search for plain words")

    pattern: str = field(default="")
    reason: str = field(default="")

    def __post_init__(self) -> None:
        if self.pattern:
            self.details.setdefault("pattern", self.pattern)
        if self.reason:
            self.message = f"Invalid search pattern: {self.reason}"
        super().__post_init__()


# -----------------------------------------------------------------------------
# Parameter Errors
# -----------------------------------------------------------------------------

@dataclass
class MissingParameterError(ToolError):
    """Raised when a required parameter is absent."""

    error_code: str = field(default=ErrorCode.MISSING_PARAMETER)
    message: str = field(default="")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    parameter: str = field(default="")

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Missing required parameter: {self.parameter}"
        self.details.setdefault("parameter", self.parameter)
        super().__post_init__()


@dataclass
class InvalidParameterError(ToolError):
    """Raised when parameters fail schema validation."""

    error_code: str = field(default=ErrorCode.INVALID_PARAMETER)
    message: str = field(default="Invalid parameters")
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = field(default="")

    problems: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.problems:
            self.message = "Invalid parameters: " + "; ".join(self.problems)
            self.details.setdefault("problems", list(self.problems))
        super().__post_init__()


def _preview(text: str, limit: int = 50) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


__all__ = [
    "ErrorCode",
    "ToolError",
    "SearchNotFoundError",
    "InvalidPatchFormatError",
    "ContentRequiredError",
    "PatternInvalidError",
    "MissingParameterError",
    "InvalidParameterError",
]
