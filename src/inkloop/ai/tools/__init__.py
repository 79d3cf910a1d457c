"""Built-in document tools and their structural error types.

The tool classes live in their own modules; wire them into a registry with
:func:`inkloop.ai.tools.builtin.build_default_registry`.
"""

from .errors import (
    ContentRequiredError,
    ErrorCode,
    InvalidParameterError,
    InvalidPatchFormatError,
    MissingParameterError,
    PatternInvalidError,
    SearchNotFoundError,
    ToolError,
)

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
