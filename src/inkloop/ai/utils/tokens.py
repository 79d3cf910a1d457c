"""Token estimation utilities for prompt accounting."""

from __future__ import annotations

import math
from typing import Iterable

from ..ai_types import TokenCounterProtocol

# Average characters per token for code and English prose
CHARS_PER_TOKEN = 4.0

# Per-message framing overhead charged by chat endpoints
MESSAGE_OVERHEAD_TOKENS = 4


def estimate_tokens(text: str) -> int:
    """Estimate the number of tokens in a text string.

    Uses a simple byte-based heuristic of ~4 bytes per token.

    Returns:
        Estimated token count (minimum 1 for non-empty text, 0 for empty).
    """
    if not text:
        return 0
    return max(1, math.ceil(len(text.encode("utf-8", errors="ignore")) / CHARS_PER_TOKEN))


def estimate_message_tokens(
    contents: Iterable[str],
    *,
    counter: TokenCounterProtocol | None = None,
) -> int:
    """Estimate the prompt size of a chat transcript.

    When *counter* is given its ``count`` is used instead of the byte
    heuristic.
    """
    total = 0
    for content in contents:
        tokens = counter.count(content) if counter is not None else estimate_tokens(content)
        total += tokens + MESSAGE_OVERHEAD_TOKENS
    return total


def is_within_budget(text: str, budget: int) -> bool:
    return estimate_tokens(text) <= budget


__all__ = [
    "CHARS_PER_TOKEN",
    "MESSAGE_OVERHEAD_TOKENS",
    "estimate_tokens",
    "estimate_message_tokens",
    "is_within_budget",
]
