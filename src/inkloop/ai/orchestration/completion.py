"""Multi-signal completion detection.

The oracle rarely says clearly that it has finished. The detector combines
four weak signals into one weighted score and applies ordered decision
rules:

1. explicit claim and verified changes;
2. verified changes, no further tool call, iteration > 0;
3. content stabilized after changes;
4. explicit claim scoring at least 0.7 on iteration > 0;
5. explicit claim without changes on iteration 0 is rejected and its
   confidence capped at 0.3.

Rule 2 is a heuristic: it can stop a run before every sub-goal is met, so
callers should treat the confidence as advisory. It can be switched off
with ``early_termination=False``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

__all__ = [
    "CompletionWeights",
    "CompletionSignals",
    "CompletionVerdict",
    "CompletionDetector",
    "HIGH_CONFIDENCE_PHRASES",
    "MEDIUM_CONFIDENCE_PHRASES",
    "SOFT_PHRASES",
]

HIGH_CONFIDENCE_PHRASES: tuple[str, ...] = (
    "goal achieved",
    "goal_achieved",
    "task complete",
    "all changes complete",
    "edit complete",
    "successfully completed",
)

MEDIUM_CONFIDENCE_PHRASES: tuple[str, ...] = (
    "done with edits",
    "finished editing",
    "no more changes needed",
    "changes applied",
    "successfully modified",
)

SOFT_PHRASES: tuple[str, ...] = (
    "looks good",
    "should work",
    "that should do it",
    "there you go",
)

# "done" counts as a soft claim only when it stands on a line by itself.
_SOFT_DONE_RE = re.compile(r"^[ \t]*(?:i'm |i am |all )?done[.!]?[ \t]*$", re.MULTILINE)

HIGH_SCORE = 0.9
MEDIUM_SCORE = 0.7
SOFT_SCORE = 0.5
REJECTED_CONFIDENCE_CAP = 0.3


@dataclass(slots=True, frozen=True)
class CompletionWeights:
    explicit_claim: float = 0.35
    no_tool_call: float = 0.20
    changes_verified: float = 0.30
    content_stabilized: float = 0.15


@dataclass(slots=True, frozen=True)
class CompletionSignals:
    """Individual signal values, kept on the iteration record."""

    explicit_claim: bool = False
    claim_confidence: float = 0.0
    claim_phrase: str = ""
    no_tool_call: bool = False
    changes_verified: bool = False
    content_stabilized: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "explicit_claim": self.explicit_claim,
            "claim_confidence": self.claim_confidence,
            "claim_phrase": self.claim_phrase,
            "no_tool_call": self.no_tool_call,
            "changes_verified": self.changes_verified,
            "content_stabilized": self.content_stabilized,
        }


@dataclass(slots=True, frozen=True)
class CompletionVerdict:
    """Decision produced by :meth:`CompletionDetector.evaluate`.

    Attributes:
        is_complete: Whether the run should stop as complete.
        confidence: Weighted signal score in ``[0, 1]``.
        reason: Which rule fired, empty when none did.
        signals: The signal values the decision was based on.
        rejected: True when an explicit claim was refused (rule 5).
    """

    is_complete: bool
    confidence: float
    reason: str = ""
    signals: CompletionSignals = field(default_factory=CompletionSignals)
    rejected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_complete": self.is_complete,
            "confidence": round(self.confidence, 4),
            "reason": self.reason,
            "rejected": self.rejected,
            "signals": self.signals.to_dict(),
        }


class CompletionDetector:
    """Stateless evaluator; identical inputs always give identical verdicts."""

    def __init__(
        self,
        *,
        weights: CompletionWeights | None = None,
        phrase_tiers: Mapping[float, Sequence[str]] | None = None,
        early_termination: bool = True,
    ) -> None:
        self._weights = weights or CompletionWeights()
        self._early_termination = early_termination
        tiers = phrase_tiers or {
            HIGH_SCORE: HIGH_CONFIDENCE_PHRASES,
            MEDIUM_SCORE: MEDIUM_CONFIDENCE_PHRASES,
            SOFT_SCORE: SOFT_PHRASES,
        }
        self._tiers: tuple[tuple[float, tuple[str, ...]], ...] = tuple(
            (score, tuple(phrase.lower() for phrase in phrases))
            for score, phrases in sorted(tiers.items(), reverse=True)
        )

    def detect_claim(self, text: str | None) -> tuple[float, str]:
        """Return the strongest claim score found in *text* and its phrase."""
        lower = (text or "").lower()
        if not lower:
            return 0.0, ""
        for score, phrases in self._tiers:
            for phrase in phrases:
                if phrase in lower:
                    return score, phrase
        if _SOFT_DONE_RE.search(lower):
            return SOFT_SCORE, "done"
        return 0.0, ""

    def evaluate(
        self,
        text: str | None,
        had_tool_call: bool,
        changes_so_far: int,
        iteration: int,
        previous_content: str | None,
        current_content: str,
    ) -> CompletionVerdict:
        claim_score, phrase = self.detect_claim(text)
        signals = CompletionSignals(
            explicit_claim=claim_score > 0,
            claim_confidence=claim_score,
            claim_phrase=phrase,
            no_tool_call=not had_tool_call and iteration > 0,
            changes_verified=changes_so_far > 0,
            content_stabilized=(
                iteration > 0 and previous_content is not None and previous_content == current_content
            ),
        )

        weights = self._weights
        confidence = 0.0
        if signals.explicit_claim:
            confidence += weights.explicit_claim * signals.claim_confidence
        if signals.no_tool_call:
            confidence += weights.no_tool_call
        if signals.changes_verified:
            confidence += weights.changes_verified
        if signals.content_stabilized:
            confidence += weights.content_stabilized

        if signals.explicit_claim and signals.changes_verified:
            return CompletionVerdict(
                True, confidence, "Goal explicitly claimed complete with verified changes", signals
            )
        if self._early_termination and signals.changes_verified and signals.no_tool_call:
            return CompletionVerdict(True, confidence, "Changes made and LLM stopped using tools", signals)
        if signals.content_stabilized and signals.changes_verified:
            return CompletionVerdict(True, confidence, "Content stabilized after changes", signals)
        if signals.explicit_claim and signals.claim_confidence >= MEDIUM_SCORE and iteration > 0:
            return CompletionVerdict(
                True, confidence, "Goal explicitly claimed complete (iteration > 0)", signals
            )
        if signals.explicit_claim and not signals.changes_verified and iteration == 0:
            return CompletionVerdict(
                False,
                min(confidence, REJECTED_CONFIDENCE_CAP),
                "Claim rejected: no changes made on first iteration",
                signals,
                rejected=True,
            )
        return CompletionVerdict(False, confidence, "", signals)
