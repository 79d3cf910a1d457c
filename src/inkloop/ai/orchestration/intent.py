"""Intent detection: decide whether an instruction asks for an edit."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from ..prompts import build_intent_prompt
from .oracle import Oracle, OracleConfig, collect_response
from .types import Complexity, DocumentState, Message

LOGGER = logging.getLogger(__name__)

__all__ = [
    "IntentResult",
    "IntentDetector",
    "OracleIntentDetector",
    "StaticIntentDetector",
    "parse_intent_response",
    "DEFAULT_INTENT_THRESHOLD",
    "DEFAULT_INTENT_TIMEOUT",
]

DEFAULT_INTENT_THRESHOLD = 0.6
DEFAULT_INTENT_TIMEOUT = 30.0
# Confidence assumed when the oracle says "edit" without a number.
_UNSTATED_CONFIDENCE = 0.7

_JSON_DECODER = json.JSONDecoder()


@dataclass(slots=True, frozen=True)
class IntentResult:
    """Verdict of the intent collaborator.

    ``should_edit`` already folds in the confidence threshold.
    """

    should_edit: bool
    confidence: float
    goal: str | None = None
    complexity: Complexity | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "should_edit": self.should_edit,
            "confidence": self.confidence,
            "goal": self.goal,
            "complexity": self.complexity.value if self.complexity else None,
            "error": self.error,
        }


class IntentDetector(Protocol):
    async def detect(
        self, message: str, document: DocumentState, *, recent_context: str | None = None
    ) -> IntentResult:
        ...


def parse_intent_response(text: str, *, threshold: float = DEFAULT_INTENT_THRESHOLD) -> IntentResult:
    """Parse the first JSON object in *text* into an :class:`IntentResult`."""
    start = (text or "").find("{")
    if start < 0:
        return IntentResult(should_edit=False, confidence=0.0, error="No JSON object in intent response")
    try:
        data, _ = _JSON_DECODER.raw_decode(text, start)
    except json.JSONDecodeError as exc:
        return IntentResult(should_edit=False, confidence=0.0, error=f"Malformed intent JSON: {exc.msg}")

    raw_confidence = data.get("confidence")
    try:
        confidence = float(raw_confidence) if raw_confidence is not None else _UNSTATED_CONFIDENCE
    except (TypeError, ValueError):
        confidence = _UNSTATED_CONFIDENCE
    confidence = min(1.0, max(0.0, confidence))
    wants_edit = data.get("edit") is True
    goal = data.get("goal")
    return IntentResult(
        should_edit=wants_edit and confidence >= threshold,
        confidence=confidence,
        goal=goal.strip() if isinstance(goal, str) and goal.strip() else None,
        complexity=Complexity.coerce(data.get("complexity")),
    )


class OracleIntentDetector:
    """Ask the oracle to classify the instruction.

    Oracle failures and timeouts never raise; they produce a no-edit result
    with ``error`` set.
    """

    def __init__(
        self,
        oracle: Oracle,
        *,
        threshold: float = DEFAULT_INTENT_THRESHOLD,
        timeout: float = DEFAULT_INTENT_TIMEOUT,
        model: str | None = None,
        temperature: float = 0.3,
    ) -> None:
        self._oracle = oracle
        self._threshold = threshold
        self._timeout = timeout
        self._config = OracleConfig(model=model, temperature=temperature, stream=False)

    @property
    def threshold(self) -> float:
        return self._threshold

    async def detect(
        self, message: str, document: DocumentState, *, recent_context: str | None = None
    ) -> IntentResult:
        prompt = build_intent_prompt(message, document.summary(), recent_context)
        chunks: list[str] = []
        try:
            text = await asyncio.wait_for(
                collect_response(self._oracle.generate([Message.user(prompt)], self._config), chunks),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            LOGGER.warning("Intent detection timed out after %.0fs", self._timeout)
            return IntentResult(should_edit=False, confidence=0.0, error="Intent detection timed out")
        except Exception as exc:
            LOGGER.warning("Intent detection failed: %s", exc)
            return IntentResult(should_edit=False, confidence=0.0, error=str(exc) or type(exc).__name__)

        result = parse_intent_response(text, threshold=self._threshold)
        LOGGER.debug("Intent for %r: %s", message[:80], result.to_dict())
        return result


class StaticIntentDetector:
    """Detector with a fixed answer, for callers that already know the goal.

    The threshold applies here too: a fixed confidence below it is a no-edit.
    """

    def __init__(
        self,
        *,
        should_edit: bool = True,
        confidence: float = 1.0,
        goal: str | None = None,
        complexity: Complexity | str | None = None,
        threshold: float = DEFAULT_INTENT_THRESHOLD,
    ) -> None:
        self._result = IntentResult(
            should_edit=should_edit and confidence >= threshold,
            confidence=confidence,
            goal=goal,
            complexity=Complexity.coerce(complexity),
        )

    async def detect(
        self, message: str, document: DocumentState, *, recent_context: str | None = None
    ) -> IntentResult:
        return self._result
