"""Goal construction: complexity estimate and sub-goal planning."""

from __future__ import annotations

import re

from .types import Complexity, EditGoal

__all__ = ["estimate_complexity", "plan_sub_goals", "build_goal", "LARGE_DOCUMENT_LINES"]

LARGE_DOCUMENT_LINES = 200

_TRIVIAL_RE = re.compile(r"^(fix typo|rename|change.*to|update.*value)")
_SIMPLE_RE = re.compile(r"^(add.*function|fix.*bug|update.*import|add.*import)")
_COMPLEX_RE = re.compile(r"(refactor|restructure|rewrite|multiple|all|every)")

_APPROACHES = {
    Complexity.TRIVIAL: "single full rewrite",
    Complexity.SIMPLE: "targeted changes",
    Complexity.MODERATE: "incremental edits",
    Complexity.COMPLEX: "step-by-step restructuring",
}

# Splits compound instructions into ordered steps.
_STEP_SPLIT_RE = re.compile(r"\s*(?:;|\n|\bthen\b|\band then\b|(?<=[^\d\s][.!?])\s)\s*", re.IGNORECASE)
_NUMBERED_RE = re.compile(r"^\s*(?:\d+[.)]|[-*])\s+")

MAX_SUB_GOALS = 6


def estimate_complexity(goal: str, content: str) -> Complexity:
    """Classify a goal from its wording, falling back to the document size."""
    goal_lower = goal.strip().lower()
    if _TRIVIAL_RE.search(goal_lower):
        return Complexity.TRIVIAL
    if _SIMPLE_RE.search(goal_lower):
        return Complexity.SIMPLE
    if _COMPLEX_RE.search(goal_lower):
        return Complexity.COMPLEX
    if content.count("\n") + 1 > LARGE_DOCUMENT_LINES:
        return Complexity.MODERATE
    return Complexity.SIMPLE


def plan_sub_goals(description: str, complexity: Complexity) -> tuple[str, ...]:
    """Decompose *description* into ordered sub-goals.

    Sub-goals only shape prompts and progress reporting. Trivial goals are
    never split.
    """
    text = description.strip()
    if not text:
        return ()
    if complexity is Complexity.TRIVIAL:
        return (text,)

    steps: list[str] = []
    for part in _STEP_SPLIT_RE.split(text):
        step = _NUMBERED_RE.sub("", part or "").strip(" ,.")
        if step and step.lower() not in ("and", "then"):
            steps.append(step[0].upper() + step[1:])
    if not steps:
        steps = [text]

    if complexity is Complexity.COMPLEX and len(steps) == 1:
        steps = [f"Identify every section affected by: {steps[0]}", steps[0], "Check the result is consistent"]
    return tuple(steps[:MAX_SUB_GOALS])


def build_goal(
    description: str,
    content: str,
    *,
    complexity: Complexity | str | None = None,
    approach: str | None = None,
) -> EditGoal:
    """Build the immutable goal for a run.

    A complexity supplied by the intent collaborator wins over the regex
    estimate.
    """
    resolved = Complexity.coerce(complexity) or estimate_complexity(description, content)
    return EditGoal(
        description=description.strip(),
        approach=approach or _APPROACHES[resolved],
        complexity=resolved,
        estimated_changes=resolved.estimated_changes,
        sub_goals=plan_sub_goals(description, resolved),
    )
