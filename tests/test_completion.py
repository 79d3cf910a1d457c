"""Tests for orchestration/completion.py."""

from __future__ import annotations

import pytest

from inkloop.ai.orchestration.completion import CompletionDetector, CompletionWeights


def evaluate(detector: CompletionDetector | None = None, **overrides):
    params = {
        "text": "",
        "had_tool_call": False,
        "changes_so_far": 0,
        "iteration": 0,
        "previous_content": None,
        "current_content": "doc",
    }
    params.update(overrides)
    return (detector or CompletionDetector()).evaluate(**params)


# -----------------------------------------------------------------------------
# Tests: claim phrases
# -----------------------------------------------------------------------------


class TestDetectClaim:
    @pytest.mark.parametrize(
        ("text", "score"),
        [
            ("All set. GOAL ACHIEVED", 0.9),
            ("Task complete.", 0.9),
            ("Changes applied to the file.", 0.7),
            ("I have finished editing", 0.7),
            ("That looks good to me", 0.5),
            ("Done.", 0.5),
        ],
    )
    def test_tiers(self, text: str, score: float) -> None:
        assert CompletionDetector().detect_claim(text)[0] == score

    @pytest.mark.parametrize(
        "text",
        [
            "",
            None,
            "Working on it",
            "This is not done yet",
            "I haven't done it",
            "Validation still needs to be done for y.",
        ],
    )
    def test_no_claim(self, text: str | None) -> None:
        assert CompletionDetector().detect_claim(text) == (0.0, "")

    def test_custom_tiers(self) -> None:
        detector = CompletionDetector(phrase_tiers={0.8: ["Ship it"]})

        assert detector.detect_claim("OK, ship it!") == (0.8, "ship it")
        assert detector.detect_claim("GOAL ACHIEVED")[0] == 0.0


# -----------------------------------------------------------------------------
# Tests: decision rules
# -----------------------------------------------------------------------------


class TestCompletionRules:
    def test_claim_with_changes_completes(self) -> None:
        verdict = evaluate(text="GOAL ACHIEVED", had_tool_call=True, changes_so_far=1)

        assert verdict.is_complete
        assert verdict.reason == "Goal explicitly claimed complete with verified changes"

    def test_done_inside_a_sentence_is_not_a_claim(self) -> None:
        text = (
            "<thought>Validation still needs to be done for y.</thought>\n"
            "<replace_in_file><content>\n<<<<<<< SEARCH\na\n======= REPLACE\nb\n>>>>>>> REPLACE\n"
            "</content></replace_in_file>"
        )

        verdict = evaluate(
            text=text,
            had_tool_call=True,
            changes_so_far=1,
            iteration=1,
            previous_content="a",
            current_content="b",
        )

        assert not verdict.is_complete
        assert verdict.signals.claim_phrase == ""

    def test_changes_and_no_tool_call_completes(self) -> None:
        verdict = evaluate(
            text="Updated the function.",
            changes_so_far=1,
            iteration=1,
            previous_content="old",
            current_content="new",
        )

        assert verdict.is_complete
        assert verdict.reason == "Changes made and LLM stopped using tools"

    def test_early_termination_can_be_disabled(self) -> None:
        verdict = evaluate(
            CompletionDetector(early_termination=False),
            text="Updated the function.",
            changes_so_far=1,
            iteration=1,
            previous_content="old",
            current_content="new",
        )

        assert not verdict.is_complete
        assert verdict.reason == ""

    def test_stabilized_content_completes(self) -> None:
        verdict = evaluate(
            text="Continuing.",
            had_tool_call=True,
            changes_so_far=2,
            iteration=3,
            previous_content="same",
            current_content="same",
        )

        assert verdict.is_complete
        assert verdict.reason == "Content stabilized after changes"
        assert verdict.signals.content_stabilized

    def test_medium_claim_after_first_iteration_completes(self) -> None:
        verdict = evaluate(text="Finished editing.", iteration=1)

        assert verdict.is_complete
        assert verdict.reason == "Goal explicitly claimed complete (iteration > 0)"

    def test_soft_claim_after_first_iteration_is_not_enough(self) -> None:
        verdict = evaluate(text="Looks good", iteration=1)

        assert not verdict.is_complete
        assert not verdict.rejected

    @pytest.mark.parametrize("text", ["GOAL ACHIEVED", "changes applied", "looks good", "done"])
    def test_claim_without_changes_on_first_iteration_is_rejected(self, text: str) -> None:
        verdict = evaluate(text=text)

        assert not verdict.is_complete
        assert verdict.rejected
        assert verdict.reason == "Claim rejected: no changes made on first iteration"
        assert verdict.confidence <= 0.3

    def test_no_signals(self) -> None:
        verdict = evaluate(text="Let me look at the file first.", had_tool_call=True)

        assert not verdict.is_complete
        assert verdict.confidence == 0.0
        assert verdict.reason == ""


# -----------------------------------------------------------------------------
# Tests: scoring
# -----------------------------------------------------------------------------


class TestCompletionScoring:
    def test_all_signals(self) -> None:
        verdict = evaluate(
            text="GOAL ACHIEVED",
            changes_so_far=1,
            iteration=1,
            previous_content="doc",
            current_content="doc",
        )

        assert verdict.confidence == pytest.approx(0.35 * 0.9 + 0.20 + 0.30 + 0.15)
        assert verdict.signals.no_tool_call
        assert verdict.signals.changes_verified

    def test_no_tool_call_ignored_on_first_iteration(self) -> None:
        verdict = evaluate(text="Reading the document.")

        assert not verdict.signals.no_tool_call

    def test_custom_weights(self) -> None:
        detector = CompletionDetector(weights=CompletionWeights(changes_verified=1.0))

        verdict = evaluate(detector, had_tool_call=True, changes_so_far=1, iteration=1)

        assert verdict.confidence == 1.0

    def test_evaluation_is_idempotent(self) -> None:
        detector = CompletionDetector()
        inputs = {"text": "Done with edits", "changes_so_far": 1, "iteration": 2, "previous_content": "a"}

        assert evaluate(detector, **inputs) == evaluate(detector, **inputs)

    def test_to_dict(self) -> None:
        payload = evaluate(text="GOAL ACHIEVED", changes_so_far=1).to_dict()

        assert payload["is_complete"] is True
        assert payload["signals"]["claim_phrase"] == "goal achieved"
