"""Tests for the transform applicator."""

from __future__ import annotations

import pytest

from polysync.ai.intents import TransformIntent
from polysync.editor.document_model import Selection
from polysync.editor.selection_tracker import capture_trigger
from polysync.editor.transforms import ApplyStrategy, ReplacementMode, TransformApplicator, apply
from polysync.errors import ErrorCode

DOC = "<p>Intro.</p><p>Beta rules.</p><p>Beta rules.</p>"


def test_empty_selection_appends() -> None:
    result = TransformApplicator().apply_transform(TransformIntent.EXPAND, Selection.empty(len(DOC)), DOC, "<p>X</p>")

    assert result.text == DOC + "<p>X</p>"
    assert result.strategy is ApplyStrategy.APPEND
    assert result.span == (len(DOC), len(DOC) + len("<p>X</p>"))
    assert not result.fallback


def test_replaces_only_first_occurrence() -> None:
    selection = Selection(text="Beta rules.", anchor_offset=31, focus_offset=42, content_length=len(DOC))

    new = apply(TransformIntent.SUMMARIZE, selection, DOC, "Short.")

    index = DOC.find("Beta rules.")
    assert new == DOC[:index] + "Short." + DOC[index + len("Beta rules."):]
    assert new.count("Beta rules.") == 1
    assert new.startswith("<p>Intro.</p><p>Short.</p>")


def test_text_outside_span_is_untouched() -> None:
    selection = capture_trigger(DOC, (3, 9))

    result = TransformApplicator().apply_transform(TransformIntent.FORMALIZE, selection, DOC, "Preamble:")

    start, end = result.span
    assert result.text[:start] == DOC[:3]
    assert result.text[end:] == DOC[9:]
    assert result.text[start:end] == "Preamble:"


def test_missing_selection_text_falls_back_to_append() -> None:
    selection = Selection(text="Gamma", anchor_offset=0, focus_offset=5, content_length=5)

    result = TransformApplicator().apply_transform(TransformIntent.REPHRASE, selection, DOC, "<p>G</p>")

    assert result.text == DOC + "<p>G</p>"
    assert result.strategy is ApplyStrategy.APPEND
    assert result.fallback
    assert result.fallback_reason == ErrorCode.STALE_SELECTION


def test_offset_mode_replaces_captured_span() -> None:
    second = DOC.rfind("Beta rules.")
    selection = capture_trigger(DOC, (second, second + len("Beta rules.")))

    result = TransformApplicator(mode=ReplacementMode.OFFSET).apply_transform(
        TransformIntent.SIMPLIFY, selection, DOC, "Easy."
    )

    assert result.text == "<p>Intro.</p><p>Beta rules.</p><p>Easy.</p>"
    assert result.span == (second, second + len("Easy."))


def test_offset_mode_falls_back_to_first_occurrence() -> None:
    second = DOC.rfind("Beta rules.")
    selection = capture_trigger(DOC, (second, second + len("Beta rules.")))
    shifted = "<p>New</p>" + DOC

    result = TransformApplicator(mode=ReplacementMode.OFFSET).apply_transform(
        TransformIntent.SIMPLIFY, selection, shifted, "Easy."
    )

    assert result.strategy is ApplyStrategy.REPLACE
    assert result.text == shifted.replace("Beta rules.", "Easy.", 1)


def test_empty_document_with_selection_appends() -> None:
    selection = Selection(text="gone", anchor_offset=0, focus_offset=4, content_length=4)

    assert apply(TransformIntent.EXPAND, selection, "", "<p>new</p>") == "<p>new</p>"


@pytest.mark.parametrize("mode", list(ReplacementMode))
def test_selection_past_end_of_shrunk_content_appends(mode: ReplacementMode) -> None:
    original = "<p>Intro</p><p>Policy</p><p>Policy</p>"
    second = original.rfind("Policy")
    selection = capture_trigger(original, (second, second + len("Policy")))
    shrunk = "<p>Policy</p>"

    result = TransformApplicator(mode=mode).apply_transform(TransformIntent.REPHRASE, selection, shrunk, "GEN")

    assert result.text == "<p>Policy</p>GEN"
    assert result.strategy is ApplyStrategy.APPEND
    assert result.fallback_reason == ErrorCode.STALE_SELECTION


def test_selection_ending_exactly_at_content_end_is_replaced() -> None:
    selection = capture_trigger(DOC, (len(DOC) - 4, len(DOC)))

    new = apply(TransformIntent.REPHRASE, selection, DOC, "</P>", mode=ReplacementMode.OFFSET)

    assert new == DOC[:-4] + "</P>"
