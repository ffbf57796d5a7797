"""Tests for the request classifier."""

from __future__ import annotations

import pytest

from polysync.ai.classifier import classify, classify_message, intent_for_action
from polysync.ai.intents import ACTION_MENU, QUICK_ACTIONS, SuggestionKind, TransformIntent, action_ids


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("summarize", TransformIntent.SUMMARIZE),
        ("Please SUMMARIZE the policy", TransformIntent.SUMMARIZE),
        ("Give me a summary", TransformIntent.SUMMARIZE),
        ("What regulation applies here?", TransformIntent.ADD_COMPLIANCE),
        ("Add compliance section", TransformIntent.ADD_COMPLIANCE),
        ("rewrite the intro", TransformIntent.REPHRASE),
        ("Could you rephrase section 2", TransformIntent.REPHRASE),
        ("hello there", TransformIntent.GENERIC_HELP),
        ("", TransformIntent.GENERIC_HELP),
    ],
)
def test_classify_keyword_table(message: str, expected: TransformIntent) -> None:
    assert classify(message) is expected


def test_summarize_wins_over_compliance() -> None:
    assert classify("summarize the compliance rules") is TransformIntent.SUMMARIZE


def test_compliance_summary_section_is_compliance() -> None:
    classification = classify_message("add a compliance summary section")

    assert classification.intent is TransformIntent.ADD_COMPLIANCE
    assert classification.keyword == "compliance"
    assert classification.mutates_document


def test_improve_and_add_are_suggestion_only() -> None:
    improve = classify_message("Make it better")
    add = classify_message("please include contact details")

    assert improve.intent is TransformIntent.GENERIC_HELP
    assert improve.suggestion is SuggestionKind.IMPROVE
    assert add.suggestion is SuggestionKind.ADD
    assert not improve.mutates_document
    assert not add.mutates_document


def test_improve_ranks_above_compliance() -> None:
    assert classify_message("improve compliance wording").suggestion is SuggestionKind.IMPROVE


@pytest.mark.parametrize("message", ["improve the summary", "a better summary please"])
def test_improve_ranks_above_summary_noun(message: str) -> None:
    classification = classify_message(message)

    assert classification.intent is TransformIntent.GENERIC_HELP
    assert classification.suggestion is SuggestionKind.IMPROVE
    assert not classification.mutates_document


def test_summarize_verb_still_wins_over_improve() -> None:
    assert classify("summarize and improve this") is TransformIntent.SUMMARIZE


def test_classify_is_deterministic() -> None:
    messages = ["summarize", "make it better", "rules and regulation", "xyz", *QUICK_ACTIONS]

    first = [classify_message(message) for message in messages]
    second = [classify_message(message) for message in messages]

    assert first == second


def test_intent_for_action_covers_every_menu_entry() -> None:
    assert action_ids() == ("summarize", "rephrase", "expand", "compliance", "simplify", "formal")
    for action in ACTION_MENU:
        assert intent_for_action(action.id) is action.intent
    assert intent_for_action("formal") is TransformIntent.FORMALIZE
    assert intent_for_action("compliance") is TransformIntent.ADD_COMPLIANCE


def test_intent_for_action_normalizes_ids() -> None:
    assert intent_for_action(" Summarize ") is TransformIntent.SUMMARIZE


def test_unknown_action_recovers_as_generic_help() -> None:
    assert intent_for_action("translate") is TransformIntent.GENERIC_HELP
    assert intent_for_action("") is TransformIntent.GENERIC_HELP
