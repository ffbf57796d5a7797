"""Map structured action ids and free-text chat messages to transform intents."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import ErrorCode, ValidationError
from .intents import SuggestionKind, TransformIntent, find_action

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class KeywordRule:
    """One predicate in the ordered keyword table."""

    keywords: tuple[str, ...]
    intent: TransformIntent
    suggestion: SuggestionKind | None = None

    def match(self, lowered: str) -> str | None:
        for keyword in self.keywords:
            if keyword in lowered:
                return keyword
        return None


@dataclass(slots=True, frozen=True)
class Classification:
    """Outcome of classifying a free-text message."""

    intent: TransformIntent
    suggestion: SuggestionKind | None = None
    keyword: str | None = None

    @property
    def mutates_document(self) -> bool:
        return self.suggestion is None and self.intent is not TransformIntent.GENERIC_HELP


# Evaluated top to bottom; the first rule with a matching keyword wins. The bare
# noun "summary" ranks below the compliance keywords so that a request for a
# "compliance summary" section is a compliance request.
KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(("summarize",), TransformIntent.SUMMARIZE),
    KeywordRule(("improve", "better"), TransformIntent.GENERIC_HELP, SuggestionKind.IMPROVE),
    KeywordRule(("compliance", "regulation"), TransformIntent.ADD_COMPLIANCE),
    KeywordRule(("summary",), TransformIntent.SUMMARIZE),
    KeywordRule(("rewrite", "rephrase"), TransformIntent.REPHRASE),
    KeywordRule(("add", "include"), TransformIntent.GENERIC_HELP, SuggestionKind.ADD),
)


def classify_message(message: str) -> Classification:
    """Classify ``message`` against :data:`KEYWORD_RULES`.

    Matching is case-insensitive substring containment. Never raises; anything
    unmatched (including an empty message) is generic help.
    """

    lowered = (message or "").lower()
    for rule in KEYWORD_RULES:
        keyword = rule.match(lowered)
        if keyword is not None:
            return Classification(intent=rule.intent, suggestion=rule.suggestion, keyword=keyword)
    return Classification(intent=TransformIntent.GENERIC_HELP)


def classify(message: str) -> TransformIntent:
    """Return the transform intent for a free-text ``message``."""

    return classify_message(message).intent


def intent_for_action(action_id: str) -> TransformIntent:
    """Resolve a structured menu action id to its intent.

    Unknown ids are recovered as generic help rather than surfaced.
    """

    action = find_action(action_id)
    if action is not None:
        return action.intent
    error = ValidationError(
        error_code=ErrorCode.UNKNOWN_ACTION,
        message=f"Unknown action id {action_id!r}",
        details={"action_id": action_id},
    )
    LOGGER.debug("Recovered from %s; using generic help", error)
    return TransformIntent.GENERIC_HELP


__all__ = [
    "Classification",
    "KEYWORD_RULES",
    "KeywordRule",
    "classify",
    "classify_message",
    "intent_for_action",
]
