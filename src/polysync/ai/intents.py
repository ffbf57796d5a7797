"""Transform intents and the in-place action menu."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TransformIntent(str, Enum):
    """Closed set of transformations the engine knows how to request."""

    SUMMARIZE = "summarize"
    REPHRASE = "rephrase"
    EXPAND = "expand"
    ADD_COMPLIANCE = "compliance"
    SIMPLIFY = "simplify"
    FORMALIZE = "formal"
    GENERIC_HELP = "generic_help"


class SuggestionKind(str, Enum):
    """Chat branches that only suggest and never mutate the document."""

    IMPROVE = "improve"
    ADD = "add"


class RequestMode(str, Enum):
    """Where a request originated."""

    INLINE = "inline"
    CHAT = "chat"


@dataclass(slots=True, frozen=True)
class ActionSpec:
    """Entry in the in-place action menu."""

    id: str
    label: str
    description: str
    intent: TransformIntent


ACTION_MENU: tuple[ActionSpec, ...] = (
    ActionSpec("summarize", "Summarize", "Create a concise summary", TransformIntent.SUMMARIZE),
    ActionSpec("rephrase", "Rephrase", "Rewrite in different words", TransformIntent.REPHRASE),
    ActionSpec("expand", "Expand", "Add more detail and context", TransformIntent.EXPAND),
    ActionSpec("compliance", "Add Compliance", "Add compliance guidelines", TransformIntent.ADD_COMPLIANCE),
    ActionSpec("simplify", "Simplify", "Make easier to understand", TransformIntent.SIMPLIFY),
    ActionSpec("formal", "Make Formal", "Adjust tone to be more formal", TransformIntent.FORMALIZE),
)

QUICK_ACTIONS: tuple[str, ...] = (
    "Summarize this document",
    "Improve readability",
    "Add compliance section",
    "Make it more formal",
    "Check for clarity issues",
)


def action_ids() -> tuple[str, ...]:
    return tuple(action.id for action in ACTION_MENU)


def find_action(action_id: str) -> ActionSpec | None:
    key = (action_id or "").strip().lower()
    for action in ACTION_MENU:
        if action.id == key:
            return action
    return None


__all__ = [
    "ACTION_MENU",
    "ActionSpec",
    "QUICK_ACTIONS",
    "RequestMode",
    "SuggestionKind",
    "TransformIntent",
    "action_ids",
    "find_action",
]
