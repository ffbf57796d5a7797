"""Request classification and transform providers."""

from .classifier import Classification, classify, classify_message, intent_for_action
from .intents import ACTION_MENU, QUICK_ACTIONS, RequestMode, SuggestionKind, TransformIntent
from .provider import CannedTransformProvider, TransformProvider

__all__ = [
    "ACTION_MENU",
    "CannedTransformProvider",
    "Classification",
    "QUICK_ACTIONS",
    "RequestMode",
    "SuggestionKind",
    "TransformIntent",
    "TransformProvider",
    "classify",
    "classify_message",
    "intent_for_action",
]
