"""Transform provider protocol and the canned keyword provider."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Mapping, Protocol, runtime_checkable

from ..errors import ErrorCode, ProviderError
from .intents import RequestMode, SuggestionKind, TransformIntent

LOGGER = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@runtime_checkable
class TransformProvider(Protocol):
    """Capability that turns a request into generated text."""

    async def generate(
        self,
        intent: TransformIntent,
        context_text: str,
        *,
        mode: RequestMode = RequestMode.INLINE,
        suggestion: SuggestionKind | None = None,
    ) -> str:
        """Return generated text or raise :class:`ProviderError`."""
        ...


def require_text(result: object, *, intent: TransformIntent) -> str:
    """Reject empty or non-text provider output."""

    if not isinstance(result, str) or not result.strip():
        raise ProviderError(
            error_code=ErrorCode.EMPTY_RESPONSE,
            message="The AI assistant returned an empty response. Please try again.",
            details={"intent": intent.value},
        )
    return result


# Inline responses are HTML fragments spliced into the document. Expand and
# compliance keep the selected text in front of the generated addition.
_INLINE_RESPONSES: Mapping[TransformIntent, str] = {
    TransformIntent.SUMMARIZE: (
        "<p><strong>Summary:</strong> This section outlines key policy guidelines and "
        "implementation strategies for organizational compliance.</p>"
    ),
    TransformIntent.REPHRASE: (
        "<p>This content has been rephrased to improve clarity while maintaining the "
        "original meaning and intent.</p>"
    ),
    TransformIntent.EXPAND: (
        "<p>Additionally, it's important to consider the broader implications and ensure "
        "that all stakeholders understand their responsibilities in implementing these "
        "guidelines effectively.</p>"
    ),
    TransformIntent.ADD_COMPLIANCE: (
        "<ul><li>Ensure compliance with industry regulations</li><li>Regular audits and "
        "reviews required</li><li>Document all compliance activities</li></ul>"
    ),
    TransformIntent.SIMPLIFY: (
        "<p>In simple terms: This policy helps ensure everyone follows the same rules and "
        "procedures.</p>"
    ),
    TransformIntent.FORMALIZE: (
        "<p>This document establishes the formal procedures and protocols that must be "
        "adhered to by all personnel within the organization.</p>"
    ),
}
_PREFIX_CONTEXT = frozenset({TransformIntent.EXPAND, TransformIntent.ADD_COMPLIANCE})

_GENERIC_HELP_REPLY = (
    "I understand you'd like help with your document. I can assist with:\n\n"
    "• Summarizing content\n• Improving clarity and readability\n• Adding compliance information\n"
    "• Rephrasing sections\n• Expanding on topics\n• Making content more formal or casual\n\n"
    "What specifically would you like me to help you with?"
)
_CHAT_RESPONSES: Mapping[TransformIntent, str] = {
    TransformIntent.SUMMARIZE: (
        "I've analyzed your document. Here's a summary: This policy document outlines key "
        "organizational guidelines, implementation procedures, and compliance requirements. "
        "The main focus areas include team coordination, regular policy reviews, and "
        "maintaining industry standards."
    ),
    TransformIntent.ADD_COMPLIANCE: (
        "For compliance enhancement, consider adding:\n\n• Regular audit schedules\n"
        "• Documentation requirements\n• Training mandates\n• Risk assessment procedures\n"
        "• Incident reporting protocols\n\nI can help you add any of these sections to your document."
    ),
    TransformIntent.REPHRASE: (
        "I can help you rewrite sections of your document. Please select the specific text "
        "you'd like me to rephrase, or let me know which section needs improvement. I can "
        "adjust the tone, clarity, or formality level as needed."
    ),
}
_SUGGESTION_RESPONSES: Mapping[SuggestionKind, str] = {
    SuggestionKind.IMPROVE: (
        "Here are some suggestions to improve your document:\n\n1. Add more specific examples\n"
        "2. Include compliance checkpoints\n3. Define clear responsibilities\n"
        "4. Add implementation timelines\n\nWould you like me to help implement any of these improvements?"
    ),
    SuggestionKind.ADD: (
        "I can help you add new content to your document. What specific information would you "
        "like to include? I can help with:\n\n• Policy sections\n• Procedures\n• Guidelines\n"
        "• Compliance requirements\n• Best practices\n\nJust let me know the topic and I'll "
        "draft the content for you."
    ),
}


class CannedTransformProvider:
    """Keyword-driven provider returning fixed responses after synthetic latency.

    ``latency`` is the ``(min, max)`` delay in seconds drawn uniformly per call;
    pass ``(0.0, 0.0)`` to disable it. Output depends only on the intent, the
    request mode, the suggestion kind, and the context text.
    """

    def __init__(
        self,
        *,
        latency: tuple[float, float] = (1.0, 3.0),
        rng: random.Random | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        low, high = latency
        if low < 0 or high < low:
            raise ValueError(f"Invalid latency range: {latency!r}")
        self._latency = (float(low), float(high))
        self._rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep

    async def generate(
        self,
        intent: TransformIntent,
        context_text: str,
        *,
        mode: RequestMode = RequestMode.INLINE,
        suggestion: SuggestionKind | None = None,
    ) -> str:
        delay = self._next_delay()
        if delay > 0:
            LOGGER.debug("Simulating %.2fs of processing for %s (%s)", delay, intent.value, mode.value)
            await self._sleep(delay)
        if mode is RequestMode.CHAT:
            return self._chat_reply(intent, suggestion)
        return self._inline_reply(intent, context_text)

    def _next_delay(self) -> float:
        low, high = self._latency
        if high <= 0:
            return 0.0
        return self._rng.uniform(low, high)

    @staticmethod
    def _inline_reply(intent: TransformIntent, context_text: str) -> str:
        response = _INLINE_RESPONSES.get(intent)
        if response is None:
            return "<p>" + _GENERIC_HELP_REPLY.replace("\n", "<br>") + "</p>"
        if intent in _PREFIX_CONTEXT:
            return (context_text or "") + response
        return response

    @staticmethod
    def _chat_reply(intent: TransformIntent, suggestion: SuggestionKind | None) -> str:
        if suggestion is not None:
            return _SUGGESTION_RESPONSES[suggestion]
        return _CHAT_RESPONSES.get(intent, _GENERIC_HELP_REPLY)


__all__ = [
    "CannedTransformProvider",
    "SleepFn",
    "TransformProvider",
    "require_text",
]
