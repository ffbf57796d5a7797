"""Transform provider backed by an OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError
from openai.types.chat import ChatCompletionMessageParam
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import ErrorCode, ProviderError
from .intents import RequestMode, SuggestionKind, TransformIntent
from .provider import require_text

LOGGER = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are an assistant embedded in a policy document editor. "
    "Documents are HTML fragments."
)
_INLINE_INSTRUCTIONS: Mapping[TransformIntent, str] = {
    TransformIntent.SUMMARIZE: "Summarize the following text as a short HTML paragraph.",
    TransformIntent.REPHRASE: "Rephrase the following text in different words, keeping its meaning. Reply with HTML.",
    TransformIntent.EXPAND: (
        "Repeat the following text unchanged, then add HTML paragraphs with more detail and context."
    ),
    TransformIntent.ADD_COMPLIANCE: (
        "Repeat the following text unchanged, then add an HTML list of compliance guidelines for it."
    ),
    TransformIntent.SIMPLIFY: "Rewrite the following text so it is easy to understand. Reply with HTML.",
    TransformIntent.FORMALIZE: "Rewrite the following text in a formal tone. Reply with HTML.",
    TransformIntent.GENERIC_HELP: "Improve the following text. Reply with HTML.",
}
_CHAT_INSTRUCTIONS: Mapping[TransformIntent, str] = {
    TransformIntent.SUMMARIZE: "Summarize the document for the user.",
    TransformIntent.ADD_COMPLIANCE: "Suggest compliance sections the user could add to the document.",
    TransformIntent.REPHRASE: "Help the user rewrite parts of the document.",
}
_SUGGESTION_INSTRUCTIONS: Mapping[SuggestionKind, str] = {
    SuggestionKind.IMPROVE: "Suggest concrete improvements to the document. Do not rewrite it.",
    SuggestionKind.ADD: "Ask what content the user wants to add and offer topics. Do not rewrite the document.",
}
_RETRYABLE = (APIError, APIStatusError, APIConnectionError, RateLimitError, httpx.TimeoutException)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the provider client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    temperature: float | None = 0.2
    default_headers: Mapping[str, str] | None = None


class OpenAITransformProvider:
    """Async provider with retry semantics around chat completions."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def generate(
        self,
        intent: TransformIntent,
        context_text: str,
        *,
        mode: RequestMode = RequestMode.INLINE,
        suggestion: SuggestionKind | None = None,
    ) -> str:
        payload = self._build_payload(intent, context_text, mode=mode, suggestion=suggestion)
        LOGGER.debug(
            "Requesting %s transform (%s) via %s",
            intent.value,
            mode.value,
            self._settings.model,
        )
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.chat.completions.create(**payload)
        except _RETRYABLE as exc:
            LOGGER.warning("Transform provider failed for %s: %s", intent.value, exc)
            raise ProviderError(
                error_code=ErrorCode.PROVIDER_UNAVAILABLE,
                details={"intent": intent.value, "reason": str(exc)},
            ) from exc
        return require_text(self._extract_text(response), intent=intent)

    async def aclose(self) -> None:
        await self._client.close()

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            default_headers=headers,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(_RETRYABLE),
        )

    def _build_payload(
        self,
        intent: TransformIntent,
        context_text: str,
        *,
        mode: RequestMode,
        suggestion: SuggestionKind | None,
    ) -> Dict[str, Any]:
        if mode is RequestMode.CHAT:
            if suggestion is not None:
                instruction = _SUGGESTION_INSTRUCTIONS[suggestion]
            else:
                instruction = _CHAT_INSTRUCTIONS.get(
                    intent, "Answer the user's question about the document."
                )
        else:
            instruction = _INLINE_INSTRUCTIONS[intent]
        messages: List[ChatCompletionMessageParam] = [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": f"{instruction}\n\n{context_text}"},
        ]
        payload: Dict[str, Any] = {
            "model": self._settings.model,
            "messages": messages,
        }
        if self._settings.temperature is not None:
            payload["temperature"] = self._settings.temperature
        return payload

    @staticmethod
    def _extract_text(response: Any) -> str | None:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return None
        message = getattr(choices[0], "message", None)
        return getattr(message, "content", None)


__all__ = ["ClientSettings", "OpenAITransformProvider"]
