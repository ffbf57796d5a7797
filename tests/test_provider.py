"""Tests for the canned transform provider."""

from __future__ import annotations

import random

import pytest

from polysync.ai.intents import RequestMode, SuggestionKind, TransformIntent
from polysync.ai.provider import CannedTransformProvider, TransformProvider, require_text
from polysync.errors import ErrorCode, ProviderError


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.mark.asyncio
async def test_inline_summary_is_fixed_html(provider: CannedTransformProvider) -> None:
    text = await provider.generate(TransformIntent.SUMMARIZE, "anything")

    assert isinstance(provider, TransformProvider)
    assert text.startswith("<p><strong>Summary:</strong>")


@pytest.mark.asyncio
async def test_expand_and_compliance_keep_context(provider: CannedTransformProvider) -> None:
    expanded = await provider.generate(TransformIntent.EXPAND, "<p>Base</p>")
    compliance = await provider.generate(TransformIntent.ADD_COMPLIANCE, "<p>Base</p>")
    formal = await provider.generate(TransformIntent.FORMALIZE, "<p>Base</p>")

    assert expanded.startswith("<p>Base</p><p>Additionally,")
    assert compliance.startswith("<p>Base</p><ul><li>Ensure compliance")
    assert not formal.startswith("<p>Base</p>")


@pytest.mark.asyncio
async def test_chat_replies(provider: CannedTransformProvider) -> None:
    summary = await provider.generate(TransformIntent.SUMMARIZE, "doc", mode=RequestMode.CHAT)
    improve = await provider.generate(
        TransformIntent.GENERIC_HELP, "doc", mode=RequestMode.CHAT, suggestion=SuggestionKind.IMPROVE
    )
    generic = await provider.generate(TransformIntent.GENERIC_HELP, "doc", mode=RequestMode.CHAT)

    assert summary.startswith("I've analyzed your document.")
    assert improve.startswith("Here are some suggestions to improve your document")
    assert generic.startswith("I understand you'd like help with your document.")


@pytest.mark.asyncio
async def test_output_depends_only_on_inputs() -> None:
    first = CannedTransformProvider(latency=(0.0, 0.0))
    second = CannedTransformProvider(latency=(0.0, 0.0))

    for intent in TransformIntent:
        assert await first.generate(intent, "ctx") == await second.generate(intent, "ctx")


@pytest.mark.asyncio
async def test_latency_is_drawn_from_range() -> None:
    sleep = RecordingSleep()
    provider = CannedTransformProvider(latency=(1.0, 3.0), rng=random.Random(7), sleep=sleep)

    await provider.generate(TransformIntent.SIMPLIFY, "x")
    await provider.generate(TransformIntent.SIMPLIFY, "x")

    assert len(sleep.delays) == 2
    assert all(1.0 <= delay <= 3.0 for delay in sleep.delays)


@pytest.mark.asyncio
async def test_zero_latency_skips_sleep() -> None:
    sleep = RecordingSleep()
    provider = CannedTransformProvider(latency=(0.0, 0.0), sleep=sleep)

    await provider.generate(TransformIntent.REPHRASE, "x")

    assert sleep.delays == []


def test_invalid_latency_range() -> None:
    with pytest.raises(ValueError):
        CannedTransformProvider(latency=(3.0, 1.0))


@pytest.mark.parametrize("value", ["", "   ", None, 42])
def test_require_text_rejects_empty_output(value: object) -> None:
    with pytest.raises(ProviderError) as info:
        require_text(value, intent=TransformIntent.SUMMARIZE)

    assert info.value.error_code == ErrorCode.EMPTY_RESPONSE
