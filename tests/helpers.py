"""Shared test helpers and stub classes.

This module contains reusable test stubs that are used across multiple test files.
Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from typing import Any

from polysync.ai.intents import RequestMode, SuggestionKind, TransformIntent
from polysync.errors import ProviderError
from polysync.events import Event, EventBus


class EventRecorder:
    """Collects every event of the given types published on a bus."""

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


class StaticProvider:
    """Provider stub returning a fixed reply and recording each call."""

    def __init__(self, reply: Any = "<p>generated</p>") -> None:
        self.reply = reply
        self.calls: list[tuple[TransformIntent, str, RequestMode, SuggestionKind | None]] = []

    async def generate(
        self,
        intent: TransformIntent,
        context_text: str,
        *,
        mode: RequestMode = RequestMode.INLINE,
        suggestion: SuggestionKind | None = None,
    ) -> Any:
        self.calls.append((intent, context_text, mode, suggestion))
        return self.reply


class GatedProvider(StaticProvider):
    """Provider stub that blocks until :attr:`gate` is set."""

    def __init__(self, reply: Any = "<p>generated</p>") -> None:
        super().__init__(reply)
        self.gate = asyncio.Event()
        self.started = asyncio.Event()

    async def generate(self, intent: TransformIntent, context_text: str, **kwargs: Any) -> Any:
        self.started.set()
        await self.gate.wait()
        return await super().generate(intent, context_text, **kwargs)


class FailingProvider:
    """Provider stub that always raises ``error``."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or ProviderError()
        self.calls = 0

    async def generate(self, intent: TransformIntent, context_text: str, **kwargs: Any) -> str:
        self.calls += 1
        raise self.error


class TickingSleep:
    """Sleep stub that returns immediately ``ticks`` times, then blocks until cancelled."""

    def __init__(self, ticks: int) -> None:
        self.calls: list[float] = []
        self.exhausted = asyncio.Event()
        self._ticks = ticks

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        if len(self.calls) > self._ticks:
            self.exhausted.set()
            await asyncio.Event().wait()
        await asyncio.sleep(0)
