"""Tests for save serialization and the autosave timer."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from polysync.editor.document_model import SaveStatus
from polysync.errors import ErrorCode, StoreError
from polysync.events import DocumentSaved, EventBus, SaveFailed, SaveStateChanged
from polysync.services.save_coordinator import AutosaveTimer, SaveCoordinator, SaveOutcome, SaveTrigger
from tests.helpers import EventRecorder, TickingSleep

FIXED_NOW = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


class GatedWriter:
    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.writes = 0

    async def __call__(self) -> None:
        self.writes += 1
        await self.gate.wait()


@pytest.mark.asyncio
async def test_overlapping_triggers_issue_one_write() -> None:
    writer = GatedWriter()
    coordinator = SaveCoordinator(writer, document_id="1", clock=lambda: FIXED_NOW)

    first = asyncio.create_task(coordinator.save(SaveTrigger.MANUAL))
    await asyncio.sleep(0)
    assert coordinator.status is SaveStatus.SAVING

    dropped = await coordinator.save(SaveTrigger.PERIODIC)
    again = await coordinator.save(SaveTrigger.MANUAL)
    writer.gate.set()
    result = await first

    assert dropped.outcome is SaveOutcome.DROPPED
    assert again.outcome is SaveOutcome.DROPPED
    assert result.ok
    assert result.saved_at == FIXED_NOW
    assert writer.writes == 1
    assert coordinator.write_count == 1
    assert coordinator.state.last_saved_at == FIXED_NOW


@pytest.mark.asyncio
async def test_clean_save_returns_to_idle() -> None:
    coordinator = SaveCoordinator(lambda: None)
    coordinator.mark_dirty()
    assert coordinator.status is SaveStatus.DIRTY

    result = await coordinator.save()

    assert result.outcome is SaveOutcome.SAVED
    assert coordinator.status is SaveStatus.IDLE


@pytest.mark.asyncio
async def test_mutation_during_save_leaves_dirty() -> None:
    writer = GatedWriter()
    coordinator = SaveCoordinator(writer)
    coordinator.mark_dirty()

    task = asyncio.create_task(coordinator.save())
    await asyncio.sleep(0)
    coordinator.mark_dirty()
    writer.gate.set()
    result = await task

    assert result.ok
    assert coordinator.status is SaveStatus.DIRTY


@pytest.mark.asyncio
async def test_failed_save_keeps_document_dirty() -> None:
    bus = EventBus()
    recorder = EventRecorder(bus, SaveFailed, DocumentSaved)

    def writer() -> None:
        raise StoreError(message="quota exceeded")

    coordinator = SaveCoordinator(writer, document_id="1", bus=bus)
    coordinator.mark_dirty()

    result = await coordinator.save(SaveTrigger.PERIODIC)

    assert result.outcome is SaveOutcome.FAILED
    assert result.error is not None and result.error.message == "quota exceeded"
    assert coordinator.status is SaveStatus.DIRTY
    assert coordinator.state.last_saved_at is None
    failures = recorder.of_type(SaveFailed)
    assert [(event.trigger, event.error) for event in failures] == [("periodic", "quota exceeded")]
    assert recorder.of_type(DocumentSaved) == []


@pytest.mark.asyncio
async def test_unexpected_writer_error_is_wrapped() -> None:
    def writer() -> None:
        raise RuntimeError("boom")

    coordinator = SaveCoordinator(writer)

    result = await coordinator.save()

    assert result.error is not None
    assert result.error.error_code == ErrorCode.WRITE_FAILED
    assert isinstance(result.error.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_state_events_are_published() -> None:
    bus = EventBus()
    recorder = EventRecorder(bus, SaveStateChanged, DocumentSaved)
    coordinator = SaveCoordinator(lambda: None, document_id="1", bus=bus, clock=lambda: FIXED_NOW)

    coordinator.mark_dirty()
    await coordinator.save()

    statuses = [event.status for event in recorder.of_type(SaveStateChanged)]
    assert statuses == ["dirty", "saving", "idle"]
    saved = recorder.of_type(DocumentSaved)
    assert [(event.trigger, event.saved_at) for event in saved] == [("manual", "2024-01-15T10:30:00.000Z")]


@pytest.mark.asyncio
async def test_autosave_fires_on_each_tick() -> None:
    coordinator = SaveCoordinator(lambda: None)
    sleep = TickingSleep(ticks=3)
    timer = AutosaveTimer(coordinator, interval=10.0, sleep=sleep)

    timer.start()
    timer.start()
    await asyncio.wait_for(sleep.exhausted.wait(), timeout=1.0)
    await timer.stop()

    assert coordinator.write_count == 3
    assert sleep.calls == [10.0, 10.0, 10.0, 10.0]
    assert not timer.running


@pytest.mark.asyncio
async def test_autosave_tick_during_manual_save_is_dropped() -> None:
    writer = GatedWriter()
    coordinator = SaveCoordinator(writer)
    sleep = TickingSleep(ticks=1)
    timer = AutosaveTimer(coordinator, sleep=sleep)

    manual = asyncio.create_task(coordinator.save(SaveTrigger.MANUAL))
    await asyncio.sleep(0)
    timer.start()
    await asyncio.wait_for(sleep.exhausted.wait(), timeout=1.0)
    writer.gate.set()
    await manual
    await timer.stop()

    assert writer.writes == 1


def test_autosave_rejects_non_positive_interval() -> None:
    with pytest.raises(ValueError):
        AutosaveTimer(SaveCoordinator(lambda: None), interval=0)


@pytest.mark.asyncio
async def test_autosave_ticks_go_through_save_callable() -> None:
    coordinator = SaveCoordinator(lambda: None)
    triggers: list[SaveTrigger] = []

    async def save(trigger: SaveTrigger):
        triggers.append(trigger)
        return await coordinator.save(trigger)

    sleep = TickingSleep(ticks=2)
    timer = AutosaveTimer(coordinator, sleep=sleep, save=save)

    timer.start()
    await asyncio.wait_for(sleep.exhausted.wait(), timeout=1.0)
    await timer.stop()

    assert triggers == [SaveTrigger.PERIODIC, SaveTrigger.PERIODIC]
    assert coordinator.write_count == 2
