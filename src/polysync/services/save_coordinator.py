"""Serialize manual and periodic saves of one open document.

At most one persistence write is in flight at any instant. A trigger that
arrives while a write is running is dropped, not queued, so save latency stays
bounded and two writers never interleave on the same key.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..editor.document_model import SaveState, SaveStatus, format_timestamp
from ..errors import StoreError
from ..events import DocumentSaved, EventBus, SaveFailed, SaveStateChanged

LOGGER = logging.getLogger(__name__)

SaveWriter = Callable[[], "Awaitable[None] | None"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SaveTrigger(str, Enum):
    """What asked for the save."""

    MANUAL = "manual"
    PERIODIC = "periodic"


class SaveOutcome(str, Enum):
    SAVED = "saved"
    DROPPED = "dropped"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class SaveResult:
    """Outcome of a single save trigger."""

    outcome: SaveOutcome
    trigger: SaveTrigger
    saved_at: Optional[datetime] = None
    error: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.outcome is SaveOutcome.SAVED


class SaveCoordinator:
    """State machine over :class:`SaveState` (Idle, Saving, Dirty).

    ``writer`` performs the persistence write and may be a plain callable or a
    coroutine function. It should raise :class:`StoreError` on failure; any
    other exception is wrapped in one.
    """

    def __init__(
        self,
        writer: SaveWriter,
        *,
        document_id: str = "",
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._writer = writer
        self._document_id = document_id
        self._bus = bus
        self._clock = clock
        self._lock = threading.Lock()
        self._state = SaveState()
        # Bumped on every mutation so a save can tell whether it captured the latest content
        self._generation = 0
        self._write_count = 0

    # ------------------------------------------------------------------
    # Public State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SaveState:
        """Snapshot of the current save state."""
        with self._lock:
            return replace(self._state)

    @property
    def status(self) -> SaveStatus:
        with self._lock:
            return self._state.status

    @property
    def write_count(self) -> int:
        """Number of persistence writes started so far."""
        return self._write_count

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_dirty(self) -> None:
        """Record a content mutation (direct edit or applied transform)."""
        with self._lock:
            self._generation += 1
            changed = not self._state.dirty
            self._state.dirty = True
        if changed:
            self._publish_state()

    async def save(self, trigger: SaveTrigger = SaveTrigger.MANUAL) -> SaveResult:
        """Run one persistence write unless another is already in flight."""

        with self._lock:
            if self._state.in_flight:
                LOGGER.debug("Dropping %s save for %s: write already in flight", trigger.value, self._document_id)
                return SaveResult(outcome=SaveOutcome.DROPPED, trigger=trigger)
            self._state.in_flight = True
            generation = self._generation
            self._write_count += 1
        self._publish_state()

        error: StoreError | None = None
        try:
            result = self._writer()
            if inspect.isawaitable(result):
                await result
        except StoreError as exc:
            error = exc
        except asyncio.CancelledError:
            with self._lock:
                self._state.in_flight = False
                self._state.dirty = True
            raise
        except Exception as exc:
            error = StoreError(message=f"Failed to save changes: {exc}")
            error.__cause__ = exc

        saved_at: datetime | None = None
        with self._lock:
            self._state.in_flight = False
            if error is None:
                saved_at = self._clock()
                self._state.last_saved_at = saved_at
                self._state.dirty = self._generation != generation
            else:
                self._state.dirty = True
        self._publish_state()

        if error is not None:
            LOGGER.warning("%s save for %s failed: %s", trigger.value.capitalize(), self._document_id, error)
            self._publish(SaveFailed(document_id=self._document_id, trigger=trigger.value, error=error.message))
            return SaveResult(outcome=SaveOutcome.FAILED, trigger=trigger, error=error)

        assert saved_at is not None
        LOGGER.debug("%s save for %s completed", trigger.value.capitalize(), self._document_id)
        self._publish(
            DocumentSaved(
                document_id=self._document_id,
                trigger=trigger.value,
                saved_at=format_timestamp(saved_at),
            )
        )
        return SaveResult(outcome=SaveOutcome.SAVED, trigger=trigger, saved_at=saved_at)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _publish_state(self) -> None:
        state = self.state
        self._publish(
            SaveStateChanged(
                document_id=self._document_id,
                status=state.status.value,
                indicator=state.indicator_text(),
            )
        )

    def _publish(self, event) -> None:
        if self._bus is not None:
            self._bus.publish(event)


class AutosaveTimer:
    """Fire periodic save triggers on a fixed cadence.

    The timer re-persists on every tick whether or not the document is dirty.
    Ticks go through ``save`` when given, so an owner can react to each
    periodic result; otherwise they call :meth:`SaveCoordinator.save`.
    """

    def __init__(
        self,
        coordinator: SaveCoordinator,
        *,
        interval: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        save: Callable[[SaveTrigger], Awaitable[SaveResult]] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("Autosave interval must be positive")
        self._interval = float(interval)
        self._sleep = sleep or asyncio.sleep
        self._save = save or coordinator.save
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking on the running event loop; a no-op when already started."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="polysync-autosave")
        LOGGER.debug("Autosave started (every %.1fs)", self._interval)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        LOGGER.debug("Autosave stopped")

    async def _run(self) -> None:
        while True:
            await self._sleep(self._interval)
            await self._save(SaveTrigger.PERIODIC)


__all__ = [
    "AutosaveTimer",
    "SaveCoordinator",
    "SaveOutcome",
    "SaveResult",
    "SaveTrigger",
]
