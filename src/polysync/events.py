"""Typed event bus connecting the engine to the editing surface.

The engine never calls into the editing surface directly. It publishes events
describing content changes, save progress, and user-visible notices; the
surface subscribes to whatever it renders.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Callable,
    Generic,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

# Type variable for event types
E = TypeVar("E", bound="Event")

# Handler type: a callable that takes an event and returns None
Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published by the engine."""

    pass


# =============================================================================
# Document Events
# =============================================================================


@dataclass(slots=True)
class DocumentModified(Event):
    """Emitted whenever the document content changes.

    Attributes:
        document_id: The document that changed.
        content: The new full document content to re-render.
        version_id: The incremented version number after the change.
        source: ``"edit"`` for direct edits, ``"transform"`` for applied transforms.
    """

    document_id: str
    content: str
    version_id: int
    source: str = "edit"


@dataclass(slots=True)
class DocumentSaved(Event):
    """Emitted after a successful persistence write.

    Attributes:
        document_id: The document that was saved.
        trigger: ``"manual"`` or ``"periodic"``.
        saved_at: ISO-8601 time of the write.
    """

    document_id: str
    trigger: str
    saved_at: str


@dataclass(slots=True)
class SaveStateChanged(Event):
    """Emitted when the save coordinator changes state.

    Attributes:
        document_id: The document whose save state changed.
        status: ``"idle"``, ``"saving"`` or ``"dirty"``.
        indicator: Text for the "last saved at / saving..." indicator.
    """

    document_id: str
    status: str
    indicator: str


@dataclass(slots=True)
class SaveFailed(Event):
    """Emitted when a persistence write fails; the document stays dirty."""

    document_id: str
    trigger: str
    error: str


# =============================================================================
# Transform & Chat Events
# =============================================================================


@dataclass(slots=True)
class TransformApplied(Event):
    """Emitted after generated text was spliced into the document.

    Attributes:
        document_id: The document that was transformed.
        intent: Value of the applied :class:`TransformIntent`.
        strategy: ``"replace"`` or ``"append"``.
        span: Character span the generated text now occupies.
        fallback: ``True`` when a replacement degraded to an append.
    """

    document_id: str
    intent: str
    strategy: str
    span: tuple[int, int]
    fallback: bool = False


@dataclass(slots=True)
class TransformFailed(Event):
    """Emitted when the provider failed; the request can be retried."""

    document_id: str
    intent: str
    error: str


@dataclass(slots=True)
class ChatMessageAppended(Event):
    """Emitted for every message added to the conversation log."""

    document_id: str
    message_id: str
    role: str
    content: str


@dataclass(slots=True)
class NoticePosted(Event):
    """Emitted when a notice should be shown to the user.

    Attributes:
        title: Short notice title.
        message: The notice text to display to the user.
        level: ``"info"`` or ``"error"``.
    """

    title: str
    message: str
    level: str = "info"


# High-frequency event types that should not log each publish
_QUIET_EVENT_TYPES: set[type] = {SaveStateChanged}


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers are stored as weak references where possible (bound methods) so
    subscribers that go away are dropped automatically.

    Thread Safety:
        This implementation is NOT thread-safe. All operations should be
        performed from the thread running the session's event loop.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        """Initialize an empty event bus."""
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register a handler to receive events of the specified type.

        Args:
            event_type: The class of events to subscribe to.
            handler: A callable that will be invoked with the event.
        """
        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove a previously registered handler.

        Safe to call for handlers that were never subscribed.
        """
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Broadcast an event to all registered handlers.

        Handlers are invoked synchronously in registration order. A handler
        that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if handlers is None:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug(
                "Publishing %s to %d handler(s)",
                event_type.__name__,
                len(handlers),
            )

        dead_indices: list[int] = []

        for i, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(i)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for i in reversed(dead_indices):
            handlers.pop(i)

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of registered handlers, optionally for one event type."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Wrapper holding a weak reference for bound methods, a strong one otherwise."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    """Get a human-readable name for a handler for logging purposes."""
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    # Core infrastructure
    "Event",
    "EventBus",
    "Handler",
    # Document events
    "DocumentModified",
    "DocumentSaved",
    "SaveFailed",
    "SaveStateChanged",
    # Transform & chat events
    "ChatMessageAppended",
    "NoticePosted",
    "TransformApplied",
    "TransformFailed",
]
