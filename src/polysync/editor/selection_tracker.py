"""Capture selections at the moment an in-place transformation trigger fires."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from .document_model import Selection

LOGGER = logging.getLogger(__name__)

TRIGGER_KEY = "@"
DISMISS_KEY = "Escape"


@dataclass(slots=True, frozen=True)
class CaretContext:
    """Caret/selection context reported by the editing surface."""

    anchor_offset: int = 0
    focus_offset: int = 0


@runtime_checkable
class SupportsCaret(Protocol):
    """Anything exposing anchor/focus offsets can act as a caret context."""

    anchor_offset: int
    focus_offset: int


CaretLike = CaretContext | SupportsCaret | Mapping[str, Any] | Sequence[int] | None


def is_trigger_key(key: str) -> bool:
    """Return ``True`` when ``key`` opens the in-place action menu."""

    return key == TRIGGER_KEY


def is_dismiss_key(key: str) -> bool:
    return key == DISMISS_KEY


def capture_trigger(document_content: str, caret_context: CaretLike) -> Selection:
    """Return the highlighted substring of ``document_content`` and its offsets.

    Offsets are clamped into the content and an inverted (backwards) selection
    keeps its anchor/focus order. A collapsed caret yields an empty selection,
    meaning the transform is appended.
    """

    text = document_content or ""
    length = len(text)
    anchor, focus = _coerce_offsets(caret_context, default=length)
    anchor = _clamp(anchor, length)
    focus = _clamp(focus, length)
    start, end = min(anchor, focus), max(anchor, focus)
    if start == end:
        return Selection(text="", anchor_offset=anchor, focus_offset=focus, content_length=length)
    return Selection(
        text=text[start:end],
        anchor_offset=anchor,
        focus_offset=focus,
        content_length=length,
    )


def revalidate(selection: Selection, document_content: str) -> Selection:
    """Check a previously captured selection against the current content.

    A selection survives only when its span still holds the same text. When the
    content shrank below a captured offset, or the span now holds different
    text, an empty selection is returned so the caller appends instead.
    """

    if selection.is_empty:
        return selection
    text = document_content or ""
    if selection.end > len(text):
        LOGGER.debug(
            "Selection %s is stale: content shrank to %s characters",
            selection.as_tuple(),
            len(text),
        )
        return Selection.empty(len(text))
    if text[selection.start : selection.end] != selection.text:
        LOGGER.debug("Selection %s no longer matches the document text", selection.as_tuple())
        return Selection.empty(len(text))
    if selection.content_length == len(text):
        return selection
    return Selection(
        text=selection.text,
        anchor_offset=selection.anchor_offset,
        focus_offset=selection.focus_offset,
        content_length=len(text),
    )


def is_stale(selection: Selection, document_content: str) -> bool:
    if selection.is_empty:
        return False
    return revalidate(selection, document_content).is_empty


def _coerce_offsets(caret_context: CaretLike, *, default: int) -> tuple[int, int]:
    if caret_context is None:
        return default, default
    if isinstance(caret_context, Mapping):
        anchor = caret_context.get("anchor_offset", caret_context.get("anchorOffset", caret_context.get("start")))
        focus = caret_context.get("focus_offset", caret_context.get("focusOffset", caret_context.get("end")))
        if anchor is None and focus is None:
            return default, default
        anchor = focus if anchor is None else anchor
        focus = anchor if focus is None else focus
        return _as_int(anchor, default), _as_int(focus, default)
    if isinstance(caret_context, SupportsCaret):
        return _as_int(caret_context.anchor_offset, default), _as_int(caret_context.focus_offset, default)
    if isinstance(caret_context, Sequence) and not isinstance(caret_context, (str, bytes)):
        values = list(caret_context)
        if len(values) == 2:
            return _as_int(values[0], default), _as_int(values[1], default)
    LOGGER.debug("Unsupported caret context %r; treating as caret at end", caret_context)
    return default, default


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _clamp(offset: int, length: int) -> int:
    return max(0, min(offset, length))


__all__ = [
    "CaretContext",
    "DISMISS_KEY",
    "SupportsCaret",
    "TRIGGER_KEY",
    "capture_trigger",
    "is_dismiss_key",
    "is_stale",
    "is_trigger_key",
    "revalidate",
]
