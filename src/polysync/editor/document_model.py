"""Dataclasses representing documents, selections, and save state."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _hash_text(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as an ISO-8601 string with millisecond precision."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string, accepting the ``Z`` suffix."""

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class Document:
    """A stored document and the single source of truth for its content."""

    id: str
    name: str
    content: str = ""
    type: str = "text/html"
    # Kept as the stored ISO-8601 text so records round-trip unchanged
    uploaded_at: str = field(default_factory=lambda: format_timestamp(_utcnow()))
    updated_at: datetime = field(default_factory=_utcnow)
    version_id: int = 1
    content_hash: str = field(default_factory=str)

    def __post_init__(self) -> None:
        if not self.content_hash:
            self.content_hash = _hash_text(self.content)

    def update_content(self, new_content: str) -> bool:
        """Replace the content; return ``False`` when nothing changed."""

        if new_content == self.content:
            return False
        self.content = new_content
        self.updated_at = _utcnow()
        self.version_id += 1
        self.content_hash = _hash_text(new_content)
        return True

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the persisted record shape."""

        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "uploadedAt": self.uploaded_at,
            "content": self.content,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Document":
        """Build a document from a record already validated against its schema."""

        uploaded_at = record["uploadedAt"]
        return cls(
            id=str(record["id"]),
            name=record["name"],
            content=record["content"],
            type=record.get("type") or "text/html",
            uploaded_at=uploaded_at,
            updated_at=parse_timestamp(uploaded_at),
        )

    def version_signature(self) -> str:
        return f"{self.id}:{self.version_id}:{self.content_hash}"


@dataclass(slots=True, frozen=True)
class Selection:
    """Transient view into document content captured when a trigger fires.

    ``text`` is empty when nothing was highlighted, meaning the transform is
    applied at the caret by appending. ``content_length`` records the length of
    the content the offsets were captured against.
    """

    text: str = ""
    anchor_offset: int = 0
    focus_offset: int = 0
    content_length: int = 0

    @property
    def start(self) -> int:
        return min(self.anchor_offset, self.focus_offset)

    @property
    def end(self) -> int:
        return max(self.anchor_offset, self.focus_offset)

    @property
    def is_empty(self) -> bool:
        return not self.text

    def as_tuple(self) -> tuple[int, int]:
        """Return the normalized span for serialization."""

        return (self.start, self.end)

    @classmethod
    def empty(cls, content_length: int = 0) -> "Selection":
        """Selection meaning "append at end"."""

        return cls(text="", anchor_offset=content_length, focus_offset=content_length, content_length=content_length)


class SaveStatus(str, Enum):
    """Derived state of the save coordinator."""

    IDLE = "idle"
    SAVING = "saving"
    DIRTY = "dirty"


@dataclass(slots=True)
class SaveState:
    """Process-local save coordination state for one open document."""

    in_flight: bool = False
    last_saved_at: Optional[datetime] = None
    dirty: bool = False

    @property
    def status(self) -> SaveStatus:
        if self.in_flight:
            return SaveStatus.SAVING
        if self.dirty:
            return SaveStatus.DIRTY
        return SaveStatus.IDLE

    def indicator_text(self) -> str:
        """Text for a "last saved at / saving..." indicator."""

        if self.last_saved_at is None:
            base = "Not saved yet"
        else:
            base = f"Last saved: {self.last_saved_at.astimezone():%H:%M:%S}"
        if self.in_flight:
            return f"{base} • Saving..."
        return base


__all__ = [
    "Document",
    "SaveState",
    "SaveStatus",
    "Selection",
    "format_timestamp",
    "parse_timestamp",
]
