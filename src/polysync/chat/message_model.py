"""Chat message and conversation log data models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Literal, Mapping

from ..editor.document_model import format_timestamp, parse_timestamp

ChatRole = Literal["user", "assistant"]

WELCOME_MESSAGE_ID = "welcome"
WELCOME_MESSAGE_CONTENT = (
    "Hi! I'm your AI assistant. I can help you improve your document by summarizing, "
    "rephrasing, adding compliance information, and more. Just ask me anything or select "
    "text and use @ for quick actions!"
)
_LEGACY_ROLES: Mapping[str, ChatRole] = {"user": "user", "ai": "assistant", "assistant": "assistant"}


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(slots=True, frozen=True)
class Message:
    """Represents one immutable turn inside the conversation log."""

    id: str
    role: ChatRole
    content: str
    timestamp: datetime = field(default_factory=_utcnow)

    def to_record(self) -> Dict[str, Any]:
        """Serialize the message for persistence."""

        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Message":
        """Build a message from a schema-validated record."""

        raw_role = record.get("role") or record.get("type") or "assistant"
        return cls(
            id=str(record["id"]),
            role=_LEGACY_ROLES[raw_role],
            content=record["content"],
            timestamp=parse_timestamp(record["timestamp"]),
        )

    @property
    def is_welcome(self) -> bool:
        return self.id == WELCOME_MESSAGE_ID


def welcome_message(*, now: Callable[[], datetime] = _utcnow) -> Message:
    return Message(id=WELCOME_MESSAGE_ID, role="assistant", content=WELCOME_MESSAGE_CONTENT, timestamp=now())


@dataclass(slots=True)
class ConversationLog:
    """Ordered, append-only message history for one document.

    Message ids are millisecond timestamps bumped when needed so that every id
    is strictly greater than the previous one.
    """

    document_id: str
    messages: List[Message] = field(default_factory=list)
    clock_ms: Callable[[], int] = field(default=_now_ms, repr=False, compare=False)
    _last_id: int = field(default=0, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for message in self.messages:
            numeric = _numeric_id(message.id)
            if numeric is not None and numeric > self._last_id:
                self._last_id = numeric

    def append_user_message(self, text: str) -> Message:
        return self._append("user", text)

    def append_assistant_message(self, text: str) -> Message:
        return self._append("assistant", text)

    @property
    def is_welcome_only(self) -> bool:
        """``True`` while the log holds nothing but the synthesized welcome message."""

        return len(self.messages) == 1 and self.messages[0].is_welcome

    def to_records(self) -> List[Dict[str, Any]]:
        return [message.to_record() for message in self.messages]

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self.messages))

    def __len__(self) -> int:
        return len(self.messages)

    def _append(self, role: ChatRole, text: str) -> Message:
        message = Message(id=self._next_id(), role=role, content=text)
        self.messages.append(message)
        return message

    def _next_id(self) -> str:
        candidate = max(int(self.clock_ms()), self._last_id + 1)
        self._last_id = candidate
        return str(candidate)


def _numeric_id(value: str) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


__all__ = [
    "ChatRole",
    "ConversationLog",
    "Message",
    "WELCOME_MESSAGE_CONTENT",
    "WELCOME_MESSAGE_ID",
    "welcome_message",
]
