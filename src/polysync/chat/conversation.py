"""Load and persist per-document conversation logs."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ..errors import ErrorCode, StoreError
from ..services.kv_store import KeyValueStore, chat_key
from ..services.schemas import CONVERSATION_VALIDATOR, decode_record, encode_record
from .message_model import ConversationLog, Message, _utcnow, welcome_message

LOGGER = logging.getLogger(__name__)


class ConversationStore:
    """Persistence adapter for :class:`ConversationLog` records under ``chat_<id>``."""

    def __init__(self, store: KeyValueStore, *, now: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._now = now

    def load(self, document_id: str) -> ConversationLog:
        """Return the stored log, or a fresh log holding only the welcome message."""

        key = chat_key(document_id)
        raw = self._store.get(key)
        if raw is None:
            LOGGER.debug("No chat history for %s; synthesizing welcome message", document_id)
            return ConversationLog(document_id=document_id, messages=[welcome_message(now=self._now)])
        payload = decode_record(raw, CONVERSATION_VALIDATOR, key=key)
        records = payload if isinstance(payload, list) else payload["messages"]
        try:
            messages = [Message.from_record(record) for record in records]
        except (KeyError, ValueError) as exc:
            raise StoreError(
                error_code=ErrorCode.MALFORMED_RECORD,
                message=f"Stored chat history {key!r} could not be decoded: {exc}",
                key=key,
            ) from exc
        if not messages:
            messages = [welcome_message(now=self._now)]
        LOGGER.debug("Loaded %d chat message(s) for %s", len(messages), document_id)
        return ConversationLog(document_id=document_id, messages=messages)

    def persist(self, log: ConversationLog) -> bool:
        """Write ``log`` unless it holds only the welcome message.

        Returns ``True`` when a write was issued.
        """

        if log.is_welcome_only or not log.messages:
            return False
        key = chat_key(log.document_id)
        body = encode_record(log.to_records())
        try:
            self._store.set(key, body)
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(message=f"Unable to save chat history: {exc}", key=key) from exc
        LOGGER.debug("Persisted %d chat message(s) for %s", len(log.messages), log.document_id)
        return True


__all__ = ["ConversationStore"]
