"""Editing session for one open document.

The session owns the document content and wires the selection tracker,
request classifier, transform applicator, conversation log, and save
coordinator together. The editing surface talks to the session and listens on
its :class:`EventBus`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .ai.classifier import Classification, classify_message, intent_for_action
from .ai.intents import RequestMode, TransformIntent
from .ai.provider import TransformProvider, require_text
from .chat.conversation import ConversationStore
from .chat.message_model import ConversationLog, Message
from .editor.document_model import Document, SaveState, Selection
from .editor.selection_tracker import CaretLike, capture_trigger, is_dismiss_key, is_trigger_key
from .editor.transforms import ReplacementMode, TransformApplicator, TransformResult
from .errors import ErrorCode, ProviderError, StoreError
from .events import (
    ChatMessageAppended,
    DocumentModified,
    EventBus,
    NoticePosted,
    TransformApplied,
    TransformFailed,
)
from .services.documents import DocumentRepository
from .services.kv_store import KeyValueStore
from .services.save_coordinator import AutosaveTimer, SaveCoordinator, SaveOutcome, SaveResult, SaveTrigger
from .utils.file_io import export_filename, write_text
from .utils.logging import document_scoped

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TransformOutcome:
    """Result of an in-place transform request."""

    intent: TransformIntent
    selection: Selection
    result: Optional[TransformResult] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class ChatOutcome:
    """Result of a chat-mode request."""

    classification: Classification
    user_message: Message
    reply: Optional[Message] = None
    applied: Optional[TransformOutcome] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class EditorSession:
    """Single logical thread of control over one open document."""

    def __init__(
        self,
        document: Document,
        *,
        repository: DocumentRepository,
        conversations: ConversationStore,
        provider: TransformProvider,
        bus: EventBus | None = None,
        applicator: TransformApplicator | None = None,
        save_delay: float = 0.0,
        autosave_interval: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._document = document
        self._repository = repository
        self._conversations = conversations
        self._provider = provider
        self._bus = bus or EventBus()
        self._applicator = applicator or TransformApplicator()
        self._save_delay = max(0.0, float(save_delay))
        self._sleep = sleep or asyncio.sleep
        self._conversation = conversations.load(document.id)
        self._pending_selection: Selection | None = None
        self._saver = SaveCoordinator(self._write_document, document_id=document.id, bus=self._bus)
        self._autosave = AutosaveTimer(
            self._saver,
            interval=autosave_interval,
            sleep=self._sleep,
            save=self.save,
        )

    @classmethod
    def open(
        cls,
        document_id: str,
        *,
        store: KeyValueStore,
        provider: TransformProvider,
        bus: EventBus | None = None,
        replacement_mode: ReplacementMode = ReplacementMode.FIRST_OCCURRENCE,
        save_delay: float = 0.0,
        autosave_interval: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> "EditorSession":
        """Load ``document_id`` from ``store``.

        Raises :class:`NotFoundError` when no record exists; the caller must
        leave the editor rather than operate on an empty document.
        """

        repository = DocumentRepository(store)
        document = repository.load(document_id)
        LOGGER.info("Opened document %s (%s)", document.id, document.name)
        return cls(
            document,
            repository=repository,
            conversations=ConversationStore(store),
            provider=provider,
            bus=bus,
            applicator=TransformApplicator(mode=replacement_mode),
            save_delay=save_delay,
            autosave_interval=autosave_interval,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # Public State
    # ------------------------------------------------------------------

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def provider(self) -> TransformProvider:
        return self._provider

    @property
    def document(self) -> Document:
        return self._document

    @property
    def document_id(self) -> str:
        return self._document.id

    @property
    def content(self) -> str:
        return self._document.content

    @property
    def conversation(self) -> ConversationLog:
        return self._conversation

    @property
    def save_state(self) -> SaveState:
        return self._saver.state

    @property
    def save_coordinator(self) -> SaveCoordinator:
        return self._saver

    @property
    def autosave(self) -> AutosaveTimer:
        return self._autosave

    @property
    def pending_selection(self) -> Selection | None:
        """Selection captured when the action menu was opened, if still open."""
        return self._pending_selection

    # ------------------------------------------------------------------
    # Editing surface input
    # ------------------------------------------------------------------

    def edit(self, new_content: str) -> bool:
        """Apply a direct user edit. Returns ``False`` when nothing changed."""

        return self._commit(new_content, source="edit")

    def handle_key(self, key: str, caret: CaretLike = None) -> Selection | None:
        """Feed a keystroke; the trigger key captures the selection and opens the menu."""

        if is_trigger_key(key):
            self._pending_selection = capture_trigger(self.content, caret)
            LOGGER.debug("Action menu opened for selection %s", self._pending_selection.as_tuple())
            return self._pending_selection
        if is_dismiss_key(key) and self._pending_selection is not None:
            LOGGER.debug("Action menu dismissed")
            self._pending_selection = None
        return None

    def capture_selection(self, caret: CaretLike = None) -> Selection:
        return capture_trigger(self.content, caret)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    async def run_action(
        self,
        action_id: str,
        caret: CaretLike = None,
        *,
        selection: Selection | None = None,
    ) -> TransformOutcome:
        """Run a structured menu action such as ``"summarize"``."""

        return await self.transform(intent_for_action(action_id), caret, selection=selection)

    @document_scoped
    async def transform(
        self,
        intent: TransformIntent,
        caret: CaretLike = None,
        *,
        selection: Selection | None = None,
    ) -> TransformOutcome:
        """Generate text for ``intent`` and splice it into the current content.

        The selection is taken from ``selection``, else from the open action
        menu, else captured from ``caret`` right now. The result is applied
        against whatever content is current when the provider responds.
        """

        if selection is None:
            selection = self._pending_selection or capture_trigger(self.content, caret)
        self._pending_selection = None

        try:
            generated = await self._generate(intent, selection.text, mode=RequestMode.INLINE)
        except ProviderError as exc:
            self._publish(TransformFailed(document_id=self.document_id, intent=intent.value, error=exc.message))
            self._notice("Error", exc.message, level="error")
            return TransformOutcome(intent=intent, selection=selection, error=exc)

        result = self._applicator.apply_transform(intent, selection, self.content, generated)
        self._commit(result.text, source="transform")
        self._publish(
            TransformApplied(
                document_id=self.document_id,
                intent=intent.value,
                strategy=result.strategy.value,
                span=result.span,
                fallback=result.fallback,
            )
        )
        LOGGER.info(
            "Applied %s to %s (%s, span=%s)",
            intent.value,
            self.document_id,
            result.strategy.value,
            result.span,
        )
        return TransformOutcome(intent=intent, selection=selection, result=result)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    @document_scoped
    async def send_message(
        self,
        text: str,
        caret: CaretLike = None,
        *,
        apply: bool = False,
    ) -> ChatOutcome | None:
        """Record a chat request, ask the provider, and record the reply.

        Returns ``None`` for an empty message. With ``apply=True`` a message that
        classifies to a document-mutating intent also runs that transform.
        """

        message = (text or "").strip()
        if not message:
            LOGGER.debug("Ignoring empty chat message (%s)", ErrorCode.EMPTY_REQUEST)
            return None

        user_message = self._append_message(self._conversation.append_user_message(message))
        classification = classify_message(message)
        context = _chat_context(self.content, message)
        try:
            reply_text = await self._generate(
                classification.intent,
                context,
                mode=RequestMode.CHAT,
                suggestion=classification.suggestion,
            )
        except ProviderError as exc:
            self._notice("Error", exc.message, level="error")
            return ChatOutcome(classification=classification, user_message=user_message, error=exc)

        reply = self._append_message(self._conversation.append_assistant_message(reply_text))
        outcome = ChatOutcome(classification=classification, user_message=user_message, reply=reply)
        if apply and classification.mutates_document:
            outcome.applied = await self.transform(classification.intent, caret)
        return outcome

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @document_scoped
    async def save(self, trigger: SaveTrigger = SaveTrigger.MANUAL) -> SaveResult:
        result = await self._saver.save(trigger)
        if result.outcome is SaveOutcome.SAVED:
            self._notice("Document saved", "Your changes have been saved automatically.")
        elif result.outcome is SaveOutcome.FAILED and result.error is not None:
            self._notice("Save failed", result.error.message, level="error")
        return result

    def start_autosave(self) -> None:
        self._autosave.start()

    async def close(self) -> None:
        await self._autosave.stop()

    def export_html(self, directory: Path | str) -> Path:
        """Write the current content to ``<name>.html`` inside ``directory``."""

        target = Path(directory) / export_filename(self._document.name)
        write_text(target, self.content, atomic=True)
        self._notice("Document exported", "Your document has been downloaded.")
        return target

    async def __aenter__(self) -> "EditorSession":
        self.start_autosave()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _generate(self, intent: TransformIntent, context_text: str, **kwargs) -> str:
        try:
            result = await self._provider.generate(intent, context_text, **kwargs)
        except ProviderError:
            raise
        except Exception as exc:
            LOGGER.exception("Transform provider raised for %s", intent.value)
            raise ProviderError(details={"intent": intent.value, "reason": str(exc)}) from exc
        return require_text(result, intent=intent)

    def _commit(self, new_content: str, *, source: str) -> bool:
        if not self._document.update_content(new_content):
            return False
        self._saver.mark_dirty()
        self._publish(
            DocumentModified(
                document_id=self.document_id,
                content=new_content,
                version_id=self._document.version_id,
                source=source,
            )
        )
        return True

    def _append_message(self, message: Message) -> Message:
        self._publish(
            ChatMessageAppended(
                document_id=self.document_id,
                message_id=message.id,
                role=message.role,
                content=message.content,
            )
        )
        try:
            self._conversations.persist(self._conversation)
        except StoreError as exc:
            LOGGER.warning("Chat history for %s not saved: %s", self.document_id, exc)
            self._notice("Save failed", exc.message, level="error")
        return message

    async def _write_document(self) -> None:
        content = self._document.content
        if self._save_delay > 0:
            await self._sleep(self._save_delay)
        self._repository.save(self._document, content=content)

    def _notice(self, title: str, message: str, *, level: str = "info") -> None:
        self._publish(NoticePosted(title=title, message=message, level=level))

    def _publish(self, event) -> None:
        self._bus.publish(event)


def _chat_context(document_content: str, message: str) -> str:
    return f"Document:\n{document_content}\n\nRequest:\n{message}"


__all__ = ["ChatOutcome", "EditorSession", "TransformOutcome"]
