"""Splice generated text back into a document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..ai.intents import TransformIntent
from ..errors import ErrorCode, ValidationError
from .document_model import Selection
from .selection_tracker import revalidate

LOGGER = logging.getLogger(__name__)


class ReplacementMode(str, Enum):
    """How a non-empty selection is located in the document."""

    # Replace the first occurrence of the selected text anywhere in the document
    FIRST_OCCURRENCE = "first_occurrence"
    # Replace the captured span when it still holds the selected text
    OFFSET = "offset"


class ApplyStrategy(str, Enum):
    REPLACE = "replace"
    APPEND = "append"


@dataclass(slots=True)
class TransformResult:
    """Result of applying generated text to a document."""

    text: str
    intent: TransformIntent
    strategy: ApplyStrategy
    span: Tuple[int, int]
    fallback: bool = False
    fallback_reason: Optional[str] = None


@dataclass(slots=True)
class TransformApplicator:
    """Compute the new full document for a transform's generated output.

    With a selection, the selected text is replaced by the generated text; with
    an empty selection the generated text is appended. A selection whose offsets
    run past the current content, or whose text can no longer be found, falls
    back to appending so the generated content is kept.
    """

    mode: ReplacementMode = ReplacementMode.FIRST_OCCURRENCE

    def apply(
        self,
        intent: TransformIntent,
        selection: Selection,
        full_document: str,
        generated: str,
    ) -> str:
        return self.apply_transform(intent, selection, full_document, generated).text

    def apply_transform(
        self,
        intent: TransformIntent,
        selection: Selection,
        full_document: str,
        generated: str,
    ) -> TransformResult:
        document = full_document or ""
        if selection.is_empty:
            return self._append(intent, document, generated)
        if selection.end > len(document):
            LOGGER.info(
                "Selection %s is past the end of the document (%s characters); appending generated text",
                selection.as_tuple(),
                len(document),
            )
            return self._append(intent, document, generated, reason=ErrorCode.STALE_SELECTION)

        if self.mode is ReplacementMode.OFFSET:
            current = revalidate(selection, document)
            if not current.is_empty:
                return self._replace_span(intent, document, generated, current.start, current.end)
            LOGGER.debug("Offset selection did not validate; trying first occurrence")

        index = document.find(selection.text)
        if index < 0:
            error = ValidationError(
                error_code=ErrorCode.STALE_SELECTION,
                message="Selected text is no longer present in the document",
                details={"selection": selection.as_tuple()},
            )
            LOGGER.info("Recovered from %s; appending generated text", error)
            return self._append(intent, document, generated, reason=error.error_code)
        return self._replace_span(intent, document, generated, index, index + len(selection.text))

    @staticmethod
    def _replace_span(
        intent: TransformIntent,
        document: str,
        generated: str,
        start: int,
        end: int,
    ) -> TransformResult:
        text = document[:start] + generated + document[end:]
        return TransformResult(
            text=text,
            intent=intent,
            strategy=ApplyStrategy.REPLACE,
            span=(start, start + len(generated)),
        )

    @staticmethod
    def _append(
        intent: TransformIntent,
        document: str,
        generated: str,
        *,
        reason: str | None = None,
    ) -> TransformResult:
        start = len(document)
        return TransformResult(
            text=document + generated,
            intent=intent,
            strategy=ApplyStrategy.APPEND,
            span=(start, start + len(generated)),
            fallback=reason is not None,
            fallback_reason=reason,
        )


def apply(
    intent: TransformIntent,
    selection: Selection,
    full_document: str,
    generated: str,
    *,
    mode: ReplacementMode = ReplacementMode.FIRST_OCCURRENCE,
) -> str:
    """Functional shortcut for :meth:`TransformApplicator.apply`."""

    return TransformApplicator(mode=mode).apply(intent, selection, full_document, generated)


__all__ = [
    "ApplyStrategy",
    "ReplacementMode",
    "TransformApplicator",
    "TransformResult",
    "apply",
]
