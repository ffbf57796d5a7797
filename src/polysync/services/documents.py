"""Document repository over the key-value store."""

from __future__ import annotations

import logging
import time
from typing import Callable

from ..editor.document_model import Document
from ..errors import ErrorCode, NotFoundError, StoreError
from .kv_store import KeyValueStore, doc_key
from .schemas import DOCUMENT_VALIDATOR, decode_record, encode_record

__all__ = ["DEMO_DOCUMENT_NAME", "DocumentRepository"]

LOGGER = logging.getLogger(__name__)

DEMO_DOCUMENT_NAME = "Employee Remote Work Policy (Demo)"
DEMO_DOCUMENT_TYPE = "demo"
_DEMO_CONTENT = """
<h1>Employee Remote Work Policy</h1>
<h2>Effective Date: January 2024</h2>

<p>This policy establishes guidelines for remote work arrangements to ensure productivity, security, and work-life balance for all employees.</p>

<h3>1. Eligibility and Approval</h3>
<p>Remote work arrangements are available to employees whose roles can be effectively performed outside the traditional office environment. All remote work must be pre-approved by direct supervisors and HR.</p>

<h3>2. Work Hours and Availability</h3>
<p>Remote employees are expected to maintain regular business hours and be available for communication during core business hours (9 AM - 3 PM local time). Flexibility in scheduling is permitted with supervisor approval.</p>

<h3>3. Communication Requirements</h3>
<ul>
  <li>Daily check-ins with team members</li>
  <li>Weekly one-on-one meetings with supervisors</li>
  <li>Prompt response to emails and messages during business hours</li>
  <li>Participation in scheduled video conferences and team meetings</li>
</ul>

<h3>4. Technology and Security</h3>
<p>Employees must use company-approved devices and software for all work-related activities. VPN access is required for accessing company systems remotely.</p>

<h3>5. Performance Standards</h3>
<p>Remote work performance will be evaluated based on deliverables, quality of work, and adherence to deadlines rather than hours worked. Regular performance reviews will assess remote work effectiveness.</p>

<h3>6. Home Office Requirements</h3>
<p>Employees must maintain a dedicated, professional workspace that is free from distractions and conducive to productivity. The workspace should have reliable internet connectivity and appropriate lighting.</p>
"""


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class DocumentRepository:
    """Persistence adapter for :class:`Document` records under ``doc_<id>``."""

    def __init__(self, store: KeyValueStore, *, clock_ms: Callable[[], int] = _now_ms) -> None:
        self._store = store
        self._clock_ms = clock_ms
        self._last_id = 0

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def load(self, document_id: str) -> Document:
        """Return the stored document or raise :class:`NotFoundError`."""

        key = doc_key(document_id)
        raw = self._store.get(key)
        if raw is None:
            raise NotFoundError(document_id=document_id)
        record = decode_record(raw, DOCUMENT_VALIDATOR, key=key)
        try:
            document = Document.from_record(record)
        except ValueError as exc:
            raise StoreError(
                error_code=ErrorCode.MALFORMED_RECORD,
                message=f"Stored record {key!r} has an invalid timestamp: {exc}",
                key=key,
            ) from exc
        LOGGER.debug("Loaded document %s (%d chars)", document_id, len(document.content))
        return document

    def exists(self, document_id: str) -> bool:
        return self._store.get(doc_key(document_id)) is not None

    def save(self, document: Document, *, content: str | None = None) -> None:
        """Write ``document``; ``content`` overrides the body being persisted."""

        record = document.to_record()
        if content is not None:
            record["content"] = content
        key = doc_key(document.id)
        try:
            self._store.set(key, encode_record(record))
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(message=f"Unable to save document: {exc}", key=key) from exc
        LOGGER.debug("Saved document %s (%d chars)", document.id, len(record["content"]))

    def create(self, name: str, content: str, *, type: str = "text/html", prefix: str = "") -> Document:
        """Store a new document under a fresh millisecond id."""

        document = Document(id=f"{prefix}{self._next_id()}", name=name, content=content, type=type)
        self.save(document)
        LOGGER.info("Created document %s (%s)", document.id, name)
        return document

    def create_demo(self) -> Document:
        return self.create(DEMO_DOCUMENT_NAME, _DEMO_CONTENT, type=DEMO_DOCUMENT_TYPE, prefix="demo-")

    def _next_id(self) -> int:
        candidate = max(int(self._clock_ms()), self._last_id + 1)
        self._last_id = candidate
        return candidate
