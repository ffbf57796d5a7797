"""Key-value persistence capability and its in-memory and file-backed stores."""

from __future__ import annotations

import base64
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Protocol, runtime_checkable

from ..errors import ErrorCode, StoreError
from ..utils.file_io import write_text

__all__ = [
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "chat_key",
    "doc_key",
]

LOGGER = logging.getLogger(__name__)
_STORE_VERSION = 1
DOC_PREFIX = "doc_"
CHAT_PREFIX = "chat_"


def doc_key(document_id: str) -> str:
    return f"{DOC_PREFIX}{document_id}"


def chat_key(document_id: str) -> str:
    return f"{CHAT_PREFIX}{document_id}"


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal byte-oriented store injected into the engine."""

    def get(self, key: str) -> bytes | None:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class InMemoryKeyValueStore:
    """Dictionary-backed store; records every write for inspection."""

    def __init__(self, initial: Mapping[str, bytes] | None = None) -> None:
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()
        self.write_count = 0

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError("Store values must be bytes")
        with self._lock:
            self._data[key] = bytes(value)
            self.write_count += 1

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(key for key in self._data if key.startswith(prefix))

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class JsonFileKeyValueStore:
    """Persist every key in a single JSON file using atomic replaces.

    Values are stored base64-encoded so arbitrary bytes survive the JSON layer.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> bytes | None:
        with self._lock:
            entries = self._read_entries()
        encoded = entries.get(key)
        if encoded is None:
            return None
        try:
            return base64.b64decode(encoded.encode("ascii"), validate=True)
        except (ValueError, UnicodeEncodeError) as exc:
            raise StoreError(
                error_code=ErrorCode.MALFORMED_RECORD,
                message=f"Stored value for {key!r} is not valid base64",
                key=key,
            ) from exc

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            entries = self._read_entries()
            entries[key] = base64.b64encode(bytes(value)).decode("ascii")
            payload = {"version": _STORE_VERSION, "entries": entries}
            body = json.dumps(payload, indent=2, sort_keys=True)
            try:
                write_text(self._path, body, atomic=True)
            except OSError as exc:
                raise StoreError(
                    message=f"Unable to write {self._path}: {exc}",
                    key=key,
                ) from exc

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            entries = self._read_entries()
        return sorted(key for key in entries if key.startswith(prefix))

    def _read_entries(self) -> dict[str, str]:
        payload = self._read_payload()
        entries = payload.get("entries")
        if not isinstance(entries, Mapping):
            return {}
        return {str(key): value for key, value in entries.items() if isinstance(value, str)}

    def _read_payload(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            data = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            raise StoreError(
                error_code=ErrorCode.MALFORMED_RECORD,
                message=f"Store file {self._path} is not valid JSON: {exc}",
            ) from exc
        if isinstance(data, Mapping):
            return dict(data)
        LOGGER.warning("Store file %s has unexpected top-level type %s", self._path, type(data).__name__)
        return {}
