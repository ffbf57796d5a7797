"""File IO helpers for store files, settings, and exports."""

from __future__ import annotations

import codecs
import locale
import os
import re
import tempfile
from pathlib import Path

__all__ = [
    "export_filename",
    "read_text",
    "write_text",
]

_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
}
_EXTENSION_RE = re.compile(r"\.[^/.]+$")


def read_text(path: Path | str, *, encoding: str | None = None, errors: str = "strict") -> str:
    """Read a text file, detecting BOMs and falling back through common encodings."""

    raw = Path(path).read_bytes()
    detected_encoding = encoding or _detect_encoding(raw)
    text = raw.decode(detected_encoding, errors=errors)
    return text[1:] if text.startswith("\ufeff") else text


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    atomic: bool = True,
) -> Path:
    """Write text to disk, replacing the target atomically by default."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if not atomic:
        with target.open("w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        return target

    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return target


def export_filename(document_name: str, suffix: str = ".html") -> str:
    """Return ``document_name`` with its extension swapped for ``suffix``."""

    stem = _EXTENSION_RE.sub("", (document_name or "").strip())
    stem = re.sub(r"[\\/:*?\"<>|]", "_", stem).strip()
    return f"{stem or 'document'}{suffix}"


def _detect_encoding(raw: bytes) -> str:
    for bom, encoding in _BOM_MAP.items():
        if raw.startswith(bom):
            return encoding

    preferred = locale.getpreferredencoding(False) or "utf-8"
    seen: set[str] = set()
    for candidate in ("utf-8", preferred, "latin-1"):
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        try:
            raw.decode(candidate)
            return candidate
        except UnicodeDecodeError:
            continue
    return "utf-8"
