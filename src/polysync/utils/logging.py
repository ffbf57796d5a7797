"""Logging setup for PolySync.

Records are written to a rotating ``polysync.log`` and, in debug mode, echoed to
the console. Every line carries the id of the document being worked on, taken
from :func:`document_context`, so interleaved sessions stay readable.
"""

from __future__ import annotations

import contextlib
import contextvars
import functools
import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterator, TypeVar

__all__ = [
    "DocumentContextFilter",
    "current_document_id",
    "document_context",
    "document_scoped",
    "get_log_path",
    "setup_logging",
]

_DEFAULT_LOG_DIR = Path.home() / ".polysync" / "logs"
_LOG_FILENAME = "polysync.log"
_NO_DOCUMENT = "-"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | [%(document_id)s] %(message)s"
# Client libraries log every request at INFO/DEBUG.
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")

_document_id: contextvars.ContextVar[str] = contextvars.ContextVar("polysync_document_id", default=_NO_DOCUMENT)
_LOG_PATH: Path | None = None

_R = TypeVar("_R")


class DocumentContextFilter(logging.Filter):
    """Stamp ``record.document_id`` with the active document, or ``"-"``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "document_id"):
            record.document_id = _document_id.get()
        return True


@contextlib.contextmanager
def document_context(document_id: str) -> Iterator[None]:
    """Tag log records emitted inside the block with ``document_id``."""

    token = _document_id.set(document_id or _NO_DOCUMENT)
    try:
        yield
    finally:
        _document_id.reset(token)


def document_scoped(
    method: Callable[..., Awaitable[_R]],
) -> Callable[..., Awaitable[_R]]:
    """Run an async method of an object with a ``document_id`` inside its document context."""

    @functools.wraps(method)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> _R:
        with document_context(self.document_id):
            return await method(self, *args, **kwargs)

    return wrapper


def current_document_id() -> str | None:
    value = _document_id.get()
    return None if value == _NO_DOCUMENT else value


def setup_logging(
    debug: bool = False,
    *,
    log_dir: Path | str | None = None,
    console: bool | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install the rotating file handler, plus a console handler in debug mode.

    Runs once per process unless ``force`` is set. Returns the log file path.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    level = logging.DEBUG if debug else logging.INFO
    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILENAME

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    context_filter = DocumentContextFilter()
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    show_console = debug if console is None else console
    if show_console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    quiet_level = max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the log file installed by :func:`setup_logging`, if any."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    return Path(log_dir or os.environ.get("POLYSYNC_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
