"""Command-line bootstrap for the PolySync editing engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import ClientSettings, OpenAITransformProvider
from .ai.intents import action_ids
from .ai.provider import CannedTransformProvider, TransformProvider
from .editor.transforms import ReplacementMode
from .errors import NotFoundError, PolySyncError
from .events import NoticePosted
from .services.documents import DocumentRepository
from .services.kv_store import JsonFileKeyValueStore
from .services.save_coordinator import SaveTrigger
from .services.settings import Settings, SettingsStore, redact_secret
from .session import EditorSession
from .utils import logging as logging_utils
from .utils.file_io import read_text

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

    log_path = logging_utils.setup_logging(debug, force=force)
    _LOGGER.debug("Logging configured (debug=%s, file=%s)", debug, log_path)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_provider(settings: Settings) -> TransformProvider:
    """Construct the transform provider selected in ``settings``."""

    if settings.provider == "openai":
        if settings.api_key:
            client_settings = ClientSettings(
                base_url=settings.base_url,
                api_key=settings.api_key,
                model=settings.model,
                organization=settings.organization,
                request_timeout=settings.request_timeout,
                max_retries=settings.max_retries,
                retry_min_seconds=settings.retry_min_seconds,
                retry_max_seconds=settings.retry_max_seconds,
                temperature=settings.temperature,
                default_headers=settings.default_headers,
            )
            return OpenAITransformProvider(client_settings)
        _LOGGER.warning("OpenAI provider selected without an API key; using canned responses.")
    return CannedTransformProvider(latency=(settings.latency_min, settings.latency_max))


def open_session(settings: Settings, document_id: str, *, provider: TransformProvider | None = None) -> EditorSession:
    """Open ``document_id`` from the configured store."""

    try:
        mode = ReplacementMode(settings.replacement_mode)
    except ValueError:
        _LOGGER.warning("Unknown replacement mode %r; using first occurrence.", settings.replacement_mode)
        mode = ReplacementMode.FIRST_OCCURRENCE
    return EditorSession.open(
        document_id,
        store=_open_store(settings),
        provider=provider or build_provider(settings),
        replacement_mode=mode,
        save_delay=settings.save_delay,
        autosave_interval=settings.autosave_interval,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `polysync` console script."""

    args = _parse_cli_args(argv)

    debug = _env_flag("POLYSYNC_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("POLYSYNC_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.command is None:
        print("No command given; run with --help for usage.", file=sys.stderr)
        return 2

    try:
        return _dispatch(args, settings)
    except NotFoundError as exc:
        print(exc.message, file=sys.stderr)
        return 1
    except PolySyncError as exc:
        _LOGGER.error("Command %s failed: %s", args.command, exc)
        print(exc.message, file=sys.stderr)
        return 1


def _dispatch(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "demo":
        document = DocumentRepository(_open_store(settings)).create_demo()
        print(document.id)
        return 0
    if args.command == "new":
        content = read_text(args.file) if args.file else ""
        document = DocumentRepository(_open_store(settings)).create(args.name, content)
        print(document.id)
        return 0
    if args.command == "show":
        session = open_session(settings, args.document_id)
        if args.chat:
            for message in session.conversation:
                print(f"[{message.role}] {message.content}")
        else:
            print(session.content)
        return 0
    if args.command == "export":
        session = open_session(settings, args.document_id)
        print(session.export_html(args.directory))
        return 0
    return asyncio.run(_run_async_command(args, settings))


async def _run_async_command(args: argparse.Namespace, settings: Settings) -> int:
    session = open_session(settings, args.document_id)
    session.bus.subscribe(NoticePosted, _print_notice)
    try:
        if args.command == "transform":
            outcome = await session.run_action(args.action, args.range)
            if not outcome.ok:
                return 1
            result = await session.save(SaveTrigger.MANUAL)
            print(session.content)
            return 0 if result.ok else 1
        if args.command == "chat":
            outcome = await session.send_message(args.message, args.range, apply=args.apply)
            if outcome is None:
                return 0
            if outcome.reply is not None:
                print(outcome.reply.content)
            if outcome.applied is not None and outcome.applied.ok:
                await session.save(SaveTrigger.MANUAL)
            return 0 if outcome.ok else 1
        if args.command == "save":
            result = await session.save(SaveTrigger.MANUAL)
            print(session.save_state.indicator_text())
            return 0 if result.ok else 1
    finally:
        session.bus.unsubscribe(NoticePosted, _print_notice)
        await session.close()
        close = getattr(session.provider, "aclose", None)
        if close is not None:
            await close()
    raise ValueError(f"Unknown command {args.command!r}")


def _print_notice(notice: NoticePosted) -> None:
    if notice.level == "error":
        print(f"{notice.title}: {notice.message}", file=sys.stderr)


def _open_store(settings: Settings) -> JsonFileKeyValueStore:
    return JsonFileKeyValueStore(Path(settings.store_path).expanduser())


def _parse_range(value: str) -> tuple[int, int]:
    start, sep, end = value.partition(":")
    try:
        if not sep:
            return (int(start), int(start))
        return (int(start), int(end))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid range {value!r}; expected START:END") from exc


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="polysync",
        description="Edit stored policy documents with selection-scoped AI transforms.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.polysync/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("demo", help="Create the demo policy document and print its id.")

    new = commands.add_parser("new", help="Create a document and print its id.")
    new.add_argument("name")
    new.add_argument("--file", metavar="PATH", help="Read the initial content from a file.")

    show = commands.add_parser("show", help="Print a document's content.")
    show.add_argument("document_id")
    show.add_argument("--chat", action="store_true", help="Print the conversation log instead.")

    export = commands.add_parser("export", help="Export a document as <name>.html.")
    export.add_argument("document_id")
    export.add_argument("--directory", default=".", metavar="DIR")

    transform = commands.add_parser("transform", help="Run a menu action on a selection.")
    transform.add_argument("document_id")
    transform.add_argument("action", choices=action_ids())
    transform.add_argument("--range", metavar="START:END", type=_parse_range, help="Selection offsets; defaults to the end.")

    chat = commands.add_parser("chat", help="Send a chat message about a document.")
    chat.add_argument("document_id")
    chat.add_argument("message")
    chat.add_argument("--range", metavar="START:END", type=_parse_range, help="Selection used when --apply splices text.")
    chat.add_argument("--apply", action="store_true", help="Apply summarize/rephrase/compliance requests.")

    save = commands.add_parser("save", help="Persist a document and print the save indicator.")
    save.add_argument("document_id")
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if normalized.lower() in {"none", "null"} and _is_optional(annotation):
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.name,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": payload, "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("POLYSYNC_"))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
