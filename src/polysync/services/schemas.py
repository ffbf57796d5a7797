"""JSON schemas and decode helpers for persisted records."""

from __future__ import annotations

import json
from json import JSONDecodeError
from typing import Any, Dict

from jsonschema import Draft7Validator, ValidationError as SchemaValidationError

from ..errors import ErrorCode, StoreError

_TIMESTAMP_SCHEMA: Dict[str, Any] = {
    "type": "string",
    "minLength": 10,
    "pattern": r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}",
}

DOCUMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["id", "name", "uploadedAt", "content"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string"},
        "type": {"type": "string"},
        "uploadedAt": _TIMESTAMP_SCHEMA,
        "content": {"type": "string"},
    },
}

MESSAGE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["id", "content", "timestamp"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "role": {"type": "string", "enum": ["user", "assistant"]},
        # Older records name the role "type" and call the assistant "ai"
        "type": {"type": "string", "enum": ["user", "ai", "assistant"]},
        "content": {"type": "string"},
        "timestamp": _TIMESTAMP_SCHEMA,
    },
    "anyOf": [{"required": ["role"]}, {"required": ["type"]}],
}

CONVERSATION_SCHEMA: Dict[str, Any] = {
    "oneOf": [
        {"type": "array", "items": MESSAGE_SCHEMA},
        {
            "type": "object",
            "required": ["messages"],
            "properties": {
                "documentId": {"type": "string"},
                "messages": {"type": "array", "items": MESSAGE_SCHEMA},
            },
        },
    ]
}

DOCUMENT_VALIDATOR = Draft7Validator(DOCUMENT_SCHEMA)
CONVERSATION_VALIDATOR = Draft7Validator(CONVERSATION_SCHEMA)


def decode_record(raw: bytes, validator: Draft7Validator, *, key: str) -> Any:
    """Parse ``raw`` as JSON and validate it, raising :class:`StoreError` on failure."""

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, JSONDecodeError) as exc:
        raise StoreError(
            error_code=ErrorCode.MALFORMED_RECORD,
            message=f"Stored record {key!r} is not valid JSON",
            key=key,
        ) from exc
    try:
        validator.validate(payload)
    except SchemaValidationError as exc:
        raise StoreError(
            error_code=ErrorCode.MALFORMED_RECORD,
            message=f"Stored record {key!r} is malformed: {_format_validation_error(exc)}",
            key=key,
        ) from exc
    return payload


def encode_record(payload: Any) -> bytes:
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def _format_validation_error(error: SchemaValidationError) -> str:
    path = ".".join(str(part) for part in error.path)
    if path:
        return f"{path}: {error.message}"
    return error.message


__all__ = [
    "CONVERSATION_SCHEMA",
    "CONVERSATION_VALIDATOR",
    "DOCUMENT_SCHEMA",
    "DOCUMENT_VALIDATOR",
    "MESSAGE_SCHEMA",
    "decode_record",
    "encode_record",
]
