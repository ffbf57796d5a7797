"""Error taxonomy shared by the transformation and persistence engine.

Every error carries a machine-readable code and serializes the same way so
the editing surface can render notices without inspecting exception types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


# -----------------------------------------------------------------------------
# Error Code Constants
# -----------------------------------------------------------------------------

class ErrorCode:
    """Constants for error codes attached to engine errors."""

    # Request/selection errors
    EMPTY_REQUEST = "empty_request"
    UNKNOWN_ACTION = "unknown_action"
    STALE_SELECTION = "stale_selection"
    INVALID_SELECTION = "invalid_selection"

    # Provider errors
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    EMPTY_RESPONSE = "empty_response"

    # Store errors
    WRITE_FAILED = "write_failed"
    MALFORMED_RECORD = "malformed_record"

    # Lookup errors
    DOCUMENT_NOT_FOUND = "document_not_found"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class PolySyncError(Exception):
    """Base exception class for all engine errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    # Whether the editing surface should show this error to the user
    user_visible: ClassVar[bool] = True

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for notices and logs."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class ValidationError(PolySyncError):
    """Bad selection offsets or an unusable request.

    Always recovered locally (append fallback or the generic help intent).
    """

    error_code: str = field(default=ErrorCode.INVALID_SELECTION)
    message: str = field(default="Request could not be validated")
    details: dict[str, Any] = field(default_factory=dict)

    user_visible: ClassVar[bool] = False


@dataclass
class ProviderError(PolySyncError):
    """The transform provider was unavailable or failed."""

    error_code: str = field(default=ErrorCode.PROVIDER_UNAVAILABLE)
    message: str = field(default="Failed to get AI response. Please try again.")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class StoreError(PolySyncError):
    """A persistence write failed or a stored record could not be decoded."""

    error_code: str = field(default=ErrorCode.WRITE_FAILED)
    message: str = field(default="Failed to save changes")
    details: dict[str, Any] = field(default_factory=dict)
    key: str | None = field(default=None)

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.key:
            self.details.setdefault("key", self.key)


@dataclass
class NotFoundError(PolySyncError):
    """The requested document id has no stored record."""

    error_code: str = field(default=ErrorCode.DOCUMENT_NOT_FOUND)
    message: str = field(default="The document you're looking for doesn't exist.")
    details: dict[str, Any] = field(default_factory=dict)
    document_id: str | None = field(default=None)

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.document_id:
            self.details.setdefault("document_id", self.document_id)


__all__ = [
    "ErrorCode",
    "NotFoundError",
    "PolySyncError",
    "ProviderError",
    "StoreError",
    "ValidationError",
]
