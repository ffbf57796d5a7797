"""Service layer helpers (stores, repositories, saving, settings)."""

from .documents import DocumentRepository
from .kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from .save_coordinator import AutosaveTimer, SaveCoordinator, SaveOutcome, SaveResult, SaveTrigger

__all__ = [
    "AutosaveTimer",
    "DocumentRepository",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "SaveCoordinator",
    "SaveOutcome",
    "SaveResult",
    "SaveTrigger",
]
