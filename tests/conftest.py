"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

from polysync.ai.provider import CannedTransformProvider
from polysync.services.documents import DocumentRepository
from polysync.services.kv_store import InMemoryKeyValueStore


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in list(os.environ):
        if name.startswith("POLYSYNC_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("POLYSYNC_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(store: InMemoryKeyValueStore) -> DocumentRepository:
    return DocumentRepository(store)


@pytest.fixture
def provider() -> CannedTransformProvider:
    return CannedTransformProvider(latency=(0.0, 0.0))
