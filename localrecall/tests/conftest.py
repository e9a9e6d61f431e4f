from __future__ import annotations

import os
from typing import Any, Dict, Iterator, Optional

import pytest

# Must be set before localrecall.db builds its engine.
os.environ.setdefault("LOCALRECALL_SQLITE_PATH", ":memory:")

from localrecall import summarizer  # noqa: E402
from localrecall.settings import UserSettings, normalize_settings, to_record  # noqa: E402


class InMemorySettingsStore:
    """Settings store double that keeps the serialized record in memory."""

    def __init__(self, record: Optional[Dict[str, Any]] = None) -> None:
        self.record = record
        self.saves = 0

    def load(self) -> UserSettings:
        return normalize_settings(self.record)

    def save(self, settings: UserSettings) -> None:
        self.record = to_record(settings)
        self.saves += 1


@pytest.fixture(autouse=True)
def clear_summary_cache() -> Iterator[None]:
    summarizer._cache.clear()
    yield
    summarizer._cache.clear()


@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture
def store_factory():
    """Build settings stores pre-seeded with a raw settings record."""
    return InMemorySettingsStore
