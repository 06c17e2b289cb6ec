"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sample_models import Chirp, Post

from scoutsync.config.settings import Settings
from scoutsync.core.toggles import sync_toggles
from scoutsync.engines.collection.engine import CollectionEngine
from scoutsync.store.memory import InMemoryRecordStore


@pytest.fixture(autouse=True)
def _reset_sync_toggles() -> Iterator[None]:
    """The toggle registry is process-wide; keep tests isolated."""
    sync_toggles.clear()
    yield
    sync_toggles.clear()


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def posts() -> list[Post]:
    return [
        Post(id=1, title="Solar nowcasting", status="published", author_id=7, created_at=100),
        Post(id=2, title="Wind power forecasting", status="draft", author_id=7, created_at=300),
        Post(id=3, title="Solar panels at scale", status="published", author_id=8, created_at=200),
        Post(id=4, title="Grid storage", status="archived", author_id=9, created_at=400),
    ]


@pytest.fixture
def chirps() -> list[Chirp]:
    return [
        Chirp(uuid="a1", body="first chirp"),
        Chirp(uuid="b2", body="second chirp", deleted_at="2024-01-01T00:00:00Z"),
        Chirp(uuid="c3", body="hidden chirp", visible=False),
    ]


@pytest.fixture
def store(posts: list[Post], chirps: list[Chirp]) -> InMemoryRecordStore:
    return InMemoryRecordStore([*posts, *chirps])


@pytest.fixture
def collection_engine(store: InMemoryRecordStore) -> CollectionEngine:
    return CollectionEngine(store)
