"""Tests for the searchable record contract, snapshots and pagination."""

from __future__ import annotations

import uuid

import pytest
from pydantic import ValidationError
from sample_models import Article, Chirp, Draft, Post

from scoutsync.engines.null.engine import NullEngine
from scoutsync.models.record import RemovableSnapshot, SearchableModel
from scoutsync.models.result import Paginator
from scoutsync.models.sync import SyncIntent, SyncOperation


class Widget(SearchableModel):
    id: uuid.UUID
    name: str


class TestSearchableModel:
    def test_index_names(self) -> None:
        assert Post.searchable_as() == "posts"
        assert Draft.searchable_as() == "drafts"

    def test_keys(self) -> None:
        chirp = Chirp(uuid="abc", body="x")
        assert Chirp.get_scout_key_name() == "uuid"
        assert chirp.get_scout_key() == "abc"

    def test_searchable_type(self) -> None:
        assert Post.searchable_type() == f"{Post.__module__}:Post"

    def test_projection_is_json_ready(self) -> None:
        widget = Widget(id=uuid.UUID(int=1), name="w")
        assert widget.to_searchable_array() == {"id": str(uuid.UUID(int=1)), "name": "w"}

    def test_is_trashed(self) -> None:
        assert not Chirp(uuid="a", body="x").is_trashed()
        assert Chirp(uuid="a", body="x", deleted_at="2024").is_trashed()
        assert not Post(id=1, title="x").is_trashed()

    def test_metadata_is_out_of_band(self) -> None:
        post = Post(id=1, title="x").with_scout_metadata("_rankingScore", 0.5)
        assert post.scout_metadata() == {"_rankingScore": 0.5}
        assert "_rankingScore" not in post.model_dump()
        assert Post(id=1, title="x").scout_metadata() == {}

    def test_selective_predicate_default(self) -> None:
        assert Post(id=1, title="x").search_index_should_be_updated(frozenset())
        assert not Article(id=1, title="x").search_index_should_be_updated(frozenset({"views"}))

    def test_search_binds_engine_soft_delete(self) -> None:
        request = Chirp.search("x", engine=NullEngine(soft_delete=True))
        assert request.soft_delete is True
        assert Chirp.search("x").soft_delete is False


class TestRemovableSnapshot:
    def test_capture(self) -> None:
        snapshot = RemovableSnapshot.capture(Chirp(uuid="a", body="x"))
        assert snapshot == RemovableSnapshot(index="chirps", key_name="uuid", key="a")

    def test_capture_stringifies_non_scalar_keys(self) -> None:
        snapshot = RemovableSnapshot.capture(Widget(id=uuid.UUID(int=7), name="w"))
        assert snapshot.key == str(uuid.UUID(int=7))

    def test_frozen(self) -> None:
        snapshot = RemovableSnapshot(index="posts", key_name="id", key=1)
        with pytest.raises(ValidationError):
            snapshot.key = 2  # type: ignore[misc]

    def test_json_round_trip(self) -> None:
        snapshot = RemovableSnapshot(index="posts", key_name="id", key=1)
        assert RemovableSnapshot.model_validate_json(snapshot.model_dump_json()) == snapshot


class TestSyncIntent:
    def test_upsert_carries_records(self) -> None:
        post = Post(id=1, title="x")
        intent = SyncIntent.upsert(post)
        assert intent.operation is SyncOperation.UPSERT
        assert intent.records == [post]
        assert intent.snapshots == []

    def test_remove_carries_snapshots(self) -> None:
        intent = SyncIntent.remove(Post(id=1, title="x"), Post(id=2, title="y"))
        assert intent.records == []
        assert [s.key for s in intent.snapshots] == [1, 2]


class TestPaginator:
    def test_page_math(self) -> None:
        page = Paginator(items=["a"], total=2, per_page=1, current_page=2)
        assert page.last_page == 2
        assert not page.has_more_pages
        assert page.count == 1
        assert list(page) == ["a"]
        assert page[0] == "a"

    def test_total_independent_of_items(self) -> None:
        page = Paginator(items=["a"], total=30, per_page=10, current_page=1)
        assert page.last_page == 3
        assert page.has_more_pages
        assert len(page) == 1

    def test_empty(self) -> None:
        page = Paginator(items=[], total=0, per_page=15)
        assert page.last_page == 1
        assert not page.has_more_pages
