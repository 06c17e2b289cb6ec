"""Tests for the in-process collection engine."""

from __future__ import annotations

from typing import Any

import pytest
from sample_models import Chirp, Post

from scoutsync.engines.base.exceptions import FilterCompilationError
from scoutsync.engines.collection.engine import CollectionEngine
from scoutsync.store.memory import InMemoryRecordStore


class TestCollectionSearch:
    async def test_term_matches_substring_case_insensitive(self, collection_engine: CollectionEngine) -> None:
        posts = await Post.search("SOLAR", engine=collection_engine).get()
        assert [p.id for p in posts] == [1, 3]

    async def test_empty_term_returns_everything(self, collection_engine: CollectionEngine) -> None:
        assert len(await Post.search(engine=collection_engine).get()) == 4

    async def test_filters(self, collection_engine: CollectionEngine) -> None:
        request = Post.search(engine=collection_engine).where("author_id", 7).where_not_in("status", ["draft"])
        assert [p.id for p in await request.get()] == [1]

        request = Post.search(engine=collection_engine).where_in("status", ["published", "archived"])
        assert [p.id for p in await request.get()] == [1, 3, 4]

    async def test_empty_in_matches_nothing(self, collection_engine: CollectionEngine) -> None:
        assert await Post.search(engine=collection_engine).where_in("status", []).get() == []

    async def test_orderings(self, collection_engine: CollectionEngine) -> None:
        latest = await Post.search(engine=collection_engine).latest().get()
        assert [p.id for p in latest] == [4, 2, 3, 1]

        by_author = await Post.search(engine=collection_engine).order_by("author_id").oldest().get()
        assert [p.id for p in by_author] == [1, 2, 3, 4]

    async def test_take(self, collection_engine: CollectionEngine) -> None:
        results = await Post.search(engine=collection_engine).oldest().take(2).raw()
        assert [p.id for p in results["results"]] == [1, 3]
        assert collection_engine.get_total_count(results) == 4

    async def test_skips_unsearchable_and_trashed(self, collection_engine: CollectionEngine) -> None:
        chirps = await Chirp.search(engine=collection_engine).get()
        assert [c.uuid for c in chirps] == ["a1"]

    async def test_trashed_visibility(self, collection_engine: CollectionEngine) -> None:
        only = await Chirp.search(engine=collection_engine).only_trashed().get()
        assert [c.uuid for c in only] == ["b2"]

        everything = await Chirp.search(engine=collection_engine).with_trashed().get()
        assert [c.uuid for c in everything] == ["a1", "b2"]

    async def test_invalid_filter_value(self, collection_engine: CollectionEngine) -> None:
        with pytest.raises(FilterCompilationError):
            await Post.search(engine=collection_engine).where("status", {"a": 1}).get()

    async def test_raw_hook_receives_records(self, collection_engine: CollectionEngine) -> None:
        async def hook(records: list[Any], term: str, options: dict[str, Any]) -> list[Any]:
            return [r for r in records if r.author_id == options["author"]]

        posts = await Post.search(engine=collection_engine).using(hook).with_options(author=8).get()
        assert [p.id for p in posts] == [3]


class TestCollectionPagination:
    async def test_paginate_counts_before_slicing(self, collection_engine: CollectionEngine) -> None:
        page = await Post.search("solar", engine=collection_engine).paginate(per_page=1, page=2)
        assert page.total == 2
        assert page.count == 1
        assert [p.id for p in page] == [3]
        assert page.last_page == 2
        assert not page.has_more_pages

    async def test_paginate_raw(self, collection_engine: CollectionEngine) -> None:
        page = await Post.search(engine=collection_engine).oldest().paginate_raw(per_page=2)
        assert [hit["id"] for hit in page.items] == [1, 3]
        assert page.total == 4
        assert page.has_more_pages

    async def test_page_past_the_end(self, collection_engine: CollectionEngine) -> None:
        page = await Post.search(engine=collection_engine).paginate(per_page=10, page=3)
        assert page.items == []
        assert page.total == 4


class TestCollectionWrites:
    async def test_writes_are_noops(self, collection_engine: CollectionEngine, store: InMemoryRecordStore) -> None:
        await collection_engine.update([Post(id=99, title="new")])
        await collection_engine.delete([Post(id=1, title="x")])
        await collection_engine.flush(Post)
        assert len(await store.all(Post)) == 4

    async def test_keys_and_cursor(self, collection_engine: CollectionEngine) -> None:
        request = Post.search("solar", engine=collection_engine)
        assert await request.keys() == [1, 3]
        assert [p.id async for p in request.cursor()] == [1, 3]

    async def test_first(self, collection_engine: CollectionEngine) -> None:
        assert (await Post.search("grid", engine=collection_engine).first()).id == 4
        assert await Post.search("nothing here", engine=collection_engine).first() is None
