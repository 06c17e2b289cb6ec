"""Tests for jobs, queue runtimes and the search dispatcher."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from typing import Any
from unittest.mock import AsyncMock

import pytest
from sample_models import Chirp, Post

from scoutsync.config.settings import Settings
from scoutsync.core.dispatch import (
    BackgroundQueue,
    ImmediateQueue,
    MakeSearchable,
    RemoveFromSearch,
    SearchDispatcher,
    SyncJob,
    TaskQueue,
    resolve_model,
)
from scoutsync.engines.base.engine import SearchEngine
from scoutsync.engines.null.engine import NullEngine
from scoutsync.models.record import RemovableSnapshot, SearchableModel
from scoutsync.models.sync import SyncIntent
from scoutsync.store.memory import InMemoryRecordStore


class DictIndexEngine(NullEngine):
    """Engine that keeps documents in a dict, so index state can be compared."""

    def __init__(self) -> None:
        super().__init__()
        self.indexes: dict[str, dict[Any, dict[str, Any]]] = {}
        self.calls = 0

    async def update(self, records: Sequence[SearchableModel]) -> None:
        for index, (key_name, documents) in self.group_documents(records).items():
            self.calls += 1
            for doc in documents:
                self.indexes.setdefault(index, {})[doc[key_name]] = doc

    async def delete(self, records: Sequence[SearchableModel | RemovableSnapshot]) -> None:
        for index, snapshots in self.group_snapshots(records).items():
            self.calls += 1
            for s in snapshots:
                self.indexes.get(index, {}).pop(s.key, None)


@pytest.fixture
def engine() -> AsyncMock:
    return AsyncMock(spec=SearchEngine)


class RecordingQueue:
    def __init__(self) -> None:
        self.jobs: list[tuple[SyncJob, bool]] = []

    async def enqueue(self, job: SyncJob, *, after_commit: bool = False) -> None:
        self.jobs.append((job, after_commit))


# ── Jobs ─────────────────────────────────────────────────────────────────────


class TestJobs:
    async def test_make_searchable_updates_engine(self, engine: AsyncMock, posts: list[Post]) -> None:
        await MakeSearchable(posts).handle(engine)
        engine.update.assert_awaited_once_with(posts)

    async def test_empty_jobs_make_no_calls(self, engine: AsyncMock) -> None:
        await MakeSearchable([]).handle(engine)
        await RemoveFromSearch([]).handle(engine)
        engine.update.assert_not_awaited()
        engine.delete.assert_not_awaited()

    def test_make_searchable_payload_carries_keys_only(self, posts: list[Post]) -> None:
        payload = json.loads(MakeSearchable(posts[:2]).to_payload())
        assert payload == {
            "job": "make_searchable",
            "groups": [{"model": Post.searchable_type(), "keys": [1, 2]}],
        }

    def test_make_searchable_payload_groups_by_model(self, posts: list[Post], chirps: list[Chirp]) -> None:
        payload = json.loads(MakeSearchable([posts[0], chirps[0], posts[1]]).to_payload())
        assert payload["groups"] == [
            {"model": Post.searchable_type(), "keys": [1, 2]},
            {"model": Chirp.searchable_type(), "keys": ["a1"]},
        ]

    async def test_mixed_models_survive_reread(
        self, store: InMemoryRecordStore, posts: list[Post], chirps: list[Chirp]
    ) -> None:
        payload = MakeSearchable([posts[0], chirps[0]]).to_payload()

        job = await SyncJob.from_payload(payload, store)
        assert isinstance(job, MakeSearchable)
        assert job.records == [posts[0], chirps[0]]

    async def test_remove_payload_survives_missing_records(self, store: InMemoryRecordStore) -> None:
        chirp = Chirp(uuid="gone", body="bye")
        payload = RemoveFromSearch([RemovableSnapshot.capture(chirp)]).to_payload()

        job = await SyncJob.from_payload(payload, store)
        assert isinstance(job, RemoveFromSearch)
        assert job.snapshots == [RemovableSnapshot(index="chirps", key_name="uuid", key="gone")]

    async def test_make_searchable_rereads_store(self, store: InMemoryRecordStore, posts: list[Post]) -> None:
        payload = MakeSearchable(posts[:2]).to_payload()
        updated = store.put(Post(id=1, title="edited after enqueue"))
        store.remove(posts[1])

        job = await SyncJob.from_payload(payload, store)
        assert isinstance(job, MakeSearchable)
        assert job.records == [updated]

    def test_resolve_model(self) -> None:
        assert resolve_model(Post.searchable_type()) is Post

    def test_resolve_model_rejects_non_models(self) -> None:
        with pytest.raises(TypeError):
            resolve_model("scoutsync.config.settings:Settings")


# ── ImmediateQueue ───────────────────────────────────────────────────────────


class TestImmediateQueue:
    def test_satisfies_protocol(self, engine: AsyncMock) -> None:
        assert isinstance(ImmediateQueue(engine), TaskQueue)

    async def test_runs_inline(self, engine: AsyncMock, posts: list[Post]) -> None:
        await ImmediateQueue(engine).enqueue(MakeSearchable(posts), after_commit=True)
        engine.update.assert_awaited_once()

    async def test_after_commit_jobs_wait_for_commit(self, engine: AsyncMock, posts: list[Post]) -> None:
        queue = ImmediateQueue(engine)
        async with queue.transaction():
            await queue.enqueue(MakeSearchable(posts), after_commit=True)
            engine.update.assert_not_awaited()
        engine.update.assert_awaited_once()

    async def test_rollback_discards_held_jobs(self, engine: AsyncMock, posts: list[Post]) -> None:
        queue = ImmediateQueue(engine)
        with pytest.raises(RuntimeError):
            async with queue.transaction():
                await queue.enqueue(MakeSearchable(posts), after_commit=True)
                raise RuntimeError("rollback")
        engine.update.assert_not_awaited()

    async def test_non_deferred_jobs_run_inside_transaction(self, engine: AsyncMock, posts: list[Post]) -> None:
        queue = ImmediateQueue(engine)
        async with queue.transaction():
            await queue.enqueue(MakeSearchable(posts), after_commit=False)
            engine.update.assert_awaited_once()

    async def test_nested_transactions_fold_into_outer(self, engine: AsyncMock, posts: list[Post]) -> None:
        queue = ImmediateQueue(engine)
        async with queue.transaction():
            async with queue.transaction():
                await queue.enqueue(MakeSearchable(posts), after_commit=True)
            engine.update.assert_not_awaited()
        engine.update.assert_awaited_once()

    async def test_concurrent_transactions_are_isolated(self, engine: AsyncMock, posts: list[Post]) -> None:
        queue = ImmediateQueue(engine)
        first_open = asyncio.Event()
        second_open = asyncio.Event()

        async def first() -> None:
            async with queue.transaction():
                await queue.enqueue(MakeSearchable(posts[:1]), after_commit=True)
                first_open.set()
                await second_open.wait()

        async def second() -> None:
            await first_open.wait()
            async with queue.transaction():
                await queue.enqueue(MakeSearchable(posts[1:2]), after_commit=True)
                second_open.set()
                await asyncio.sleep(0)

        results = await asyncio.gather(first(), second(), return_exceptions=True)

        assert results == [None, None]
        assert engine.update.await_count == 2
        updated = sorted(call.args[0][0].id for call in engine.update.await_args_list)
        assert updated == [1, 2]


# ── BackgroundQueue ──────────────────────────────────────────────────────────


class TestBackgroundQueue:
    async def test_delivers_and_drains(self, engine: AsyncMock, store: InMemoryRecordStore, posts: list[Post]) -> None:
        queue = BackgroundQueue(engine, store, retry_delay=0)
        await queue.enqueue(MakeSearchable(posts[:2]))
        await queue.drain()

        engine.update.assert_awaited_once()
        assert [p.id for p in engine.update.await_args.args[0]] == [1, 2]
        assert queue.pending == 0

    async def test_redelivers_after_failure(self, engine: AsyncMock, store: InMemoryRecordStore, posts: list[Post]) -> None:
        engine.update.side_effect = [RuntimeError("backend down"), None]
        queue = BackgroundQueue(engine, store, max_attempts=3, retry_delay=0)
        await queue.enqueue(MakeSearchable(posts[:1]))
        await queue.drain()

        assert engine.update.await_count == 2
        assert queue.failed == []

    async def test_dead_letters_after_max_attempts(self, engine: AsyncMock, store: InMemoryRecordStore) -> None:
        engine.delete.side_effect = RuntimeError("backend down")
        queue = BackgroundQueue(engine, store, max_attempts=2, retry_delay=0)
        job = RemoveFromSearch([RemovableSnapshot(index="posts", key_name="id", key=1)])
        await queue.enqueue(job)
        await queue.drain()

        assert engine.delete.await_count == 2
        assert queue.failed == [job.to_payload()]

    async def test_redelivery_is_idempotent(self, store: InMemoryRecordStore, posts: list[Post]) -> None:
        engine = DictIndexEngine()
        queue = BackgroundQueue(engine, store, retry_delay=0)

        await queue.enqueue(MakeSearchable(posts))
        await queue.drain()
        first = json.dumps(engine.indexes, sort_keys=True)

        await queue.enqueue(MakeSearchable(posts))
        await queue.drain()
        assert json.dumps(engine.indexes, sort_keys=True) == first
        assert len(engine.indexes["posts"]) == 4

    async def test_mixed_models_are_all_delivered(
        self, store: InMemoryRecordStore, posts: list[Post], chirps: list[Chirp], settings: Settings
    ) -> None:
        engine = DictIndexEngine()
        queue = BackgroundQueue(engine, store, retry_delay=0)
        await SearchDispatcher(queue, settings).make_searchable([posts[0], chirps[0]])
        await queue.drain()

        assert list(engine.indexes["posts"]) == [1]
        assert list(engine.indexes["chirps"]) == ["a1"]
        assert queue.failed == []

    async def test_after_commit(self, engine: AsyncMock, store: InMemoryRecordStore, posts: list[Post]) -> None:
        queue = BackgroundQueue(engine, store, retry_delay=0)
        async with queue.transaction():
            await queue.enqueue(MakeSearchable(posts), after_commit=True)
            assert queue.pending == 0
        await queue.drain()
        engine.update.assert_awaited_once()

    def test_from_settings(self, engine: AsyncMock, store: InMemoryRecordStore) -> None:
        settings = Settings(_env_file=None, queue={"max_attempts": 5, "retry_delay": 0.1})  # type: ignore[call-arg]
        queue = BackgroundQueue.from_settings(engine, store, settings)
        assert queue.max_attempts == 5
        assert queue.retry_delay == 0.1

    def test_rejects_zero_attempts(self, engine: AsyncMock, store: InMemoryRecordStore) -> None:
        with pytest.raises(ValueError):
            BackgroundQueue(engine, store, max_attempts=0)


# ── SearchDispatcher ─────────────────────────────────────────────────────────


class TestSearchDispatcher:
    @pytest.fixture
    def queue(self) -> RecordingQueue:
        return RecordingQueue()

    async def test_chunks_upserts(self, queue: RecordingQueue, posts: list[Post]) -> None:
        settings = Settings(_env_file=None, chunk={"searchable": 3})  # type: ignore[call-arg]
        await SearchDispatcher(queue, settings).make_searchable(posts)

        sizes = [len(job.records) for job, _ in queue.jobs]  # type: ignore[attr-defined]
        assert sizes == [3, 1]

    async def test_chunks_removals(self, queue: RecordingQueue, posts: list[Post]) -> None:
        settings = Settings(_env_file=None, chunk={"unsearchable": 2})  # type: ignore[call-arg]
        await SearchDispatcher(queue, settings).remove_from_search(posts)

        assert [len(job.snapshots) for job, _ in queue.jobs] == [2, 2]  # type: ignore[attr-defined]
        assert all(isinstance(job, RemoveFromSearch) for job, _ in queue.jobs)

    async def test_empty_input_dispatches_nothing(self, queue: RecordingQueue, settings: Settings) -> None:
        dispatcher = SearchDispatcher(queue, settings)
        await dispatcher.make_searchable([])
        await dispatcher.remove_from_search([])
        assert queue.jobs == []

    async def test_passes_after_commit(self, queue: RecordingQueue, posts: list[Post]) -> None:
        settings = Settings(_env_file=None, after_commit=True)  # type: ignore[call-arg]
        await SearchDispatcher(queue, settings).make_searchable(posts)
        assert all(after_commit for _, after_commit in queue.jobs)

    async def test_dispatch_routes_by_operation(self, queue: RecordingQueue, settings: Settings, posts: list[Post]) -> None:
        dispatcher = SearchDispatcher(queue, settings)
        await dispatcher.dispatch(SyncIntent.upsert(posts[0]))
        await dispatcher.dispatch(SyncIntent.remove(posts[1]))

        (upsert, _), (removal, _) = queue.jobs
        assert isinstance(upsert, MakeSearchable)
        assert isinstance(removal, RemoveFromSearch)
        assert removal.snapshots == [RemovableSnapshot(index="posts", key_name="id", key=2)]
