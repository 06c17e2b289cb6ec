"""Async dispatch bridge — sync intents to queued engine work.

A ``SyncIntent`` becomes one or more jobs (chunked by the configured batch
sizes) handed to a ``TaskQueue``. Two queue runtimes are provided:

* ``ImmediateQueue`` runs jobs inline, for scripts and tests.
* ``BackgroundQueue`` serializes each job to JSON and runs it as an asyncio
  task with redelivery on failure (at-least-once).

Jobs are idempotent: an upsert replaces the whole document, a removal of an
already absent document is a no-op on every backend. Redelivering a job
therefore never changes the final index state.

Usage::

    queue = BackgroundQueue.from_settings(engine, store, settings)
    dispatcher = SearchDispatcher(queue, settings)
    await dispatcher.make_searchable(posts)
    await queue.drain()
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Annotated, Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, Field, TypeAdapter

from scoutsync.config.settings import Settings
from scoutsync.models.record import RemovableSnapshot, SearchableModel
from scoutsync.models.sync import SyncIntent, SyncOperation

if TYPE_CHECKING:
    from scoutsync.engines.base.engine import SearchEngine
    from scoutsync.store.base import RecordStore

logger = logging.getLogger(__name__)


def resolve_model(path: str) -> type[SearchableModel]:
    """Import a model class from its ``"package.module:QualName"`` path."""
    module_name, _, qualname = path.partition(":")
    module = sys.modules.get(module_name) or importlib.import_module(module_name)
    target: Any = module
    for part in qualname.split("."):
        target = getattr(target, part)
    if not (isinstance(target, type) and issubclass(target, SearchableModel)):
        raise TypeError(f"{path} is not a SearchableModel subclass")
    return target


# ── Job payloads ─────────────────────────────────────────────────────────────


class ModelKeys(BaseModel):
    """Keys of the records of one model type."""

    model: str = Field(description="Model import path, 'package.module:QualName'")
    keys: list[Any] = Field(default_factory=list, description="Scout keys of the records to upsert")


class MakeSearchablePayload(BaseModel):
    """Wire form of an upsert job: per-model keys to re-read."""

    job: Literal["make_searchable"] = "make_searchable"
    groups: list[ModelKeys] = Field(default_factory=list)


class RemoveFromSearchPayload(BaseModel):
    """Wire form of a removal job: snapshots only, never records."""

    job: Literal["remove_from_search"] = "remove_from_search"
    snapshots: list[RemovableSnapshot] = Field(default_factory=list)


JobPayload = Annotated[MakeSearchablePayload | RemoveFromSearchPayload, Field(discriminator="job")]
_payload_adapter: TypeAdapter[MakeSearchablePayload | RemoveFromSearchPayload] = TypeAdapter(JobPayload)


# ── Jobs ─────────────────────────────────────────────────────────────────────


class SyncJob(ABC):
    """A unit of index work that can run inline or travel through a queue."""

    @abstractmethod
    async def handle(self, engine: SearchEngine) -> None:
        """Apply the job to ``engine``."""

    @abstractmethod
    def to_payload(self) -> str:
        """Serialize to a JSON payload."""

    @staticmethod
    async def from_payload(payload: str | bytes, store: RecordStore) -> SyncJob:
        """Rebuild a job from its JSON payload.

        Upsert jobs re-read their records from ``store``; records deleted
        since the job was queued are skipped.
        """
        data = _payload_adapter.validate_json(payload)
        if isinstance(data, RemoveFromSearchPayload):
            return RemoveFromSearch(data.snapshots)

        records: list[SearchableModel] = []
        for group in data.groups:
            model = resolve_model(group.model)
            found = await store.fetch_by_ids(model, group.keys)
            if len(found) < len(group.keys):
                logger.debug(
                    "%d %s record(s) vanished before indexing", len(group.keys) - len(found), model.__name__
                )
            records.extend(found)
        return MakeSearchable(records)


class MakeSearchable(SyncJob):
    """Upsert a batch of records."""

    def __init__(self, records: Sequence[SearchableModel]) -> None:
        self.records = list(records)

    def __repr__(self) -> str:
        return f"MakeSearchable({len(self.records)} record(s))"

    async def handle(self, engine: SearchEngine) -> None:
        if not self.records:
            return
        await engine.update(self.records)

    def to_payload(self) -> str:
        groups: dict[str, list[Any]] = {}
        for record in self.records:
            groups.setdefault(type(record).searchable_type(), []).append(record.get_scout_key())
        payload = MakeSearchablePayload(groups=[ModelKeys(model=m, keys=keys) for m, keys in groups.items()])
        return payload.model_dump_json()


class RemoveFromSearch(SyncJob):
    """Remove a batch of records by snapshot."""

    def __init__(self, snapshots: Sequence[RemovableSnapshot]) -> None:
        self.snapshots = list(snapshots)

    def __repr__(self) -> str:
        return f"RemoveFromSearch({len(self.snapshots)} snapshot(s))"

    async def handle(self, engine: SearchEngine) -> None:
        if not self.snapshots:
            return
        await engine.delete(self.snapshots)

    def to_payload(self) -> str:
        return RemoveFromSearchPayload(snapshots=self.snapshots).model_dump_json()


# ── Queue runtimes ───────────────────────────────────────────────────────────


@runtime_checkable
class TaskQueue(Protocol):
    """What the dispatcher needs from a queue runtime."""

    async def enqueue(self, job: SyncJob, *, after_commit: bool = False) -> None: ...


class _TransactionalQueue(ABC):
    """Holds ``after_commit`` jobs while a transaction is open.

    The open transaction lives in a context variable owned by the queue, so
    each asyncio task sees only the scopes it opened itself.
    """

    def __init__(self) -> None:
        self._held: ContextVar[list[SyncJob] | None] = ContextVar(
            f"scoutsync_held_jobs_{id(self):x}", default=None
        )

    @abstractmethod
    async def _submit(self, job: SyncJob) -> None: ...

    async def enqueue(self, job: SyncJob, *, after_commit: bool = False) -> None:
        held = self._held.get()
        if after_commit and held is not None:
            held.append(job)
            return
        await self._submit(job)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Scope whose ``after_commit`` jobs run only if it exits cleanly.

        Nested scopes fold their jobs into the outer one.
        """
        outer = self._held.get()
        held: list[SyncJob] = []
        token = self._held.set(held)
        try:
            yield
        except BaseException:
            logger.debug("Transaction rolled back, discarding %d held job(s)", len(held))
            raise
        finally:
            self._held.reset(token)

        if outer is not None:
            outer.extend(held)
            return
        for job in held:
            await self._submit(job)


class ImmediateQueue(_TransactionalQueue):
    """Runs each job inline, against a single engine."""

    def __init__(self, engine: SearchEngine) -> None:
        super().__init__()
        self.engine = engine

    async def _submit(self, job: SyncJob) -> None:
        await job.handle(self.engine)


class BackgroundQueue(_TransactionalQueue):
    """In-process at-least-once queue built on asyncio tasks.

    Each job is serialized on enqueue and rebuilt from its payload on every
    delivery, so upserts always index the record as it is at delivery time.
    A delivery that raises is retried up to ``max_attempts`` times in total;
    payloads that never succeed end up in ``failed``.

    Args:
        engine: Engine the jobs are applied to.
        store: Store used to re-read upserted records.
        max_attempts: Deliveries per job before giving up.
        retry_delay: Seconds between deliveries.
    """

    def __init__(
        self,
        engine: SearchEngine,
        store: RecordStore,
        *,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        super().__init__()
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.engine = engine
        self.store = store
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.failed: list[str] = []
        self._tasks: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(cls, engine: SearchEngine, store: RecordStore, settings: Settings) -> BackgroundQueue:
        return cls(
            engine,
            store,
            max_attempts=settings.queue.max_attempts,
            retry_delay=settings.queue.retry_delay,
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _submit(self, job: SyncJob) -> None:
        task = asyncio.create_task(self._deliver(job.to_payload()))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, payload: str) -> None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                job = await SyncJob.from_payload(payload, self.store)
                await job.handle(self.engine)
                return
            except Exception:
                logger.warning(
                    "Sync job failed (attempt %d/%d)", attempt, self.max_attempts, exc_info=True
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay)

        self.failed.append(payload)
        logger.error("Sync job dead-lettered after %d attempt(s): %s", self.max_attempts, payload)

    async def drain(self) -> None:
        """Wait until every queued delivery (retries included) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


# ── Dispatcher ───────────────────────────────────────────────────────────────


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class SearchDispatcher:
    """Wraps intents into chunked jobs and hands them to the queue.

    Args:
        queue: Queue runtime receiving the jobs.
        settings: Chunk sizes and the ``after_commit`` flag.
    """

    def __init__(self, queue: TaskQueue, settings: Settings | None = None) -> None:
        self.queue = queue
        self.settings = settings or Settings()

    async def dispatch(self, intent: SyncIntent) -> None:
        if intent.operation is SyncOperation.UPSERT:
            await self.make_searchable(intent.records)
        else:
            await self.remove_from_search(intent.snapshots)

    async def make_searchable(self, records: Iterable[SearchableModel]) -> None:
        records = list(records)
        for chunk in _chunks(records, self.settings.chunk.searchable):
            await self.queue.enqueue(MakeSearchable(chunk), after_commit=self.settings.after_commit)

    async def remove_from_search(self, records: Iterable[SearchableModel | RemovableSnapshot]) -> None:
        snapshots = [r if isinstance(r, RemovableSnapshot) else RemovableSnapshot.capture(r) for r in records]
        for chunk in _chunks(snapshots, self.settings.chunk.unsearchable):
            await self.queue.enqueue(RemoveFromSearch(chunk), after_commit=self.settings.after_commit)
