"""Base search engine — Abstract interface for all search backends.

Every search backend implements this interface. An engine is responsible for:
  1. Pushing record projections to the backend (batched per index)
  2. Removing records, by live record or by ``RemovableSnapshot``
  3. Compiling a ``SearchRequest`` into the backend's query language
  4. Mapping ranked hits back to store records in rank order
  5. Index lifecycle (flush, create, delete) and health reporting
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from scoutsync.core.reconciler import reconcile, reconcile_lazy
from scoutsync.models.query import SOFT_DELETE_FIELD, SearchRequest
from scoutsync.models.record import RemovableSnapshot, SearchableModel

if TYPE_CHECKING:
    from scoutsync.store.base import RecordStore

logger = logging.getLogger(__name__)


class EngineHealth(BaseModel):
    """Health status of a search engine."""

    status: str = Field(description="Health status: healthy, degraded, unhealthy")
    latency_ms: int = Field(default=0, description="Latency of last health check in ms")
    last_check: str | None = Field(default=None, description="ISO timestamp of last health check")
    message: str | None = Field(default=None, description="Additional health message")


class SearchEngine(ABC):
    """Abstract base class for search engines.

    Subclasses implement the backend calls; the base class owns the parts
    that are identical everywhere: grouping records by index, skipping empty
    projections, soft-delete metadata, and rank-order reconciliation.

    Backend transport errors are never caught here. They propagate to the
    caller (or to the queue runtime, which may redeliver the job).

    Args:
        store: Record store used to rehydrate hits.
        prefix: Prefix prepended to every index name.
        soft_delete: Whether soft-deleted records stay searchable.
    """

    def __init__(self, store: RecordStore | None = None, *, prefix: str = "", soft_delete: bool = False) -> None:
        self._store = store
        self._prefix = prefix
        self.soft_delete = soft_delete

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique engine name (e.g., 'meilisearch', 'algolia')."""

    @property
    def key_field(self) -> str | None:
        """Hit field holding the identifier, or None to use the model's key name."""
        return None

    async def initialize(self) -> None:
        """Open connections. Called once before first use."""

    async def shutdown(self) -> None:
        """Release connections."""

    async def health_check(self) -> EngineHealth:
        return EngineHealth(status="healthy", message=f"{self.name} has no remote backend")

    # ── Helpers shared by all engines ────────────────────────────────────

    @property
    def store(self) -> RecordStore:
        if self._store is None:
            raise RuntimeError(f"{self.name} engine has no record store configured.")
        return self._store

    def index_name(self, name: str) -> str:
        return f"{self._prefix}{name}"

    def request_index(self, request: SearchRequest) -> str:
        return self.index_name(request.index_name)

    def searchable_document(self, record: SearchableModel) -> dict[str, Any]:
        """Projection of ``record`` plus sync metadata. Empty when nothing is indexable."""
        data = dict(record.to_searchable_array())
        if not data:
            return {}
        if self.soft_delete and record.__soft_deletes__:
            data[SOFT_DELETE_FIELD] = 1 if record.is_trashed() else 0
        return data

    def group_documents(self, records: Iterable[SearchableModel]) -> dict[str, tuple[str, list[dict[str, Any]]]]:
        """Group non-empty documents by index: ``{index: (key_name, documents)}``."""
        by_type: dict[type[SearchableModel], list[SearchableModel]] = {}
        for record in records:
            by_type.setdefault(type(record), []).append(record)

        # Each type's batch hook sees only its own records.
        grouped: dict[str, tuple[str, list[dict[str, Any]]]] = {}
        for model, batch in by_type.items():
            for record in model.make_searchable_using(batch):
                document = self.searchable_document(record)
                if not document:
                    continue
                document = self.prepare_document(record, document)
                index = self.index_name(record.searchable_as())
                grouped.setdefault(index, (record.get_scout_key_name(), []))[1].append(document)
        return grouped

    def prepare_document(self, record: SearchableModel, document: dict[str, Any]) -> dict[str, Any]:
        """Backend-specific document finishing (identifier field, etc.)."""
        document[record.get_scout_key_name()] = record.get_scout_key()
        return document

    def group_snapshots(
        self, records: Iterable[SearchableModel | RemovableSnapshot]
    ) -> dict[str, list[RemovableSnapshot]]:
        """Normalize records to snapshots and group them by index."""
        grouped: dict[str, list[RemovableSnapshot]] = defaultdict(list)
        for item in records:
            snapshot = item if isinstance(item, RemovableSnapshot) else RemovableSnapshot.capture(item)
            grouped[self.index_name(snapshot.index)].append(snapshot)
        return dict(grouped)

    # ── Writes ───────────────────────────────────────────────────────────

    @abstractmethod
    async def update(self, records: Sequence[SearchableModel]) -> None:
        """Upsert ``records``: one backend call per index, none if nothing is indexable."""

    @abstractmethod
    async def delete(self, records: Sequence[SearchableModel | RemovableSnapshot]) -> None:
        """Remove records (or snapshots) from their indexes. No-op when empty."""

    @abstractmethod
    async def flush(self, model: type[SearchableModel]) -> None:
        """Remove every document from the model's index."""

    @abstractmethod
    async def create_index(self, name: str, **options: Any) -> Any:
        """Create index ``name`` (prefix applied)."""

    @abstractmethod
    async def delete_index(self, name: str) -> Any:
        """Delete index ``name`` (prefix applied)."""

    # ── Reads ────────────────────────────────────────────────────────────

    @abstractmethod
    async def search(self, request: SearchRequest) -> Any:
        """Run ``request`` and return the backend-native result."""

    @abstractmethod
    async def paginate(self, request: SearchRequest, per_page: int, page: int) -> Any:
        """Run one page of ``request`` and return the backend-native result."""

    @abstractmethod
    def raw_hits(self, results: Any) -> list[Any]:
        """The ranked hit list inside a backend-native result."""

    @abstractmethod
    def get_total_count(self, results: Any) -> int:
        """Total number of matches reported by the backend."""

    def map_ids(self, results: Any, key_name: str | None = None) -> list[Any]:
        """Identifiers from ``results`` in backend rank order."""
        key = self.key_field or key_name
        if key is None:
            raise ValueError(f"{self.name} engine needs a key name to map ids.")
        return [hit[key] for hit in self.raw_hits(results) if key in hit]

    async def map(self, request: SearchRequest, results: Any, model: type[SearchableModel]) -> list[Any]:
        """Rehydrate hits into records, in backend rank order."""
        hits = self.raw_hits(results)
        if not hits:
            return []
        key = self.key_field or model.get_scout_key_name()
        ids = self.map_ids(results, key)
        records = await self.store.fetch_by_ids(model, ids)
        return reconcile(hits, records, key)

    async def lazy_map(
        self, request: SearchRequest, results: Any, model: type[SearchableModel]
    ) -> AsyncIterator[Any]:
        """Streaming :meth:`map` over the store's cursor."""
        hits = self.raw_hits(results)
        if not hits:
            return
        key = self.key_field or model.get_scout_key_name()
        ids = self.map_ids(results, key)
        async for record in reconcile_lazy(hits, self.store.cursor_by_ids(model, ids), key):
            yield record

    # ── Convenience ──────────────────────────────────────────────────────

    async def keys(self, request: SearchRequest) -> list[Any]:
        return self.map_ids(await self.search(request), request.model.get_scout_key_name())

    async def get(self, request: SearchRequest) -> list[Any]:
        return await self.map(request, await self.search(request), request.model)

    async def cursor(self, request: SearchRequest) -> AsyncIterator[Any]:
        results = await self.search(request)
        async for record in self.lazy_map(request, results, request.model):
            yield record

    async def passthrough(self, method: str, path: str, **kwargs: Any) -> Any:
        """Call a backend-native endpoint the engine contract does not cover."""
        raise NotImplementedError(f"{self.name} engine has no backend client to pass calls through to.")
