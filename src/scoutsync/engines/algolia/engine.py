"""Algolia engine — Keeps Algolia indexes in sync with the record store.

Talks to the Algolia REST API directly with ``httpx``. Structural filters
compile to a ``numericFilters`` clause array, where a nested list is an OR
group::

    ["author_id=7", ["status=1", "status=2"], "category!=3"]

Algolia has no query-time sort; orderings on a request are ignored (sorting
is configured through replica indexes).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

from scoutsync.core.filters import compile_clause_array
from scoutsync.engines.base.engine import EngineHealth, SearchEngine
from scoutsync.engines.base.exceptions import (
    ConfigurationError,
    ConnectionError,
    UnsupportedOperationError,
)
from scoutsync.models.query import SearchRequest
from scoutsync.models.record import RemovableSnapshot, SearchableModel

if TYPE_CHECKING:
    from scoutsync.config.settings import Settings
    from scoutsync.store.base import RecordStore

logger = logging.getLogger(__name__)

OBJECT_ID = "objectID"


class AlgoliaEngine(SearchEngine):
    """Search engine for Algolia.

    Args:
        store: Record store used to rehydrate hits.
        app_id: Algolia application ID.
        api_key: Admin API key (writes need it).
        timeout: HTTP request timeout in seconds.
        prefix: Prefix prepended to every index name.
        soft_delete: Whether soft-deleted records stay searchable.
        base_url: Override of the API host, defaults to ``https://{app_id}-dsn.algolia.net``.
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        *,
        app_id: str,
        api_key: str,
        timeout: float = 30.0,
        prefix: str = "",
        soft_delete: bool = False,
        base_url: str | None = None,
    ) -> None:
        if not app_id or not api_key:
            raise ConfigurationError("Algolia engine requires both an application ID and an API key.")
        super().__init__(store, prefix=prefix, soft_delete=soft_delete)
        self._app_id = app_id
        self._api_key = api_key
        self._timeout = timeout
        self._base_url = (base_url or f"https://{app_id}-dsn.algolia.net").rstrip("/")
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings, store: RecordStore | None = None) -> AlgoliaEngine:
        return cls(
            store,
            app_id=settings.algolia.app_id,
            api_key=settings.algolia.secret,
            timeout=settings.algolia.timeout,
            prefix=settings.prefix,
            soft_delete=settings.soft_delete,
        )

    @property
    def name(self) -> str:
        return "algolia"

    @property
    def key_field(self) -> str:
        return OBJECT_ID

    @property
    def client(self) -> httpx.AsyncClient:
        if not self._client:
            raise ConnectionError("Algolia client not initialized.")
        return self._client

    async def initialize(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers={
                "X-Algolia-Application-Id": self._app_id,
                "X-Algolia-API-Key": self._api_key,
                "Content-Type": "application/json",
            },
        )
        logger.info("Algolia client ready for application %s", self._app_id)

    async def shutdown(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = await self.client.request(method, path, **kwargs)
        resp.raise_for_status()
        return resp.json() if resp.content else None

    # ── Writes ───────────────────────────────────────────────────────────

    def prepare_document(self, record: SearchableModel, document: dict[str, Any]) -> dict[str, Any]:
        document[OBJECT_ID] = str(record.get_scout_key())
        return document

    async def update(self, records: Sequence[SearchableModel]) -> None:
        for index, (_, documents) in self.group_documents(records).items():
            requests = [{"action": "updateObject", "body": doc} for doc in documents]
            await self._request("POST", f"/1/indexes/{index}/batch", json={"requests": requests})
            logger.debug("Sent %d updateObject(s) to Algolia index %s", len(requests), index)

    async def delete(self, records: Sequence[SearchableModel | RemovableSnapshot]) -> None:
        for index, snapshots in self.group_snapshots(records).items():
            requests = [{"action": "deleteObject", "body": {OBJECT_ID: str(s.key)}} for s in snapshots]
            await self._request("POST", f"/1/indexes/{index}/batch", json={"requests": requests})
            logger.debug("Sent %d deleteObject(s) to Algolia index %s", len(requests), index)

    async def flush(self, model: type[SearchableModel]) -> None:
        await self._request("POST", f"/1/indexes/{self.index_name(model.searchable_as())}/clear")

    async def create_index(self, name: str, **options: Any) -> Any:
        raise UnsupportedOperationError("Algolia creates indexes on first write; create_index is not supported.")

    async def delete_index(self, name: str) -> Any:
        return await self._request("DELETE", f"/1/indexes/{self.index_name(name)}")

    # ── Search ───────────────────────────────────────────────────────────

    def search_params(self, request: SearchRequest, **extra: Any) -> dict[str, Any]:
        """Compile ``request`` into Algolia query parameters (without ``query``)."""
        if request.orderings:
            logger.debug("Algolia ignores query-time orderings on %s", request.index_name)

        params: dict[str, Any] = dict(request.options)
        compiled = {
            "numericFilters": compile_clause_array(request.effective_filters()),
            "hitsPerPage": request.limit,
            **extra,
        }
        params.update({k: v for k, v in compiled.items() if v is not None and v != []})
        return params

    async def _perform_search(self, request: SearchRequest, params: dict[str, Any]) -> Any:
        index = self.request_index(request)
        callback = request.callback
        if callback is not None:
            return await callback(self.index_client(index), request.term, params)

        payload = dict(params)
        if request.term:
            payload["query"] = request.term
        return await self._request("POST", f"/1/indexes/{index}/query", json=payload)

    async def search(self, request: SearchRequest) -> Any:
        return await self._perform_search(request, self.search_params(request))

    async def paginate(self, request: SearchRequest, per_page: int, page: int) -> Any:
        # Algolia pages are zero-based.
        return await self._perform_search(request, self.search_params(request, hitsPerPage=per_page, page=page - 1))

    def index_client(self, index: str) -> AlgoliaIndex:
        return AlgoliaIndex(self, index)

    # ── Results ──────────────────────────────────────────────────────────

    def raw_hits(self, results: Any) -> list[Any]:
        return list((results or {}).get("hits", []))

    def get_total_count(self, results: Any) -> int:
        return int((results or {}).get("nbHits", 0))

    async def passthrough(self, method: str, path: str, **kwargs: Any) -> Any:
        return await self._request(method, path, **kwargs)

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> EngineHealth:
        """List indexes as a cheap authenticated round trip."""
        if not self._client:
            return EngineHealth(status="unhealthy", message="Client not initialized")

        try:
            start = time.monotonic()
            resp = await self._client.get("/1/indexes", params={"hitsPerPage": 1})
            latency_ms = int((time.monotonic() - start) * 1000)
            return EngineHealth(
                status="healthy" if resp.status_code == 200 else "degraded",
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=f"Algolia returned HTTP {resp.status_code}",
            )
        except Exception as e:
            return EngineHealth(status="unhealthy", message=str(e))


class AlgoliaIndex:
    """Per-index handle given to raw query hooks."""

    def __init__(self, engine: AlgoliaEngine, name: str) -> None:
        self.engine = engine
        self.name = name

    async def search(self, query: str, params: dict[str, Any] | None = None) -> Any:
        payload = dict(params or {})
        if query:
            payload["query"] = query
        return await self.engine.passthrough("POST", f"/1/indexes/{self.name}/query", json=payload)

    async def request(self, method: str, path: str = "", **kwargs: Any) -> Any:
        return await self.engine.passthrough(method, f"/1/indexes/{self.name}{path}", **kwargs)
