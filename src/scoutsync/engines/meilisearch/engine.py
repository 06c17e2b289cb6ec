"""Meilisearch engine — Keeps Meilisearch indexes in sync with the record store.

This engine communicates via the official REST API using ``httpx``.
Filters compile to Meilisearch filter expressions::

    status="published" AND author_id IN [1, 2]

Usage::

    engine = MeilisearchEngine(
        store,
        base_url="http://localhost:7700",
        api_key="your-master-key",
    )
    await engine.initialize()
    posts = await Post.search("solar", engine=engine).where("status", "published").get()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

from scoutsync.core.filters import compile_filter_expression, compile_sort
from scoutsync.engines.base.engine import EngineHealth, SearchEngine
from scoutsync.engines.base.exceptions import ConnectionError
from scoutsync.models.query import SearchRequest
from scoutsync.models.record import RemovableSnapshot, SearchableModel

if TYPE_CHECKING:
    from scoutsync.config.settings import Settings
    from scoutsync.store.base import RecordStore

logger = logging.getLogger(__name__)


class MeilisearchEngine(SearchEngine):
    """Search engine for Meilisearch.

    Communicates with Meilisearch via its `REST API`_ over HTTP.

    .. _REST API: https://www.meilisearch.com/docs/reference/api/overview

    Writes are asynchronous on the Meilisearch side: every write call returns
    an enqueued task, which this engine does not wait for.

    Args:
        store: Record store used to rehydrate hits.
        base_url: Meilisearch instance URL, e.g. ``"http://localhost:7700"``.
        api_key: Master key or API key for authentication.
        timeout: HTTP request timeout in seconds.
        prefix: Prefix prepended to every index name.
        soft_delete: Whether soft-deleted records stay searchable.
        index_settings: Per-index settings for :meth:`sync_index_settings`.
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        *,
        base_url: str = "http://localhost:7700",
        api_key: str | None = None,
        timeout: float = 30.0,
        prefix: str = "",
        soft_delete: bool = False,
        index_settings: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(store, prefix=prefix, soft_delete=soft_delete)
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._index_settings = index_settings or {}
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings, store: RecordStore | None = None) -> MeilisearchEngine:
        return cls(
            store,
            base_url=settings.meilisearch.host,
            api_key=settings.meilisearch.key,
            timeout=settings.meilisearch.timeout,
            prefix=settings.prefix,
            soft_delete=settings.soft_delete,
            index_settings=settings.meilisearch.index_settings,
        )

    @property
    def name(self) -> str:
        return "meilisearch"

    @property
    def client(self) -> httpx.AsyncClient:
        if not self._client:
            raise ConnectionError("Meilisearch client not initialized.")
        return self._client

    async def initialize(self) -> None:
        """Create an ``httpx.AsyncClient`` and verify connection to Meilisearch."""
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=headers,
        )

        try:
            resp = await self._client.get("/health")
            resp.raise_for_status()
            data = resp.json()
            if data.get("status") != "available":
                raise ConnectionError(f"Meilisearch not available: {data}")
            logger.info("Connected to Meilisearch at %s", self._base_url)
        except httpx.HTTPError as e:
            raise ConnectionError(f"Failed to connect to Meilisearch: {e}") from e

    async def shutdown(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = await self.client.request(method, path, **kwargs)
        resp.raise_for_status()
        return resp.json() if resp.content else None

    # ── Writes ───────────────────────────────────────────────────────────

    async def update(self, records: Sequence[SearchableModel]) -> None:
        """Add or replace documents, one request per index."""
        for index, (key_name, documents) in self.group_documents(records).items():
            await self._request(
                "POST",
                f"/indexes/{index}/documents",
                params={"primaryKey": key_name},
                json=documents,
            )
            logger.debug("Queued %d document(s) for Meilisearch index %s", len(documents), index)

    async def delete(self, records: Sequence[SearchableModel | RemovableSnapshot]) -> None:
        """Delete documents by primary key, one request per index."""
        for index, snapshots in self.group_snapshots(records).items():
            await self._request(
                "POST",
                f"/indexes/{index}/documents/delete-batch",
                json=[s.key for s in snapshots],
            )
            logger.debug("Queued deletion of %d document(s) from Meilisearch index %s", len(snapshots), index)

    async def flush(self, model: type[SearchableModel]) -> None:
        await self._request("DELETE", f"/indexes/{self.index_name(model.searchable_as())}/documents")

    async def create_index(self, name: str, **options: Any) -> Any:
        payload = {"uid": self.index_name(name), **options}
        return await self._request("POST", "/indexes", json=payload)

    async def update_index_settings(self, name: str, settings: dict[str, Any]) -> Any:
        return await self._request("PATCH", f"/indexes/{self.index_name(name)}/settings", json=settings)

    async def sync_index_settings(self) -> None:
        """Push every configured ``index_settings`` entry to its index."""
        for name, settings in self._index_settings.items():
            await self.update_index_settings(name, settings)
            logger.info("Synced settings for Meilisearch index %s", self.index_name(name))

    async def delete_index(self, name: str) -> Any:
        return await self._request("DELETE", f"/indexes/{self.index_name(name)}")

    async def delete_all_indexes(self, page_size: int = 20) -> list[Any]:
        """Delete every index on the instance, walking the paginated listing."""
        uids: list[str] = []
        offset = 0
        while True:
            data = await self._request("GET", "/indexes", params={"offset": offset, "limit": page_size})
            results = data.get("results", [])
            uids.extend(item["uid"] for item in results)
            offset += len(results)
            if not results or offset >= data.get("total", 0):
                break

        return [await self._request("DELETE", f"/indexes/{uid}") for uid in uids]

    # ── Search ───────────────────────────────────────────────────────────

    def search_params(self, request: SearchRequest, **extra: Any) -> dict[str, Any]:
        """Compile ``request`` into Meilisearch search parameters (without ``q``)."""
        params: dict[str, Any] = dict(request.options)
        if "attributesToRetrieve" in params:
            key_name = request.model.get_scout_key_name()
            params["attributesToRetrieve"] = [key_name] + [
                a for a in params["attributesToRetrieve"] if a != key_name
            ]

        compiled = {
            "filter": compile_filter_expression(request.effective_filters()),
            "hitsPerPage": request.limit,
            "sort": compile_sort(request.orderings),
            **extra,
        }
        params.update({k: v for k, v in compiled.items() if v})
        return params

    async def _perform_search(self, request: SearchRequest, params: dict[str, Any]) -> Any:
        index = self.request_index(request)
        callback = request.callback
        if callback is not None:
            return await callback(self.index_client(index), request.term, params)

        payload = dict(params)
        if request.term:
            payload["q"] = request.term
        return await self._request("POST", f"/indexes/{index}/search", json=payload)

    async def search(self, request: SearchRequest) -> Any:
        return await self._perform_search(request, self.search_params(request))

    async def paginate(self, request: SearchRequest, per_page: int, page: int) -> Any:
        return await self._perform_search(request, self.search_params(request, hitsPerPage=per_page, page=page))

    def index_client(self, index: str) -> MeilisearchIndex:
        """Handle passed to raw query hooks."""
        return MeilisearchIndex(self, index)

    # ── Results ──────────────────────────────────────────────────────────

    def raw_hits(self, results: Any) -> list[Any]:
        return list((results or {}).get("hits", []))

    def get_total_count(self, results: Any) -> int:
        results = results or {}
        return int(results.get("totalHits", results.get("estimatedTotalHits", 0)))

    async def passthrough(self, method: str, path: str, **kwargs: Any) -> Any:
        return await self._request(method, path, **kwargs)

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> EngineHealth:
        """Check Meilisearch health."""
        if not self._client:
            return EngineHealth(status="unhealthy", message="Client not initialized")

        try:
            start = time.monotonic()
            resp = await self._client.get("/health")
            latency_ms = int((time.monotonic() - start) * 1000)

            if resp.status_code == 200:
                status = resp.json().get("status", "unknown")
                return EngineHealth(
                    status="healthy" if status == "available" else "degraded",
                    latency_ms=latency_ms,
                    last_check=datetime.now(UTC).isoformat(),
                    message=f"Meilisearch status: {status}",
                )
            return EngineHealth(
                status="degraded",
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=f"Meilisearch returned HTTP {resp.status_code}",
            )
        except Exception as e:
            return EngineHealth(status="unhealthy", message=str(e))


class MeilisearchIndex:
    """Thin per-index handle given to raw query hooks.

    ``search(q, params)`` hits the same endpoint the compiled path uses;
    ``request()`` reaches any other index endpoint.
    """

    def __init__(self, engine: MeilisearchEngine, uid: str) -> None:
        self.engine = engine
        self.uid = uid

    async def search(self, query: str, params: dict[str, Any] | None = None) -> Any:
        payload = dict(params or {})
        if query:
            payload["q"] = query
        return await self.engine.passthrough("POST", f"/indexes/{self.uid}/search", json=payload)

    async def request(self, method: str, path: str = "", **kwargs: Any) -> Any:
        return await self.engine.passthrough(method, f"/indexes/{self.uid}{path}", **kwargs)
