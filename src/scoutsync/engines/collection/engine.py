"""Collection engine — searches the record store in process.

There is no remote index: every search loads the model's records from the
store and filters them in memory. Useful for tests and for small datasets
where running a search server is not worth it.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING, Any

from scoutsync.core.filters import check_scalar, check_values
from scoutsync.engines.base.engine import SearchEngine
from scoutsync.models.query import Filter, FilterOperator, SearchRequest, SoftDeleteMode, SortDirection
from scoutsync.models.record import RemovableSnapshot, SearchableModel

if TYPE_CHECKING:
    from scoutsync.config.settings import Settings
    from scoutsync.store.base import RecordStore

logger = logging.getLogger(__name__)


def _matches_term(document: dict[str, Any], term: str) -> bool:
    needle = term.lower()
    return any(needle in str(value).lower() for value in document.values() if value is not None)


def _matches_filter(document: dict[str, Any], f: Filter) -> bool:
    value = document.get(f.field)
    if f.operator is FilterOperator.EQ:
        return value == check_scalar(f, f.value)
    if f.operator is FilterOperator.IN:
        return value in check_values(f)
    return value not in check_values(f)


def _sort_key(field: str):
    def key(record: SearchableModel) -> tuple[bool, Any]:
        value = record.to_searchable_array().get(field)
        return (value is None, value)

    return key


class CollectionEngine(SearchEngine):
    """Engine that filters store records in memory.

    Results are ``{"results": [records...], "total": n}`` where ``total`` is
    the size of the filtered set before ``take()`` or page slicing.
    """

    @classmethod
    def from_settings(cls, settings: Settings, store: RecordStore | None = None) -> CollectionEngine:
        return cls(store, prefix=settings.prefix, soft_delete=settings.soft_delete)

    @property
    def name(self) -> str:
        return "collection"

    # ── Writes (the store is the index) ──────────────────────────────────

    async def update(self, records: Sequence[SearchableModel]) -> None:
        return None

    async def delete(self, records: Sequence[SearchableModel | RemovableSnapshot]) -> None:
        return None

    async def flush(self, model: type[SearchableModel]) -> None:
        return None

    async def create_index(self, name: str, **options: Any) -> Any:
        return None

    async def delete_index(self, name: str) -> Any:
        return None

    # ── Search ───────────────────────────────────────────────────────────

    def _visible(self, request: SearchRequest, record: SearchableModel) -> bool:
        if not record.__soft_deletes__:
            return True
        if request.soft_delete_mode is SoftDeleteMode.WITH_TRASHED:
            return True
        if request.soft_delete_mode is SoftDeleteMode.ONLY_TRASHED:
            return record.is_trashed()
        return not record.is_trashed()

    async def _filtered(self, request: SearchRequest) -> list[SearchableModel]:
        records = list(await self.store.all(request.model))
        callback = request.callback
        if callback is not None:
            return list(await callback(records, request.term, dict(request.options)))

        matched: list[SearchableModel] = []
        for record in records:
            if not record.should_be_searchable() or not self._visible(request, record):
                continue
            document = record.to_searchable_array()
            if request.term and not _matches_term(document, request.term):
                continue
            if all(_matches_filter(document, f) for f in request.filters):
                matched.append(record)

        # Stable sorts applied last-to-first give multi-key ordering.
        for ordering in reversed(request.orderings):
            matched.sort(key=_sort_key(ordering.field), reverse=ordering.direction is SortDirection.DESC)
        return matched

    async def search(self, request: SearchRequest) -> dict[str, Any]:
        matched = await self._filtered(request)
        results = matched[: request.limit] if request.limit else matched
        logger.debug("Collection search on %s matched %d record(s)", request.index_name, len(matched))
        return {"results": results, "total": len(matched)}

    async def paginate(self, request: SearchRequest, per_page: int, page: int) -> dict[str, Any]:
        matched = await self._filtered(request)
        start = (page - 1) * per_page
        return {"results": matched[start : start + per_page], "total": len(matched)}

    # ── Results ──────────────────────────────────────────────────────────

    def raw_hits(self, results: Any) -> list[Any]:
        hits = []
        for record in (results or {}).get("results", []):
            hit = record.to_searchable_array()
            hit[record.get_scout_key_name()] = record.get_scout_key()
            hits.append(hit)
        return hits

    def get_total_count(self, results: Any) -> int:
        return int((results or {}).get("total", 0))

    def map_ids(self, results: Any, key_name: str | None = None) -> list[Any]:
        return [record.get_scout_key() for record in (results or {}).get("results", [])]

    async def map(self, request: SearchRequest, results: Any, model: type[SearchableModel]) -> list[Any]:
        return list((results or {}).get("results", []))

    async def lazy_map(
        self, request: SearchRequest, results: Any, model: type[SearchableModel]
    ) -> AsyncIterator[Any]:
        for record in (results or {}).get("results", []):
            yield record
