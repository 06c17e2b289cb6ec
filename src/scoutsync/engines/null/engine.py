"""Null engine — accepts every write, matches nothing."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING, Any

from scoutsync.engines.base.engine import SearchEngine
from scoutsync.models.query import SearchRequest
from scoutsync.models.record import RemovableSnapshot, SearchableModel

if TYPE_CHECKING:
    from scoutsync.config.settings import Settings
    from scoutsync.store.base import RecordStore


class NullEngine(SearchEngine):
    """Engine used to switch search off without touching calling code."""

    @classmethod
    def from_settings(cls, settings: Settings, store: RecordStore | None = None) -> NullEngine:
        return cls(store, prefix=settings.prefix, soft_delete=settings.soft_delete)

    @property
    def name(self) -> str:
        return "null"

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

    async def search(self, request: SearchRequest) -> list[Any]:
        return []

    async def paginate(self, request: SearchRequest, per_page: int, page: int) -> list[Any]:
        return []

    def raw_hits(self, results: Any) -> list[Any]:
        return []

    def get_total_count(self, results: Any) -> int:
        return 0

    def map_ids(self, results: Any, key_name: str | None = None) -> list[Any]:
        return []

    async def map(self, request: SearchRequest, results: Any, model: type[SearchableModel]) -> list[Any]:
        return []

    async def lazy_map(
        self, request: SearchRequest, results: Any, model: type[SearchableModel]
    ) -> AsyncIterator[Any]:
        return
        yield
