"""In-memory record store.

Keeps records in per-model dictionaries keyed by scout key. Used by the
collection engine for local development and throughout the test suite.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Any

from scoutsync.models.record import SearchableModel


class InMemoryRecordStore:
    """A ``RecordStore`` backed by dictionaries.

    ``fetch_by_ids`` deliberately returns records in insertion order rather
    than the requested order, like a relational ``WHERE id IN (...)`` would.
    Keys are compared as strings, so ``"7"`` (an Algolia ``objectID``) finds
    the record keyed ``7``.
    """

    def __init__(self, records: Iterable[SearchableModel] = ()) -> None:
        self._tables: dict[type[Any], dict[Any, SearchableModel]] = {}
        for record in records:
            self.put(record)

    def put(self, record: SearchableModel) -> SearchableModel:
        self._tables.setdefault(type(record), {})[record.get_scout_key()] = record
        return record

    def remove(self, record: SearchableModel) -> None:
        self._tables.get(type(record), {}).pop(record.get_scout_key(), None)

    def clear(self) -> None:
        self._tables.clear()

    async def fetch_by_ids(self, model: type[Any], ids: Sequence[Any]) -> list[Any]:
        wanted = {str(i) for i in ids}
        return [record for key, record in self._tables.get(model, {}).items() if str(key) in wanted]

    async def cursor_by_ids(self, model: type[Any], ids: Sequence[Any]) -> AsyncIterator[Any]:
        wanted = {str(i) for i in ids}
        for key, record in list(self._tables.get(model, {}).items()):
            if str(key) in wanted:
                yield record

    async def all(self, model: type[Any]) -> list[Any]:
        return list(self._tables.get(model, {}).values())
