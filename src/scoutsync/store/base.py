"""Record store interface — the source-of-truth collaborator.

The store is not part of scoutsync. Engines only need to bulk-fetch records
by identifier (eagerly or through a cursor) and, for the collection engine,
to list every record of a model.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RecordStore(Protocol):
    """Read-side access to the records behind a search index.

    Implementations may return records in any order; callers re-sort them.
    Identifiers with no live record are simply absent from the result.
    """

    async def fetch_by_ids(self, model: type[Any], ids: Sequence[Any]) -> list[Any]:
        """Fetch every live record of ``model`` whose scout key is in ``ids``."""
        ...

    def cursor_by_ids(self, model: type[Any], ids: Sequence[Any]) -> AsyncIterator[Any]:
        """Stream records of ``model`` whose scout key is in ``ids``."""
        ...

    async def all(self, model: type[Any]) -> list[Any]:
        """Every record of ``model``, trashed ones included."""
        ...
