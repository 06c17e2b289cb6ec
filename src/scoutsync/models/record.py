"""Searchable record contract and removal snapshots.

Every indexable entity derives from ``SearchableModel``. The class variables
declare how the record maps onto a search index; the methods are the hooks
the sync pipeline and the engines call.

Example::

    class Post(SearchableModel):
        __search_index__ = "posts"
        __soft_deletes__ = True

        id: int
        title: str
        body: str = ""
        deleted_at: datetime | None = None

        def should_be_searchable(self) -> bool:
            return bool(self.title)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

if TYPE_CHECKING:
    from scoutsync.engines.base.engine import SearchEngine
    from scoutsync.models.query import RawQueryHook, SearchRequest


class SearchableModel(BaseModel):
    """Base class for records kept in sync with a search index."""

    __search_index__: ClassVar[str | None] = None
    __scout_key__: ClassVar[str] = "id"
    __soft_deletes__: ClassVar[bool] = False
    __deleted_at_field__: ClassVar[str] = "deleted_at"
    __created_at_field__: ClassVar[str] = "created_at"
    __per_page__: ClassVar[int] = 15

    _scout_metadata: dict[str, Any] = PrivateAttr(default_factory=dict)

    # ── Index identity ───────────────────────────────────────────────────

    @classmethod
    def searchable_as(cls) -> str:
        """Index name (without the engine's prefix)."""
        return cls.__search_index__ or f"{cls.__name__.lower()}s"

    @classmethod
    def get_scout_key_name(cls) -> str:
        return cls.__scout_key__

    @classmethod
    def searchable_type(cls) -> str:
        """Import path of the model class, ``"package.module:QualName"``."""
        return f"{cls.__module__}:{cls.__qualname__}"

    def get_scout_key(self) -> Any:
        return getattr(self, self.get_scout_key_name())

    # ── Projection ───────────────────────────────────────────────────────

    def to_searchable_array(self) -> dict[str, Any]:
        """Fields pushed to the index. An empty mapping means "nothing to index"."""
        return self.model_dump(mode="json")

    @classmethod
    def make_searchable_using(cls, records: Sequence[Any]) -> Sequence[Any]:
        """Prepare a batch before projection (e.g. load lazy attributes)."""
        return records

    # ── Sync hooks ───────────────────────────────────────────────────────

    def should_be_searchable(self) -> bool:
        return True

    def search_index_should_be_updated(self, changed: frozenset[str]) -> bool:
        """Selective reindex predicate evaluated against the changed field names."""
        return True

    def was_searchable_before_update(self) -> bool:
        return True

    def was_searchable_before_delete(self) -> bool:
        return True

    def is_trashed(self) -> bool:
        if not self.__soft_deletes__:
            return False
        return getattr(self, self.__deleted_at_field__, None) is not None

    # ── Relevance metadata (out-of-band, never dumped) ───────────────────

    def scout_metadata(self) -> dict[str, Any]:
        return dict(self._scout_metadata)

    def with_scout_metadata(self, key: str, value: Any) -> SearchableModel:
        self._scout_metadata[key] = value
        return self

    # ── Querying ─────────────────────────────────────────────────────────

    @classmethod
    def search(
        cls,
        term: str = "",
        callback: RawQueryHook | None = None,
        *,
        engine: SearchEngine | None = None,
    ) -> SearchRequest:
        """Start a search request for this model."""
        from scoutsync.models.query import SearchRequest

        return SearchRequest(
            cls,
            term,
            callback,
            engine=engine,
            soft_delete=engine.soft_delete if engine is not None else False,
        )


class RemovableSnapshot(BaseModel):
    """Identity of a record captured when its removal is decided.

    Removal work carries snapshots instead of records so it can run, and be
    redelivered, after the source row is gone.
    """

    model_config = ConfigDict(frozen=True)

    index: str = Field(description="Index name the record lives in (without engine prefix)")
    key_name: str = Field(description="Name of the identifier field in the index")
    key: str | int = Field(description="Identifier value in the index")

    @classmethod
    def capture(cls, record: SearchableModel) -> RemovableSnapshot:
        key = record.get_scout_key()
        if isinstance(key, bool) or not isinstance(key, (str, int)):
            key = str(key)  # UUIDs and other key objects travel as strings
        return cls(
            index=record.searchable_as(),
            key_name=record.get_scout_key_name(),
            key=key,
        )
