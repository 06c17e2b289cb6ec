"""Search request models — the backend-agnostic constraint model.

A ``SearchRequest`` describes *what* to look for (term, filters, ordering,
window, soft-delete visibility). Engines compile it into their native query
language; callers never build backend syntax themselves.

Usage::

    request = (
        Post.search("solar", engine=engine)
        .where("author_id", 7)
        .where_in("status", ["draft", "published"])
        .order_by_desc("created_at")
        .take(20)
    )
    posts = await request.get()
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from scoutsync.engines.base.engine import SearchEngine
    from scoutsync.models.record import SearchableModel
    from scoutsync.models.result import Paginator

SOFT_DELETE_FIELD = "__soft_deleted"

RawQueryHook = Callable[[Any, str, dict[str, Any]], Awaitable[Any]]
"""Escape hatch: ``hook(client, term, options)`` fully owns the backend call."""


class FilterOperator(str, Enum):
    """Supported filter operators."""

    EQ = "eq"
    IN = "in"
    NOT_IN = "not_in"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SoftDeleteMode(str, Enum):
    """Visibility of trashed records in search results."""

    NONE = "none"
    WITH_TRASHED = "with_trashed"
    ONLY_TRASHED = "only_trashed"


class QueryKind(str, Enum):
    """Which search path an engine must take for a request."""

    COMPILED = "compiled"
    RAW_HOOK = "raw_hook"


class Filter(BaseModel):
    """A single structural constraint."""

    field: str = Field(description="Indexed attribute name")
    operator: FilterOperator = Field(default=FilterOperator.EQ, description="Comparison operator")
    value: Any = Field(default=None, description="Scalar for eq, sequence for in / not_in")


class Ordering(BaseModel):
    """A single sort clause."""

    field: str = Field(description="Indexed attribute name")
    direction: SortDirection = Field(default=SortDirection.ASC, description="Sort direction")


class SearchRequest:
    """Chainable, backend-agnostic description of a search.

    Filters and orderings keep insertion order; compilers emit clauses in
    exactly that order.

    Args:
        model: The searchable record class being queried.
        term: Free-text query. An empty term means "structural filters only".
        callback: Optional raw query hook that replaces the compiled call.
        engine: Engine used by the terminal operations (``get``, ``paginate``...).
        soft_delete: Whether soft-deleted records are kept in the index.
    """

    def __init__(
        self,
        model: type[SearchableModel],
        term: str = "",
        callback: RawQueryHook | None = None,
        *,
        engine: SearchEngine | None = None,
        soft_delete: bool = False,
    ) -> None:
        self.model = model
        self.term = term or ""
        self.callback = callback
        self.engine = engine
        self.soft_delete = soft_delete
        self.filters: list[Filter] = []
        self.orderings: list[Ordering] = []
        self.limit: int | None = None
        self.index: str | None = None
        self.options: dict[str, Any] = {}
        self.soft_delete_mode = SoftDeleteMode.NONE

    def __repr__(self) -> str:
        return (
            f"SearchRequest(model={self.model.__name__}, term={self.term!r}, "
            f"filters={len(self.filters)}, kind={self.kind.value})"
        )

    # ── Constraint builders ──────────────────────────────────────────────

    def where(self, field: str, value: Any) -> SearchRequest:
        """Add an equality constraint."""
        self.filters.append(Filter(field=field, operator=FilterOperator.EQ, value=value))
        return self

    def where_in(self, field: str, values: Iterable[Any]) -> SearchRequest:
        """Constrain ``field`` to one of ``values``. An empty set matches nothing."""
        self.filters.append(Filter(field=field, operator=FilterOperator.IN, value=list(values)))
        return self

    def where_not_in(self, field: str, values: Iterable[Any]) -> SearchRequest:
        """Exclude records whose ``field`` is one of ``values``."""
        self.filters.append(Filter(field=field, operator=FilterOperator.NOT_IN, value=list(values)))
        return self

    def order_by(self, field: str, direction: str | SortDirection = SortDirection.ASC) -> SearchRequest:
        if not isinstance(direction, SortDirection):
            direction = SortDirection(direction.lower())
        self.orderings.append(Ordering(field=field, direction=direction))
        return self

    def order_by_desc(self, field: str) -> SearchRequest:
        return self.order_by(field, SortDirection.DESC)

    def latest(self, field: str | None = None) -> SearchRequest:
        """Newest first, by the model's creation timestamp unless ``field`` is given."""
        return self.order_by(field or self.model.__created_at_field__, SortDirection.DESC)

    def oldest(self, field: str | None = None) -> SearchRequest:
        return self.order_by(field or self.model.__created_at_field__, SortDirection.ASC)

    def take(self, limit: int) -> SearchRequest:
        """Cap the number of hits requested from the backend."""
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"take() expects a positive integer, got {limit!r}")
        self.limit = limit
        return self

    def within(self, index: str) -> SearchRequest:
        """Search a custom index instead of the model's default one."""
        self.index = index
        return self

    def with_options(self, **options: Any) -> SearchRequest:
        """Merge backend-native parameters into the compiled request."""
        self.options.update(options)
        return self

    def using(self, callback: RawQueryHook | None) -> SearchRequest:
        """Replace the compiled backend call with ``callback``."""
        self.callback = callback
        return self

    def with_trashed(self) -> SearchRequest:
        self.soft_delete_mode = SoftDeleteMode.WITH_TRASHED
        return self

    def only_trashed(self) -> SearchRequest:
        self.soft_delete_mode = SoftDeleteMode.ONLY_TRASHED
        return self

    # ── Derived views ────────────────────────────────────────────────────

    @property
    def kind(self) -> QueryKind:
        return QueryKind.RAW_HOOK if self.callback is not None else QueryKind.COMPILED

    @property
    def index_name(self) -> str:
        return self.index or self.model.searchable_as()

    def effective_filters(self) -> list[Filter]:
        """User filters followed by the soft-delete visibility constraint, if any."""
        filters = list(self.filters)
        if not (self.soft_delete and self.model.__soft_deletes__):
            return filters
        if self.soft_delete_mode is SoftDeleteMode.NONE:
            filters.append(Filter(field=SOFT_DELETE_FIELD, value=0))
        elif self.soft_delete_mode is SoftDeleteMode.ONLY_TRASHED:
            filters.append(Filter(field=SOFT_DELETE_FIELD, value=1))
        return filters

    # ── Terminal operations ──────────────────────────────────────────────

    def _engine(self) -> SearchEngine:
        if self.engine is None:
            raise RuntimeError(f"{self!r} is not bound to an engine. Pass engine= to search().")
        return self.engine

    async def raw(self) -> Any:
        """Run the search and return the backend-native result."""
        return await self._engine().search(self)

    async def keys(self) -> list[Any]:
        """Identifiers of the matching records, in backend rank order."""
        return await self._engine().keys(self)

    async def get(self) -> list[Any]:
        """Matching records, rehydrated from the store in backend rank order."""
        return await self._engine().get(self)

    async def first(self) -> Any | None:
        records = await self.get()
        return records[0] if records else None

    def cursor(self) -> AsyncIterator[Any]:
        """Lazily stream matching records in backend rank order."""
        return self._engine().cursor(self)

    async def paginate(self, per_page: int | None = None, page: int = 1) -> Paginator:
        """Return one page of records with totals reported by the backend."""
        from scoutsync.models.result import Paginator

        engine = self._engine()
        per_page = per_page or self.model.__per_page__
        results = await engine.paginate(self, per_page, page)
        items = await engine.map(self, results, self.model)
        return Paginator(
            items=items,
            total=engine.get_total_count(results),
            per_page=per_page,
            current_page=page,
        )

    async def paginate_raw(self, per_page: int | None = None, page: int = 1) -> Paginator:
        """Like :meth:`paginate` but items are the backend's raw hits."""
        from scoutsync.models.result import Paginator

        engine = self._engine()
        per_page = per_page or self.model.__per_page__
        results = await engine.paginate(self, per_page, page)
        return Paginator(
            items=engine.raw_hits(results),
            total=engine.get_total_count(results),
            per_page=per_page,
            current_page=page,
        )
