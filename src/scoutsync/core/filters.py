"""Filter compilers — constraint model to backend filter syntax.

Two families are supported:

* **Expression string** (Meilisearch style)::

      status="published" AND author_id IN [1, 2] AND tag NOT IN ["draft"]

* **Clause array** (Algolia ``numericFilters`` style): a flat list that the
  backend ANDs together, where a nested list is an OR group::

      ["author_id=7", ["status=1", "status=2"]]

Both compilers are pure and emit clauses in filter insertion order.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from scoutsync.engines.base.exceptions import FilterCompilationError
from scoutsync.models.query import Filter, FilterOperator, Ordering

# Clause that can never match; keeps an empty IN from widening the result set.
ALWAYS_FALSE_CLAUSE = "0=1"


def check_scalar(f: Filter, value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)):
        return value
    raise FilterCompilationError(
        f"Filter on '{f.field}' has non-scalar value {value!r} ({type(value).__name__})"
    )


def check_values(f: Filter) -> list[Any]:
    if isinstance(f.value, (str, bytes)) or not isinstance(f.value, Sequence):
        raise FilterCompilationError(
            f"Filter '{f.operator.value}' on '{f.field}' expects a sequence of values, got {f.value!r}"
        )
    return [check_scalar(f, v) for v in f.value]


# ── Expression string ────────────────────────────────────────────────────────


def _expression_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def compile_filter_expression(filters: Sequence[Filter]) -> str:
    """Compile filters into a single ``AND``-joined expression string.

    Returns an empty string when there are no filters.

    Raises:
        FilterCompilationError: If a filter value is not a scalar (or a
            sequence of scalars for ``in`` / ``not_in``).
    """
    clauses: list[str] = []
    for f in filters:
        if f.operator is FilterOperator.EQ:
            clauses.append(f"{f.field}={_expression_literal(check_scalar(f, f.value))}")
            continue

        values = ", ".join(_expression_literal(v) for v in check_values(f))
        keyword = "IN" if f.operator is FilterOperator.IN else "NOT IN"
        clauses.append(f"{f.field} {keyword} [{values}]")

    return " AND ".join(clauses)


# ── Clause array ─────────────────────────────────────────────────────────────


def _clause_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def compile_clause_array(filters: Sequence[Filter]) -> list[str | list[str]]:
    """Compile filters into a flat clause list with nested OR groups.

    ``in`` becomes one nested group; an empty ``in`` becomes ``"0=1"``.
    ``not_in`` becomes one top-level ``field!=value`` clause per value.

    Raises:
        FilterCompilationError: On non-scalar values.
    """
    clauses: list[str | list[str]] = []
    for f in filters:
        if f.operator is FilterOperator.EQ:
            clauses.append(f"{f.field}={_clause_literal(check_scalar(f, f.value))}")
        elif f.operator is FilterOperator.IN:
            values = check_values(f)
            if not values:
                clauses.append(ALWAYS_FALSE_CLAUSE)
            else:
                clauses.append([f"{f.field}={_clause_literal(v)}" for v in values])
        else:
            clauses.extend(f"{f.field}!={_clause_literal(v)}" for v in check_values(f))
    return clauses


# ── Sorting ──────────────────────────────────────────────────────────────────


def compile_sort(orderings: Sequence[Ordering]) -> list[str]:
    """``[Ordering("name", "asc")]`` → ``["name:asc"]``."""
    return [f"{o.field}:{o.direction.value}" for o in orderings]
