"""Result reconciler — backend rank order over store records.

Backends return ranked hits that only carry identifiers (plus relevance
data). The store returns full records in whatever order it likes. The
reconciler puts the records back into backend rank order, drops hits whose
record no longer exists, and attaches the hit's relevance metadata to each
record out-of-band.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from typing import Any

logger = logging.getLogger(__name__)


def hit_ids(hits: Sequence[Mapping[str, Any]], key_name: str) -> list[Any]:
    """Identifiers of ``hits`` in rank order (hits without the key are skipped)."""
    return [hit[key_name] for hit in hits if key_name in hit]


def relevance_metadata(hit: Mapping[str, Any]) -> dict[str, Any]:
    """Backend relevance fields of a hit (``_rankingScore``, ``_rankingInfo``...)."""
    return {key: value for key, value in hit.items() if key.startswith("_")}


def _index_hits(hits: Sequence[Mapping[str, Any]], key_name: str) -> tuple[dict[Any, int], dict[int, Mapping[str, Any]]]:
    """Map identifier -> rank position, and rank position -> hit (first occurrence wins)."""
    positions: dict[Any, int] = {}
    by_position: dict[int, Mapping[str, Any]] = {}
    for hit in hits:
        if key_name not in hit:
            continue
        key = _normalize(hit[key_name])
        if key not in positions:
            positions[key] = len(positions)
            by_position[positions[key]] = hit
    return positions, by_position


def _normalize(key: Any) -> Any:
    # Backends may echo numeric keys back as strings (Algolia objectID).
    return str(key)


def _attach(record: Any, hit: Mapping[str, Any]) -> Any:
    for key, value in relevance_metadata(hit).items():
        record.with_scout_metadata(key, value)
    return record


def reconcile(
    hits: Sequence[Mapping[str, Any]],
    records: Iterable[Any],
    key_name: str,
) -> list[Any]:
    """Order ``records`` like ``hits`` and attach relevance metadata.

    Args:
        hits: Backend hits, best match first. ``key_name`` holds the identifier.
        records: Live records fetched for those identifiers, any order.
        key_name: Identifier field in the hits.

    Returns:
        Records in hit order. Hits with no live record are left out.
    """
    positions, hits_by_position = _index_hits(hits, key_name)

    placed: dict[int, Any] = {}
    for record in records:
        position = positions.get(_normalize(record.get_scout_key()))
        if position is not None and position not in placed:
            placed[position] = record

    ordered = [_attach(placed[p], hits_by_position[p]) for p in sorted(placed)]

    missing = len(positions) - len(ordered)
    if missing:
        logger.debug("Dropped %d hit(s) with no matching record (key=%s)", missing, key_name)
    return ordered


async def reconcile_lazy(
    hits: Sequence[Mapping[str, Any]],
    cursor: AsyncIterator[Any],
    key_name: str,
) -> AsyncIterator[Any]:
    """Streaming variant of :func:`reconcile`.

    Records that arrive in rank order are yielded immediately; records that
    arrive early are held until every better-ranked hit has been yielded or
    the cursor is exhausted.
    """
    positions, hits_by_position = _index_hits(hits, key_name)

    pending: dict[int, Any] = {}
    seen: set[int] = set()
    next_position = 0
    total = len(positions)

    async for record in cursor:
        position = positions.get(_normalize(record.get_scout_key()))
        if position is None or position in seen:
            continue
        seen.add(position)
        pending[position] = record
        while next_position in pending:
            yield _attach(pending.pop(next_position), hits_by_position[next_position])
            next_position += 1

    # Cursor exhausted: anything not seen by now has no live record.
    for position in range(next_position, total):
        if position in pending:
            yield _attach(pending.pop(position), hits_by_position[position])

    if total - len(seen):
        logger.debug("Dropped %d hit(s) with no matching record (key=%s)", total - len(seen), key_name)
