"""Change-sync decision logic.

Maps a record lifecycle event to at most one ``SyncIntent``:

    event            → intent
    ───────────────────────────────────────────────────────────────────
    saved            → upsert if searchable, remove if it stopped being
                       searchable, nothing if the predicate says the
                       changed fields do not matter
    trashed          → upsert when soft-deleted records stay searchable,
                       remove otherwise
    restored         → upsert (the save fired by the restore is skipped)
    deleted (hard)   → remove, by snapshot

The per-type disable switch is checked before anything else. The decider
performs no I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

from scoutsync.core.toggles import SyncToggleRegistry, sync_toggles
from scoutsync.engines.base.exceptions import SyncPredicateError
from scoutsync.models.record import SearchableModel
from scoutsync.models.sync import SyncIntent

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _evaluate(record: SearchableModel, hook: str, call: Callable[[], T]) -> T:
    try:
        return call()
    except Exception as e:
        raise SyncPredicateError(f"{type(record).__name__}.{hook}() raised: {e}") from e


class SyncDecider:
    """Decides which index mutation a lifecycle event calls for.

    Args:
        soft_delete: Whether soft-deleted records stay searchable.
        toggles: Registry of model types with syncing switched off.
    """

    def __init__(self, *, soft_delete: bool = False, toggles: SyncToggleRegistry | None = None) -> None:
        self.soft_delete = soft_delete
        self.toggles = toggles if toggles is not None else sync_toggles

    def _disabled(self, record: SearchableModel) -> bool:
        if self.toggles.is_disabled(record):
            logger.debug("Syncing disabled for %s, ignoring event", type(record).__name__)
            return True
        return False

    def should_index(self, record: SearchableModel) -> bool:
        """Whether ``record`` belongs in the index right now."""
        if record.is_trashed() and not self.soft_delete:
            return False
        return _evaluate(record, "should_be_searchable", record.should_be_searchable)

    @staticmethod
    def is_restoring(
        record: SearchableModel,
        changed: frozenset[str],
        original: Mapping[str, Any] | None = None,
    ) -> bool:
        """True when a save is the write half of a restore.

        The deleted-at field must be among the written fields, cleared now,
        and set in ``original`` (the values before the save). Without
        ``original`` there is no proof the record was trashed, so the save is
        treated as an ordinary create or update.
        """
        field = record.__deleted_at_field__
        return (
            record.__soft_deletes__
            and field in changed
            and not record.is_trashed()
            and original is not None
            and original.get(field) is not None
        )

    def on_saved(
        self,
        record: SearchableModel,
        changed: Iterable[str] = (),
        *,
        original: Mapping[str, Any] | None = None,
        force: bool = False,
    ) -> SyncIntent | None:
        """Decide for a create or update.

        Args:
            record: The saved record.
            changed: Names of the fields written by this save.
            original: Field values before the save, when the caller has them.
            force: Skip the selective reindex predicate (restores, trashing
                with soft-delete visibility).
        """
        if self._disabled(record):
            return None

        changed = frozenset(changed)
        if not force:
            if self.is_restoring(record, changed, original):
                return None
            if not _evaluate(
                record,
                "search_index_should_be_updated",
                lambda: record.search_index_should_be_updated(changed),
            ):
                return None

        if self.should_index(record):
            return SyncIntent.upsert(record)

        if _evaluate(record, "was_searchable_before_update", record.was_searchable_before_update):
            return SyncIntent.remove(record)
        return None

    def on_trashed(self, record: SearchableModel) -> SyncIntent | None:
        """Decide for a soft delete."""
        if self._disabled(record):
            return None
        if not _evaluate(record, "was_searchable_before_delete", record.was_searchable_before_delete):
            return None
        if self.soft_delete and record.__soft_deletes__:
            return self.on_saved(record, force=True)
        return SyncIntent.remove(record)

    def on_restored(self, record: SearchableModel) -> SyncIntent | None:
        """Decide for a restore from the trash."""
        if self._disabled(record):
            return None
        return self.on_saved(record, force=True)

    def on_deleted(self, record: SearchableModel) -> SyncIntent | None:
        """Decide for a hard (or forced) delete."""
        if self._disabled(record):
            return None
        return SyncIntent.remove(record)
