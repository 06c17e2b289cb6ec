"""Lifecycle observer — turns record events into dispatched sync work.

Wire the observer into whatever persistence layer emits record events::

    observer = ModelObserver(SyncDecider(soft_delete=True), dispatcher)
    await repo.save(post)
    await observer.saved(post, changed={"title"})
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from scoutsync.core.dispatch import SearchDispatcher
from scoutsync.core.sync import SyncDecider
from scoutsync.models.record import SearchableModel
from scoutsync.models.sync import SyncIntent

logger = logging.getLogger(__name__)


class ModelObserver:
    """Feeds lifecycle events through the decider to the dispatcher.

    Every handler returns the dispatched intent, or None when the event
    calls for no index change.
    """

    def __init__(self, decider: SyncDecider, dispatcher: SearchDispatcher) -> None:
        self.decider = decider
        self.dispatcher = dispatcher

    async def _dispatch(self, event: str, record: SearchableModel, intent: SyncIntent | None) -> SyncIntent | None:
        if intent is None:
            logger.debug("%s %s: no index change", type(record).__name__, event)
            return None
        logger.debug("%s %s: %s", type(record).__name__, event, intent.operation.value)
        await self.dispatcher.dispatch(intent)
        return intent

    async def saved(
        self,
        record: SearchableModel,
        changed: Iterable[str] = (),
        original: Mapping[str, Any] | None = None,
    ) -> SyncIntent | None:
        intent = self.decider.on_saved(record, changed, original=original)
        return await self._dispatch("saved", record, intent)

    async def trashed(self, record: SearchableModel) -> SyncIntent | None:
        return await self._dispatch("trashed", record, self.decider.on_trashed(record))

    async def restored(self, record: SearchableModel) -> SyncIntent | None:
        return await self._dispatch("restored", record, self.decider.on_restored(record))

    async def deleted(self, record: SearchableModel) -> SyncIntent | None:
        return await self._dispatch("deleted", record, self.decider.on_deleted(record))
