"""Sync intent model — a decided, not yet dispatched, index mutation."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from scoutsync.models.record import RemovableSnapshot


class SyncOperation(str, Enum):
    UPSERT = "upsert"
    REMOVE = "remove"


class SyncIntent(BaseModel):
    """Outcome of a lifecycle decision.

    Upserts carry live records (re-read on delivery); removals carry
    snapshots so they never depend on the record still existing.
    """

    operation: SyncOperation = Field(description="Index mutation to perform")
    records: list[Any] = Field(default_factory=list, description="Records to upsert")
    snapshots: list[RemovableSnapshot] = Field(default_factory=list, description="Identities to remove")

    @classmethod
    def upsert(cls, *records: Any) -> SyncIntent:
        return cls(operation=SyncOperation.UPSERT, records=list(records))

    @classmethod
    def remove(cls, *records: Any) -> SyncIntent:
        return cls(
            operation=SyncOperation.REMOVE,
            snapshots=[RemovableSnapshot.capture(record) for record in records],
        )
