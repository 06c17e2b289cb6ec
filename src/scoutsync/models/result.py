"""Pagination result model."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, Field


class Paginator(BaseModel):
    """One page of search results.

    ``total`` is what the backend reports, not ``len(items)``: records that
    were indexed but no longer exist in the store are dropped from ``items``
    without changing the page math.
    """

    items: list[Any] = Field(default_factory=list, description="Records (or raw hits) on this page")
    total: int = Field(default=0, ge=0, description="Total matches reported by the backend")
    per_page: int = Field(ge=1, description="Page size")
    current_page: int = Field(default=1, ge=1, description="1-based page number")

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    @property
    def count(self) -> int:
        return len(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):  # type: ignore[override]
        return iter(self.items)

    def __getitem__(self, position: int) -> Any:
        return self.items[position]
