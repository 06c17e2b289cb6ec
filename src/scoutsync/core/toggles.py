"""Per-model sync switches.

Syncing can be switched off for a model type, e.g. while bulk-importing
rows that will be indexed in one pass afterwards::

    with sync_toggles.disabled(Post):
        await import_posts()

The registry is process-wide and starts empty, meaning every model type
syncs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)


def model_type_key(model: type[Any] | Any) -> str:
    """Registry key for a model class or instance: ``"package.module.QualName"``."""
    cls = model if isinstance(model, type) else type(model)
    return f"{cls.__module__}.{cls.__qualname__}"


class SyncToggleRegistry:
    """Set of model types whose index syncing is switched off."""

    def __init__(self) -> None:
        self._disabled: set[str] = set()

    def disable(self, model: type[Any] | Any) -> None:
        key = model_type_key(model)
        self._disabled.add(key)
        logger.info("Search syncing disabled for %s", key)

    def enable(self, model: type[Any] | Any) -> None:
        key = model_type_key(model)
        self._disabled.discard(key)
        logger.info("Search syncing enabled for %s", key)

    def is_disabled(self, model: type[Any] | Any) -> bool:
        return model_type_key(model) in self._disabled

    def clear(self) -> None:
        """Re-enable syncing for every model type."""
        self._disabled.clear()

    @contextmanager
    def disabled(self, model: type[Any] | Any) -> Iterator[None]:
        """Switch syncing off for ``model`` inside the block.

        A type that was already disabled before the block stays disabled.
        """
        already = self.is_disabled(model)
        self.disable(model)
        try:
            yield
        finally:
            if not already:
                self.enable(model)

    @property
    def disabled_types(self) -> list[str]:
        return sorted(self._disabled)


sync_toggles = SyncToggleRegistry()
