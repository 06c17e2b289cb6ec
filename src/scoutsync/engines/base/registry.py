"""Engine Manager — Registration and retrieval of search engines.

The manager maps driver names to engine factories and builds engines from
``Settings`` on first use. Built-in drivers are registered by default;
``extend()`` adds custom ones.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from scoutsync.engines.base.engine import EngineHealth, SearchEngine

if TYPE_CHECKING:
    from scoutsync.config.settings import Settings
    from scoutsync.store.base import RecordStore

logger = logging.getLogger(__name__)

EngineFactory = Callable[["Settings", "RecordStore | None"], SearchEngine]

BUILTIN_ENGINES: dict[str, str] = {
    "meilisearch": "scoutsync.engines.meilisearch.engine:MeilisearchEngine",
    "algolia": "scoutsync.engines.algolia.engine:AlgoliaEngine",
    "collection": "scoutsync.engines.collection.engine:CollectionEngine",
    "null": "scoutsync.engines.null.engine:NullEngine",
}


class EngineNotFoundError(Exception):
    """Raised when a requested engine driver is not registered."""


def _builtin_factory(path: str) -> EngineFactory:
    def factory(settings: Settings, store: RecordStore | None) -> SearchEngine:
        module_name, _, class_name = path.partition(":")
        engine_class = getattr(importlib.import_module(module_name), class_name)
        return engine_class.from_settings(settings, store)

    return factory


class EngineManager:
    """Registry of engine drivers and their live instances.

    Example:
        >>> manager = EngineManager(settings, store)
        >>> engine = await manager.engine()            # settings.driver
        >>> algolia = await manager.engine("algolia")
        >>> manager.extend("custom", lambda settings, store: MyEngine(store))
    """

    def __init__(self, settings: Settings, store: RecordStore | None = None) -> None:
        self.settings = settings
        self.store = store
        self._factories: dict[str, EngineFactory] = {
            name: _builtin_factory(path) for name, path in BUILTIN_ENGINES.items()
        }
        self._instances: dict[str, SearchEngine] = {}

    def extend(self, name: str, factory: EngineFactory) -> None:
        """Register an engine factory under ``name``.

        Args:
            name: Driver name.
            factory: Callable building the engine from settings and store.
        """
        if name in self._factories:
            logger.warning("Overwriting existing engine registration: %s", name)
        self._factories[name] = factory
        self._instances.pop(name, None)
        logger.info("Registered engine: %s", name)

    register = extend

    async def engine(self, name: str | None = None) -> SearchEngine:
        """Get (building and initializing on first use) the engine for ``name``.

        Raises:
            EngineNotFoundError: If no engine is registered under this name.
        """
        name = name or self.settings.driver
        if name in self._instances:
            return self._instances[name]

        if name not in self._factories:
            raise EngineNotFoundError(
                f"No engine registered with name '{name}'. "
                f"Available engines: {list(self._factories.keys())}"
            )

        engine = self._factories[name](self.settings, self.store)
        await engine.initialize()
        self._instances[name] = engine
        logger.info("Initialized engine: %s", name)
        return engine

    async def health_check_all(self) -> dict[str, EngineHealth]:
        """Run health checks on all initialized engines."""
        results: dict[str, EngineHealth] = {}
        for name, engine in self._instances.items():
            try:
                results[name] = await engine.health_check()
            except Exception as e:
                results[name] = EngineHealth(status="unhealthy", message=str(e))
        return results

    async def shutdown_all(self) -> None:
        """Gracefully shut down all initialized engines."""
        for name, engine in self._instances.items():
            try:
                await engine.shutdown()
                logger.info("Shut down engine: %s", name)
            except Exception:
                logger.warning("Error shutting down engine: %s", name, exc_info=True)
        self._instances.clear()

    @property
    def registered_engines(self) -> list[str]:
        return list(self._factories.keys())

    @property
    def active_engines(self) -> list[str]:
        return list(self._instances.keys())
