"""Base engine interface — Abstract classes for search backends."""

from scoutsync.engines.base.engine import EngineHealth, SearchEngine
from scoutsync.engines.base.registry import EngineManager, EngineNotFoundError

__all__ = ["EngineHealth", "EngineManager", "EngineNotFoundError", "SearchEngine"]
