"""scoutsync — Keep a record store in sync with a full-text search backend.

Quick start::

    from scoutsync import SearchableModel, EngineManager, Settings

    class Post(SearchableModel):
        id: int
        title: str

    manager = EngineManager(Settings(driver="meilisearch"), store)
    engine = await manager.engine()

    await engine.update([post])
    posts = await Post.search("solar", engine=engine).where("author_id", 7).get()
"""

from scoutsync.config.settings import Settings
from scoutsync.core.dispatch import BackgroundQueue, ImmediateQueue, SearchDispatcher
from scoutsync.core.observer import ModelObserver
from scoutsync.core.sync import SyncDecider
from scoutsync.core.toggles import sync_toggles
from scoutsync.engines.base import EngineManager, SearchEngine
from scoutsync.models.query import SearchRequest
from scoutsync.models.record import RemovableSnapshot, SearchableModel

__version__ = "0.1.0"

__all__ = [
    "BackgroundQueue",
    "EngineManager",
    "ImmediateQueue",
    "ModelObserver",
    "RemovableSnapshot",
    "SearchDispatcher",
    "SearchEngine",
    "SearchRequest",
    "SearchableModel",
    "Settings",
    "SyncDecider",
    "sync_toggles",
]
