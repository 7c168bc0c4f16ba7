"""
Storage backends.

Usage:
    from mastery_engine.storage import create_store

    store = create_store(get_settings())
"""
from __future__ import annotations

from loguru import logger

from mastery_engine.config import Settings

from .base import KeyValueStore, rank_slice
from .keys import KeySpace
from .memory import InMemoryStore


def create_store(settings: Settings) -> KeyValueStore:
    """Construct the backend selected by ``settings.store_backend``."""
    backend = settings.store_backend
    if backend == "redis":
        from .redis_store import RedisStore

        return RedisStore.from_url(settings.redis_url)
    if backend == "sql":
        from .sql_store import SqlStore

        return SqlStore.from_url(settings.database_url, echo=settings.log_level == "DEBUG")

    logger.debug("Using in-memory store")
    return InMemoryStore()


__all__ = [
    "InMemoryStore",
    "KeySpace",
    "KeyValueStore",
    "create_store",
    "rank_slice",
]
