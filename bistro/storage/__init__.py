"""
Storage Factory

Returns the configured store backend:
    - STORAGE_BACKEND=memory: MemoryStore (default, development and tests)
    - STORAGE_BACKEND=sql: SqlStore on DATABASE_URL

Usage:
    from bistro.storage import get_store, init_store

    store = get_store()
    await init_store(store)
    order = await store.get_order(1)

Author: Your Name
Version: 1.0.0
"""

import logging
from functools import lru_cache
from typing import Optional

from bistro.core.config import Settings, StorageBackend, get_settings
from bistro.storage.base import BaseStore
from bistro.storage.memory import MemoryStore
from bistro.storage.seed import seed_store

logger = logging.getLogger(__name__)


@lru_cache()
def get_store() -> BaseStore:
    """Get the configured store (cached for the life of the process)."""
    settings = get_settings()

    if settings.storage_backend == StorageBackend.SQL:
        # Imported lazily so the memory backend never needs a database driver
        from bistro.storage.sql import SqlStore

        logger.info("Store: SQL (SQLAlchemy async)")
        return SqlStore(
            settings.database_url,
            echo=settings.database_echo,
            retry_attempts=settings.store_retry_attempts,
            retry_backoff=settings.store_retry_backoff_seconds,
        )

    logger.info("Store: in-memory")
    return MemoryStore()


async def init_store(store: BaseStore, settings: Optional[Settings] = None) -> None:
    """Prepare the backend and load default data."""
    settings = settings or get_settings()
    await store.initialize()
    await seed_store(store, settings)


def reset_store() -> None:
    """Forget the cached store (tests, reconfiguration)."""
    get_store.cache_clear()


__all__ = ["get_store", "init_store", "reset_store", "BaseStore", "MemoryStore"]
