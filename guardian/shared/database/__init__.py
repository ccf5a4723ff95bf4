"""Persistence interface for Guardian services.

Provides the generic store (PostgreSQL or in-memory), pooled connection
management and typed repositories for every record kind.
"""
import logging
import os
from typing import Optional

from .connection import (
    ConnectionManager,
    DatabaseConfig,
    get_connection_manager,
)
from .repository import (
    BaseRepository,
    DuplicateError,
    NotFoundError,
    RepositoryError,
)
from .store import (
    Filter,
    InMemoryStore,
    PostgresStore,
    Store,
    contains,
    eq,
    gte,
    in_,
    is_null,
    lte,
)

logger = logging.getLogger(__name__)

_store: Optional[Store] = None


def get_store() -> Store:
    """Get or create the global store.
    
    PostgreSQL when DB_HOST is set, in-memory otherwise.
    """
    global _store
    
    if _store is None:
        if os.getenv("DB_HOST"):
            _store = PostgresStore(get_connection_manager())
        else:
            logger.warning(
                "STORE_IN_MEMORY",
                extra={"reason": "DB_HOST not set", "durable": False}
            )
            _store = InMemoryStore()
    
    return _store


__all__ = [
    "ConnectionManager",
    "DatabaseConfig",
    "get_connection_manager",
    "BaseRepository",
    "DuplicateError",
    "NotFoundError",
    "RepositoryError",
    "Filter",
    "InMemoryStore",
    "PostgresStore",
    "Store",
    "contains",
    "eq",
    "gte",
    "in_",
    "is_null",
    "lte",
    "get_store",
]
