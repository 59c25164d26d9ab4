"""
Storage infrastructure module
"""

from .memory_storage import MemoryStorage
from .provider import SharedDatabase, StorageProvider, database_key, parse_mode
from .sqlalchemy_storage import SQLAlchemyStorage, StorageWatcher, create_storage_engine

__all__ = [
    "MemoryStorage",
    "SQLAlchemyStorage",
    "SharedDatabase",
    "StorageProvider",
    "StorageWatcher",
    "create_storage_engine",
    "database_key",
    "parse_mode",
]
