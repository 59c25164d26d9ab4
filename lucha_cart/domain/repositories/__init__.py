"""
Repository interfaces
"""

from .storage_backend import (
    ObservableStorage,
    StorageBackend,
    StorageEvent,
    StorageListener,
    StorageMode,
)

__all__ = [
    "ObservableStorage",
    "StorageBackend",
    "StorageEvent",
    "StorageListener",
    "StorageMode",
]
