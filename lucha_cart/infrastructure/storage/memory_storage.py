"""
In-memory storage backend

Used when a durable medium is unavailable, and injected in tests. Two carts
handed the same instance behave like two tabs sharing one origin.
"""

import threading
from typing import Dict, Optional

from lucha_cart.domain.repositories.storage_backend import (
    ObservableStorage,
    StorageEvent,
    StorageMode,
)


class MemoryStorage(ObservableStorage):
    """Dict-backed storage with change events"""

    mode = StorageMode.MEMORY

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        super().__init__()
        self._data: Dict[str, str] = {k: str(v) for k, v in (initial or {}).items()}
        self._lock = threading.Lock()
        self._stats = {
            "gets": 0,
            "sets": 0,
            "removes": 0,
        }

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            self._stats["gets"] += 1
            return self._data.get(key)

    def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        with self._lock:
            old_value = self._data.get(key)
            self._data[key] = str(value)
            self._stats["sets"] += 1
        self._notify(StorageEvent(key, old_value, str(value), origin))

    def remove(self, key: str, origin: Optional[str] = None) -> None:
        with self._lock:
            if key not in self._data:
                return
            old_value = self._data.pop(key)
            self._stats["removes"] += 1
        self._notify(StorageEvent(key, old_value, None, origin))

    def keys(self):
        """Stored keys"""
        with self._lock:
            return list(self._data)

    def clear(self) -> None:
        """Drop every key without emitting events"""
        with self._lock:
            self._data.clear()

    def get_stats(self) -> Dict[str, int]:
        """Operation counters"""
        with self._lock:
            return {**self._stats, "size": len(self._data)}

    def __repr__(self):
        return f"MemoryStorage(keys={len(self._data)})"
