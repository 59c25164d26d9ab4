"""
Storage backend interface

Defines the contract every cart storage medium implements: string keys,
string values, and change notifications for writes made by other contexts.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class StorageMode(str, Enum):
    """Kind of medium the cart persists to"""

    LOCAL = "local"      # durable, shared with every context on the same medium
    SESSION = "session"  # durable, private to one session
    MEMORY = "memory"    # in-process only, lost on restart
    CUSTOM = "custom"    # injected by the caller

    @classmethod
    def switchable(cls) -> tuple:
        """Modes a running cart may switch between"""
        return (cls.LOCAL, cls.SESSION)


@dataclass(frozen=True)
class StorageEvent:
    """A key changed on a storage medium"""

    key: str
    old_value: Optional[str]
    new_value: Optional[str]
    origin: Optional[str] = None


StorageListener = Callable[[StorageEvent], None]


class StorageBackend(ABC):
    """Repository interface for the cart's storage medium"""

    mode: StorageMode = StorageMode.CUSTOM

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Read a value, None when absent"""

    @abstractmethod
    def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        """Write a value; origin identifies the writing context"""

    @abstractmethod
    def remove(self, key: str, origin: Optional[str] = None) -> None:
        """Delete a value; absent keys are ignored"""

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """Register for change events. Backends without events return a no-op."""
        return lambda: None

    def close(self) -> None:
        """Release resources held by the backend"""


class ObservableStorage(StorageBackend, ABC):
    """Base for backends that broadcast their writes to subscribers"""

    def __init__(self):
        self._listeners: List[StorageListener] = []
        self._listeners_lock = threading.Lock()

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: StorageEvent) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Storage listener failed for key %s", event.key)
