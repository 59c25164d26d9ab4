"""
Cart change notifications

Each cart owns one CartEvents instance. UI collaborators subscribe to it and
re-render from the payload; nothing here knows about the UI.
"""

import threading
from typing import Any, Callable, Dict, List

from lucha_cart.infrastructure.logging.error_handler import (
    ErrorCategory,
    ErrorReport,
    ErrorSeverity,
    error_reporter,
)
from lucha_cart.infrastructure.utilities.constants import CartEventNames

CART_CHANGED = CartEventNames.CART_CHANGED
STORAGE_MODE_CHANGED = CartEventNames.STORAGE_MODE_CHANGED

Listener = Callable[[Any], None]


class CartEvents:
    """Observer registry for cart events"""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``event``; returns a function that unregisters it"""
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

        def unsubscribe():
            self.unsubscribe(event, listener)

        return unsubscribe

    def unsubscribe(self, event: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

    def emit(self, event: str, payload: Any) -> None:
        """Call every listener of ``event`` synchronously, in registration order"""
        with self._lock:
            listeners = list(self._listeners.get(event, []))

        for listener in listeners:
            try:
                listener(payload)
            except Exception as e:  # pylint: disable=broad-except
                error_reporter.report_error(
                    ErrorReport(
                        error=e,
                        category=ErrorCategory.LISTENER,
                        severity=ErrorSeverity.HIGH,
                        operation=f"{event} listener {getattr(listener, '__name__', listener)!s}",
                    )
                )

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, []))

    def clear(self) -> None:
        """Drop every listener"""
        with self._lock:
            self._listeners.clear()
