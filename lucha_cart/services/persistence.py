"""
Cart persistence

Writes the serialized cart to the active storage backend under a single key,
optionally debounced, and moves the stored copy when the storage mode
changes. Storage failures are reported and absorbed here; callers never see
them.
"""

import itertools
import logging
import threading
from typing import Callable, Optional

from lucha_cart.application.dtos.cart_dtos import PersistedCart
from lucha_cart.domain.repositories.storage_backend import StorageBackend, StorageMode
from lucha_cart.infrastructure.logging.error_handler import (
    ErrorCategory,
    ErrorSeverity,
    absorb_errors,
)
from lucha_cart.infrastructure.storage.provider import StorageProvider


class PersistenceAdapter:
    """
    Owns the cart's storage backend and its debounced writer.

    ``snapshot`` returns the cart's current serialized state and is called
    while holding ``state_lock``, so every write carries a consistent state
    and a generation number. A write older than the last completed one is
    dropped, which keeps a slow timer thread from overwriting newer state.
    """

    def __init__(
        self,
        provider: StorageProvider,
        key: str,
        snapshot: Callable[[], str],
        state_lock: threading.RLock,
        context_id: str,
        debounce_ms: int = 0,
    ):
        self._provider = provider
        self.key = key
        self._snapshot = snapshot
        self._state_lock = state_lock
        self.context_id = context_id
        self.debounce_ms = max(0, int(debounce_ms or 0))

        self._backend: Optional[StorageBackend] = None
        self._mode: Optional[StorageMode] = None
        self._timer: Optional[threading.Timer] = None
        self._timer_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._generation = itertools.count(1)
        self._last_written = 0
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def backend(self) -> Optional[StorageBackend]:
        return self._backend

    @property
    def mode(self) -> Optional[StorageMode]:
        return self._mode

    @property
    def pending(self) -> bool:
        """A debounced write is scheduled"""
        with self._timer_lock:
            return self._timer is not None

    def open(self, mode: StorageMode) -> StorageMode:
        """Attach to the backend for ``mode``; returns the mode in effect"""
        self._backend, self._mode = self._provider.resolve(mode)
        return self._mode

    @absorb_errors(ErrorCategory.SERIALIZATION, operation="restore from storage")
    def load(self) -> Optional[PersistedCart]:
        """Read and parse the stored cart; None when absent or unreadable"""
        raw = self._backend.get(self.key)
        if not raw:
            return None
        return PersistedCart.parse(raw)

    def save(self) -> None:
        """Persist now, or (re)schedule the debounced write"""
        if self.debounce_ms <= 0:
            self._write()
            return

        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.debounce_ms / 1000.0, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self) -> None:
        with self._timer_lock:
            if self._timer is not threading.current_thread():
                return
            self._timer = None
        self._write()

    def flush(self) -> None:
        """Run a pending debounced write immediately"""
        with self._timer_lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            self._write()

    def cancel(self) -> None:
        """Drop a pending debounced write"""
        with self._timer_lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _write(self) -> None:
        with self._state_lock:
            raw = self._serialize()
            generation = next(self._generation)
            backend = self._backend
        if raw is None:
            return
        self._write_raw(backend, raw, generation)

    @absorb_errors(ErrorCategory.SERIALIZATION, operation="serialize cart")
    def _serialize(self) -> Optional[str]:
        return self._snapshot()

    @absorb_errors(ErrorCategory.STORAGE, operation="persist to storage")
    def _write_raw(self, backend: StorageBackend, raw: str, generation: int) -> None:
        with self._write_lock:
            if generation < self._last_written:
                self._logger.debug("Dropping stale cart write #%d", generation)
                return
            self._last_written = generation
            backend.set(self.key, raw, origin=self.context_id)

    def switch(self, mode: StorageMode) -> StorageMode:
        """
        Move the stored cart to the backend for ``mode``.

        The current state is written to the new backend and the copy on the
        old backend is removed, unless both modes resolve to the same medium.
        """
        self.cancel()
        old_backend = self._backend
        self.open(mode)
        self._write()
        if old_backend is not None and old_backend is not self._backend:
            self._remove_stale(old_backend)
        return self._mode

    @absorb_errors(
        ErrorCategory.STORAGE, operation="remove stale copy", severity=ErrorSeverity.LOW
    )
    def _remove_stale(self, backend: StorageBackend) -> None:
        backend.remove(self.key, origin=self.context_id)
