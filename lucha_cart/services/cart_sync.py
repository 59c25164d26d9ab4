"""
Cross-context synchronization

Listens to the active storage backend and hands changes made by other
contexts (another tab, process or cart instance) back to the cart. The cart's
own writes carry its context id and are ignored.
"""

import logging
from typing import Callable, Optional

from lucha_cart.application.dtos.cart_dtos import PersistedCart
from lucha_cart.domain.repositories.storage_backend import StorageBackend, StorageEvent
from lucha_cart.infrastructure.logging.error_handler import ErrorCategory, absorb_errors

logger = logging.getLogger(__name__)


class CartSync:
    """Attach a cart to external changes on one storage key"""

    def __init__(
        self,
        key: str,
        context_id: str,
        on_external_change: Callable[[Optional[PersistedCart]], None],
    ):
        self.key = key
        self.context_id = context_id
        self._on_external_change = on_external_change
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._backend: Optional[StorageBackend] = None

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def attach(self, backend: StorageBackend) -> None:
        """Listen to ``backend``, replacing any previous attachment"""
        if backend is self._backend and self.attached:
            return
        self.detach()
        self._backend = backend
        self._unsubscribe = backend.subscribe(self.handle_event)
        logger.debug("Cart %s listening for changes on %r", self.context_id, backend)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._backend = None

    def handle_event(self, event: StorageEvent) -> None:
        """Storage listener; reconciles the cart from changes made elsewhere"""
        if event.key != self.key or event.origin == self.context_id:
            return
        self._reconcile(event)

    @absorb_errors(ErrorCategory.SYNC, operation="reconcile external change")
    def _reconcile(self, event: StorageEvent) -> None:
        if event.new_value is None:
            logger.info("Cart %s cleared by another context", self.context_id)
            self._on_external_change(None)
            return
        persisted = PersistedCart.parse(event.new_value)
        logger.info(
            "Cart %s updated by another context (%d lines)",
            self.context_id,
            len(persisted.items),
        )
        self._on_external_change(persisted)
