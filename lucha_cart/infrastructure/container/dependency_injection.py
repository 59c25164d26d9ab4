"""
Cart factory

Builds fully isolated cart instances from explicit settings. The default
cart is just one ordinary call to ``create_cart``, made lazily.
"""

import logging
import threading
from typing import Callable, Optional

from lucha_cart.application.dtos.cart_dtos import CartSummary
from lucha_cart.domain.repositories.storage_backend import StorageBackend
from lucha_cart.infrastructure.configuration.config import Settings, get_config
from lucha_cart.infrastructure.storage.provider import StorageProvider
from lucha_cart.services.cart_events import CartEvents
from lucha_cart.services.cart_service import Cart, StateInput

logger = logging.getLogger(__name__)


def create_cart(
    initial_state: Optional[StateInput] = None,
    *,
    settings: Optional[Settings] = None,
    storage: Optional[StorageBackend] = None,
    persist_debounce_ms: Optional[int] = None,
    events: Optional[CartEvents] = None,
    on_change: Optional[Callable[[CartSummary], None]] = None,
) -> Cart:
    """
    Create a new cart.

    Args:
        initial_state: lines layered on top of whatever storage holds.
        settings: configuration; defaults to the environment-backed settings.
        storage: inject a backend used for every storage mode.
        persist_debounce_ms: overrides ``settings.persist_debounce_ms``.
        events: share an existing event channel instead of creating one.
        on_change: ``cart:changed`` listener registered before the first
            restore, so it also sees the state loaded from storage.
    """
    settings = settings or get_config()
    if persist_debounce_ms is not None:
        settings = settings.model_copy(update={"persist_debounce_ms": persist_debounce_ms})

    provider = StorageProvider(settings, injected=storage)
    cart = Cart(
        settings,
        provider,
        initial_state=initial_state,
        events=events,
        on_change=on_change,
    )
    logger.debug("Created %r", cart)
    return cart


_default_cart: Optional[Cart] = None
_default_cart_lock = threading.Lock()


def get_default_cart() -> Cart:
    """Get the shared convenience cart, creating it on first use."""
    global _default_cart
    if _default_cart is None:
        with _default_cart_lock:
            if _default_cart is None:
                _default_cart = create_cart()
    return _default_cart


def reset_default_cart() -> None:
    """Close and forget the shared cart"""
    global _default_cart
    with _default_cart_lock:
        if _default_cart is not None:
            _default_cart.close()
        _default_cart = None
