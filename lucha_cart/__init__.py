"""
Lucha cart

Cart state engine for the Lucha restaurant ordering site: line items and
totals in integer cents, pluggable persistence, cross-context sync and
change events for the UI.
"""

from lucha_cart.application.dtos.cart_dtos import AddToCartRequest, CartSummary
from lucha_cart.domain.entities.line_item import LineItem
from lucha_cart.domain.repositories.storage_backend import (
    StorageBackend,
    StorageEvent,
    StorageMode,
)
from lucha_cart.domain.value_objects.money import format_price, to_cents
from lucha_cart.infrastructure.container import (
    create_cart,
    get_default_cart,
    reset_default_cart,
)
from lucha_cart.infrastructure.storage import MemoryStorage, SQLAlchemyStorage
from lucha_cart.services import CART_CHANGED, STORAGE_MODE_CHANGED, Cart, CartEvents

__version__ = "1.0.0"

__all__ = [
    "AddToCartRequest",
    "CART_CHANGED",
    "Cart",
    "CartEvents",
    "CartSummary",
    "LineItem",
    "MemoryStorage",
    "SQLAlchemyStorage",
    "STORAGE_MODE_CHANGED",
    "StorageBackend",
    "StorageEvent",
    "StorageMode",
    "create_cart",
    "format_price",
    "get_default_cart",
    "reset_default_cart",
    "to_cents",
]
