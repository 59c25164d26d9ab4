"""
Cart services
"""

from .cart_events import CART_CHANGED, STORAGE_MODE_CHANGED, CartEvents
from .cart_service import Cart
from .cart_sync import CartSync
from .persistence import PersistenceAdapter

__all__ = [
    "CART_CHANGED",
    "STORAGE_MODE_CHANGED",
    "Cart",
    "CartEvents",
    "CartSync",
    "PersistenceAdapter",
]
