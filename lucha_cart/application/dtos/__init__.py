"""
Application DTOs
"""

from .cart_dtos import AddToCartRequest, CartSummary, PersistedCart, PersistedLineItem

__all__ = ["AddToCartRequest", "CartSummary", "PersistedCart", "PersistedLineItem"]
