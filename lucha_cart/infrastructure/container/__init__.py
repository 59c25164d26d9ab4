"""
Cart factory and the lazily created default cart
"""

from .dependency_injection import create_cart, get_default_cart, reset_default_cart

__all__ = ["create_cart", "get_default_cart", "reset_default_cart"]
