"""
Domain entities package
"""

from .line_item import LineItem, coerce_int

__all__ = ["LineItem", "coerce_int"]
