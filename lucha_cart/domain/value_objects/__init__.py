"""
Domain value objects package
"""

from .money import Money, cents_to_amount, format_price, to_cents

__all__ = [
    "Money",
    "cents_to_amount",
    "format_price",
    "to_cents",
]
