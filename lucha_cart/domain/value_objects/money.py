"""
Money value object

Integer-cents price handling. Every amount the cart stores or sums is an
``int`` number of cents; ``Decimal`` is only used on the way in.
"""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from lucha_cart.infrastructure.utilities.constants import MoneySettings

_NON_NUMERIC = re.compile(r"[^0-9.\-]+")


def _amount_to_cents(amount: Decimal) -> int:
    if not amount.is_finite():
        return 0
    try:
        cents = (amount * MoneySettings.CENTS_PER_UNIT).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    except InvalidOperation:
        # beyond the context precision
        return 0
    return int(cents)


def to_cents(price: Any) -> int:
    """
    Convert a price in currency units to integer cents.

    Numbers (including integers) are whole currency units: ``5`` is 500
    cents, ``9.99`` is 999. Strings are stripped of currency symbols and
    separators first. Anything that cannot be parsed yields 0.
    """
    if price is None or isinstance(price, bool):
        return 0

    if isinstance(price, Decimal):
        return _amount_to_cents(price)

    if isinstance(price, (int, float)):
        # str() keeps the shortest repr, so 1.005 rounds to 101 rather than 100
        try:
            return _amount_to_cents(Decimal(str(price)))
        except InvalidOperation:
            return 0

    cleaned = _NON_NUMERIC.sub("", str(price).strip())
    if not cleaned:
        return 0
    try:
        return _amount_to_cents(Decimal(cleaned))
    except InvalidOperation:
        return 0


def cents_to_amount(cents: int) -> float:
    """Cents as a float amount, for display only"""
    return int(cents) / MoneySettings.CENTS_PER_UNIT


def format_price(cents: int, symbol: str = MoneySettings.DEFAULT_CURRENCY_SYMBOL) -> str:
    """Format cents for display, e.g. 1998 -> "$19.98" """
    cents = int(cents)
    sign = "-" if cents < 0 else ""
    units, remainder = divmod(abs(cents), MoneySettings.CENTS_PER_UNIT)
    return f"{sign}{symbol}{units}.{remainder:02d}"


@dataclass(frozen=True)
class Money:
    """
    Non-negative amount held as integer cents
    """

    cents: int

    def __post_init__(self):
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise ValueError("Money must be built from integer cents")
        if self.cents < 0:
            raise ValueError("Money amount cannot be negative")

    @classmethod
    def from_price(cls, price: Any) -> "Money":
        """Create Money from any price input accepted by to_cents"""
        return cls(max(0, to_cents(price)))

    @classmethod
    def zero(cls) -> "Money":
        """Create zero money amount"""
        return cls(0)

    def add(self, other: "Money") -> "Money":
        """Add two money amounts"""
        return Money(self.cents + other.cents)

    def multiply(self, factor: int) -> "Money":
        """Multiply by a whole quantity"""
        if isinstance(factor, bool) or not isinstance(factor, int):
            raise ValueError("Money can only be multiplied by an integer quantity")
        if factor < 0:
            raise ValueError("Cannot multiply money by negative factor")
        return Money(self.cents * factor)

    def to_float(self) -> float:
        """Convert to float (use with caution for display only)"""
        return cents_to_amount(self.cents)

    def format_display(self, symbol: str = MoneySettings.DEFAULT_CURRENCY_SYMBOL) -> str:
        """Format for display to users"""
        return format_price(self.cents, symbol)

    def __str__(self) -> str:
        return self.format_display()

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __mul__(self, factor: int) -> "Money":
        return self.multiply(factor)

    def __rmul__(self, factor: int) -> "Money":
        return self.multiply(factor)
