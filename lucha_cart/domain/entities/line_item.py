"""
Line Item Entity - one product's aggregated quantity and price in the cart
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from lucha_cart.domain.value_objects.money import Money


def coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


@dataclass
class LineItem:
    """Cart line item"""

    id: str
    name: str
    price_cents: int
    qty: int
    meta: Optional[Any] = None

    def __post_init__(self):
        """Normalize the line after initialization"""
        self.id = str(self.id)
        self.name = self.id if self.name is None else str(self.name)
        self.price_cents = max(0, coerce_int(self.price_cents))
        self.qty = max(0, coerce_int(self.qty))
        if not self.meta:
            self.meta = None

    @property
    def line_total(self) -> Money:
        """Price times quantity"""
        return Money(self.price_cents) * self.qty

    def copy(self) -> "LineItem":
        """Independent copy, meta included"""
        return LineItem(
            id=self.id,
            name=self.name,
            price_cents=self.price_cents,
            qty=self.qty,
            meta=copy.deepcopy(self.meta),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation"""
        return {
            "id": self.id,
            "name": self.name,
            "priceCents": self.price_cents,
            "qty": self.qty,
            "meta": copy.deepcopy(self.meta),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LineItem":
        """Build from a wire mapping (camelCase or snake_case keys)"""
        price_cents = data.get("priceCents", data.get("price_cents", 0))
        return cls(
            id=data["id"],
            name=data.get("name"),
            price_cents=price_cents,
            qty=data.get("qty", 0),
            meta=data.get("meta"),
        )
