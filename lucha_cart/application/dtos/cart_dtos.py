"""
Cart DTOs

Data Transfer Objects for the cart read model and add-to-cart requests.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from lucha_cart.domain.entities.line_item import LineItem
from lucha_cart.domain.value_objects.money import cents_to_amount


@dataclass
class CartSummary:
    """Complete derived read model of a cart"""
    items: List[LineItem] = field(default_factory=list)
    total_qty: int = 0
    subtotal_cents: int = 0
    subtotal: float = 0.0
    storage_mode: str = "memory"

    @classmethod
    def from_items(cls, items: List[LineItem], storage_mode: str) -> "CartSummary":
        """Derive the totals from the given lines"""
        subtotal_cents = sum(item.line_total.cents for item in items)
        return cls(
            items=items,
            total_qty=sum(item.qty for item in items),
            subtotal_cents=subtotal_cents,
            subtotal=cents_to_amount(subtotal_cents),
            storage_mode=storage_mode,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation with camelCase keys"""
        return {
            "items": [item.to_dict() for item in self.items],
            "totalQty": self.total_qty,
            "subtotalCents": self.subtotal_cents,
            "subtotal": self.subtotal,
            "storageMode": self.storage_mode,
        }

    def to_json(self) -> str:
        """Serialized form written to storage"""
        return json.dumps(self.to_dict(), separators=(",", ":"))


class PersistedLineItem(BaseModel):
    """One line as found in storage"""

    model_config = ConfigDict(
        populate_by_name=True, coerce_numbers_to_str=True, extra="ignore"
    )

    id: str
    name: Optional[str] = None
    price_cents: Optional[Union[int, float]] = Field(0, alias="priceCents")
    qty: Optional[Union[int, float]] = 0
    meta: Optional[Any] = None

    def to_line_item(self) -> LineItem:
        return LineItem(
            id=self.id,
            name=self.name,
            price_cents=self.price_cents,
            qty=self.qty,
            meta=self.meta,
        )


class PersistedCart(BaseModel):
    """
    Stored cart blob

    Only ``items`` is authoritative; the totals stored next to it are
    recomputed on restore.
    """

    model_config = ConfigDict(extra="ignore")

    items: List[PersistedLineItem]

    def to_line_items(self) -> List[LineItem]:
        """Lines with a positive quantity, later duplicates winning"""
        lines: Dict[str, LineItem] = {}
        for raw in self.items:
            line = raw.to_line_item()
            if line.qty > 0:
                lines[line.id] = line
            else:
                lines.pop(line.id, None)
        return list(lines.values())

    @classmethod
    def parse(cls, source: Union[str, bytes, Mapping[str, Any], CartSummary]) -> "PersistedCart":
        """Accept a JSON string, a mapping or a CartSummary"""
        if isinstance(source, CartSummary):
            source = source.to_dict()
        if isinstance(source, (str, bytes)):
            return cls.model_validate_json(source)
        return cls.model_validate(source)


@dataclass
class AddToCartRequest:
    """Request to add an item to the cart"""
    id: str
    name: Optional[str] = None
    price_cents: Optional[int] = None
    price: Optional[Any] = None
    qty: int = 1
    meta: Optional[Any] = None

    @classmethod
    def from_mapping(cls, item: Mapping[str, Any], qty: int = 1) -> "AddToCartRequest":
        """Build from a loose item mapping supplied by a catalog collaborator"""
        price_cents = item.get("priceCents", item.get("price_cents"))
        return cls(
            id=item.get("id"),
            name=item.get("name") or item.get("title"),
            price_cents=price_cents,
            price=item.get("price"),
            qty=qty,
            meta=item.get("meta"),
        )

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "AddToCartRequest":
        """
        Build from add-to-cart button data attributes.

        Accepts ``data-id``, ``data-name``, ``data-price-cents``,
        ``data-price`` and ``data-qty``, with or without the ``data-``
        prefix. A missing or unparsable quantity defaults to 1.
        """
        attrs = {
            str(key).lower().removeprefix("data-").replace("_", "-"): value
            for key, value in attributes.items()
        }
        item_id = attrs.get("id")

        price_cents = attrs.get("price-cents")
        if price_cents in (None, ""):
            price_cents = None
        else:
            try:
                price_cents = int(float(price_cents))
            except (TypeError, ValueError):
                price_cents = None

        try:
            qty = int(attrs["qty"]) if attrs.get("qty") not in (None, "") else 1
        except (TypeError, ValueError):
            qty = 1

        return cls(
            id=item_id,
            name=attrs.get("name") or item_id,
            price_cents=price_cents,
            price=attrs.get("price") if price_cents is None else None,
            qty=qty,
        )
