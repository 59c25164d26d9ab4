"""
Cart management service

The cart is the single source of truth for order lines. Every mutation goes
through one of the operations below, which update the line map, hand the new
state to the persistence adapter and emit ``cart:changed`` exactly once.
"""

import logging
import threading
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from lucha_cart.application.dtos.cart_dtos import (
    AddToCartRequest,
    CartSummary,
    PersistedCart,
)
from lucha_cart.domain.entities.line_item import LineItem, coerce_int
from lucha_cart.domain.repositories.storage_backend import StorageMode
from lucha_cart.domain.value_objects.money import cents_to_amount, format_price, to_cents
from lucha_cart.infrastructure.configuration.config import Settings
from lucha_cart.infrastructure.storage.provider import StorageProvider, parse_mode
from lucha_cart.infrastructure.utilities.exceptions import (
    InvalidStorageModeError,
    MissingItemIdError,
    PriceRequiredError,
)
from lucha_cart.services.cart_events import CART_CHANGED, STORAGE_MODE_CHANGED, CartEvents
from lucha_cart.services.cart_sync import CartSync
from lucha_cart.services.persistence import PersistenceAdapter

logger = logging.getLogger(__name__)

ItemInput = Union[Mapping[str, Any], AddToCartRequest]
StateInput = Union[CartSummary, Mapping[str, Any], str, Iterable[Any]]


class Cart:
    """In-memory cart with pluggable persistence and change events"""

    def __init__(
        self,
        settings: Settings,
        provider: StorageProvider,
        initial_state: Optional[StateInput] = None,
        events: Optional[CartEvents] = None,
        on_change: Optional[Callable[[CartSummary], None]] = None,
        context_id: Optional[str] = None,
    ):
        self._settings = settings
        self._provider = provider
        self._lock = threading.RLock()
        self._items: Dict[str, LineItem] = {}
        self._closed = False
        self.context_id = context_id or uuid.uuid4().hex
        self.events = events or CartEvents()
        if on_change is not None:
            self.events.subscribe(CART_CHANGED, on_change)

        self._persistence = PersistenceAdapter(
            provider,
            key=settings.storage_key,
            snapshot=self.snapshot,
            state_lock=self._lock,
            context_id=self.context_id,
            debounce_ms=settings.persist_debounce_ms,
        )
        self._sync = CartSync(settings.storage_key, self.context_id, self._apply_external)

        self._persistence.open(provider.initial_mode())
        self._restore_from_storage()
        self._sync.attach(self._persistence.backend)

        if initial_state:
            self._layer_initial_state(initial_state)

    # ------------------------------------------------------------------
    # Construction helpers

    def _restore_from_storage(self) -> None:
        persisted = self._persistence.load()
        if persisted is None:
            return
        with self._lock:
            self._replace(persisted.to_line_items())
            summary = self._build_summary()
        logger.info(
            "Restored cart from %s storage: %d lines", self.storage_mode, len(summary.items)
        )
        self.events.emit(CART_CHANGED, summary)

    def _layer_initial_state(self, state: StateInput) -> None:
        persisted = self._parse_state(state)
        if persisted is None or not persisted.items:
            return
        with self._lock:
            for line in persisted.to_line_items():
                self._items[line.id] = line
            summary = self._build_summary()
        self._commit(summary)

    @staticmethod
    def _parse_state(state: StateInput) -> Optional[PersistedCart]:
        try:
            if isinstance(state, (CartSummary, Mapping, str, bytes)):
                return PersistedCart.parse(state)
            items = [it.to_dict() if isinstance(it, LineItem) else it for it in state]
            return PersistedCart.parse({"items": items})
        except (TypeError, ValueError) as e:
            logger.warning("cart: ignoring invalid cart state: %s", e)
            return None

    # ------------------------------------------------------------------
    # Mutations

    def add_item(self, item: ItemInput, qty: Optional[int] = None) -> CartSummary:
        """
        Add ``qty`` of ``item`` (default 1). Quantities for an id already in
        the cart are summed; a sum of zero or less removes the line.

        Raises:
            MissingItemIdError: the item has no id.
            PriceRequiredError: no ``priceCents`` while strict pricing is on.
        """
        if isinstance(item, AddToCartRequest):
            request = item
        elif isinstance(item, Mapping):
            request = AddToCartRequest.from_mapping(item)
        else:
            raise MissingItemIdError()

        if request.id is None or request.id == "":
            raise MissingItemIdError()

        item_id = str(request.id)
        quantity = coerce_int(request.qty if qty is None else qty)
        price_cents = self._resolve_price_cents(item_id, request)

        with self._lock:
            existing = self._items.get(item_id)
            if existing is not None:
                existing.qty = max(0, existing.qty + quantity)
                if existing.qty == 0:
                    del self._items[item_id]
            elif quantity > 0:
                self._items[item_id] = LineItem(
                    id=item_id,
                    name=request.name or item_id,
                    price_cents=price_cents,
                    qty=quantity,
                    meta=request.meta,
                )
            summary = self._build_summary()

        logger.info("Added %d x %s to cart %s", quantity, item_id, self.context_id)
        return self._commit(summary)

    def _resolve_price_cents(self, item_id: str, request: AddToCartRequest) -> int:
        if request.price_cents is not None:
            return max(0, coerce_int(request.price_cents))

        if self._settings.require_price_cents:
            raise PriceRequiredError(item_id)

        if isinstance(request.price, int) and not isinstance(request.price, bool):
            logger.warning(
                "cart: item %s priced with bare integer %r; treating it as whole "
                "currency units. Pass priceCents instead.",
                item_id,
                request.price,
            )
        return max(0, to_cents(request.price))

    def update_qty(self, item_id: Any, qty: Any) -> CartSummary:
        """Set an absolute quantity; zero or less removes the line, unknown ids are ignored"""
        item_id = str(item_id)
        with self._lock:
            line = self._items.get(item_id)
            if line is not None:
                quantity = max(0, coerce_int(qty))
                if quantity == 0:
                    del self._items[item_id]
                else:
                    line.qty = quantity
            summary = self._build_summary()

        logger.info("Set quantity of %s to %s in cart %s", item_id, qty, self.context_id)
        return self._commit(summary)

    def remove_item(self, item_id: Any) -> CartSummary:
        """Remove a line; absent ids are ignored"""
        item_id = str(item_id)
        with self._lock:
            self._items.pop(item_id, None)
            summary = self._build_summary()

        logger.info("Removed %s from cart %s", item_id, self.context_id)
        return self._commit(summary)

    def clear_cart(self) -> CartSummary:
        """Remove every line"""
        with self._lock:
            self._items.clear()
            summary = self._build_summary()

        logger.info("Cleared cart %s", self.context_id)
        return self._commit(summary)

    def restore_from_summary(self, summary: StateInput) -> CartSummary:
        """
        Replace the whole cart with the lines described by ``summary``.

        Accepts a CartSummary, its dict or JSON form. Invalid input leaves
        the cart untouched and emits nothing.
        """
        persisted = self._parse_state(summary)
        if persisted is None:
            return self.get_summary()

        with self._lock:
            self._replace(persisted.to_line_items())
            restored = self._build_summary()

        logger.info("Restored cart %s from summary (%d lines)", self.context_id, len(restored.items))
        return self._commit(restored)

    def set_storage_mode(self, mode: Union[str, StorageMode]) -> CartSummary:
        """
        Persist to a different storage kind from now on.

        The stored copy moves to the new medium and is deleted from the old
        one. Emits ``cart:storageModeChanged`` and then ``cart:changed``.

        Raises:
            InvalidStorageModeError: ``mode`` is not "local" or "session".
        """
        new_mode = parse_mode(mode)
        if new_mode not in StorageMode.switchable():
            raise InvalidStorageModeError(new_mode.value)

        effective = self._persistence.switch(new_mode)
        self._sync.attach(self._persistence.backend)
        summary = self.get_summary()

        logger.info("Cart %s storage mode is now %s", self.context_id, effective.value)
        self.events.emit(STORAGE_MODE_CHANGED, {"mode": effective.value})
        self.events.emit(CART_CHANGED, summary)
        return summary

    def _apply_external(self, persisted: Optional[PersistedCart]) -> None:
        """Reconcile a change made by another context, without writing it back"""
        if self._closed:
            return
        with self._lock:
            # the stored copy is newer than any pending local write
            self._persistence.cancel()
            self._replace(persisted.to_line_items() if persisted is not None else [])
            summary = self._build_summary()
        self.events.emit(CART_CHANGED, summary)

    def _replace(self, lines: List[LineItem]) -> None:
        self._items = {line.id: line for line in lines}

    def _commit(self, summary: CartSummary) -> CartSummary:
        self._persistence.save()
        self.events.emit(CART_CHANGED, summary)
        return summary

    # ------------------------------------------------------------------
    # Reads

    @property
    def storage_mode(self) -> str:
        mode = self._persistence.mode
        return mode.value if mode is not None else StorageMode.MEMORY.value

    def get_items(self) -> List[LineItem]:
        """Copies of the current lines"""
        with self._lock:
            return [line.copy() for line in self._items.values()]

    def get_total_qty(self) -> int:
        with self._lock:
            return sum(line.qty for line in self._items.values())

    def get_subtotal_cents(self) -> int:
        with self._lock:
            return sum(line.line_total.cents for line in self._items.values())

    def get_subtotal(self) -> float:
        return cents_to_amount(self.get_subtotal_cents())

    def get_formatted_subtotal(self) -> str:
        """Subtotal for display, e.g. "$19.98" """
        return format_price(self.get_subtotal_cents(), self._settings.currency_symbol)

    def get_summary(self) -> CartSummary:
        with self._lock:
            return self._build_summary()

    def _build_summary(self) -> CartSummary:
        return CartSummary.from_items(
            [line.copy() for line in self._items.values()], self.storage_mode
        )

    def snapshot(self) -> str:
        """Current summary as JSON"""
        return self.get_summary().to_json()

    # ------------------------------------------------------------------
    # Observers and lifecycle

    def subscribe(self, event: str, listener: Callable[[Any], None]) -> Callable[[], None]:
        """Register a listener on this cart's event channel"""
        return self.events.subscribe(event, listener)

    def on_change(self, listener: Callable[[CartSummary], None]) -> Callable[[], None]:
        """Register a ``cart:changed`` listener"""
        return self.events.subscribe(CART_CHANGED, listener)

    @property
    def backend(self):
        """The storage backend currently written to"""
        return self._persistence.backend

    def flush(self) -> None:
        """Write any pending debounced state now"""
        self._persistence.flush()

    def close(self) -> None:
        """Flush pending writes and stop listening to storage"""
        if self._closed:
            return
        self._persistence.flush()
        self._sync.detach()
        self._provider.close()
        self._closed = True
        logger.debug("Cart %s closed", self.context_id)

    def __enter__(self) -> "Cart":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, item_id: Any) -> bool:
        with self._lock:
            return str(item_id) in self._items

    def __repr__(self):
        return (
            f"Cart(context_id={self.context_id!r}, lines={len(self)}, "
            f"storage_mode={self.storage_mode!r})"
        )
