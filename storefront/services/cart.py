"""
Cart state and the rules for changing it.

CartStore owns the cart: line items, the transient ``error_id`` flag and
the cached billing details. Every mutation persists ``items`` and
``billing_details`` under a fixed key of the backing storage (the shopper
session document in the web app) and then notifies subscribers.
``error_id`` is never persisted.

CartReconciler sits in front of the store for the cart view and checks
increments against a live stock snapshot before they reach the store.
"""
import json
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, MutableMapping, Optional

from pydantic import ValidationError

from storefront.core.config import settings
from storefront.core.errors import QuantityCeilingExceeded, StockInsufficient, StockUnavailable
from storefront.core.pricing import cart_total
from storefront.schemas.cart import BillingDetails, CartLineItem, CartState, PersistedCart

logger = logging.getLogger(__name__)

Listener = Callable[[CartState], None]


class CartStore:
    def __init__(
        self,
        storage: MutableMapping[str, Any],
        storage_key: str = None,
        max_units: int = None
    ):
        self.storage = storage
        self.storage_key = storage_key or settings.CART_STORAGE_KEY
        self.max_units = max_units or settings.MAX_UNITS_PER_ITEM
        self._listeners: List[Listener] = []
        self._state = self._load()

    def _load(self) -> CartState:
        raw = self.storage.get(self.storage_key)
        if raw is None:
            return CartState()
        try:
            data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            persisted = PersistedCart.model_validate(data)
        except (ValueError, TypeError, ValidationError) as e:
            logger.error(f"Error loading cart state from storage: {str(e)}")
            return CartState()
        return CartState(items=persisted.items, billing_details=persisted.billing_details)

    def _save(self) -> None:
        persisted = PersistedCart(items=self._state.items, billing_details=self._state.billing_details)
        self.storage[self.storage_key] = persisted.model_dump_json(by_alias=True)

    def _notify(self) -> None:
        snapshot = self.get_state()
        for listener in list(self._listeners):
            listener(snapshot)

    def _commit(self) -> None:
        self._save()
        self._notify()

    def _find(self, product_id: str) -> Optional[CartLineItem]:
        return next((i for i in self._state.items if i.id == product_id), None)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get_state(self) -> CartState:
        return self._state.model_copy(deep=True)

    def get_item(self, product_id: str) -> Optional[CartLineItem]:
        item = self._find(product_id)
        return item.model_copy(deep=True) if item else None

    @property
    def items(self) -> List[CartLineItem]:
        return [item.model_copy(deep=True) for item in self._state.items]

    @property
    def error_id(self) -> Optional[str]:
        return self._state.error_id

    @property
    def billing_details(self) -> BillingDetails:
        return self._state.billing_details.model_copy()

    @property
    def total(self) -> Decimal:
        return cart_total(self._state.items)

    @property
    def item_count(self) -> int:
        return len(self._state.items)

    def add_item(self, item: CartLineItem, quantity: int = None) -> CartLineItem:
        """
        Add ``quantity`` units of ``item`` (defaults to ``item.quantity``).

        Quantities are clamped at the per-item ceiling. When the unclamped sum
        goes past the ceiling, ``error_id`` is set to the item id; nothing is
        raised to the caller.
        """
        requested = max(int(quantity if quantity is not None else item.quantity or 1), 1)
        existing = self._find(item.id)

        if existing:
            new_quantity = existing.quantity + requested
            existing.quantity = min(new_quantity, self.max_units)
            if new_quantity > self.max_units:
                self._state.error_id = item.id
                logger.warning(f"Quantity ceiling reached: product_id={item.id}, requested total={new_quantity}")
            line = existing
        else:
            line = item.model_copy(deep=True, update={"quantity": min(requested, self.max_units)})
            self._state.items.append(line)

        self._commit()
        logger.info(f"Added to cart: product_id={item.id}, quantity={requested}, now={line.quantity}")
        return line.model_copy(deep=True)

    def decrease_item(self, product_id: str, quantity: int = None) -> None:
        """
        Subtract ``quantity`` units, never going below one.

        Without a quantity the line is removed entirely.
        """
        existing = self._find(product_id)
        if not existing:
            return

        if quantity:
            existing.quantity = max(existing.quantity - quantity, 1)
            logger.info(f"Decreased cart item: product_id={product_id}, by={quantity}, now={existing.quantity}")
        else:
            self._state.items = [i for i in self._state.items if i.id != product_id]
            logger.info(f"Removed from cart: product_id={product_id}")

        self._commit()

    def remove_item(self, product_id: str) -> None:
        self._state.items = [i for i in self._state.items if i.id != product_id]
        self._commit()
        logger.info(f"Removed from cart: product_id={product_id}")

    def clear(self) -> None:
        self._state = CartState()
        self._commit()
        logger.info("Cart cleared")

    def replace(self, items: List[CartLineItem], billing_details: BillingDetails = None) -> None:
        """Swap in a whole cart (e.g. one restored elsewhere); clears ``error_id``."""
        self._state = CartState(
            items=[item.model_copy(deep=True) for item in items],
            billing_details=billing_details or BillingDetails()
        )
        self._commit()
        logger.info(f"Cart replaced: {len(items)} items")

    def set_billing_details(self, details: BillingDetails) -> None:
        self._state.billing_details = details.model_copy()
        self._commit()

    def acknowledge_error(self) -> Optional[str]:
        """Clear the transient ``error_id``. Not persisted."""
        error_id, self._state.error_id = self._state.error_id, None
        if error_id is not None:
            self._notify()
        return error_id

    def take_notice(self) -> Optional[str]:
        """Ceiling notice for the cart view, if any; reading it acknowledges the flag."""
        error_id = self.acknowledge_error()
        if error_id is None:
            return None
        item = self._find(error_id)
        if item is None:
            return None
        return QuantityCeilingExceeded(item.id, item.display_title).message


class CartReconciler:
    """Stock-aware quantity changes issued from the cart view."""

    def __init__(self, store: CartStore, stock_levels: Dict[str, int]):
        self.store = store
        self.stock_levels = stock_levels

    @classmethod
    async def from_catalog(cls, store: CartStore, catalog) -> "CartReconciler":
        levels = await catalog.get_stock_levels(item.id for item in store.items)
        return cls(store, levels)

    def _require(self, product_id: str) -> CartLineItem:
        item = self.store.get_item(product_id)
        if item is None:
            raise KeyError(product_id)
        return item

    def increase(self, product_id: str) -> CartLineItem:
        """Add one unit if live stock allows it; raises StockUnavailable / StockInsufficient."""
        item = self._require(product_id)
        stock = self.stock_levels.get(product_id, 0)

        if stock == 0:
            logger.info(f"Increase rejected, out of stock: product_id={product_id}")
            raise StockUnavailable(product_id, item.display_title)
        if item.quantity >= stock:
            logger.info(f"Increase rejected, only {stock} in stock: product_id={product_id}")
            raise StockInsufficient(product_id, item.display_title, stock)

        return self.store.add_item(item, 1)

    def decrease(self, product_id: str) -> None:
        item = self._require(product_id)
        if item.quantity > 1:
            self.store.decrease_item(product_id, 1)

    def remove(self, product_id: str) -> None:
        self.store.remove_item(product_id)
