"""Shopping cart state, mirrored to local storage."""

import json
import logging
from decimal import Decimal
from typing import Callable, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from .models import CartItem, Product

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "cart"

_cart_adapter = TypeAdapter(list[CartItem])

CartListener = Callable[["CartStore"], None]


class Storage(Protocol):
    def get_item(self, key: str): ...

    def set_item(self, key: str, value) -> None: ...


class CartStore:
    """Line items a visitor intends to purchase.

    Line items are kept in insertion order and keyed by product id. Every
    mutation writes the whole list to storage and then notifies subscribers
    before returning.
    """

    def __init__(self, storage: Storage, storage_key: str = CART_STORAGE_KEY) -> None:
        self.storage = storage
        self.storage_key = storage_key
        self._items: list[CartItem] = self._load()
        self._listeners: list[CartListener] = []

    def _load(self) -> list[CartItem]:
        """Read the persisted cart. Missing or corrupt data gives an empty cart."""
        try:
            raw = self.storage.get_item(self.storage_key)
        except Exception as e:
            logger.warning(f"Could not read cart from storage: {e}")
            return []

        if raw is None:
            return []

        try:
            if isinstance(raw, (str, bytes)):
                raw = json.loads(raw)
            loaded = _cart_adapter.validate_python(raw)
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Discarding corrupt cart snapshot: {e}")
            return []

        # Merge repeated product ids so keys stay unique
        items: list[CartItem] = []
        for item in loaded:
            existing = _find(items, item.product.id)
            if existing is None:
                items.append(item)
            else:
                items[existing] = _with_quantity(items[existing], items[existing].quantity + item.quantity)
        logger.info(f"Loaded cart with {len(items)} line item(s)")
        return items

    def _commit(self, items: list[CartItem]) -> None:
        payload = [item.model_dump(mode="json") for item in items]
        self.storage.set_item(self.storage_key, payload)
        self._items = items
        for listener in list(self._listeners):
            listener(self)

    @property
    def items(self) -> list[CartItem]:
        """Copy of the current line items."""
        return list(self._items)

    def get_item(self, product_id: str) -> Optional[CartItem]:
        index = _find(self._items, product_id)
        return None if index is None else self._items[index]

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register a callback run after every mutation. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_item(self, product: Product, quantity: int = 1) -> None:
        """
        Add a product to the cart.

        Increments the existing line for the product, or appends a new one.
        Inventory is not checked here.
        """
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")

        items = list(self._items)
        index = _find(items, product.id)
        if index is None:
            items.append(CartItem(product=product, quantity=quantity))
        else:
            items[index] = _with_quantity(items[index], items[index].quantity + quantity)

        logger.info(f"Cart add: product={product.id} quantity={quantity}")
        self._commit(items)

    def update_quantity(self, product_id: str, quantity: int) -> None:
        """Set a line's quantity. Zero or less removes the line; unknown ids are ignored."""
        index = _find(self._items, product_id)
        if index is None:
            return

        items = list(self._items)
        if quantity <= 0:
            del items[index]
        else:
            items[index] = _with_quantity(items[index], quantity)

        logger.info(f"Cart update: product={product_id} quantity={quantity}")
        self._commit(items)

    def remove_item(self, product_id: str) -> None:
        """Remove a line if present."""
        index = _find(self._items, product_id)
        if index is None:
            return

        items = list(self._items)
        del items[index]
        logger.info(f"Cart remove: product={product_id}")
        self._commit(items)

    def clear(self) -> None:
        """Empty the cart."""
        logger.info("Cart cleared")
        self._commit([])

    def get_total_items(self) -> int:
        return sum(item.quantity for item in self._items)

    def get_total_price(self) -> Decimal:
        return sum((item.subtotal for item in self._items), Decimal("0"))

    def is_empty(self) -> bool:
        return not self._items


def _find(items: list[CartItem], product_id: str) -> Optional[int]:
    for index, item in enumerate(items):
        if item.product.id == product_id:
            return index
    return None


def _with_quantity(item: CartItem, quantity: int) -> CartItem:
    return item.model_copy(update={"quantity": quantity})
