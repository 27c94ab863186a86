"""
Domain: Shopping cart.

The cart lives with a single session; nothing is persisted server-side until
checkout. Each session owns its own Cart instance.

Contract excerpts implemented here:
- At most one line item per license type.
- total and item_count are always derived from the line items.
- Setting a quantity to zero (or below) removes the line item.
- Every mutation notifies subscribers with a fresh snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Tuple, Union

from .errors import ValidationError
from .license import parse_price


@dataclass(frozen=True, slots=True)
class CartItem:
    license_type: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    """Immutable view of a cart handed to subscribers and callers."""

    items: Tuple[CartItem, ...]
    total: Decimal
    item_count: int


CartListener = Callable[[CartSnapshot], None]


class Cart:
    """Observable cart state container."""

    def __init__(self) -> None:
        self._items: List[CartItem] = []
        self._listeners: List[CartListener] = []

    @property
    def items(self) -> Tuple[CartItem, ...]:
        return tuple(self._items)

    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self._items), Decimal("0.00"))

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot(items=self.items, total=self.total, item_count=self.item_count)

    def add_item(self, license_type: str, unit_price: Union[str, Decimal]) -> None:
        """Add one unit of a type, merging into its existing line item."""

        if not license_type:
            raise ValidationError.for_field("licenseType", "License type is required")
        price = parse_price(unit_price, field="unitPrice")

        index = self._find(license_type)
        if index is None:
            self._items.append(CartItem(license_type=license_type, unit_price=price, quantity=1))
        else:
            item = self._items[index]
            self._items[index] = CartItem(item.license_type, item.unit_price, item.quantity + 1)
        self._notify()

    def update_quantity(self, license_type: str, quantity: int) -> None:
        """Set a line's quantity; zero or less removes it. Unknown types are ignored."""

        index = self._find(license_type)
        if index is None:
            return
        if quantity <= 0:
            self.remove_item(license_type)
            return
        item = self._items[index]
        self._items[index] = CartItem(item.license_type, item.unit_price, quantity)
        self._notify()

    def remove_item(self, license_type: str) -> None:
        self._items = [item for item in self._items if item.license_type != license_type]
        self._notify()

    def clear(self) -> None:
        self._items = []
        self._notify()

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _find(self, license_type: str):
        for index, item in enumerate(self._items):
            if item.license_type == license_type:
                return index
        return None

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)


__all__ = ["Cart", "CartItem", "CartListener", "CartSnapshot"]
