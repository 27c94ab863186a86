"""
Tests for `domain/cart.py`.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.cart import Cart
from domain.errors import ValidationError


def test_add_item_merges_lines_of_the_same_type() -> None:
    cart = Cart()
    cart.add_item("Pro-2", "100")
    cart.add_item("Pro-2", "100")
    cart.add_item("Basic", "25.50")

    assert [(item.license_type, item.quantity) for item in cart.items] == [("Pro-2", 2), ("Basic", 1)]
    assert cart.total == Decimal("225.50")
    assert cart.item_count == 3


def test_update_quantity_zero_removes_line() -> None:
    cart = Cart()
    cart.add_item("Pro-2", "100")
    cart.update_quantity("Pro-2", 0)

    assert cart.items == ()
    assert cart.total == Decimal("0.00")
    assert cart.item_count == 0


def test_update_quantity_sets_quantity_and_ignores_unknown_types() -> None:
    cart = Cart()
    cart.add_item("Pro-2", "100")
    cart.update_quantity("Pro-2", 4)
    cart.update_quantity("Missing", 3)

    assert [(item.license_type, item.quantity) for item in cart.items] == [("Pro-2", 4)]
    assert cart.total == Decimal("400.00")


def test_remove_and_clear() -> None:
    cart = Cart()
    cart.add_item("Pro-2", "100")
    cart.add_item("Basic", "10")

    cart.remove_item("Pro-2")
    assert [item.license_type for item in cart.items] == ["Basic"]

    cart.clear()
    assert cart.item_count == 0


def test_add_item_rejects_invalid_price() -> None:
    cart = Cart()

    with pytest.raises(ValidationError):
        cart.add_item("Pro-2", "-5")
    assert cart.items == ()


def test_subscribers_receive_snapshots_until_unsubscribed() -> None:
    cart = Cart()
    seen = []
    unsubscribe = cart.subscribe(seen.append)

    cart.add_item("Pro-2", "100")
    cart.add_item("Pro-2", "100")
    unsubscribe()
    cart.clear()

    assert [snapshot.item_count for snapshot in seen] == [1, 2]
    assert seen[-1].total == Decimal("200.00")
    assert seen[-1].items[0].line_total == Decimal("200.00")
