"""
Checkout service: turns cart lines into one purchase per unit.

There is no cross-item atomicity. Each unit is an independent purchase; when a
unit fails (e.g. its type sold out mid-checkout) the units already bought stay
bought and the result says exactly which units succeeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from domain.cart import Cart
from domain.customer import validate_customer_fields
from domain.errors import DomainError, ValidationError
from services.purchase_service import PurchaseResult, purchase_license

logger = logging.getLogger(__name__)

# Error code for units that failed on a storage or other system fault.
SYSTEM_ERROR = "SYSTEM_ERROR"


@dataclass(frozen=True, slots=True)
class CheckoutUnit:
    """Outcome of purchasing one unit of a cart line."""

    license_type: str
    unit_index: int
    purchase: Optional[PurchaseResult] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.purchase is not None


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    units: List[CheckoutUnit]

    @property
    def purchased(self) -> List[CheckoutUnit]:
        return [unit for unit in self.units if unit.succeeded]

    @property
    def failed(self) -> List[CheckoutUnit]:
        return [unit for unit in self.units if not unit.succeeded]

    @property
    def success(self) -> bool:
        return bool(self.units) and not self.failed

    @property
    def total_charged(self) -> Decimal:
        return sum((unit.purchase.sale.amount for unit in self.purchased), Decimal("0.00"))


def checkout_lines(
    lines: Sequence[Tuple[str, int]],
    customer_email: str,
    customer_name: str,
) -> CheckoutResult:
    """
    Purchase every unit of every (license_type, quantity) line, in order.

    Raises:
        ValidationError: no units to buy, or malformed customer details
            (checked before anything is purchased)
    """

    validate_customer_fields(customer_email, customer_name)
    if not lines or sum(max(quantity, 0) for _, quantity in lines) == 0:
        raise ValidationError.for_field("items", "Your cart is empty")

    units: List[CheckoutUnit] = []
    for license_type, quantity in lines:
        for unit_index in range(quantity):
            try:
                purchase = purchase_license(license_type, customer_email, customer_name)
            except DomainError as exc:
                units.append(
                    CheckoutUnit(
                        license_type=license_type,
                        unit_index=unit_index,
                        error_code=exc.code,
                        error_message=exc.message,
                    )
                )
                continue
            except Exception as exc:
                # Units bought before a storage fault stay committed; report them.
                logger.exception(
                    "Checkout unit failed with a system error",
                    extra={"license_type": license_type, "unit_index": unit_index},
                )
                units.append(
                    CheckoutUnit(
                        license_type=license_type,
                        unit_index=unit_index,
                        error_code=SYSTEM_ERROR,
                        error_message=str(exc) or exc.__class__.__name__,
                    )
                )
                continue
            units.append(CheckoutUnit(license_type=license_type, unit_index=unit_index, purchase=purchase))

    result = CheckoutResult(units=units)
    if result.failed:
        logger.warning(
            "Checkout completed partially: %d of %d units purchased",
            len(result.purchased),
            len(units),
            extra={
                "purchased": len(result.purchased),
                "failed": len(result.failed),
                "failed_types": sorted({unit.license_type for unit in result.failed}),
            },
        )
    return result


def checkout_cart(cart: Cart, customer_email: str, customer_name: str) -> CheckoutResult:
    """
    Check out a session cart.

    Purchased units are taken out of the cart; the cart ends up empty when every
    unit succeeded and otherwise holds exactly the units still to buy.
    """

    lines = [(item.license_type, item.quantity) for item in cart.items]
    result = checkout_lines(lines, customer_email, customer_name)

    if result.success:
        cart.clear()
        return result

    bought: dict[str, int] = {}
    for unit in result.purchased:
        bought[unit.license_type] = bought.get(unit.license_type, 0) + 1
    for item in cart.items:
        if item.license_type in bought:
            cart.update_quantity(item.license_type, item.quantity - bought[item.license_type])
    return result


__all__ = ["CheckoutResult", "CheckoutUnit", "SYSTEM_ERROR", "checkout_cart", "checkout_lines"]
