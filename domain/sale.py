"""
Domain: Sale records.

Contract excerpts relevant here:
- Exactly one Sale exists per sold License.
- amount is captured from the license price at sale time and never recomputed.
- Only sales with status "active" count toward revenue.
- status may move from "active" to "deactivated" through an approved
  deactivation request; nothing moves it back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable

from .customer import Customer
from .license import License
from .time import require_utc_timestamp


class SaleStatus(str, Enum):
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


@dataclass(frozen=True, slots=True)
class Sale:
    """Immutable record of one license going to one customer."""

    sale_id: int
    license_id: int
    customer_id: int
    amount: Decimal
    status: SaleStatus
    created_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    @property
    def counts_toward_revenue(self) -> bool:
        return self.status == SaleStatus.ACTIVE


@dataclass(frozen=True, slots=True)
class SaleDetail:
    """Read model: a sale joined with its license and customer."""

    sale: Sale
    license: License
    customer: Customer


def total_revenue(sales: Iterable[Sale]) -> Decimal:
    """Exact sum of amounts over active sales; Decimal('0.00') when there are none."""

    total = Decimal("0.00")
    for sale in sales:
        if sale.counts_toward_revenue:
            total += sale.amount
    return total
