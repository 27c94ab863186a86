"""
Dashboard metrics and recent activity feed.

All figures are derived on read from the sale ledger, license inventory and
customer directory; nothing here is stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from domain.sale import SaleDetail
from domain.time import utc_now
from repositories.customer_repository import count_customers_created_since
from repositories.license_repository import count_available_licenses, count_sold_licenses
from repositories.sale_repository import aggregate_revenue, list_recent_sales

DEFAULT_NEW_CUSTOMER_DAYS = 30
DEFAULT_ACTIVITY_LIMIT = 10


@dataclass(frozen=True, slots=True)
class DashboardMetrics:
    total_sales: Decimal
    available_licenses: int
    licenses_sold: int
    new_customers: int


@dataclass(frozen=True, slots=True)
class ActivityEntry:
    activity_type: str
    description: str
    timestamp: datetime


def get_dashboard_metrics(
    new_customer_days: int = DEFAULT_NEW_CUSTOMER_DAYS,
    as_of: Optional[datetime] = None,
) -> DashboardMetrics:
    """
    Aggregate figures for the admin dashboard.

    Args:
        new_customer_days: trailing window for counting new customers (default 30)
        as_of: end of the window; defaults to now (UTC)
    """

    if new_customer_days < 0:
        raise ValueError("new_customer_days must be >= 0")

    threshold = (as_of or utc_now()) - timedelta(days=new_customer_days)
    return DashboardMetrics(
        total_sales=aggregate_revenue(),
        available_licenses=count_available_licenses(),
        licenses_sold=count_sold_licenses(),
        new_customers=count_customers_created_since(threshold),
    )


def build_activity_feed(details: Iterable[SaleDetail]) -> List[ActivityEntry]:
    return [
        ActivityEntry(
            activity_type="sale",
            description=f"{detail.license.license_type} sold to {detail.customer.name}",
            timestamp=detail.sale.created_at,
        )
        for detail in details
    ]


def get_recent_activity(limit: int = DEFAULT_ACTIVITY_LIMIT) -> List[ActivityEntry]:
    """The last `limit` sales as human-readable activity entries, newest first."""

    return build_activity_feed(list_recent_sales(limit))


__all__ = [
    "ActivityEntry",
    "DashboardMetrics",
    "build_activity_feed",
    "get_dashboard_metrics",
    "get_recent_activity",
]
