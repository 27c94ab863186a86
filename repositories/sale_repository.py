"""
Sale repository (persistence).

This module provides persistence operations for the Sale domain entity. It does
not enforce business rules (e.g., one sale per license); it only inserts,
fetches and aggregates sale records. The purchase flow records sales through
the `execute_license_sale` database function instead of `record_sale`, so that
the sale insert and the license update share one transaction.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping, Optional

from domain.sale import Sale, SaleDetail, SaleStatus, total_revenue
from domain.license import to_money
from domain.time import parse_utc_datetime, to_iso_utc, utc_now
from repositories.client import fetch_all_rows, get_supabase, response_rows
from repositories.customer_repository import get_customers_by_ids
from repositories.license_repository import get_licenses_by_ids

# Keep this aligned with sql/schema.sql.
_SALES_TABLE: str = "sales"


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a PostgREST row into a Sale."""

    return Sale(
        sale_id=int(row["id"]),
        license_id=int(row["license_id"]),
        customer_id=int(row["customer_id"]),
        amount=to_money(row["amount"]),
        status=SaleStatus(str(row["status"])),
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


def _join_details(sales: List[Sale]) -> List[SaleDetail]:
    """
    Attach license and customer to each sale, keeping the sales' order.

    Sales whose license or customer cannot be found are dropped (inner join).
    """

    licenses = get_licenses_by_ids([sale.license_id for sale in sales])
    customers = get_customers_by_ids([sale.customer_id for sale in sales])

    details: List[SaleDetail] = []
    for sale in sales:
        license_ = licenses.get(sale.license_id)
        customer = customers.get(sale.customer_id)
        if license_ is None or customer is None:
            continue
        details.append(SaleDetail(sale=sale, license=license_, customer=customer))
    return details


def record_sale(
    license_id: int,
    customer_id: int,
    amount: Decimal,
    status: SaleStatus = SaleStatus.ACTIVE,
) -> Sale:
    """
    Insert a new sale row.

    Does not touch the license: the caller is responsible for marking it sold
    as part of the same logical transaction.
    """

    payload: dict[str, Any] = {
        "license_id": license_id,
        "customer_id": customer_id,
        "amount": str(amount),
        "status": status.value,
        "created_at_utc": to_iso_utc(utc_now(), name="created_at"),
    }

    response = get_supabase().table(_SALES_TABLE).insert(payload).execute()
    rows = response_rows(response, "record sale")
    return _row_to_sale(rows[0])


def get_sale_by_id(sale_id: int) -> Optional[Sale]:
    """
    Retrieve a single sale record by its ID.

    Returns:
        Sale or None if not found
    """

    response = (
        get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("id", sale_id)
        .limit(1)
        .execute()
    )
    rows = response_rows(response, "get sale")
    if not rows:
        return None
    return _row_to_sale(rows[0])


def list_sales() -> List[Sale]:
    """All sales, newest first."""

    rows = fetch_all_rows(
        lambda: get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .order("created_at_utc", desc=True)
        .order("id", desc=True),
        "list sales",
    )
    return [_row_to_sale(row) for row in rows]


def list_recent_sales(limit: int = 10) -> List[SaleDetail]:
    """
    The latest sales joined with their license and customer, newest first.

    Args:
        limit: maximum number of sales to return (default 10)
    """

    response = (
        get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .order("created_at_utc", desc=True)
        .order("id", desc=True)
        .limit(limit)
        .execute()
    )
    sales = [_row_to_sale(row) for row in response_rows(response, "list recent sales")]
    return _join_details(sales)


def list_sales_by_customer(customer_id: int) -> List[SaleDetail]:
    """A customer's purchase history, newest first."""

    rows = fetch_all_rows(
        lambda: get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("customer_id", customer_id)
        .order("created_at_utc", desc=True)
        .order("id", desc=True),
        "list sales by customer",
    )
    return _join_details([_row_to_sale(row) for row in rows])


def aggregate_revenue() -> Decimal:
    """
    Sum of amount over sales with status "active".

    PostgREST does not expose SUM by default, so amounts are fetched and added
    exactly in Decimal. Returns Decimal("0.00") when no sale qualifies.
    """

    rows = fetch_all_rows(
        lambda: get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("status", SaleStatus.ACTIVE.value)
        .order("id"),
        "aggregate revenue",
    )
    return total_revenue(_row_to_sale(row) for row in rows)


def update_sale_status(sale_id: int, status: SaleStatus) -> Optional[Sale]:
    """Set a sale's status. Returns the updated sale, or None if not found."""

    response = (
        get_supabase()
        .table(_SALES_TABLE)
        .update({"status": status.value})
        .eq("id", sale_id)
        .execute()
    )
    rows = response_rows(response, "update sale status")
    if not rows:
        return None
    return _row_to_sale(rows[0])


__all__ = [
    "aggregate_revenue",
    "get_sale_by_id",
    "list_recent_sales",
    "list_sales",
    "list_sales_by_customer",
    "record_sale",
    "update_sale_status",
]
