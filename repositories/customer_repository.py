"""
Customer repository for managing buyer records.

Provides functions to query and create customers. One row exists per email;
the unique index on customers.email is the final guard, this module maps its
violations to ConflictError.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from domain.customer import Customer, normalize_email, validate_customer_fields
from domain.errors import ConflictError
from domain.time import parse_utc_datetime, to_iso_utc, utc_now
from repositories.client import (
    APIError,
    UNIQUE_VIOLATION,
    chunked,
    error_code,
    fetch_all_rows,
    get_supabase,
    response_count,
    response_rows,
)

logger = logging.getLogger(__name__)

_CUSTOMERS_TABLE: str = "customers"


def _row_to_customer(row: Mapping[str, Any]) -> Customer:
    return Customer(
        customer_id=int(row["id"]),
        email=str(row["email"]),
        name=str(row["name"]),
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


def list_customers() -> List[Customer]:
    """All customers, newest first."""

    rows = fetch_all_rows(
        lambda: get_supabase()
        .table(_CUSTOMERS_TABLE)
        .select("*")
        .order("created_at_utc", desc=True)
        .order("id", desc=True),
        "list customers",
    )
    return [_row_to_customer(row) for row in rows]


def get_customer_by_id(customer_id: int) -> Optional[Customer]:
    response = (
        get_supabase()
        .table(_CUSTOMERS_TABLE)
        .select("*")
        .eq("id", customer_id)
        .limit(1)
        .execute()
    )
    rows = response_rows(response, "fetch customer")
    if not rows:
        return None
    return _row_to_customer(rows[0])


def get_customer_by_email(email: str) -> Optional[Customer]:
    """
    Get a customer by email address.

    Returns:
        Customer or None if not found (not an error)

    Example:
        customer = get_customer_by_email("buyer@example.com")
    """

    response = (
        get_supabase()
        .table(_CUSTOMERS_TABLE)
        .select("*")
        .eq("email", normalize_email(email))
        .limit(1)
        .execute()
    )
    rows = response_rows(response, "fetch customer")
    if not rows:
        return None
    return _row_to_customer(rows[0])


def get_customers_by_ids(customer_ids: List[int]) -> dict[int, Customer]:
    customers: dict[int, Customer] = {}
    for ids in chunked(sorted(set(customer_ids))):
        response = (
            get_supabase()
            .table(_CUSTOMERS_TABLE)
            .select("*")
            .in_("id", ids)
            .execute()
        )
        for row in response_rows(response, "fetch customers"):
            customer = _row_to_customer(row)
            customers[customer.customer_id] = customer
    return customers


def create_customer(email: str, name: str) -> Customer:
    """
    Create a customer.

    Raises:
        ValidationError: malformed email or blank name
        ConflictError: a customer with this email already exists
    """

    clean_email, clean_name = validate_customer_fields(email, name)

    if get_customer_by_email(clean_email) is not None:
        raise ConflictError(f"Customer already exists: {clean_email}", code="CUSTOMER_EXISTS")

    payload = {
        "email": clean_email,
        "name": clean_name,
        "created_at_utc": to_iso_utc(utc_now(), name="created_at"),
    }

    try:
        response = get_supabase().table(_CUSTOMERS_TABLE).insert(payload).execute()
    except APIError as exc:
        if error_code(exc) == UNIQUE_VIOLATION:
            raise ConflictError(f"Customer already exists: {clean_email}", code="CUSTOMER_EXISTS") from None
        raise RuntimeError(f"Failed to create customer: {exc}") from exc

    rows = response_rows(response, "create customer")
    customer = _row_to_customer(rows[0])
    logger.info("Created customer %s", customer.customer_id, extra={"customer_id": customer.customer_id})
    return customer


def find_or_create_customer(email: str, name: str) -> Customer:
    """
    Return the customer with this email, creating it if absent.

    At most one row is created per distinct email, even when two requests race:
    the loser of the insert race re-reads the winner's row.
    """

    existing = get_customer_by_email(email)
    if existing is not None:
        return existing

    try:
        return create_customer(email, name)
    except ConflictError:
        winner = get_customer_by_email(email)
        if winner is None:
            raise
        return winner


def count_customers_created_since(threshold: datetime) -> int:
    """Number of customers whose created_at is at or after threshold."""

    response = (
        get_supabase()
        .table(_CUSTOMERS_TABLE)
        .select("id", count="exact")
        .gte("created_at_utc", to_iso_utc(threshold, name="threshold"))
        .limit(1)
        .execute()
    )
    return response_count(response, "count new customers")


__all__ = [
    "count_customers_created_since",
    "create_customer",
    "find_or_create_customer",
    "get_customer_by_email",
    "get_customer_by_id",
    "get_customers_by_ids",
    "list_customers",
]
