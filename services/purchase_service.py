"""
Purchase service for selling one license of a requested type.

Handles:
- Lazy customer creation (find-or-create by email)
- Deterministic allocation (lowest available license id first)
- Integration with the execute_license_sale() PostgreSQL function, which marks
  the license sold and records the sale in a single transaction
- Automatic retry with another license when a concurrent purchase wins the race
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Set

from postgrest.exceptions import APIError

from domain.customer import Customer
from domain.errors import OutOfStockError, ValidationError
from domain.license import License
from domain.sale import Sale
from repositories.client import get_supabase
from repositories.customer_repository import find_or_create_customer
from repositories.license_repository import get_license_by_id, list_available_licenses
from repositories.sale_repository import get_sale_by_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

# Error code returned by execute_license_sale() when the conditional update
# matched no row (license already sold, inactive, or deleted).
LICENSE_UNAVAILABLE = "LICENSE_UNAVAILABLE"


def max_attempts_from_env() -> int:
    """PURCHASE_MAX_ATTEMPTS, falling back to the default for missing or bad values."""

    raw = os.getenv("PURCHASE_MAX_ATTEMPTS")
    if not raw:
        return DEFAULT_MAX_ATTEMPTS
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid PURCHASE_MAX_ATTEMPTS=%r", raw)
        return DEFAULT_MAX_ATTEMPTS
    return max(1, value)


@dataclass(frozen=True, slots=True)
class PurchaseResult:
    """Outcome of a successful purchase."""

    sale: Sale
    license: License
    customer: Customer


@dataclass(frozen=True, slots=True)
class AtomicSaleResult:
    """Result from execute_license_sale PostgreSQL function."""

    success: bool
    sale_id: Optional[int]
    error_code: Optional[str]
    error_message: Optional[str]


def _result_from_payload(payload: dict) -> AtomicSaleResult:
    if payload.get("success"):
        return AtomicSaleResult(
            success=True,
            sale_id=int(payload["sale_id"]),
            error_code=None,
            error_message=None,
        )
    return AtomicSaleResult(
        success=False,
        sale_id=None,
        error_code=payload.get("error"),
        error_message=payload.get("message"),
    )


def _execute_atomic_sale(license_id: int, customer_id: int) -> AtomicSaleResult:
    """
    Execute atomic sale via PostgreSQL function.

    Calls execute_license_sale() which, in one transaction:
    - Runs UPDATE licenses SET is_sold = true
      WHERE id = X AND is_sold = false AND is_active = true RETURNING price
    - If no row was updated, returns LICENSE_UNAVAILABLE and writes nothing
    - Otherwise inserts the sale with amount = the license price

    Args:
        license_id: License to sell
        customer_id: Buyer

    Returns:
        AtomicSaleResult with success status and sale_id or error
    """

    try:
        response = get_supabase().rpc(
            "execute_license_sale",
            {"p_license_id": license_id, "p_customer_id": customer_id},
        ).execute()
    except APIError as exc:
        # Some supabase-py versions raise APIError for JSON returned by a function,
        # for both success and error payloads.
        try:
            error_data = exc.json() if callable(getattr(exc, "json", None)) else {}
        except (TypeError, ValueError):
            error_data = {}

        if isinstance(error_data, dict) and "success" in error_data:
            return _result_from_payload(error_data)

        return AtomicSaleResult(
            success=False,
            sale_id=None,
            error_code=str(getattr(exc, "code", None) or "API_ERROR"),
            error_message=str(getattr(exc, "message", None) or exc),
        )

    error = getattr(response, "error", None)
    if error:
        return AtomicSaleResult(success=False, sale_id=None, error_code="RPC_ERROR", error_message=str(error))

    payload = response.data
    if isinstance(payload, list):
        payload = payload[0] if payload else {}
    return _result_from_payload(payload or {})


def purchase_license(
    license_type: str,
    customer_email: str,
    customer_name: str,
    max_attempts: Optional[int] = None,
) -> PurchaseResult:
    """
    Sell one available license of license_type to the customer.

    Process:
    1. Find or create the customer by email
    2. Select the lowest-id available license of the type
    3. If none: raise OutOfStockError (the customer row is kept)
    4. Run execute_license_sale(): marks the license sold and records the sale
       with amount = license price, atomically
    5. If another purchase sold that license first, go back to 2 with a
       different license, up to max_attempts
    6. Return sale, license and customer

    Raises:
        ValidationError: blank license type, malformed email or name
        OutOfStockError: nothing of this type could be allocated
        RuntimeError: the database rejected the sale for another reason
    """

    license_type = (license_type or "").strip()
    if not license_type:
        raise ValidationError.for_field("licenseType", "License type is required")

    attempts = max_attempts if max_attempts is not None else max_attempts_from_env()
    customer = find_or_create_customer(customer_email, customer_name)

    lost: Set[int] = set()
    for attempt in range(1, attempts + 1):
        candidates = [lic for lic in list_available_licenses(license_type) if lic.license_id not in lost]
        if not candidates:
            break

        license_ = candidates[0]
        result = _execute_atomic_sale(license_.license_id, customer.customer_id)

        if result.success and result.sale_id is not None:
            sale = get_sale_by_id(result.sale_id)
            if sale is None:
                raise RuntimeError(f"Sale {result.sale_id} was recorded but cannot be read back")
            # Re-read: the listing row may be stale by the time the sale commits.
            sold = get_license_by_id(license_.license_id) or license_.mark_sold()
            logger.info(
                "Sold license %s to customer %s",
                license_.license_id,
                customer.customer_id,
                extra={
                    "sale_id": sale.sale_id,
                    "license_id": license_.license_id,
                    "license_type": license_type,
                    "customer_id": customer.customer_id,
                    "amount": str(sale.amount),
                    "attempt": attempt,
                },
            )
            return PurchaseResult(sale=sale, license=sold, customer=customer)

        if result.error_code != LICENSE_UNAVAILABLE:
            raise RuntimeError(
                f"Failed to execute sale for license {license_.license_id}: "
                f"{result.error_code}: {result.error_message}"
            )

        lost.add(license_.license_id)
        logger.info(
            "License %s was taken by a concurrent purchase, retrying",
            license_.license_id,
            extra={"license_id": license_.license_id, "license_type": license_type, "attempt": attempt},
        )

    logger.info(
        "License type %r is out of stock",
        license_type,
        extra={"license_type": license_type, "customer_id": customer.customer_id, "lost_races": len(lost)},
    )
    raise OutOfStockError(license_type)


__all__ = [
    "AtomicSaleResult",
    "DEFAULT_MAX_ATTEMPTS",
    "LICENSE_UNAVAILABLE",
    "PurchaseResult",
    "purchase_license",
]
