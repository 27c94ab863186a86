"""
Refund and deactivation request workflow.

Customers file requests against their own sales; administrators review each
request exactly once. An approved deactivation turns the sale "deactivated",
which removes it from revenue. An approved refund only records the decision.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from domain.errors import ConflictError, NotFoundError, ValidationError
from domain.sale import SaleStatus
from domain.sale_request import RequestKind, RequestStatus, SaleRequest
from domain.time import utc_now
from repositories.customer_repository import get_customer_by_email
from repositories.sale_repository import get_sale_by_id, update_sale_status
from repositories.sale_request_repository import (
    create_request,
    get_request_by_id,
    list_pending_requests_for_sale,
    list_requests,
    save_review,
)

logger = logging.getLogger(__name__)


def submit_request(kind: RequestKind, sale_id: int, customer_email: str, reason: str) -> SaleRequest:
    """
    File a refund or deactivation request for one of the customer's sales.

    Raises:
        ValidationError: blank reason
        NotFoundError: no such sale
        ConflictError: the sale belongs to someone else, or a request of the
            same kind is already pending for it
    """

    clean_reason = (reason or "").strip()
    if not clean_reason:
        raise ValidationError.for_field("reason", "Please describe the reason for your request")

    sale = get_sale_by_id(sale_id)
    if sale is None:
        raise NotFoundError(f"Sale not found: {sale_id}")

    customer = get_customer_by_email(customer_email)
    if customer is None or customer.customer_id != sale.customer_id:
        raise ConflictError(f"Sale {sale_id} does not belong to this customer", code="SALE_NOT_OWNED")

    if kind == RequestKind.DEACTIVATION and sale.status == SaleStatus.DEACTIVATED:
        raise ConflictError(f"Sale {sale_id} is already deactivated", code="SALE_ALREADY_DEACTIVATED")

    if list_pending_requests_for_sale(sale_id, kind):
        raise ConflictError(
            f"A {kind.value} request for sale {sale_id} is already pending",
            code="REQUEST_ALREADY_PENDING",
        )

    request = create_request(kind, sale_id, customer.customer_id, clean_reason)
    logger.info(
        "Customer %s filed a %s request for sale %s",
        customer.customer_id,
        kind.value,
        sale_id,
        extra={"request_id": request.request_id, "kind": kind.value, "sale_id": sale_id},
    )
    return request


def get_requests(kind: Optional[RequestKind] = None) -> List[SaleRequest]:
    return list_requests(kind)


def review_request(request_id: int, status: RequestStatus, admin_notes: Optional[str] = None) -> SaleRequest:
    """
    Approve or reject a pending request.

    Raises:
        NotFoundError: no such request
        ConflictError: the request was already reviewed
        ValidationError: status is not approved/rejected
    """

    request = get_request_by_id(request_id)
    if request is None:
        raise NotFoundError(f"Request not found: {request_id}")

    reviewed = request.reviewed(status, utc_now(), admin_notes)
    saved = save_review(reviewed)
    if saved is None:
        raise ConflictError(f"Request {request_id} was already reviewed", code="REQUEST_ALREADY_REVIEWED")

    if saved.kind == RequestKind.DEACTIVATION and saved.status == RequestStatus.APPROVED:
        update_sale_status(saved.sale_id, SaleStatus.DEACTIVATED)

    logger.info(
        "Request %s %s",
        request_id,
        saved.status.value,
        extra={"request_id": request_id, "kind": saved.kind.value, "sale_id": saved.sale_id},
    )
    return saved


__all__ = ["get_requests", "review_request", "submit_request"]
