"""
Sales API Endpoints.

Purchasing (single license and whole-cart checkout) and the sale ledger views.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from api.auth import RequestContext, Role, require_role
from api.models import (
    CheckoutRequest,
    CheckoutResponse,
    PurchaseRequest,
    PurchaseResponse,
    SaleDetailResponse,
    SaleResponse,
)
from repositories.customer_repository import get_customer_by_email
from repositories.sale_repository import list_recent_sales, list_sales, list_sales_by_customer
from services.checkout_service import checkout_lines
from services.purchase_service import purchase_license

router = APIRouter()


@router.get(
    "/sales",
    response_model=List[SaleResponse],
    summary="List Sales",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def get_sales():
    return [SaleResponse.from_domain(sale) for sale in list_sales()]


@router.get(
    "/sales/recent",
    response_model=List[SaleDetailResponse],
    summary="Recent Sales",
    description="Latest sales with their license and customer, newest first.",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def get_recent_sales(limit: int = Query(10, ge=1, le=100, description="Maximum number of sales")):
    return [SaleDetailResponse.from_domain(detail) for detail in list_recent_sales(limit)]


@router.get(
    "/sales/mine",
    response_model=List[SaleDetailResponse],
    summary="My Purchases",
    description="The calling customer's purchases, newest first.",
)
def get_my_sales(context: RequestContext = Depends(require_role(Role.CUSTOMER))):
    if not context.customer_email:
        raise HTTPException(status_code=400, detail="X-Customer-Email header is required")
    customer = get_customer_by_email(context.customer_email)
    if customer is None:
        return []
    return [SaleDetailResponse.from_domain(detail) for detail in list_sales_by_customer(customer.customer_id)]


@router.post(
    "/sales",
    response_model=PurchaseResponse,
    summary="Purchase License",
    description="Buy one license of a type. The customer is created on first purchase.",
)
def purchase(request: PurchaseRequest):
    """
    Purchase one license.

    **Process:**
    1. Finds or creates the customer by email
    2. Allocates the oldest available license of the requested type
    3. Records the sale and marks the license sold in one transaction
    4. Retries with another license if a concurrent purchase took it first

    **Failure response (type not available):**
    ```json
    {"error": "License type not available", "detail": "OUT_OF_STOCK", "status_code": 400}
    ```
    """
    result = purchase_license(request.license_type, request.customer_email, request.customer_name)
    return PurchaseResponse.from_domain(result)


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Checkout Cart",
    description="Purchase every unit of the submitted cart lines. Units are independent; partial success is reported per unit.",
)
def checkout(request: CheckoutRequest):
    lines = [(item.license_type, item.quantity) for item in request.items]
    result = checkout_lines(lines, request.customer_email, request.customer_name)
    return CheckoutResponse.from_domain(result)
