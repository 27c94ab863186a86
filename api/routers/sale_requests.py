"""
Refund / Deactivation Request Endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.auth import RequestContext, Role, require_role
from api.models import SaleRequestCreate, SaleRequestResponse, SaleRequestReview
from domain.sale_request import RequestKind, RequestStatus
from services.sale_request_service import get_requests, review_request, submit_request

router = APIRouter()


@router.post(
    "/requests/{kind}",
    response_model=SaleRequestResponse,
    summary="File Request",
    description="File a refund or deactivation request for one of your purchases.",
)
def file_request(
    kind: RequestKind,
    request: SaleRequestCreate,
    context: RequestContext = Depends(require_role(Role.CUSTOMER)),
):
    if not context.customer_email:
        raise HTTPException(status_code=400, detail="X-Customer-Email header is required")
    created = submit_request(kind, request.sale_id, context.customer_email, request.reason)
    return SaleRequestResponse.from_domain(created)


@router.get(
    "/requests",
    response_model=List[SaleRequestResponse],
    summary="List Requests",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def list_sale_requests(kind: Optional[RequestKind] = Query(None)):
    return [SaleRequestResponse.from_domain(request) for request in get_requests(kind)]


@router.patch(
    "/requests/{request_id}",
    response_model=SaleRequestResponse,
    summary="Review Request",
    description="Approve or reject a pending request. Approving a deactivation deactivates the sale.",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def review_sale_request(request_id: int, review: SaleRequestReview):
    reviewed = review_request(request_id, RequestStatus(review.status), review.admin_notes)
    return SaleRequestResponse.from_domain(reviewed)
