"""
Tests for the refund / deactivation request workflow.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.errors import ConflictError, NotFoundError, ValidationError
from domain.license import build_license_batch
from domain.sale import SaleStatus
from domain.sale_request import RequestKind, RequestStatus, SaleRequest
from repositories.license_repository import add_licenses
from repositories.sale_repository import aggregate_revenue, get_sale_by_id
from services.purchase_service import purchase_license
from services.sale_request_service import get_requests, review_request, submit_request


@pytest.fixture
def sale():
    add_licenses(build_license_batch("Pro-2", ["P1"], "100"))
    return purchase_license("Pro-2", "a@example.com", "Ada").sale


def test_reviewed_rejects_pending_status_and_second_review() -> None:
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    request = SaleRequest(
        request_id=1,
        kind=RequestKind.REFUND,
        sale_id=1,
        customer_id=1,
        reason="Wrong tier",
        status=RequestStatus.PENDING,
        created_at=now,
        updated_at=now,
    )

    with pytest.raises(ValidationError):
        request.reviewed(RequestStatus.PENDING, now)

    approved = request.reviewed(RequestStatus.APPROVED, now, "ok")
    assert approved.status == RequestStatus.APPROVED
    assert approved.admin_notes == "ok"

    with pytest.raises(ConflictError):
        approved.reviewed(RequestStatus.REJECTED, now)


def test_submit_request_for_own_sale(sale) -> None:
    request = submit_request(RequestKind.REFUND, sale.sale_id, "A@example.com", "  Bought by mistake ")

    assert request.is_pending
    assert request.reason == "Bought by mistake"
    assert request.customer_id == sale.customer_id
    assert [r.request_id for r in get_requests(RequestKind.REFUND)] == [request.request_id]
    assert get_requests(RequestKind.DEACTIVATION) == []


def test_submit_request_guards(sale) -> None:
    with pytest.raises(ValidationError):
        submit_request(RequestKind.REFUND, sale.sale_id, "a@example.com", "  ")

    with pytest.raises(NotFoundError):
        submit_request(RequestKind.REFUND, 999, "a@example.com", "reason")

    with pytest.raises(ConflictError) as excinfo:
        submit_request(RequestKind.REFUND, sale.sale_id, "stranger@example.com", "reason")
    assert excinfo.value.code == "SALE_NOT_OWNED"

    submit_request(RequestKind.REFUND, sale.sale_id, "a@example.com", "reason")
    with pytest.raises(ConflictError) as excinfo:
        submit_request(RequestKind.REFUND, sale.sale_id, "a@example.com", "again")
    assert excinfo.value.code == "REQUEST_ALREADY_PENDING"


def test_approved_deactivation_removes_sale_from_revenue(sale) -> None:
    assert aggregate_revenue() == Decimal("100.00")
    request = submit_request(RequestKind.DEACTIVATION, sale.sale_id, "a@example.com", "Machine retired")

    reviewed = review_request(request.request_id, RequestStatus.APPROVED, "done")

    assert reviewed.status == RequestStatus.APPROVED
    assert get_sale_by_id(sale.sale_id).status == SaleStatus.DEACTIVATED
    assert aggregate_revenue() == Decimal("0.00")

    with pytest.raises(ConflictError) as excinfo:
        submit_request(RequestKind.DEACTIVATION, sale.sale_id, "a@example.com", "again")
    assert excinfo.value.code == "SALE_ALREADY_DEACTIVATED"


def test_approved_refund_only_records_decision(sale) -> None:
    request = submit_request(RequestKind.REFUND, sale.sale_id, "a@example.com", "reason")

    review_request(request.request_id, RequestStatus.APPROVED)

    assert get_sale_by_id(sale.sale_id).status == SaleStatus.ACTIVE


def test_review_request_only_once(sale) -> None:
    request = submit_request(RequestKind.REFUND, sale.sale_id, "a@example.com", "reason")
    review_request(request.request_id, RequestStatus.REJECTED)

    with pytest.raises(ConflictError):
        review_request(request.request_id, RequestStatus.APPROVED)

    with pytest.raises(NotFoundError):
        review_request(999, RequestStatus.APPROVED)


def test_review_request_lost_to_concurrent_reviewer(monkeypatch, sale, fake_db) -> None:
    import services.sale_request_service as service

    request = submit_request(RequestKind.DEACTIVATION, sale.sale_id, "a@example.com", "reason")
    real_save = service.save_review

    def other_admin_first(reviewed):
        fake_db.table("sale_requests").update({"status": "rejected"}).eq("id", reviewed.request_id).execute()
        return real_save(reviewed)

    monkeypatch.setattr(service, "save_review", other_admin_first)

    with pytest.raises(ConflictError):
        review_request(request.request_id, RequestStatus.APPROVED)
    assert get_sale_by_id(sale.sale_id).status == SaleStatus.ACTIVE
