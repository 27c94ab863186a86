"""
Sale request repository (persistence).

Stores refund and deactivation requests. Review rules live in
services/sale_request_service.py.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from domain.sale_request import RequestKind, RequestStatus, SaleRequest
from domain.time import parse_utc_datetime, to_iso_utc, utc_now
from repositories.client import fetch_all_rows, get_supabase, response_rows

_REQUESTS_TABLE: str = "sale_requests"


def _row_to_request(row: Mapping[str, Any]) -> SaleRequest:
    return SaleRequest(
        request_id=int(row["id"]),
        kind=RequestKind(str(row["kind"])),
        sale_id=int(row["sale_id"]),
        customer_id=int(row["customer_id"]),
        reason=str(row["reason"]),
        status=RequestStatus(str(row["status"])),
        admin_notes=row.get("admin_notes"),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        updated_at=parse_utc_datetime(row["updated_at_utc"]),
    )


def create_request(kind: RequestKind, sale_id: int, customer_id: int, reason: str) -> SaleRequest:
    now = to_iso_utc(utc_now(), name="created_at")
    payload: dict[str, Any] = {
        "kind": kind.value,
        "sale_id": sale_id,
        "customer_id": customer_id,
        "reason": reason,
        "status": RequestStatus.PENDING.value,
        "admin_notes": None,
        "created_at_utc": now,
        "updated_at_utc": now,
    }
    response = get_supabase().table(_REQUESTS_TABLE).insert(payload).execute()
    return _row_to_request(response_rows(response, "create sale request")[0])


def get_request_by_id(request_id: int) -> Optional[SaleRequest]:
    response = (
        get_supabase()
        .table(_REQUESTS_TABLE)
        .select("*")
        .eq("id", request_id)
        .limit(1)
        .execute()
    )
    rows = response_rows(response, "get sale request")
    if not rows:
        return None
    return _row_to_request(rows[0])


def list_requests(kind: Optional[RequestKind] = None) -> List[SaleRequest]:
    """Requests, newest first, optionally of one kind."""

    def build_query():
        query = get_supabase().table(_REQUESTS_TABLE).select("*")
        if kind is not None:
            query = query.eq("kind", kind.value)
        return query.order("created_at_utc", desc=True).order("id", desc=True)

    return [_row_to_request(row) for row in fetch_all_rows(build_query, "list sale requests")]


def list_pending_requests_for_sale(sale_id: int, kind: RequestKind) -> List[SaleRequest]:
    response = (
        get_supabase()
        .table(_REQUESTS_TABLE)
        .select("*")
        .eq("sale_id", sale_id)
        .eq("kind", kind.value)
        .eq("status", RequestStatus.PENDING.value)
        .execute()
    )
    return [_row_to_request(row) for row in response_rows(response, "list pending sale requests")]


def save_review(request: SaleRequest) -> Optional[SaleRequest]:
    """
    Persist a reviewed request.

    The update is conditional on the stored row still being pending, so two
    administrators cannot both review the same request. Returns None when the
    row was no longer pending.
    """

    response = (
        get_supabase()
        .table(_REQUESTS_TABLE)
        .update(
            {
                "status": request.status.value,
                "admin_notes": request.admin_notes,
                "updated_at_utc": to_iso_utc(request.updated_at, name="updated_at"),
            }
        )
        .eq("id", request.request_id)
        .eq("status", RequestStatus.PENDING.value)
        .execute()
    )
    rows = response_rows(response, "review sale request")
    if not rows:
        return None
    return _row_to_request(rows[0])


__all__ = [
    "create_request",
    "get_request_by_id",
    "list_pending_requests_for_sale",
    "list_requests",
    "save_review",
]
