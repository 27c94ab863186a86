"""
Domain: Refund and deactivation requests against a sale.

A customer files a request; an administrator approves or rejects it once.
Approving a deactivation turns the sale's status to "deactivated". Approving a
refund only records the decision (payments are handled elsewhere).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from .errors import ConflictError, ValidationError
from .time import require_utc_timestamp


class RequestKind(str, Enum):
    REFUND = "refund"
    DEACTIVATION = "deactivation"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class SaleRequest:
    request_id: int
    kind: RequestKind
    sale_id: int
    customer_id: int
    reason: str
    status: RequestStatus
    created_at: datetime
    updated_at: datetime
    admin_notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def reviewed(
        self,
        status: RequestStatus,
        reviewed_at: datetime,
        admin_notes: Optional[str] = None,
    ) -> "SaleRequest":
        """
        Return this request with an administrator's decision applied.

        Only pending requests can be reviewed, and only to approved/rejected.
        """

        require_utc_timestamp("reviewed_at", reviewed_at)
        if status == RequestStatus.PENDING:
            raise ValidationError.for_field("status", "Status must be approved or rejected")
        if not self.is_pending:
            raise ConflictError(
                f"Request {self.request_id} was already {self.status.value}",
                code="REQUEST_ALREADY_REVIEWED",
            )
        return replace(self, status=status, admin_notes=admin_notes, updated_at=reviewed_at)
