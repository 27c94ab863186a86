"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses. JSON
field names are camelCase (the storefront client's convention); decimals are
serialized as strings with two fraction digits.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from domain.customer import Customer
from domain.license import License
from domain.sale import Sale, SaleDetail
from domain.sale_request import SaleRequest
from services.catalog_service import CatalogGroup
from services.checkout_service import CheckoutResult, CheckoutUnit
from services.metrics_service import ActivityEntry, DashboardMetrics
from services.purchase_service import PurchaseResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# License Models
# ============================================================================

class LicenseSummary(CamelModel):
    """License fields that are safe to show on the public storefront (no key)."""
    id: int
    type: str
    price: Decimal
    is_active: bool
    is_sold: bool

    @classmethod
    def from_domain(cls, license_: License) -> "LicenseSummary":
        return cls(
            id=license_.license_id,
            type=license_.license_type,
            price=license_.price,
            is_active=license_.is_active,
            is_sold=license_.is_sold,
        )


class LicenseResponse(LicenseSummary):
    """Full license record (admin views and the buyer's own purchases)."""
    license_key: str
    created_at: datetime

    @classmethod
    def from_domain(cls, license_: License) -> "LicenseResponse":
        return cls(
            id=license_.license_id,
            type=license_.license_type,
            license_key=license_.license_key,
            price=license_.price,
            is_active=license_.is_active,
            is_sold=license_.is_sold,
            created_at=license_.created_at,
        )


class AddLicensesRequest(CamelModel):
    """Add a batch of keys of one type at one price."""
    type: str = Field(..., description="License type, e.g. 'Pro-2'")
    license_keys: List[str] = Field(..., description="One entry per license key")
    price: str = Field(..., description="Non-negative price with at most 2 decimals, e.g. '100.00'")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "type": "Pro-2",
                "licenseKeys": ["AAAA-BBBB-CCCC-0001", "AAAA-BBBB-CCCC-0002"],
                "price": "100.00",
            }
        },
    )


class UpdateLicenseRequest(CamelModel):
    price: Optional[str] = None
    is_active: Optional[bool] = None


class CatalogGroupResponse(CamelModel):
    """One purchasable product line."""
    type: str
    price: Decimal
    count: int
    sample: LicenseSummary

    @classmethod
    def from_domain(cls, group: CatalogGroup) -> "CatalogGroupResponse":
        return cls(
            type=group.license_type,
            price=group.price,
            count=group.count,
            sample=LicenseSummary.from_domain(group.sample),
        )


class MessageResponse(BaseModel):
    message: str


# ============================================================================
# Customer Models
# ============================================================================

class CustomerRequest(CamelModel):
    email: EmailStr
    name: str = Field(..., min_length=1)


class CustomerResponse(CamelModel):
    id: int
    email: str
    name: str
    created_at: datetime

    @classmethod
    def from_domain(cls, customer: Customer) -> "CustomerResponse":
        return cls(id=customer.customer_id, email=customer.email, name=customer.name, created_at=customer.created_at)


# ============================================================================
# Sale Models
# ============================================================================

class SaleResponse(CamelModel):
    id: int
    license_id: int
    customer_id: int
    amount: Decimal
    status: str
    created_at: datetime

    @classmethod
    def from_domain(cls, sale: Sale) -> "SaleResponse":
        return cls(
            id=sale.sale_id,
            license_id=sale.license_id,
            customer_id=sale.customer_id,
            amount=sale.amount,
            status=sale.status.value,
            created_at=sale.created_at,
        )


class SaleDetailResponse(SaleResponse):
    """A sale joined with its license and customer."""
    license: LicenseResponse
    customer: CustomerResponse

    @classmethod
    def from_domain(cls, detail: SaleDetail) -> "SaleDetailResponse":
        base = SaleResponse.from_domain(detail.sale)
        return cls(
            **base.model_dump(),
            license=LicenseResponse.from_domain(detail.license),
            customer=CustomerResponse.from_domain(detail.customer),
        )


class PurchaseRequest(CamelModel):
    """Request to buy one license of a type."""
    license_type: str = Field(..., min_length=1)
    customer_email: EmailStr
    customer_name: str = Field(..., min_length=1)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "licenseType": "Pro-2",
                "customerEmail": "a@example.com",
                "customerName": "Ada",
            }
        },
    )


class PurchaseResponse(CamelModel):
    sale: SaleResponse
    license: LicenseResponse
    customer: CustomerResponse

    @classmethod
    def from_domain(cls, result: PurchaseResult) -> "PurchaseResponse":
        return cls(
            sale=SaleResponse.from_domain(result.sale),
            license=LicenseResponse.from_domain(result.license),
            customer=CustomerResponse.from_domain(result.customer),
        )


# ============================================================================
# Checkout Models
# ============================================================================

class CheckoutItem(CamelModel):
    license_type: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=100)


class CheckoutRequest(CamelModel):
    customer_email: EmailStr
    customer_name: str = Field(..., min_length=1)
    items: List[CheckoutItem] = Field(..., min_length=1)


class CheckoutUnitResponse(CamelModel):
    license_type: str
    unit_index: int
    success: bool
    purchase: Optional[PurchaseResponse] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_domain(cls, unit: CheckoutUnit) -> "CheckoutUnitResponse":
        return cls(
            license_type=unit.license_type,
            unit_index=unit.unit_index,
            success=unit.succeeded,
            purchase=PurchaseResponse.from_domain(unit.purchase) if unit.purchase else None,
            error_code=unit.error_code,
            error_message=unit.error_message,
        )


class CheckoutResponse(CamelModel):
    success: bool
    items_requested: int
    items_purchased: int
    total_charged: Decimal
    units: List[CheckoutUnitResponse]
    message: str

    @classmethod
    def from_domain(cls, result: CheckoutResult) -> "CheckoutResponse":
        purchased = len(result.purchased)
        requested = len(result.units)
        if result.success:
            message = f"Successfully purchased {purchased} license{'s' if purchased != 1 else ''}."
        else:
            message = f"Purchased {purchased} of {requested} licenses; {requested - purchased} could not be fulfilled."
        return cls(
            success=result.success,
            items_requested=requested,
            items_purchased=purchased,
            total_charged=result.total_charged,
            units=[CheckoutUnitResponse.from_domain(unit) for unit in result.units],
            message=message,
        )


# ============================================================================
# Dashboard Models
# ============================================================================

class DashboardMetricsResponse(CamelModel):
    total_sales: Decimal
    available_licenses: int
    licenses_sold: int
    new_customers: int

    @classmethod
    def from_domain(cls, metrics: DashboardMetrics) -> "DashboardMetricsResponse":
        return cls(
            total_sales=metrics.total_sales,
            available_licenses=metrics.available_licenses,
            licenses_sold=metrics.licenses_sold,
            new_customers=metrics.new_customers,
        )


class ActivityResponse(BaseModel):
    type: str
    description: str
    timestamp: datetime

    @classmethod
    def from_domain(cls, entry: ActivityEntry) -> "ActivityResponse":
        return cls(type=entry.activity_type, description=entry.description, timestamp=entry.timestamp)


# ============================================================================
# Sale Request Models
# ============================================================================

class SaleRequestCreate(CamelModel):
    sale_id: int
    reason: str = Field(..., min_length=1)


class SaleRequestReview(CamelModel):
    status: Literal["approved", "rejected"]
    admin_notes: Optional[str] = None


class SaleRequestResponse(CamelModel):
    id: int
    kind: str
    sale_id: int
    customer_id: int
    reason: str
    status: str
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, request: SaleRequest) -> "SaleRequestResponse":
        return cls(
            id=request.request_id,
            kind=request.kind.value,
            sale_id=request.sale_id,
            customer_id=request.customer_id,
            reason=request.reason,
            status=request.status.value,
            admin_notes=request.admin_notes,
            created_at=request.created_at,
            updated_at=request.updated_at,
        )


# ============================================================================
# Error Models
# ============================================================================

class FieldErrorResponse(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
    errors: Optional[List[FieldErrorResponse]] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "License type not available",
                "detail": "OUT_OF_STOCK",
                "status_code": 400,
            }
        }
    )
