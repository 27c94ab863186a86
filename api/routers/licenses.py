"""
License API Endpoints.

Inventory management for administrators and the public storefront catalog.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.auth import Role, require_role
from api.models import (
    AddLicensesRequest,
    CatalogGroupResponse,
    LicenseResponse,
    MessageResponse,
    UpdateLicenseRequest,
)
from domain.license import build_license_batch, parse_price
from repositories.license_repository import (
    add_licenses,
    delete_license,
    list_licenses,
    list_licenses_by_type,
    update_license,
)
from services.catalog_service import available_catalog

router = APIRouter()


@router.get(
    "/licenses",
    response_model=List[LicenseResponse],
    summary="List Licenses",
    description="All licenses, newest first, optionally of one type.",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def get_licenses(type: Optional[str] = Query(None, description="Filter by license type")):
    licenses = list_licenses_by_type(type) if type else list_licenses()
    return [LicenseResponse.from_domain(license_) for license_ in licenses]


@router.get(
    "/licenses/available",
    response_model=List[CatalogGroupResponse],
    summary="Storefront Catalog",
    description="Available licenses grouped by type with unit price and count.",
)
def get_available_catalog():
    """
    Storefront catalog.

    Types with no available license are omitted. Groups appear in the order
    their first available license was added.
    """
    return [CatalogGroupResponse.from_domain(group) for group in available_catalog()]


@router.post(
    "/licenses",
    response_model=List[LicenseResponse],
    summary="Add Licenses",
    description="Add a batch of license keys of one type at one price. All keys are added or none.",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def create_licenses(request: AddLicensesRequest):
    """
    **Example request:**
    ```json
    {"type": "Pro-2", "licenseKeys": ["KEY-1", "KEY-2"], "price": "100.00"}
    ```
    """
    batch = build_license_batch(request.type, request.license_keys, request.price)
    return [LicenseResponse.from_domain(license_) for license_ in add_licenses(batch)]


@router.patch(
    "/licenses/{license_id}",
    response_model=LicenseResponse,
    summary="Update License",
    description="Change a license's price or active flag. Sold state cannot be changed.",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def patch_license(license_id: int, request: UpdateLicenseRequest):
    price = parse_price(request.price) if request.price is not None else None
    return LicenseResponse.from_domain(update_license(license_id, price=price, is_active=request.is_active))


@router.delete(
    "/licenses/{license_id}",
    response_model=MessageResponse,
    summary="Delete License",
    description="Delete an unsold license. Sold licenses cannot be deleted (409).",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def remove_license(license_id: int):
    if not delete_license(license_id):
        raise HTTPException(status_code=404, detail="License not found")
    return MessageResponse(message="License deleted successfully")
