"""
License repository (persistence).

This module provides persistence operations for the License domain entity. It
enforces persistence-level constraints (key uniqueness, conditional updates,
the sold-license deletion guard); it holds no purchase logic.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence

from domain.errors import ConflictError, FieldError, NotFoundError, ValidationError
from domain.license import License, NewLicense, to_money
from domain.time import parse_utc_datetime, to_iso_utc, utc_now
from repositories.client import (
    APIError,
    FOREIGN_KEY_VIOLATION,
    UNIQUE_VIOLATION,
    chunked,
    error_code,
    fetch_all_rows,
    get_supabase,
    response_count,
    response_rows,
)

logger = logging.getLogger(__name__)

# Keep this aligned with sql/schema.sql.
_LICENSES_TABLE: str = "licenses"


def _row_to_license(row: Mapping[str, Any]) -> License:
    """Convert a PostgREST row into a License."""

    return License(
        license_id=int(row["id"]),
        license_type=str(row["license_type"]),
        license_key=str(row["license_key"]),
        price=to_money(row["price"]),
        is_active=bool(row["is_active"]),
        is_sold=bool(row["is_sold"]),
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


def list_licenses() -> List[License]:
    """All licenses, newest first."""

    rows = fetch_all_rows(
        lambda: get_supabase()
        .table(_LICENSES_TABLE)
        .select("*")
        .order("created_at_utc", desc=True)
        .order("id", desc=True),
        "list licenses",
    )
    return [_row_to_license(row) for row in rows]


def list_licenses_by_type(license_type: str) -> List[License]:
    """All licenses of one type (sold or not), lowest id first."""

    rows = fetch_all_rows(
        lambda: get_supabase()
        .table(_LICENSES_TABLE)
        .select("*")
        .eq("license_type", license_type)
        .order("id"),
        "list licenses by type",
    )
    return [_row_to_license(row) for row in rows]


def list_available_licenses(license_type: Optional[str] = None) -> List[License]:
    """
    Licenses that can be sold (is_active AND NOT is_sold), lowest id first.

    The ordering is what makes allocation deterministic: the purchase flow always
    tries the oldest available key of a type first.
    """

    def build_query():
        query = (
            get_supabase()
            .table(_LICENSES_TABLE)
            .select("*")
            .eq("is_active", True)
            .eq("is_sold", False)
        )
        if license_type is not None:
            query = query.eq("license_type", license_type)
        return query.order("id")

    rows = fetch_all_rows(build_query, "list available licenses")
    return [_row_to_license(row) for row in rows]


def get_license_by_id(license_id: int) -> Optional[License]:
    response = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .select("*")
        .eq("id", license_id)
        .limit(1)
        .execute()
    )
    rows = response_rows(response, "get license")
    if not rows:
        return None
    return _row_to_license(rows[0])


def get_licenses_by_ids(license_ids: Sequence[int]) -> dict[int, License]:
    licenses: dict[int, License] = {}
    for ids in chunked(sorted(set(license_ids))):
        response = (
            get_supabase()
            .table(_LICENSES_TABLE)
            .select("*")
            .in_("id", ids)
            .execute()
        )
        for row in response_rows(response, "get licenses"):
            license_ = _row_to_license(row)
            licenses[license_.license_id] = license_
    return licenses


def _find_existing_keys(keys: Sequence[str]) -> List[str]:
    existing: List[str] = []
    for batch in chunked(keys):
        response = (
            get_supabase()
            .table(_LICENSES_TABLE)
            .select("license_key")
            .in_("license_key", batch)
            .execute()
        )
        existing.extend(str(row["license_key"]) for row in response_rows(response, "check license keys"))
    return existing


def add_licenses(entries: Sequence[NewLicense]) -> List[License]:
    """
    Insert a batch of licenses as one statement (all or nothing).

    Enforces:
    - Uniqueness of license_key, both against stored rows and within the batch

    Raises:
        ValidationError: empty batch or a key that already exists
    """

    if not entries:
        raise ValidationError.for_field("licenseKeys", "Please enter at least one license key")

    keys = [entry.license_key for entry in entries]
    duplicates_in_batch = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates_in_batch:
        raise ValidationError(
            "Invalid license data",
            errors=[FieldError("licenseKeys", f"Duplicate license key in batch: {key}") for key in duplicates_in_batch],
        )

    # Proactive check for a clean, field-level error; the unique index is the real guard.
    existing = _find_existing_keys(keys)
    if existing:
        raise ValidationError(
            "Invalid license data",
            errors=[FieldError("licenseKeys", f"License key already exists: {key}") for key in existing],
        )

    now = to_iso_utc(utc_now(), name="created_at")
    payload = [
        {
            "license_type": entry.license_type,
            "license_key": entry.license_key,
            "price": str(entry.price),
            "is_active": entry.is_active,
            "is_sold": entry.is_sold,
            "created_at_utc": now,
        }
        for entry in entries
    ]

    try:
        response = get_supabase().table(_LICENSES_TABLE).insert(payload).execute()
    except APIError as exc:
        if error_code(exc) == UNIQUE_VIOLATION:
            raise ValidationError.for_field("licenseKeys", "License key already exists") from None
        raise RuntimeError(f"Failed to add licenses: {exc}") from exc

    added = [_row_to_license(row) for row in response_rows(response, "add licenses")]
    logger.info(
        "Added %d licenses",
        len(added),
        extra={"license_types": sorted({lic.license_type for lic in added}), "count": len(added)},
    )
    return added


def update_license(
    license_id: int,
    *,
    price: Optional[Decimal] = None,
    is_active: Optional[bool] = None,
) -> License:
    """
    Update a license's price and/or active flag.

    is_sold is not updatable here; only a sale flips it.

    Raises:
        NotFoundError: no license with this id
    """

    payload: dict[str, Any] = {}
    if price is not None:
        payload["price"] = str(price)
    if is_active is not None:
        payload["is_active"] = is_active

    if not payload:
        license_ = get_license_by_id(license_id)
        if license_ is None:
            raise NotFoundError(f"License not found: {license_id}")
        return license_

    response = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .update(payload)
        .eq("id", license_id)
        .execute()
    )
    rows = response_rows(response, "update license")
    if not rows:
        raise NotFoundError(f"License not found: {license_id}")
    return _row_to_license(rows[0])


def mark_license_sold(license_id: int) -> bool:
    """
    Flip a license to sold.

    Requirements:
    - Must only update if is_sold is currently FALSE (single conditional update).

    Returns:
        True if this call flipped the flag, False if it was already sold.

    Raises:
        NotFoundError: no license with this id
    """

    response = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .update({"is_sold": True})
        .eq("id", license_id)
        .eq("is_sold", False)
        .execute()
    )
    if response_rows(response, "mark license sold"):
        return True

    # Either no record exists, or it was already sold.
    if get_license_by_id(license_id) is None:
        raise NotFoundError(f"License not found: {license_id}")
    return False


def delete_license(license_id: int) -> bool:
    """
    Delete an unsold license.

    The delete is conditional on is_sold = FALSE so a sale committed between a
    check and the delete can never be orphaned.

    Returns:
        True if deleted, False if no such license

    Raises:
        ConflictError: the license has been sold
    """

    try:
        response = (
            get_supabase()
            .table(_LICENSES_TABLE)
            .delete()
            .eq("id", license_id)
            .eq("is_sold", False)
            .execute()
        )
    except APIError as exc:
        if error_code(exc) == FOREIGN_KEY_VIOLATION:
            raise ConflictError(
                f"License {license_id} is referenced by a sale and cannot be deleted",
                code="LICENSE_SOLD",
            ) from None
        raise RuntimeError(f"Failed to delete license: {exc}") from exc

    if response_rows(response, "delete license"):
        logger.info("Deleted license %s", license_id, extra={"license_id": license_id})
        return True

    existing = get_license_by_id(license_id)
    if existing is None:
        return False
    logger.warning(
        "Refused to delete sold license %s",
        license_id,
        extra={"license_id": license_id, "license_type": existing.license_type},
    )
    raise ConflictError(f"License {license_id} has been sold and cannot be deleted", code="LICENSE_SOLD")


def count_available_licenses() -> int:
    response = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .select("id", count="exact")
        .eq("is_active", True)
        .eq("is_sold", False)
        .limit(1)
        .execute()
    )
    return response_count(response, "count available licenses")


def count_sold_licenses() -> int:
    response = (
        get_supabase()
        .table(_LICENSES_TABLE)
        .select("id", count="exact")
        .eq("is_sold", True)
        .limit(1)
        .execute()
    )
    return response_count(response, "count sold licenses")


__all__ = [
    "add_licenses",
    "count_available_licenses",
    "count_sold_licenses",
    "delete_license",
    "get_license_by_id",
    "get_licenses_by_ids",
    "list_available_licenses",
    "list_licenses",
    "list_licenses_by_type",
    "mark_license_sold",
    "update_license",
]
