"""
Domain: License inventory.

Contract excerpts implemented here:
- A License is one sellable, operator-supplied key of a given type (tier).
- license_key is globally unique.
- Availability: is_available is TRUE iff is_active AND NOT is_sold.
- A License is flipped from unsold to sold exactly once; is_sold is never reset.
- Prices are non-negative decimals with at most 2 fraction digits.

This module contains only pure domain entities and validation: no I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Union

from .errors import FieldError, ValidationError
from .time import require_utc_timestamp

_PRICE_PATTERN = re.compile(r"^\d+(\.\d{1,2})?$")
_CENTS = Decimal("0.01")


def parse_price(value: Union[str, Decimal, int], *, field: str = "price") -> Decimal:
    """
    Parse an operator-supplied price.

    Accepts strings such as "100", "100.5" or "100.00" (and Decimal/int values
    that satisfy the same rule). Returns a Decimal quantized to cents.

    Raises:
        ValidationError: negative, more than 2 fraction digits, or not a number
    """

    if isinstance(value, bool):
        raise ValidationError.for_field(field, "Please enter a valid price")

    text = str(value).strip()
    if not _PRICE_PATTERN.match(text):
        raise ValidationError.for_field(field, "Please enter a valid price")

    try:
        return Decimal(text).quantize(_CENTS)
    except InvalidOperation:
        raise ValidationError.for_field(field, "Please enter a valid price") from None


def to_money(value: object) -> Decimal:
    """Normalize a stored numeric value (PostgREST may return int/float/str) to cents."""

    return Decimal(str(value)).quantize(_CENTS)


@dataclass(frozen=True, slots=True)
class License:
    """Immutable snapshot of one license row."""

    license_id: int
    license_type: str
    license_key: str
    price: Decimal
    is_active: bool
    is_sold: bool
    created_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    @property
    def is_available(self) -> bool:
        return self.is_active and not self.is_sold

    def mark_sold(self) -> "License":
        """
        Return this license as sold.

        Idempotent: an already sold license is returned unchanged.
        """

        if self.is_sold:
            return self
        return replace(self, is_sold=True)


@dataclass(frozen=True, slots=True)
class NewLicense:
    """A validated license entry waiting to be inserted."""

    license_type: str
    license_key: str
    price: Decimal
    is_active: bool = True
    is_sold: bool = False


def build_license_batch(
    license_type: str,
    license_keys: Iterable[str],
    price: Union[str, Decimal, int],
) -> List[NewLicense]:
    """
    Turn an operator submission (one type, many keys, one price) into entries.

    Keys are trimmed and blank keys are dropped, the way keys pasted one per line
    arrive. All field problems are collected and raised together.

    Raises:
        ValidationError: with one FieldError per problem found
    """

    errors: List[FieldError] = []

    clean_type = (license_type or "").strip()
    if not clean_type:
        errors.append(FieldError("type", "Please select a license type"))

    parsed_price = None
    try:
        parsed_price = parse_price(price)
    except ValidationError as exc:
        errors.extend(exc.errors)

    keys = [key.strip() for key in license_keys if key and key.strip()]
    if not keys:
        errors.append(FieldError("licenseKeys", "Please enter at least one license key"))

    seen: set[str] = set()
    for key in keys:
        if key in seen:
            errors.append(FieldError("licenseKeys", f"Duplicate license key in batch: {key}"))
        seen.add(key)

    if errors or parsed_price is None:
        raise ValidationError("Invalid license data", errors=errors)

    return [
        NewLicense(license_type=clean_type, license_key=key, price=parsed_price)
        for key in keys
    ]


__all__ = [
    "License",
    "NewLicense",
    "build_license_batch",
    "parse_price",
    "to_money",
]
