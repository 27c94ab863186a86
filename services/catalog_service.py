"""
Catalog service: available licenses grouped into purchasable product lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List

from domain.license import License
from repositories.license_repository import list_available_licenses


@dataclass(frozen=True, slots=True)
class CatalogGroup:
    """
    One product line in the storefront.

    price comes from the first license encountered for the type (all licenses of
    a type are expected to share a price); sample is that same license.
    """

    license_type: str
    price: Decimal
    count: int
    sample: License


def group_available_licenses(licenses: Iterable[License]) -> List[CatalogGroup]:
    """
    Group licenses by type, preserving first-encounter order.

    Unavailable licenses are ignored, so a type with nothing available does not
    appear at all.
    """

    first_seen: Dict[str, License] = {}
    counts: Dict[str, int] = {}
    for license_ in licenses:
        if not license_.is_available:
            continue
        if license_.license_type not in first_seen:
            first_seen[license_.license_type] = license_
            counts[license_.license_type] = 0
        counts[license_.license_type] += 1

    return [
        CatalogGroup(license_type=license_type, price=sample.price, count=counts[license_type], sample=sample)
        for license_type, sample in first_seen.items()
    ]


def available_catalog() -> List[CatalogGroup]:
    """Current storefront catalog."""

    return group_available_licenses(list_available_licenses())


__all__ = ["CatalogGroup", "available_catalog", "group_available_licenses"]
