"""
Check inventory status - how many licenses are sold vs available, per type.

Also verifies that every sold license has exactly one sale recorded.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.license_repository import (
    count_available_licenses,
    count_sold_licenses,
    list_licenses,
)
from repositories.sale_repository import aggregate_revenue, list_sales


def check_inventory_status():
    """Print inventory counts and per-type conservation."""

    licenses = list_licenses()
    sales = list_sales()
    available_count = count_available_licenses()
    sold_count = count_sold_licenses()
    total_count = len(licenses)

    print("=" * 50)
    print("INVENTORY STATUS")
    print("=" * 50)
    print(f"Total licenses:            {total_count}")
    print(f"Available:                 {available_count}")
    print(f"Inactive (unsold):         {total_count - available_count - sold_count}")
    print(f"Sold:                      {sold_count}")
    print(f"Percentage sold:           {(sold_count / total_count * 100):.1f}%" if total_count > 0 else "N/A")
    print(f"Active revenue:            {aggregate_revenue()}")
    print("=" * 50)

    print("\nBreakdown by license type:")
    print("-" * 50)

    by_type = {}
    for license_ in licenses:
        counts = by_type.setdefault(license_.license_type, {"total": 0, "available": 0, "sold": 0})
        counts["total"] += 1
        if license_.is_available:
            counts["available"] += 1
        if license_.is_sold:
            counts["sold"] += 1

    for license_type in sorted(by_type):
        counts = by_type[license_type]
        print(
            f"{license_type}: {counts['available']} available, "
            f"{counts['sold']} sold, {counts['total']} total"
        )

    print("-" * 50)

    sold_ids = {license_.license_id for license_ in licenses if license_.is_sold}
    sale_license_ids = [sale.license_id for sale in sales]
    missing_sale = sold_ids - set(sale_license_ids)
    unsold_with_sale = set(sale_license_ids) - sold_ids
    duplicated = {lid for lid in sale_license_ids if sale_license_ids.count(lid) > 1}

    if not (missing_sale or unsold_with_sale or duplicated):
        print("\nOK: every sold license has exactly one sale")
        return True

    if missing_sale:
        print(f"\nWARNING: sold licenses without a sale: {sorted(missing_sale)}")
    if unsold_with_sale:
        print(f"WARNING: sales for licenses not marked sold: {sorted(unsold_with_sale)}")
        print("Run scripts/reconcile_sales.py to repair them.")
    if duplicated:
        print(f"ERROR: licenses with more than one sale: {sorted(duplicated)}")
    return False


if __name__ == "__main__":
    sys.exit(0 if check_inventory_status() else 1)
