#!/usr/bin/env python3
"""
Sale Reconciliation Script

Finds sales whose license is not marked sold (possible only for rows written
outside execute_license_sale, e.g. manual inserts) and flips those licenses to
sold. Sold licenses without a sale are reported but never reset: is_sold only
moves one way. Approved deactivation requests whose sale is still active (the
review was saved but the status update failed) get their sale deactivated.

Usage:
    python reconcile_sales.py --dry-run
    python reconcile_sales.py
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.sale import SaleStatus
from domain.sale_request import RequestKind, RequestStatus
from repositories.license_repository import get_licenses_by_ids, list_licenses, mark_license_sold
from repositories.sale_repository import list_sales, update_sale_status
from repositories.sale_request_repository import list_requests


def reconcile(dry_run: bool = False) -> dict[str, int]:
    sales = list_sales()
    licenses = get_licenses_by_ids([sale.license_id for sale in sales])

    stats = {
        "sales": len(sales),
        "repaired": 0,
        "missing_license": 0,
        "sold_without_sale": 0,
        "deactivations_repaired": 0,
    }

    for sale in sales:
        license_ = licenses.get(sale.license_id)
        if license_ is None:
            stats["missing_license"] += 1
            print(f"WARNING: sale {sale.sale_id} references missing license {sale.license_id}")
            continue
        if license_.is_sold:
            continue
        print(f"Sale {sale.sale_id}: license {license_.license_id} ({license_.license_type}) not marked sold")
        if not dry_run and mark_license_sold(license_.license_id):
            stats["repaired"] += 1

    sold_ids = {sale.license_id for sale in sales}
    for license_ in list_licenses():
        if license_.is_sold and license_.license_id not in sold_ids:
            stats["sold_without_sale"] += 1
            print(f"WARNING: license {license_.license_id} is sold but has no sale")

    by_id = {sale.sale_id: sale for sale in sales}
    for request in list_requests(RequestKind.DEACTIVATION):
        sale = by_id.get(request.sale_id)
        if request.status != RequestStatus.APPROVED or sale is None or sale.status != SaleStatus.ACTIVE:
            continue
        print(f"Sale {sale.sale_id}: deactivation request {request.request_id} approved but sale still active")
        if not dry_run and update_sale_status(sale.sale_id, SaleStatus.DEACTIVATED) is not None:
            stats["deactivations_repaired"] += 1

    return stats


def main() -> int:
    parser = argparse.ArgumentParser(description="Repair licenses and sales left inconsistent by partial writes")
    parser.add_argument("--dry-run", action="store_true", help="Report only, do not update")
    args = parser.parse_args()

    print("=" * 60)
    print("RECONCILING SALES" + (" (DRY RUN)" if args.dry_run else ""))
    print("=" * 60)

    stats = reconcile(dry_run=args.dry_run)

    print("-" * 60)
    print(f"Sales checked:             {stats['sales']}")
    print(f"Licenses repaired:         {stats['repaired']}")
    print(f"Sales missing license:     {stats['missing_license']}")
    print(f"Sold without sale:         {stats['sold_without_sale']}")
    print(f"Deactivations repaired:    {stats['deactivations_repaired']}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
