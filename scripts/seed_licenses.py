#!/usr/bin/env python3
"""
License Seeding Script

Adds a batch of license keys of one type at one price, the same way the admin
"Add licenses" form does. Keys are read from a file (one per line) or from the
command line.

Usage:
    python seed_licenses.py --type Pro-2 --price 100.00 --keys-file keys.txt
    python seed_licenses.py --type Basic --price 25 KEY-1 KEY-2 KEY-3
    python seed_licenses.py --type Pro-2 --price 100 --keys-file keys.txt --dry-run
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import ValidationError
from domain.license import build_license_batch
from repositories.license_repository import add_licenses


def read_keys(keys_file: str | None, keys: List[str]) -> List[str]:
    collected = list(keys)
    if keys_file:
        collected.extend(Path(keys_file).read_text(encoding="utf-8").splitlines())
    return collected


def main() -> int:
    parser = argparse.ArgumentParser(description="Add license keys to the inventory")
    parser.add_argument("--type", required=True, help="License type, e.g. Pro-2")
    parser.add_argument("--price", required=True, help="Unit price, e.g. 100.00")
    parser.add_argument("--keys-file", help="File with one license key per line")
    parser.add_argument("keys", nargs="*", help="License keys")
    parser.add_argument("--dry-run", action="store_true", help="Validate only, do not insert")
    args = parser.parse_args()

    try:
        batch = build_license_batch(args.type, read_keys(args.keys_file, args.keys), args.price)
    except ValidationError as exc:
        print(f"ERROR: {exc.message}")
        for error in exc.errors:
            print(f"  {error.field}: {error.message}")
        return 1

    print(f"Prepared {len(batch)} {batch[0].license_type} licenses at {batch[0].price}")
    if args.dry_run:
        print("Dry run: nothing inserted")
        return 0

    try:
        added = add_licenses(batch)
    except ValidationError as exc:
        print(f"ERROR: {exc.message}")
        for error in exc.errors:
            print(f"  {error.field}: {error.message}")
        return 1

    print(f"Added {len(added)} licenses (ids {added[0].license_id}-{added[-1].license_id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
