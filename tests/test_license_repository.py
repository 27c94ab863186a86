"""
Tests for `repositories/license_repository.py` against the in-memory database.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.errors import ConflictError, NotFoundError, ValidationError
from domain.license import build_license_batch
from repositories.customer_repository import create_customer
from repositories.license_repository import (
    add_licenses,
    count_available_licenses,
    count_sold_licenses,
    delete_license,
    get_license_by_id,
    get_licenses_by_ids,
    list_available_licenses,
    list_licenses,
    list_licenses_by_type,
    mark_license_sold,
    update_license,
)
from repositories.sale_repository import record_sale


def test_add_licenses_inserts_whole_batch(fake_db) -> None:
    added = add_licenses(build_license_batch("Pro-2", ["K1", "K2", "K3"], "100"))

    assert [lic.license_key for lic in added] == ["K1", "K2", "K3"]
    assert all(lic.is_available for lic in added)
    assert all(lic.price == Decimal("100.00") for lic in added)
    assert len(fake_db.rows("licenses")) == 3


def test_add_licenses_rejects_existing_key_and_adds_nothing(fake_db) -> None:
    add_licenses(build_license_batch("Pro-2", ["K1"], "100"))

    with pytest.raises(ValidationError) as excinfo:
        add_licenses(build_license_batch("Pro-2", ["K2", "K1", "K3"], "100"))

    assert excinfo.value.errors[0].field == "licenseKeys"
    assert "K1" in excinfo.value.errors[0].message
    assert [row["license_key"] for row in fake_db.rows("licenses")] == ["K1"]


def test_add_licenses_maps_unique_violation(monkeypatch, fake_db) -> None:
    import repositories.license_repository as repo

    add_licenses(build_license_batch("Pro-2", ["K1"], "100"))
    # A concurrent insert slipping past the pre-check still hits the unique index.
    monkeypatch.setattr(repo, "_find_existing_keys", lambda keys: [])

    with pytest.raises(ValidationError):
        add_licenses(build_license_batch("Pro-2", ["K2", "K1"], "100"))
    assert len(fake_db.rows("licenses")) == 1


def test_add_licenses_rejects_empty_batch() -> None:
    with pytest.raises(ValidationError):
        add_licenses([])


def test_list_available_licenses_orders_by_id_and_filters() -> None:
    added = add_licenses(build_license_batch("Pro-2", ["K1", "K2", "K3"], "100"))
    add_licenses(build_license_batch("Basic", ["B1"], "10"))
    update_license(added[0].license_id, is_active=False)
    mark_license_sold(added[1].license_id)

    available = list_available_licenses("Pro-2")
    assert [lic.license_key for lic in available] == ["K3"]
    assert [lic.license_key for lic in list_available_licenses()] == ["K3", "B1"]
    assert count_available_licenses() == 2
    assert count_sold_licenses() == 1
    assert len(list_licenses_by_type("Pro-2")) == 3
    assert len(list_licenses()) == 4


def test_update_license_changes_price_and_active_flag() -> None:
    (license_,) = add_licenses(build_license_batch("Pro-2", ["K1"], "100"))

    updated = update_license(license_.license_id, price=Decimal("80.00"), is_active=False)

    assert updated.price == Decimal("80.00")
    assert not updated.is_active
    assert not updated.is_sold


def test_update_license_missing_raises_not_found() -> None:
    with pytest.raises(NotFoundError):
        update_license(999, is_active=False)
    with pytest.raises(NotFoundError):
        update_license(999)


def test_mark_license_sold_flips_once() -> None:
    (license_,) = add_licenses(build_license_batch("Pro-2", ["K1"], "100"))

    assert mark_license_sold(license_.license_id) is True
    assert mark_license_sold(license_.license_id) is False
    assert get_license_by_id(license_.license_id).is_sold

    with pytest.raises(NotFoundError):
        mark_license_sold(999)


def test_delete_license_unsold_succeeds() -> None:
    (license_,) = add_licenses(build_license_batch("Pro-2", ["K1"], "100"))

    assert delete_license(license_.license_id) is True
    assert get_license_by_id(license_.license_id) is None
    assert delete_license(license_.license_id) is False


def test_delete_license_sold_is_refused(fake_db) -> None:
    (license_,) = add_licenses(build_license_batch("Pro-2", ["K1"], "100"))
    customer = create_customer("a@example.com", "Ada")
    mark_license_sold(license_.license_id)
    record_sale(license_.license_id, customer.customer_id, license_.price)

    with pytest.raises(ConflictError) as excinfo:
        delete_license(license_.license_id)

    assert excinfo.value.code == "LICENSE_SOLD"
    assert len(fake_db.rows("licenses")) == 1
    assert len(fake_db.rows("sales")) == 1


def test_get_licenses_by_ids_is_not_truncated_by_the_row_cap(fake_db) -> None:
    added = add_licenses(build_license_batch("Pro-2", [f"K{i}" for i in range(1200)], "100"))
    assert fake_db.max_rows < len(added)

    found = get_licenses_by_ids([lic.license_id for lic in added])

    assert len(found) == 1200
    assert found[added[-1].license_id].license_key == "K1199"


def test_add_licenses_finds_existing_keys_beyond_the_first_chunk() -> None:
    add_licenses(build_license_batch("Pro-2", ["K999"], "100"))

    with pytest.raises(ValidationError) as excinfo:
        add_licenses(build_license_batch("Pro-2", [f"K{i}" for i in range(1000)], "100"))

    assert [error.message for error in excinfo.value.errors] == ["License key already exists: K999"]
