"""
Tests for `services/purchase_service.py`.

Covers contract rules:
- A purchase sells the lowest-id available license of the type at its price.
- Every sold license has exactly one sale; no license is sold twice.
- Out of stock raises OutOfStockError and records no sale.
- A lost allocation race is retried with another license.
- Per type, available plus sold licenses always equals the stock added.
"""

from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from domain.errors import OutOfStockError, ValidationError
from domain.license import build_license_batch
from domain.sale_request import RequestKind, RequestStatus
from repositories.license_repository import add_licenses, list_licenses_by_type, update_license
from services.purchase_service import DEFAULT_MAX_ATTEMPTS, max_attempts_from_env, purchase_license
from services.sale_request_service import review_request, submit_request


def _stock(license_type: str, keys, price: str = "100"):
    return add_licenses(build_license_batch(license_type, keys, price))


def test_purchase_sells_lowest_id_license_at_its_price(fake_db) -> None:
    stocked = _stock("Pro-2", ["K1", "K2"], "100")

    result = purchase_license("Pro-2", "a@example.com", "Ada")

    assert result.license.license_id == stocked[0].license_id
    assert result.license.is_sold
    assert result.sale.amount == Decimal("100.00")
    assert result.sale.license_id == stocked[0].license_id
    assert result.sale.customer_id == result.customer.customer_id
    assert result.customer.email == "a@example.com"

    rows = {row["license_key"]: row for row in fake_db.rows("licenses")}
    assert rows["K1"]["is_sold"] is True
    assert rows["K2"]["is_sold"] is False


def test_second_purchase_of_same_type_gets_different_license_then_out_of_stock(fake_db) -> None:
    _stock("Pro-2", ["K1", "K2"])

    first = purchase_license("Pro-2", "a@example.com", "Ada")
    second = purchase_license("Pro-2", "b@example.com", "Bob")

    assert first.license.license_id != second.license.license_id

    with pytest.raises(OutOfStockError) as excinfo:
        purchase_license("Pro-2", "c@example.com", "Cy")

    assert excinfo.value.message == "License type not available"
    assert excinfo.value.code == "OUT_OF_STOCK"
    assert len(fake_db.rows("sales")) == 2
    # The customer is created even though nothing could be sold.
    assert "c@example.com" in {row["email"] for row in fake_db.rows("customers")}


def test_inactive_licenses_are_never_sold(fake_db) -> None:
    (license_,) = _stock("Pro-2", ["K1"])
    update_license(license_.license_id, is_active=False)

    with pytest.raises(OutOfStockError):
        purchase_license("Pro-2", "a@example.com", "Ada")
    assert fake_db.rows("sales") == []


def test_sale_amount_is_captured_at_sale_time() -> None:
    (license_,) = _stock("Pro-2", ["K1"], "100")
    result = purchase_license("Pro-2", "a@example.com", "Ada")

    update_license(license_.license_id, price=Decimal("5.00"))

    from repositories.sale_repository import get_sale_by_id

    assert get_sale_by_id(result.sale.sale_id).amount == Decimal("100.00")


def test_same_email_reuses_customer(fake_db) -> None:
    _stock("Pro-2", ["K1", "K2"])

    first = purchase_license("Pro-2", "a@example.com", "Ada")
    second = purchase_license("Pro-2", "A@Example.com", "Ada")

    assert first.customer.customer_id == second.customer.customer_id
    assert len(fake_db.rows("customers")) == 1


def test_lost_race_retries_with_next_license(fake_db) -> None:
    stocked = _stock("Pro-2", ["K1", "K2"])
    taken = []

    def competitor_wins_first(license_id: int) -> None:
        # Another purchase sells the chosen license between selection and sale.
        if not taken:
            taken.append(license_id)
            fake_db.table("licenses").update({"is_sold": True}).eq("id", license_id).execute()

    fake_db.before_sale.append(competitor_wins_first)

    result = purchase_license("Pro-2", "a@example.com", "Ada")

    assert taken == [stocked[0].license_id]
    assert result.license.license_id == stocked[1].license_id
    assert fake_db.rpc_calls == 2


def test_retries_are_bounded(fake_db) -> None:
    _stock("Pro-2", ["K1", "K2", "K3", "K4"])

    def competitor_always_wins(license_id: int) -> None:
        fake_db.table("licenses").update({"is_sold": True}).eq("id", license_id).execute()

    fake_db.before_sale.append(competitor_always_wins)

    with pytest.raises(OutOfStockError):
        purchase_license("Pro-2", "a@example.com", "Ada", max_attempts=2)

    assert fake_db.rpc_calls == 2
    assert fake_db.rows("sales") == []


def test_blank_license_type_is_rejected() -> None:
    with pytest.raises(ValidationError):
        purchase_license("  ", "a@example.com", "Ada")


def test_invalid_customer_is_rejected_before_selling(fake_db) -> None:
    _stock("Pro-2", ["K1"])

    with pytest.raises(ValidationError):
        purchase_license("Pro-2", "nope", "Ada")
    assert fake_db.rows("sales") == []


def test_concurrent_purchases_never_double_sell(fake_db) -> None:
    _stock("Pro-2", [f"K{i}" for i in range(5)])
    outcomes = []
    barrier = threading.Barrier(8)

    def buy(index: int) -> None:
        barrier.wait()
        try:
            outcomes.append(purchase_license("Pro-2", f"buyer{index}@example.com", "Buyer", max_attempts=10))
        except OutOfStockError as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=buy, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    sold_ids = [o.license.license_id for o in outcomes if not isinstance(o, OutOfStockError)]
    assert len(sold_ids) == 5
    assert len(set(sold_ids)) == 5
    assert sum(isinstance(o, OutOfStockError) for o in outcomes) == 3

    sales = fake_db.rows("sales")
    assert len(sales) == 5
    assert len({sale["license_id"] for sale in sales}) == 5
    sold_rows = [row for row in fake_db.rows("licenses") if row["is_sold"]]
    assert len(sold_rows) == len(sales)


@pytest.mark.parametrize(("raw", "expected"), [(None, DEFAULT_MAX_ATTEMPTS), ("5", 5), ("junk", 3), ("0", 1)])
def test_max_attempts_from_env(monkeypatch, raw, expected) -> None:
    if raw is None:
        monkeypatch.delenv("PURCHASE_MAX_ATTEMPTS", raising=False)
    else:
        monkeypatch.setenv("PURCHASE_MAX_ATTEMPTS", raw)

    assert max_attempts_from_env() == expected


def test_returned_license_matches_the_sale_when_price_changes_mid_purchase(fake_db) -> None:
    (license_,) = _stock("Pro-2", ["K1"], "100")

    def price_changed_after_listing(license_id: int) -> None:
        fake_db.table("licenses").update({"price": "80.00"}).eq("id", license_id).execute()

    fake_db.before_sale.append(price_changed_after_listing)

    result = purchase_license("Pro-2", "a@example.com", "Ada")

    assert result.sale.amount == Decimal("80.00")
    assert result.license.price == result.sale.amount
    assert result.license.is_sold
    assert result.license.license_id == license_.license_id


def test_stock_is_conserved_across_purchases_races_and_deactivations(fake_db) -> None:
    added = {"Pro-2": ["K1", "K2", "K3"], "Basic": ["B1", "B2"]}
    for license_type, keys in added.items():
        _stock(license_type, keys)

    def rival_buys_the_same_license(license_id: int) -> None:
        fake_db.before_sale.remove(rival_buys_the_same_license)
        purchase_license("Pro-2", "rival@example.com", "Rival")

    fake_db.before_sale.append(rival_buys_the_same_license)
    pro = purchase_license("Pro-2", "a@example.com", "Ada")
    basic = purchase_license("Basic", "a@example.com", "Ada")
    purchase_license("Basic", "b@example.com", "Bob")
    with pytest.raises(OutOfStockError):
        purchase_license("Basic", "c@example.com", "Cy")

    request = submit_request(RequestKind.DEACTIVATION, basic.sale.sale_id, "a@example.com", "Duplicate order")
    review_request(request.request_id, RequestStatus.APPROVED)

    assert pro.license.license_key == "K2"
    for license_type, keys in added.items():
        licenses = list_licenses_by_type(license_type)
        available = [lic for lic in licenses if lic.is_available]
        sold = [lic for lic in licenses if lic.is_sold]
        assert len(available) + len(sold) == len(keys)
    assert len([lic for lic in list_licenses_by_type("Basic") if lic.is_sold]) == 2

    sales = fake_db.rows("sales")
    sold_rows = [row for row in fake_db.rows("licenses") if row["is_sold"]]
    assert len(sales) == len(sold_rows) == 4
    assert {sale["license_id"] for sale in sales} == {row["id"] for row in sold_rows}
