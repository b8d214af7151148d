from datetime import date

import pytest

from conftest import make_product
from vendorpos.models import Product, StockMovement
from vendorpos.services import stock_service
from vendorpos.services.stock_service import (
    InsufficientStock,
    InvalidStockQuantity,
    ProductNotFound,
    StockError,
    StockThresholds,
)


def _stock(db_session, product_id):
    return db_session.query(Product.stock).filter(Product.id == product_id).scalar()


def test_stock_in_appends_movement_with_metadata(db_session, vendor, product):
    movement = stock_service.stock_in(
        vendor_id=vendor.id,
        product_id=product.id,
        quantity=20,
        reason="Purchase",
        supplier_name="Metro Wholesale",
        batch_number="B-42",
        purchase_cost_cents=70,
        expiry_date=date(2027, 1, 31),
    )

    assert movement.direction == "in"
    assert movement.previous_stock == 50
    assert movement.new_stock == 70
    assert movement.supplier_name == "Metro Wholesale"
    assert movement.expiry_date == date(2027, 1, 31)
    assert _stock(db_session, product.id) == 70


def test_stock_in_requires_reason(db_session, vendor, product):
    with pytest.raises(StockError):
        stock_service.stock_in(vendor_id=vendor.id, product_id=product.id, quantity=1, reason="  ")
    assert db_session.query(StockMovement).count() == 0


def test_stock_out_default_reason(db_session, vendor, product):
    movement = stock_service.stock_out(vendor_id=vendor.id, product_id=product.id, quantity=3)

    assert movement.reason == "Manual adjustment"
    assert movement.previous_stock == 50
    assert movement.new_stock == 47
    assert movement.signed_quantity == -3


def test_scenario_c_stock_out_beyond_stock_rejected_without_mutation(db_session, vendor, scarce_product):
    with pytest.raises(InsufficientStock) as exc:
        stock_service.stock_out(vendor_id=vendor.id, product_id=scarce_product.id, quantity=6)

    assert exc.value.available == 5
    assert exc.value.requested == 6
    assert _stock(db_session, scarce_product.id) == 5
    assert db_session.query(StockMovement).count() == 0


def test_stock_out_to_exactly_zero(db_session, vendor, scarce_product):
    movement = stock_service.stock_out(vendor_id=vendor.id, product_id=scarce_product.id, quantity=5)
    assert movement.new_stock == 0
    assert _stock(db_session, scarce_product.id) == 0


@pytest.mark.parametrize("qty", [0, -2, 1.5, True, "3"])
def test_invalid_quantities_rejected(db_session, vendor, product, qty):
    with pytest.raises(InvalidStockQuantity):
        stock_service.stock_out(vendor_id=vendor.id, product_id=product.id, quantity=qty)
    assert _stock(db_session, product.id) == 50


def test_other_vendors_product_not_found(db_session, vendor, other_vendor):
    foreign = make_product(db_session, other_vendor)
    with pytest.raises(ProductNotFound):
        stock_service.stock_in(vendor_id=vendor.id, product_id=foreign.id, quantity=1, reason="Purchase")


def test_reserve_checks_without_holding(db_session, vendor, scarce_product):
    assert stock_service.reserve(vendor_id=vendor.id, product_id=scarce_product.id, quantity=5) == 5

    with pytest.raises(InsufficientStock) as exc:
        stock_service.reserve(vendor_id=vendor.id, product_id=scarce_product.id, quantity=6)
    assert exc.value.available == 5

    assert _stock(db_session, scarce_product.id) == 5
    assert db_session.query(StockMovement).count() == 0


def test_movements_ordered_and_chained(db_session, vendor, product):
    stock_service.stock_in(vendor_id=vendor.id, product_id=product.id, quantity=10, reason="Purchase")
    stock_service.stock_out(vendor_id=vendor.id, product_id=product.id, quantity=4)
    stock_service.stock_out(vendor_id=vendor.id, product_id=product.id, quantity=6, reason="Damaged")

    movements = stock_service.get_movements(vendor.id, product.id)
    assert [m.signed_quantity for m in movements] == [10, -4, -6]
    for before, after in zip(movements, movements[1:]):
        assert after.previous_stock == before.new_stock

    newest = stock_service.get_movements(vendor.id, product.id, newest_first=True, limit=1)
    assert newest[0].reason == "Damaged"

    assert product.opening_stock + sum(m.signed_quantity for m in movements) == _stock(db_session, product.id)
    assert stock_service.verify_stock_ledger(vendor.id) == []


def test_movements_are_immutable(db_session, vendor, product):
    movement = stock_service.stock_out(vendor_id=vendor.id, product_id=product.id, quantity=1)
    movement.reason = "edited"
    with pytest.raises(ValueError):
        db_session.flush()
    db_session.rollback()


def test_verify_detects_drift(db_session, vendor, product):
    stock_service.stock_out(vendor_id=vendor.id, product_id=product.id, quantity=1)
    db_session.query(Product).filter(Product.id == product.id).update({"stock": 40})
    db_session.commit()

    problems = stock_service.verify_stock_ledger(vendor.id)
    assert problems[0]["product_id"] == product.id
    assert problems[0]["expected_stock"] == 49


def test_stock_status_boundaries():
    thresholds = StockThresholds(low=10, high=100)
    assert stock_service.stock_status(0, thresholds) == "out_of_stock"
    assert stock_service.stock_status(9, thresholds) == "low_stock"
    assert stock_service.stock_status(10, thresholds) == "in_stock"
    assert stock_service.stock_status(100, thresholds) == "in_stock"
    assert stock_service.stock_status(101, thresholds) == "high_stock"


def test_stock_overview_counts_with_custom_thresholds(db_session, vendor):
    make_product(db_session, vendor, name="A", stock=0)
    make_product(db_session, vendor, name="B", stock=3)
    make_product(db_session, vendor, name="C", stock=30)

    overview = stock_service.get_stock_overview(vendor.id, StockThresholds(low=5, high=20))

    assert overview["counts"] == {"out_of_stock": 1, "low_stock": 1, "in_stock": 0, "high_stock": 1}
    assert [item["status"] for item in overview["items"]] == ["out_of_stock", "low_stock", "high_stock"]
