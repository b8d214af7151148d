"""
Threaded checkouts against a file-backed SQLite database.

Each worker runs in its own app context, so each gets its own session and
connection, the same way concurrent requests would.
"""

import threading

import pytest

from vendorpos import create_app
from vendorpos.extensions import db
from vendorpos.models import Bill, Product, StockMovement, Vendor
from vendorpos.services import checkout_service
from vendorpos.services.checkout_service import PaymentPlan
from vendorpos.services.pricing_service import CartLine
from vendorpos.services.stock_service import verify_stock_ledger
from vendorpos.services.vendor_service import get_vendor_settings


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30, 'check_same_thread': False}},
        'SQLITE_BEGIN_IMMEDIATE': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed(app, stock):
    with app.app_context():
        vendor = Vendor(name="Concurrency Store", code="CONCUR")
        db.session.add(vendor)
        db.session.commit()
        product = Product(vendor_id=vendor.id, name="Shampoo", price_cents=250, stock=stock)
        db.session.add(product)
        db.session.commit()
        return vendor.id, product.id


def _run_checkouts(app, vendor_id, product_id, *, workers, qty):
    results = []
    lock = threading.Lock()
    start = threading.Barrier(workers)

    def worker():
        with app.app_context():
            try:
                settings = get_vendor_settings(vendor_id)
                line = CartLine(
                    item_type="product",
                    item_id=product_id,
                    name="Shampoo",
                    unit_price_cents=250,
                    quantity=qty,
                )
                start.wait()
                bill = checkout_service.commit_checkout(
                    vendor_id=vendor_id,
                    lines=[line],
                    payment_plan=PaymentPlan("full"),
                    settings=settings,
                )
                with lock:
                    results.append(("ok", bill.bill_number))
            except Exception as exc:
                with lock:
                    results.append((type(exc).__name__, None))
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_checkouts_never_oversell(file_app):
    vendor_id, product_id = _seed(file_app, stock=5)

    results = _run_checkouts(file_app, vendor_id, product_id, workers=6, qty=2)

    outcomes = sorted(outcome for outcome, _ in results)
    assert outcomes == ["InsufficientStock"] * 4 + ["ok"] * 2

    with file_app.app_context():
        assert db.session.get(Product, product_id).stock == 1
        assert db.session.query(StockMovement).filter_by(product_id=product_id).count() == 2
        assert db.session.query(Bill).filter_by(vendor_id=vendor_id).count() == 2
        assert verify_stock_ledger(vendor_id) == []


def test_concurrent_checkouts_get_distinct_bill_numbers(file_app):
    vendor_id, product_id = _seed(file_app, stock=50)

    results = _run_checkouts(file_app, vendor_id, product_id, workers=8, qty=1)

    assert [outcome for outcome, _ in results] == ["ok"] * 8
    numbers = [number for _, number in results]
    assert len(set(numbers)) == 8

    with file_app.app_context():
        assert db.session.get(Product, product_id).stock == 42
        assert verify_stock_ledger(vendor_id) == []
