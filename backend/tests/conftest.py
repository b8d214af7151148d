"""
Pytest fixtures for vendorpos backend tests.

Provides test database setup, vendor/catalog/party fixtures, and test client.
"""

import pytest
from vendorpos import create_app
from vendorpos.extensions import db
from vendorpos.models import Vendor, Product, Service, Customer, Supplier, Coupon
from vendorpos.services.vendor_service import resolve_settings


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'POS_TAX_RATE_BPS': 1800,
        'STOCK_LOW_THRESHOLD': 10,
        'STOCK_HIGH_THRESHOLD': 100,
        'LEDGER_EXCLUDE_POS_PAYMENTS': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def vendor(db_session):
    """Vendor using the deployment defaults."""
    v = Vendor(name="Sharma General Store", code="SHARMA")
    db_session.add(v)
    db_session.commit()
    return v


@pytest.fixture(scope='function')
def other_vendor(db_session):
    v = Vendor(name="Beta Traders", code="BETA")
    db_session.add(v)
    db_session.commit()
    return v


@pytest.fixture(scope='function')
def settings(app, vendor):
    return resolve_settings(vendor)


def make_product(db_session, vendor, *, name="Soap", price_cents=100, stock=50, unit="pcs"):
    product = Product(vendor_id=vendor.id, name=name, price_cents=price_cents, stock=stock, unit=unit)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session, vendor):
    """100 minor units each, 50 on hand."""
    return make_product(db_session, vendor)


@pytest.fixture(scope='function')
def scarce_product(db_session, vendor):
    """Only 5 on hand."""
    return make_product(db_session, vendor, name="Shampoo", price_cents=250, stock=5)


@pytest.fixture(scope='function')
def service_item(db_session, vendor):
    svc = Service(vendor_id=vendor.id, name="Home delivery", price_cents=40)
    db_session.add(svc)
    db_session.commit()
    return svc


@pytest.fixture(scope='function')
def customer(db_session, vendor):
    c = Customer(vendor_id=vendor.id, name="Ravi Kumar", phone="9800000001")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def supplier(db_session, vendor):
    s = Supplier(vendor_id=vendor.id, name="Metro Wholesale", phone="9800000002")
    db_session.add(s)
    db_session.commit()
    return s


def make_coupon(db_session, vendor, **fields):
    data = {
        "code": "SAVE20",
        "discount_type": "percentage",
        "discount_value": 2000,
        "minimum_subtotal_cents": 0,
    }
    data.update(fields)
    coupon = Coupon(vendor_id=vendor.id, **data)
    db_session.add(coupon)
    db_session.commit()
    return coupon


def vendor_url(vendor, path: str) -> str:
    """Helper to build a vendor-scoped API path."""
    return f"/api/vendors/{vendor.id}{path}"
