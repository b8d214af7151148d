from datetime import datetime

import pytest

from vendorpos.models import Customer, LedgerTransaction
from vendorpos.services import ledger_service
from vendorpos.services.ledger_service import LedgerError


def _day(n):
    return datetime(2026, 3, n, 12, 0)


def test_manual_entry_defaults(db_session, vendor, customer):
    posting = ledger_service.create_ledger_transaction(vendor.id, {
        "customer_id": customer.id,
        "direction": "out",
        "amount_cents": 500,
        "description": "Udhaar for rice",
    })

    assert posting.id is not None
    assert posting.category == "other"
    assert posting.payment_method == "cash"
    assert posting.exclude_from_balance is False
    assert posting.is_pos_sale is False
    assert posting.party_type == "customer"
    assert posting.party_id == customer.id


def test_supplier_entry(db_session, vendor, supplier):
    posting = ledger_service.create_ledger_transaction(vendor.id, {
        "supplier_id": supplier.id,
        "direction": "in",
        "amount_cents": 1200,
        "category": "advance",
        "payment_method": "bank_transfer",
    })
    assert posting.party_type == "supplier"
    assert posting.to_dict()["payment_method"] == "bank_transfer"


@pytest.mark.parametrize("overrides", [
    {"amount_cents": 0},
    {"amount_cents": -10},
    {"amount_cents": 10.5},
    {"amount_cents": True},
    {"direction": "sideways"},
    {"category": "salary"},
    {"payment_method": "barter"},
])
def test_invalid_entries_rejected(db_session, vendor, customer, overrides):
    data = {"customer_id": customer.id, "direction": "in", "amount_cents": 100}
    data.update(overrides)

    with pytest.raises(LedgerError):
        ledger_service.create_ledger_transaction(vendor.id, data)
    assert db_session.query(LedgerTransaction).count() == 0


def test_exactly_one_party_required(db_session, vendor, customer, supplier):
    with pytest.raises(LedgerError):
        ledger_service.create_ledger_transaction(vendor.id, {"direction": "in", "amount_cents": 100})
    with pytest.raises(LedgerError):
        ledger_service.create_ledger_transaction(vendor.id, {
            "customer_id": customer.id,
            "supplier_id": supplier.id,
            "direction": "in",
            "amount_cents": 100,
        })


def test_other_vendors_party_rejected(db_session, vendor, other_vendor):
    stranger = Customer(vendor_id=other_vendor.id, name="Not ours")
    db_session.add(stranger)
    db_session.commit()

    with pytest.raises(LedgerError) as exc:
        ledger_service.create_ledger_transaction(vendor.id, {
            "customer_id": stranger.id,
            "direction": "out",
            "amount_cents": 100,
        })
    assert exc.value.details["party_id"] == stranger.id


def test_post_inner_does_not_commit(db_session, vendor, customer):
    ledger_service.post_inner(
        vendor_id=vendor.id,
        customer_id=customer.id,
        direction="out",
        amount_cents=300,
        category="product_sale",
        payment_method="credit",
    )
    db_session.rollback()
    assert db_session.query(LedgerTransaction).count() == 0


def test_postings_are_append_only(db_session, vendor, customer):
    posting = ledger_service.create_ledger_transaction(vendor.id, {
        "customer_id": customer.id,
        "direction": "out",
        "amount_cents": 500,
    })

    posting.amount_cents = 1
    with pytest.raises(ValueError):
        db_session.flush()
    db_session.rollback()

    db_session.delete(posting)
    with pytest.raises(ValueError):
        db_session.flush()
    db_session.rollback()


def test_list_filters_and_order(db_session, vendor, customer, supplier):
    for day, direction, amount in ((1, "out", 100), (2, "in", 40), (3, "out", 60)):
        ledger_service.create_ledger_transaction(vendor.id, {
            "customer_id": customer.id,
            "direction": direction,
            "amount_cents": amount,
            "occurred_at": _day(day),
        })
    ledger_service.create_ledger_transaction(vendor.id, {
        "supplier_id": supplier.id,
        "direction": "in",
        "amount_cents": 999,
        "occurred_at": _day(2),
    })

    everything = ledger_service.list_ledger_transactions(vendor.id, customer_id=customer.id)
    assert [p.amount_cents for p in everything] == [60, 40, 100]

    outs = ledger_service.list_ledger_transactions(vendor.id, customer_id=customer.id, direction="out")
    assert [p.amount_cents for p in outs] == [60, 100]

    window = ledger_service.list_ledger_transactions(vendor.id, start=_day(2), end=_day(2))
    assert sorted(p.amount_cents for p in window) == [40, 999]

    assert len(ledger_service.list_ledger_transactions(vendor.id, limit=2)) == 2
    assert ledger_service.list_ledger_transactions(vendor.id, supplier_id=supplier.id)[0].amount_cents == 999


def test_list_can_hide_excluded_postings(db_session, vendor, customer):
    ledger_service.post_inner(
        vendor_id=vendor.id,
        customer_id=customer.id,
        direction="in",
        amount_cents=236,
        category="product_sale",
        payment_method="cash",
        exclude_from_balance=True,
        is_pos_sale=True,
    )
    db_session.commit()

    assert len(ledger_service.list_ledger_transactions(vendor.id)) == 1
    assert ledger_service.list_ledger_transactions(vendor.id, include_excluded=False) == []


def test_list_rejects_unknown_direction(db_session, vendor):
    with pytest.raises(LedgerError):
        ledger_service.list_ledger_transactions(vendor.id, direction="up")
