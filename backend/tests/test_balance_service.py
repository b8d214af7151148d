from itertools import permutations
from types import SimpleNamespace

import pytest

from vendorpos.models import Customer
from vendorpos.services import balance_service, ledger_service
from vendorpos.services.balance_service import BalanceBook, PartyKey, fold_balances
from vendorpos.services.ledger_service import LedgerError, PartyNotFound


def _posting(direction, amount, *, customer_id=None, supplier_id=None, excluded=False):
    return SimpleNamespace(
        direction=direction,
        amount_cents=amount,
        customer_id=customer_id,
        supplier_id=supplier_id,
        exclude_from_balance=excluded,
    )


HISTORY = [
    _posting("out", 236, customer_id=1),
    _posting("in", 100, customer_id=1),
    _posting("in", 236, customer_id=1, excluded=True),
    _posting("out", 50, customer_id=2),
    _posting("in", 700, supplier_id=1),
    _posting("out", 200, supplier_id=1),
]


def test_customer_and_supplier_signs():
    balances = fold_balances(HISTORY)

    assert balances[PartyKey("customer", 1)] == 136
    assert balances[PartyKey("customer", 2)] == 50
    assert balances[PartyKey("supplier", 1)] == 500


def test_excluded_postings_counted_on_request():
    balances = fold_balances(HISTORY, include_excluded=True)
    assert balances[PartyKey("customer", 1)] == -100


@pytest.mark.parametrize("include_excluded", [False, True])
def test_incremental_updates_match_full_fold_in_any_order(include_excluded):
    expected = fold_balances(HISTORY, include_excluded=include_excluded)

    for order in permutations(HISTORY):
        book = BalanceBook(include_excluded=include_excluded)
        for posting in order:
            book.apply(posting)
        assert book.balances == expected


def test_book_reports_zero_for_unknown_party():
    book = BalanceBook()
    assert book.balance_of("customer", 99) == 0
    assert book.apply(_posting("out", 10, customer_id=99)) == 10
    assert book.balance_of("customer", 99) == 10


def test_labels():
    assert balance_service.balance_label("customer", 136) == "you_will_get"
    assert balance_service.balance_label("customer", -5) == "you_will_give"
    assert balance_service.balance_label("supplier", 500) == "you_will_give"
    assert balance_service.balance_label("supplier", -1) == "you_will_get"
    assert balance_service.balance_label("customer", 0) == "settled"


def test_summary_settled_only_at_exactly_zero():
    assert balance_service.summarize("customer", 1, 100, 100)["settled"] is True
    assert balance_service.summarize("customer", 1, 101, 100)["settled"] is False
    assert balance_service.summarize("customer", 1, 100, 101)["balance_cents"] == -1


def _post(vendor, **fields):
    data = {"category": "other", "payment_method": "cash"}
    data.update(fields)
    return ledger_service.post_inner(vendor_id=vendor.id, **data)


def test_party_summary_from_database(db_session, vendor, customer, supplier):
    _post(vendor, customer_id=customer.id, direction="out", amount_cents=236)
    _post(vendor, customer_id=customer.id, direction="in", amount_cents=100)
    _post(vendor, customer_id=customer.id, direction="in", amount_cents=50,
          exclude_from_balance=True)
    _post(vendor, supplier_id=supplier.id, direction="in", amount_cents=700)
    db_session.commit()

    summary = balance_service.get_party_summary(vendor.id, customer_id=customer.id)
    assert summary == {
        "party_type": "customer",
        "party_id": customer.id,
        "total_gave_cents": 236,
        "total_got_cents": 100,
        "balance_cents": 136,
        "label": "you_will_get",
        "settled": False,
    }
    assert balance_service.get_party_balance(vendor.id, customer_id=customer.id, include_excluded=True) == 86
    assert balance_service.get_party_balance(vendor.id, supplier_id=supplier.id) == 700


def test_database_totals_match_pure_fold(db_session, vendor, customer, supplier):
    _post(vendor, customer_id=customer.id, direction="out", amount_cents=300)
    _post(vendor, customer_id=customer.id, direction="in", amount_cents=120, exclude_from_balance=True)
    _post(vendor, customer_id=customer.id, direction="in", amount_cents=80)
    _post(vendor, supplier_id=supplier.id, direction="out", amount_cents=45)
    db_session.commit()

    postings = ledger_service.list_ledger_transactions(vendor.id)
    folded = fold_balances(postings)

    assert balance_service.get_party_balance(vendor.id, customer_id=customer.id) == folded[PartyKey("customer", customer.id)]
    assert balance_service.get_party_balance(vendor.id, supplier_id=supplier.id) == folded[PartyKey("supplier", supplier.id)]


def test_list_party_balances_includes_parties_without_postings(db_session, vendor, other_vendor, customer):
    quiet = Customer(vendor_id=vendor.id, name="Anita Desai")
    foreign = Customer(vendor_id=other_vendor.id, name="Outsider")
    db_session.add_all([quiet, foreign])
    db_session.commit()
    _post(vendor, customer_id=customer.id, direction="out", amount_cents=90)
    db_session.commit()

    rows = balance_service.list_party_balances(vendor.id, "customer")

    assert [(r["name"], r["balance_cents"], r["settled"]) for r in rows] == [
        ("Anita Desai", 0, True),
        ("Ravi Kumar", 90, False),
    ]


def test_party_arguments_validated(db_session, vendor, customer, supplier):
    with pytest.raises(LedgerError):
        balance_service.get_party_balance(vendor.id)
    with pytest.raises(LedgerError):
        balance_service.get_party_balance(vendor.id, customer_id=customer.id, supplier_id=supplier.id)
    with pytest.raises(LedgerError):
        balance_service.list_party_balances(vendor.id, "employee")


def test_summary_of_unknown_or_foreign_party(db_session, vendor, other_vendor):
    foreign = Customer(vendor_id=other_vendor.id, name="Outsider")
    db_session.add(foreign)
    db_session.commit()

    with pytest.raises(PartyNotFound) as exc:
        balance_service.get_party_summary(vendor.id, customer_id=foreign.id)
    assert exc.value.status_code == 404
    with pytest.raises(PartyNotFound):
        balance_service.get_party_balance(vendor.id, supplier_id=4242)


def test_replay_matches_sql_totals(db_session, vendor, customer, supplier):
    _post(vendor, customer_id=customer.id, direction="out", amount_cents=300)
    _post(vendor, customer_id=customer.id, direction="in", amount_cents=120, exclude_from_balance=True)
    _post(vendor, supplier_id=supplier.id, direction="in", amount_cents=45)
    db_session.commit()

    book = balance_service.replay_balances(vendor.id)
    assert book.balance_of("customer", customer.id) == 300
    assert book.balance_of("supplier", supplier.id) == 45

    counted = balance_service.replay_balances(vendor.id, include_excluded=True)
    assert counted.balance_of("customer", customer.id) == 180
    assert balance_service.verify_party_balances(vendor.id) == []


def test_verify_party_balances_reports_disagreement(db_session, vendor, customer, monkeypatch):
    _post(vendor, customer_id=customer.id, direction="out", amount_cents=90)
    db_session.commit()

    def skewed(vendor_id, party_type, **kwargs):
        if party_type != "customer":
            return []
        return [balance_service.summarize("customer", customer.id, 100, 0)]

    monkeypatch.setattr(balance_service, "list_party_balances", skewed)

    assert balance_service.verify_party_balances(vendor.id) == [{
        "party_type": "customer",
        "party_id": customer.id,
        "balance_cents": 100,
        "expected_balance_cents": 90,
    }]
