# Overview: Derives khata balances for customers and suppliers from ledger postings.

"""
Party Balance Aggregation

Balances are never stored. They are derived from LedgerTransaction rows:

    customer balance = SUM(out) - SUM(in)   (positive: the customer owes the vendor)
    supplier balance = SUM(in)  - SUM(out)  (positive: the vendor owes the supplier)

Postings flagged exclude_from_balance contribute nothing unless a caller
asks for include_excluded=True.

The fold is a sum of per-posting contributions, so folding a whole history
and applying postings one at a time through BalanceBook always agree,
regardless of order. "Settled" means exactly zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import case, func

from ..extensions import db
from ..models import Customer, Supplier, LedgerTransaction
from .ledger_service import DIRECTION_IN, DIRECTION_OUT, LedgerError, _resolve_party, list_ledger_transactions


PARTY_CUSTOMER = "customer"
PARTY_SUPPLIER = "supplier"
VALID_PARTY_TYPES = (PARTY_CUSTOMER, PARTY_SUPPLIER)

LABEL_YOU_WILL_GET = "you_will_get"
LABEL_YOU_WILL_GIVE = "you_will_give"
LABEL_SETTLED = "settled"


@dataclass(frozen=True)
class PartyKey:
    party_type: str
    party_id: int

    @classmethod
    def of(cls, posting) -> "PartyKey":
        if posting.customer_id is not None:
            return cls(PARTY_CUSTOMER, posting.customer_id)
        return cls(PARTY_SUPPLIER, posting.supplier_id)


def posting_contribution(posting, *, include_excluded: bool = False) -> int:
    """Signed amount a single posting adds to its party's balance."""
    if posting.exclude_from_balance and not include_excluded:
        return 0
    if posting.customer_id is not None:
        sign = 1 if posting.direction == DIRECTION_OUT else -1
    else:
        sign = 1 if posting.direction == DIRECTION_IN else -1
    return sign * posting.amount_cents


def fold_balances(postings, *, include_excluded: bool = False) -> dict[PartyKey, int]:
    balances: dict[PartyKey, int] = {}
    for posting in postings:
        key = PartyKey.of(posting)
        balances[key] = balances.get(key, 0) + posting_contribution(posting, include_excluded=include_excluded)
    return balances


@dataclass
class BalanceBook:
    """Running balances kept up to date one posting at a time."""
    include_excluded: bool = False
    balances: dict = field(default_factory=dict)

    def apply(self, posting) -> int:
        key = PartyKey.of(posting)
        value = self.balances.get(key, 0) + posting_contribution(posting, include_excluded=self.include_excluded)
        self.balances[key] = value
        return value

    def balance_of(self, party_type: str, party_id: int) -> int:
        return self.balances.get(PartyKey(party_type, party_id), 0)


def balance_label(party_type: str, balance: int) -> str:
    if balance == 0:
        return LABEL_SETTLED
    if party_type == PARTY_CUSTOMER:
        return LABEL_YOU_WILL_GET if balance > 0 else LABEL_YOU_WILL_GIVE
    return LABEL_YOU_WILL_GIVE if balance > 0 else LABEL_YOU_WILL_GET


def summarize(party_type: str, party_id: int, total_out: int, total_in: int) -> dict:
    """total_gave is money/value given (out), total_got is received (in)."""
    if party_type == PARTY_CUSTOMER:
        balance = total_out - total_in
    else:
        balance = total_in - total_out
    return {
        "party_type": party_type,
        "party_id": party_id,
        "total_gave_cents": total_out,
        "total_got_cents": total_in,
        "balance_cents": balance,
        "label": balance_label(party_type, balance),
        "settled": balance == 0,
    }


# =============================================================================
# DATABASE-BACKED QUERIES
# =============================================================================

def _totals_query(vendor_id: int, include_excluded: bool):
    total_in = func.coalesce(
        func.sum(case((LedgerTransaction.direction == DIRECTION_IN, LedgerTransaction.amount_cents), else_=0)),
        0,
    )
    total_out = func.coalesce(
        func.sum(case((LedgerTransaction.direction == DIRECTION_OUT, LedgerTransaction.amount_cents), else_=0)),
        0,
    )
    q = db.session.query(total_out, total_in).filter(LedgerTransaction.vendor_id == vendor_id)
    if not include_excluded:
        q = q.filter(LedgerTransaction.exclude_from_balance.is_(False))
    return q, total_out, total_in


def _party_args(customer_id: int | None, supplier_id: int | None) -> tuple[str, int]:
    if (customer_id is None) == (supplier_id is None):
        raise LedgerError("Exactly one of customer_id or supplier_id is required")
    if customer_id is not None:
        return PARTY_CUSTOMER, customer_id
    return PARTY_SUPPLIER, supplier_id


def get_party_summary(
    vendor_id: int,
    *,
    customer_id: int | None = None,
    supplier_id: int | None = None,
    include_excluded: bool = False,
) -> dict:
    party_type, party_id = _party_args(customer_id, supplier_id)
    _resolve_party(vendor_id, customer_id, supplier_id)
    q, _, _ = _totals_query(vendor_id, include_excluded)
    if party_type == PARTY_CUSTOMER:
        q = q.filter(LedgerTransaction.customer_id == party_id)
    else:
        q = q.filter(LedgerTransaction.supplier_id == party_id)
    total_out, total_in = q.one()
    return summarize(party_type, party_id, int(total_out), int(total_in))


def get_party_balance(
    vendor_id: int,
    *,
    customer_id: int | None = None,
    supplier_id: int | None = None,
    include_excluded: bool = False,
) -> int:
    return get_party_summary(
        vendor_id,
        customer_id=customer_id,
        supplier_id=supplier_id,
        include_excluded=include_excluded,
    )["balance_cents"]


def list_party_balances(vendor_id: int, party_type: str, *, include_excluded: bool = False) -> list[dict]:
    """
    One summary per party of the given type, including parties with no
    postings yet (balance 0, settled).
    """
    if party_type not in VALID_PARTY_TYPES:
        raise LedgerError(f"Invalid party_type: {party_type}", {"allowed": list(VALID_PARTY_TYPES)})

    if party_type == PARTY_CUSTOMER:
        model, column = Customer, LedgerTransaction.customer_id
    else:
        model, column = Supplier, LedgerTransaction.supplier_id

    q, total_out, total_in = _totals_query(vendor_id, include_excluded)
    rows = (
        q.with_entities(column, total_out, total_in)
        .filter(column.isnot(None))
        .group_by(column)
        .all()
    )
    totals = {party_id: (int(out_), int(in_)) for party_id, out_, in_ in rows}

    items = []
    parties = db.session.query(model).filter_by(vendor_id=vendor_id).order_by(model.name.asc(), model.id.asc()).all()
    for party in parties:
        out_, in_ = totals.get(party.id, (0, 0))
        row = summarize(party_type, party.id, out_, in_)
        row["name"] = party.name
        items.append(row)
    return items


# =============================================================================
# REPLAY AND CROSS-CHECK
# =============================================================================

def replay_balances(vendor_id: int, *, include_excluded: bool = False) -> BalanceBook:
    """Apply every posting of the vendor, oldest first, to a fresh BalanceBook."""
    book = BalanceBook(include_excluded=include_excluded)
    for posting in reversed(list_ledger_transactions(vendor_id)):
        book.apply(posting)
    return book


def verify_party_balances(vendor_id: int) -> list[dict]:
    """
    Compare the SQL aggregate balance of every party against a pure fold of
    its postings. Returns one entry per party where the two disagree.
    """
    folded = fold_balances(list_ledger_transactions(vendor_id))
    problems = []
    for party_type in VALID_PARTY_TYPES:
        for row in list_party_balances(vendor_id, party_type):
            expected = folded.get(PartyKey(party_type, row["party_id"]), 0)
            if row["balance_cents"] != expected:
                problems.append({
                    "party_type": party_type,
                    "party_id": row["party_id"],
                    "balance_cents": row["balance_cents"],
                    "expected_balance_cents": expected,
                })
    return problems
