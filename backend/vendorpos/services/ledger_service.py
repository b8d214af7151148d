# Overview: Service-layer operations for the khata ledger; append-only postings per party.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import Customer, Supplier, LedgerTransaction
from vendorpos.time_utils import utcnow
"""
Khata Ledger Invariants (authoritative)

- Append-only: postings are never updated or deleted (enforced by model events).
- Each posting names exactly one party (customer XOR supplier) of the same vendor.
- amount_cents > 0; direction is 'in' (received) or 'out' (given).
- Checkout postings are written inside the checkout transaction (post_inner, no commit).
- Manual entries commit on their own.
- Filters on occurred_at are inclusive at both ends.
"""


class LedgerError(Exception):
    """Raised for ledger operation errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PartyNotFound(LedgerError):
    status_code = 404


DIRECTION_IN = "in"
DIRECTION_OUT = "out"
VALID_DIRECTIONS = (DIRECTION_IN, DIRECTION_OUT)

# =============================================================================
# CATEGORIES (CONSTANTS)
# =============================================================================

CATEGORY_PRODUCT_SALE = "product_sale"

IN_CATEGORIES = (
    CATEGORY_PRODUCT_SALE,
    "service",
    "loan_received",
    "advance",
    "subscription",
    "other",
)

OUT_CATEGORIES = (
    "expense",
    "purchase",
    "refund",
    "salary",
    "rent",
    "utility",
    CATEGORY_PRODUCT_SALE,
    "other",
)

CATEGORIES_BY_DIRECTION = {
    DIRECTION_IN: IN_CATEGORIES,
    DIRECTION_OUT: OUT_CATEGORIES,
}

# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CREDIT = "credit"

VALID_PAYMENT_METHODS = (
    METHOD_CASH,
    "upi",
    "card",
    "bank_transfer",
    "cheque",
    METHOD_CREDIT,
)

REFERENCE_BILL = "bill"
REFERENCE_ORDER = "order"


def _resolve_party(vendor_id: int, customer_id: int | None, supplier_id: int | None) -> None:
    if (customer_id is None) == (supplier_id is None):
        raise LedgerError("Exactly one of customer_id or supplier_id is required")

    if customer_id is not None:
        party = db.session.get(Customer, customer_id)
        label = "Customer"
        party_id = customer_id
    else:
        party = db.session.get(Supplier, supplier_id)
        label = "Supplier"
        party_id = supplier_id

    if party is None or party.vendor_id != vendor_id:
        raise PartyNotFound(f"{label} {party_id} not found", {"party_id": party_id})


def post_inner(
    *,
    vendor_id: int,
    direction: str,
    amount_cents: int,
    category: str,
    payment_method: str,
    customer_id: int | None = None,
    supplier_id: int | None = None,
    description: str | None = None,
    note: str | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    bill_id: int | None = None,
    exclude_from_balance: bool = False,
    is_pos_sale: bool = False,
    occurred_at: Optional[datetime] = None,
) -> LedgerTransaction:
    """
    Append one posting without committing.

    - No balance is stored anywhere; balances are always derived.
    - No updates of existing postings.
    """
    if direction not in VALID_DIRECTIONS:
        raise LedgerError(f"Invalid direction: {direction}. Must be one of {list(VALID_DIRECTIONS)}")
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise LedgerError("amount_cents must be a positive integer", {"amount_cents": amount_cents})
    if category not in CATEGORIES_BY_DIRECTION[direction]:
        raise LedgerError(
            f"Invalid category for '{direction}': {category}",
            {"allowed": list(CATEGORIES_BY_DIRECTION[direction])},
        )
    if payment_method not in VALID_PAYMENT_METHODS:
        raise LedgerError(
            f"Invalid payment method: {payment_method}",
            {"allowed": list(VALID_PAYMENT_METHODS)},
        )

    _resolve_party(vendor_id, customer_id, supplier_id)

    posting = LedgerTransaction(
        vendor_id=vendor_id,
        customer_id=customer_id,
        supplier_id=supplier_id,
        direction=direction,
        amount_cents=amount_cents,
        category=category,
        payment_method=payment_method,
        description=description,
        note=note,
        reference_type=reference_type,
        reference_id=reference_id,
        bill_id=bill_id,
        exclude_from_balance=bool(exclude_from_balance),
        is_pos_sale=bool(is_pos_sale),
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(posting)
    db.session.flush()
    return posting


def create_ledger_transaction(vendor_id: int, data: dict) -> LedgerTransaction:
    """
    Record a manual khata entry ("you gave" / "you got") and commit.

    Manual entries always count towards the balance.
    """
    try:
        posting = post_inner(
            vendor_id=vendor_id,
            direction=data.get("direction"),
            amount_cents=data.get("amount_cents"),
            category=data.get("category") or "other",
            payment_method=data.get("payment_method") or METHOD_CASH,
            customer_id=data.get("customer_id"),
            supplier_id=data.get("supplier_id"),
            description=data.get("description"),
            note=data.get("note"),
            occurred_at=data.get("occurred_at"),
        )
    except LedgerError:
        db.session.rollback()
        raise
    db.session.commit()
    return posting


def list_ledger_transactions(
    vendor_id: int,
    *,
    customer_id: int | None = None,
    supplier_id: int | None = None,
    direction: str | None = None,
    category: str | None = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    include_excluded: bool = True,
    limit: int | None = None,
) -> list[LedgerTransaction]:
    """Postings newest first. Excluded postings are listed unless include_excluded=False."""
    if direction is not None and direction not in VALID_DIRECTIONS:
        raise LedgerError(f"Invalid direction: {direction}")

    q = db.session.query(LedgerTransaction).filter(LedgerTransaction.vendor_id == vendor_id)
    if customer_id is not None:
        q = q.filter(LedgerTransaction.customer_id == customer_id)
    if supplier_id is not None:
        q = q.filter(LedgerTransaction.supplier_id == supplier_id)
    if direction is not None:
        q = q.filter(LedgerTransaction.direction == direction)
    if category is not None:
        q = q.filter(LedgerTransaction.category == category)
    if start is not None:
        q = q.filter(LedgerTransaction.occurred_at >= start)
    if end is not None:
        q = q.filter(LedgerTransaction.occurred_at <= end)
    if not include_excluded:
        q = q.filter(LedgerTransaction.exclude_from_balance.is_(False))

    q = q.order_by(LedgerTransaction.occurred_at.desc(), LedgerTransaction.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()
