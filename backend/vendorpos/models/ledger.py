from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from vendorpos.time_utils import to_utc_z


class LedgerTransaction(db.Model):
    """
    One khata posting between the vendor and a single party.

    Exactly one of customer_id / supplier_id is set. Postings are immutable:
    corrections are new offsetting postings. `exclude_from_balance` keeps a
    posting visible in the party's history without counting it towards the
    due balance (POS receipts that were settled at the counter).
    """
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_ledger_amount_positive"),
        db.CheckConstraint("direction IN ('in', 'out')", name="ck_ledger_direction"),
        db.CheckConstraint(
            "(customer_id IS NULL) <> (supplier_id IS NULL)",
            name="ck_ledger_exactly_one_party",
        ),
        db.Index("ix_ledger_vendor_customer", "vendor_id", "customer_id"),
        db.Index("ix_ledger_vendor_supplier", "vendor_id", "supplier_id"),
        db.Index("ix_ledger_vendor_occurred", "vendor_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    direction = db.Column(db.String(8), nullable=False)  # in = money/value received, out = given
    amount_cents = db.Column(db.Integer, nullable=False)

    category = db.Column(db.String(32), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)

    description = db.Column(db.String(255), nullable=True)
    note = db.Column(db.Text, nullable=True)

    reference_type = db.Column(db.String(16), nullable=True)  # bill, order
    reference_id = db.Column(db.Integer, nullable=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=True, index=True)

    exclude_from_balance = db.Column(db.Boolean, nullable=False, default=False)
    is_pos_sale = db.Column(db.Boolean, nullable=False, default=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def party_type(self) -> str:
        return "customer" if self.customer_id is not None else "supplier"

    @property
    def party_id(self) -> int:
        return self.customer_id if self.customer_id is not None else self.supplier_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "customer_id": self.customer_id,
            "supplier_id": self.supplier_id,
            "direction": self.direction,
            "amount_cents": self.amount_cents,
            "category": self.category,
            "payment_method": self.payment_method,
            "description": self.description,
            "note": self.note,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "bill_id": self.bill_id,
            "exclude_from_balance": self.exclude_from_balance,
            "is_pos_sale": self.is_pos_sale,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(LedgerTransaction, "before_update")
def _reject_posting_update(mapper, connection, target):
    raise ValueError("ledger transactions are immutable; post an offsetting entry instead")


@event.listens_for(LedgerTransaction, "before_delete")
def _reject_posting_delete(mapper, connection, target):
    raise ValueError("ledger transactions are immutable; post an offsetting entry instead")
