from __future__ import annotations

from ..extensions import db
from vendorpos.time_utils import to_utc_z

class Bill(db.Model):
    """
    Committed POS bill.

    Totals are snapshots of the pricing result at commit time:

        grand_total_cents == subtotal_cents - discount_cents + tax_cents + charges_total_cents
        paid_cents + due_cents == grand_total_cents
    """
    __tablename__ = "bills"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "bill_number", name="uq_bills_vendor_number"),
        db.CheckConstraint("paid_cents + due_cents = grand_total_cents", name="ck_bills_paid_plus_due"),
        db.CheckConstraint(
            "grand_total_cents = subtotal_cents - discount_cents + tax_cents + charges_total_cents",
            name="ck_bills_grand_total",
        ),
        db.CheckConstraint("discount_cents >= 0 AND discount_cents <= subtotal_cents", name="ck_bills_discount_range"),
        db.CheckConstraint("paid_cents >= 0 AND due_cents >= 0", name="ck_bills_paid_due_non_negative"),
        db.Index("ix_bills_vendor_created", "vendor_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    bill_number = db.Column(db.String(64), nullable=False)

    # NULL for walk-in sales
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_type = db.Column(db.String(16), nullable=True)  # percentage, fixed, coupon
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=True)
    coupon_code = db.Column(db.String(64), nullable=True)

    tax_rate_bps = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    charges_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False)

    payment_type = db.Column(db.String(16), nullable=False)  # full, partial, credit
    payment_status = db.Column(db.String(16), nullable=False, index=True)  # paid, partial, credit
    payment_method = db.Column(db.String(32), nullable=True)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    due_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "bill_number": self.bill_number,
            "customer_id": self.customer_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_type": self.discount_type,
            "discount_cents": self.discount_cents,
            "coupon_id": self.coupon_id,
            "coupon_code": self.coupon_code,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "charges_total_cents": self.charges_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "payment_type": self.payment_type,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "paid_cents": self.paid_cents,
            "due_cents": self.due_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

class BillLine(db.Model):
    """Individual line items on a bill (product or service)."""
    __tablename__ = "bill_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_bill_lines_quantity"),
        db.CheckConstraint("line_total_cents = unit_price_cents * quantity", name="ck_bill_lines_total"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    item_type = db.Column(db.String(16), nullable=False)  # product, service
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="pcs")
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # Links to the stock movement (product lines only)
    stock_movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=True)

    bill = db.relationship("Bill", backref=db.backref("lines", lazy=True, order_by="BillLine.line_number"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.bill_id,
            "line_number": self.line_number,
            "item_type": self.item_type,
            "product_id": self.product_id,
            "service_id": self.service_id,
            "name": self.name,
            "unit": self.unit,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "stock_movement_id": self.stock_movement_id,
        }

class BillCharge(db.Model):
    """Ad-hoc additional charge (packing, delivery...) priced with its own tax rate."""
    __tablename__ = "bill_charges"
    __table_args__ = (
        db.CheckConstraint("total_cents = base_cents + tax_cents", name="ck_bill_charges_total"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)
    label = db.Column(db.String(128), nullable=False)
    base_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    bill = db.relationship("Bill", backref=db.backref("charges", lazy=True, order_by="BillCharge.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.bill_id,
            "label": self.label,
            "base_cents": self.base_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }

class Payment(db.Model):
    """
    Money collected against a bill.

    The payment-gateway handshake (card/UPI authorization) happens before
    this row is written; `reference` carries whatever authorization id the
    collaborator returned.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bill = db.relationship("Bill", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "bill_id": self.bill_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }

class Order(db.Model):
    """
    Fulfilment record created alongside a bill when a customer is attached.

    Mirrors the bill totals; items are the bill's product lines only.
    """
    __tablename__ = "orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="confirmed")
    source = db.Column(db.String(16), nullable=False, default="pos")

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    charges_total_cents = db.Column(db.Integer, nullable=False)
    grand_total_cents = db.Column(db.Integer, nullable=False)
    paid_cents = db.Column(db.Integer, nullable=False)
    due_cents = db.Column(db.Integer, nullable=False)
    payment_status = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bill = db.relationship("Bill", backref=db.backref("order", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "bill_id": self.bill_id,
            "customer_id": self.customer_id,
            "status": self.status,
            "source": self.source,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "charges_total_cents": self.charges_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "paid_cents": self.paid_cents,
            "due_cents": self.due_cents,
            "payment_status": self.payment_status,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }

class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="pcs")
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit": self.unit,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
        }
