from __future__ import annotations

from ..extensions import db
from vendorpos.time_utils import to_utc_z


class Coupon(db.Model):
    """
    Vendor-issued coupon code.

    Immutable once issued apart from its active/inactive status. How often
    it has been used is derived from CouponUsage rows, never stored here.
    """
    __tablename__ = "coupons"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "code", name="uq_coupons_vendor_code"),
        db.CheckConstraint("discount_value >= 0", name="ck_coupons_discount_value_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    code = db.Column(db.String(64), nullable=False)  # normalized: trimmed, upper-case
    description = db.Column(db.Text, nullable=True)

    discount_type = db.Column(db.String(16), nullable=False)  # percentage, fixed
    discount_value = db.Column(db.Integer, nullable=False)  # basis points for percentage, minor units for fixed

    minimum_subtotal_cents = db.Column(db.Integer, nullable=False, default=0)

    starts_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    usage_limit = db.Column(db.Integer, nullable=True)  # NULL = unlimited

    status = db.Column(db.String(16), nullable=False, default="active", index=True)  # active, inactive

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "minimum_subtotal_cents": self.minimum_subtotal_cents,
            "starts_at": to_utc_z(self.starts_at),
            "expires_at": to_utc_z(self.expires_at),
            "usage_limit": self.usage_limit,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class CouponUsage(db.Model):
    """One row per committed checkout that redeemed a coupon."""
    __tablename__ = "coupon_usages"
    __table_args__ = (
        db.UniqueConstraint("coupon_id", "bill_id", name="uq_coupon_usages_coupon_bill"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    discount_cents = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    coupon = db.relationship("Coupon", backref=db.backref("usages", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "coupon_id": self.coupon_id,
            "vendor_id": self.vendor_id,
            "bill_id": self.bill_id,
            "customer_id": self.customer_id,
            "discount_cents": self.discount_cents,
            "created_at": to_utc_z(self.created_at),
        }
