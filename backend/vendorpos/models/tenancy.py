from __future__ import annotations

from ..extensions import db
from vendorpos.time_utils import to_utc_z


class Vendor(db.Model):
    """
    Vendor (tenant root).

    Every product, coupon, party, bill and posting is scoped to exactly one
    vendor. The nullable settings columns override the deployment defaults
    in Config; NULL means "use the deployment default".
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_vendors_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    tax_rate_bps = db.Column(db.Integer, nullable=True)
    low_stock_threshold = db.Column(db.Integer, nullable=True)
    high_stock_threshold = db.Column(db.Integer, nullable=True)
    exclude_pos_payments_from_balance = db.Column(db.Boolean, nullable=True)

    # Per-vendor bill numbering; bumped inside the checkout transaction
    next_bill_number = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "tax_rate_bps": self.tax_rate_bps,
            "low_stock_threshold": self.low_stock_threshold,
            "high_stock_threshold": self.high_stock_threshold,
            "exclude_pos_payments_from_balance": self.exclude_pos_payments_from_balance,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
