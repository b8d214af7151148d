from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from vendorpos.time_utils import to_utc_z


class Product(db.Model):
    """
    Sellable stock item.

    STOCK: `stock` is the live on-hand quantity. It is only ever changed by
    the stock service, which appends one StockMovement per change in the
    same DB transaction. `opening_stock` is the quantity the product was
    created with, so that:

        stock == opening_stock + SUM(signed movement quantity)

    holds at every commit.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_vendor_name", "vendor_id", "name"),
        db.Index("ix_products_vendor_active", "vendor_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    # Authoritative storage in minor units (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    opening_stock = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    vendor = db.relationship("Vendor", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock} vendor_id={self.vendor_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "opening_stock": self.opening_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


@event.listens_for(Product, "before_insert")
def _capture_opening_stock(mapper, connection, target):
    if target.stock is None:
        target.stock = 0
    if target.opening_stock is None:
        target.opening_stock = target.stock


class Service(db.Model):
    """Non-stock catalog item (labour, delivery, fitting...). Never touches stock."""
    __tablename__ = "services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="service")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "unit": self.unit,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock audit log.

    previous_stock / new_stock are captured at the moment of mutation,
    inside the same transaction that changes Product.stock.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("direction IN ('in', 'out')", name="ck_stock_movements_direction"),
        db.Index("ix_stock_movements_vendor_product_occurred", "vendor_id", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    direction = db.Column(db.String(8), nullable=False)  # in, out
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)

    # Stock-in metadata
    supplier_name = db.Column(db.String(255), nullable=True)
    batch_number = db.Column(db.String(64), nullable=True)
    purchase_cost_cents = db.Column(db.Integer, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    # Set when the movement was produced by a POS checkout
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=True, index=True)

    occurred_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product")

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.direction == "in" else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "product_id": self.product_id,
            "direction": self.direction,
            "quantity": self.quantity,
            "signed_quantity": self.signed_quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "supplier_name": self.supplier_name,
            "batch_number": self.batch_number,
            "purchase_cost_cents": self.purchase_cost_cents,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "bill_id": self.bill_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise ValueError("stock movements are append-only")


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise ValueError("stock movements are append-only")
