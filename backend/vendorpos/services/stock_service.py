# Overview: Service-layer operations for stock; the only code path that changes Product.stock.

"""
Stock Ledger Invariants (authoritative)

- Product.stock is never negative.
- Every change to Product.stock appends exactly one StockMovement in the
  same DB transaction, with previous_stock/new_stock captured at that
  moment. Hence, at every commit:
      stock == opening_stock + SUM(movement.signed_quantity)
- Quantities are positive integers; direction carries the sign.
- stock-out is a single conditional UPDATE
      UPDATE products SET stock = stock - :q WHERE id = :id AND stock >= :q
  checked by affected-row count, so two concurrent sales can never both
  pass a stale "enough stock" check.
- reserve() is a check only (no hold is placed): it is what the POS calls
  on cart-add and quantity-increment. The authoritative check is the
  conditional UPDATE at commit time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import case, func, update

from ..extensions import db
from ..models import Product, StockMovement
from vendorpos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


DIRECTION_IN = "in"
DIRECTION_OUT = "out"

STATUS_OUT_OF_STOCK = "out_of_stock"
STATUS_LOW = "low_stock"
STATUS_IN_STOCK = "in_stock"
STATUS_HIGH = "high_stock"

DEFAULT_STOCK_OUT_REASON = "Manual adjustment"


class StockError(Exception):
    """Raised for stock operation errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ProductNotFound(StockError):
    status_code = 404


class InvalidStockQuantity(StockError):
    """Quantity is not a positive integer."""


class InsufficientStock(StockError):
    """Requested more than is on hand. Nothing was mutated."""
    status_code = 409

    def __init__(self, available: int, requested: int, product_id: int | None = None):
        super().__init__(
            f"Insufficient stock: only {available} available, {requested} requested",
            details={"product_id": product_id, "available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested
        self.product_id = product_id


@dataclass(frozen=True)
class StockThresholds:
    low: int = 10
    high: int = 100


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidStockQuantity("Quantity must be a positive integer", {"quantity": quantity})
    return quantity


def _get_product(vendor_id: int, product_id: int, *, require_active: bool = False, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None or product.vendor_id != vendor_id:
        raise ProductNotFound(f"Product {product_id} not found", {"product_id": product_id})
    if require_active and not product.is_active:
        raise ProductNotFound(f"Product {product_id} is inactive", {"product_id": product_id})
    return product


def _read_stock(product_id: int) -> int:
    # Column query bypasses the identity map and reads the row as written
    return int(db.session.query(Product.stock).filter(Product.id == product_id).scalar())


def _apply_delta(vendor_id: int, product_id: int, delta: int) -> tuple[int, int]:
    """
    Atomically add delta to Product.stock, refusing to go negative.

    Returns (previous_stock, new_stock) as seen by this statement.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.vendor_id == vendor_id)
        .values(stock=Product.stock + delta)
        .execution_options(synchronize_session=False)
    )
    if delta < 0:
        stmt = stmt.where(Product.stock >= -delta)

    result = db.session.execute(stmt)
    if result.rowcount != 1:
        available = _read_stock(product_id)
        raise InsufficientStock(available=available, requested=-delta, product_id=product_id)

    new_stock = _read_stock(product_id)

    product = db.session.get(Product, product_id)
    if product is not None:
        db.session.expire(product, ["stock", "updated_at"])

    return new_stock - delta, new_stock


def _stock_in_inner(
    *,
    vendor_id: int,
    product_id: int,
    quantity: int,
    reason: str,
    supplier_name: str | None = None,
    batch_number: str | None = None,
    purchase_cost_cents: int | None = None,
    expiry_date: date | None = None,
    occurred_at: datetime | None = None,
) -> StockMovement:
    """Core stock-in without retry or commit."""
    _validate_quantity(quantity)
    if not reason or not str(reason).strip():
        raise StockError("Reason is required for stock-in")
    if purchase_cost_cents is not None and purchase_cost_cents < 0:
        raise StockError("purchase_cost_cents must be >= 0")

    _get_product(vendor_id, product_id, require_active=True, lock=True)
    previous, new = _apply_delta(vendor_id, product_id, quantity)

    movement = StockMovement(
        vendor_id=vendor_id,
        product_id=product_id,
        direction=DIRECTION_IN,
        quantity=quantity,
        previous_stock=previous,
        new_stock=new,
        reason=str(reason).strip(),
        supplier_name=supplier_name,
        batch_number=batch_number,
        purchase_cost_cents=purchase_cost_cents,
        expiry_date=expiry_date,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def _stock_out_inner(
    *,
    vendor_id: int,
    product_id: int,
    quantity: int,
    reason: str | None = None,
    bill_id: int | None = None,
    occurred_at: datetime | None = None,
) -> StockMovement:
    """Core stock-out without retry or commit. Called by stock_out() and the checkout poster."""
    _validate_quantity(quantity)
    _get_product(vendor_id, product_id, require_active=True, lock=True)
    previous, new = _apply_delta(vendor_id, product_id, -quantity)

    movement = StockMovement(
        vendor_id=vendor_id,
        product_id=product_id,
        direction=DIRECTION_OUT,
        quantity=quantity,
        previous_stock=previous,
        new_stock=new,
        reason=(reason or DEFAULT_STOCK_OUT_REASON).strip(),
        bill_id=bill_id,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def stock_in(
    *,
    vendor_id: int,
    product_id: int,
    quantity: int,
    reason: str,
    supplier_name: str | None = None,
    batch_number: str | None = None,
    purchase_cost_cents: int | None = None,
    expiry_date: date | None = None,
) -> StockMovement:
    """Receive stock and append an 'in' movement."""
    def _op():
        try:
            movement = _stock_in_inner(
                vendor_id=vendor_id,
                product_id=product_id,
                quantity=quantity,
                reason=reason,
                supplier_name=supplier_name,
                batch_number=batch_number,
                purchase_cost_cents=purchase_cost_cents,
                expiry_date=expiry_date,
            )
        except StockError:
            db.session.rollback()
            raise
        db.session.commit()
        return movement

    return run_with_retry(_op)


def stock_out(
    *,
    vendor_id: int,
    product_id: int,
    quantity: int,
    reason: str | None = None,
) -> StockMovement:
    """
    Remove stock and append an 'out' movement.

    Raises InsufficientStock (and changes nothing) if quantity > stock.
    """
    def _op():
        try:
            movement = _stock_out_inner(
                vendor_id=vendor_id,
                product_id=product_id,
                quantity=quantity,
                reason=reason,
            )
        except StockError:
            db.session.rollback()
            raise
        db.session.commit()
        return movement

    return run_with_retry(_op)


def reserve(*, vendor_id: int, product_id: int, quantity: int) -> int:
    """
    Check that `quantity` units (the line's total desired cart quantity)
    can be sold right now. Returns the on-hand quantity.

    Raises InsufficientStock when they cannot; the caller must then leave
    the cart line as it was.
    """
    _validate_quantity(quantity)
    product = _get_product(vendor_id, product_id, require_active=True)
    available = _read_stock(product.id)
    if quantity > available:
        raise InsufficientStock(available=available, requested=quantity, product_id=product_id)
    return available


def get_movements(
    vendor_id: int,
    product_id: int | None = None,
    *,
    newest_first: bool = False,
    limit: int | None = None,
) -> list[StockMovement]:
    """Movements in append order (or reversed), optionally for one product."""
    if product_id is not None:
        _get_product(vendor_id, product_id)

    q = db.session.query(StockMovement).filter(StockMovement.vendor_id == vendor_id)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)

    if newest_first:
        q = q.order_by(StockMovement.id.desc())
    else:
        q = q.order_by(StockMovement.id.asc())

    if limit is not None:
        q = q.limit(limit)
    return q.all()


def stock_status(stock: int, thresholds: StockThresholds) -> str:
    if stock == 0:
        return STATUS_OUT_OF_STOCK
    if stock < thresholds.low:
        return STATUS_LOW
    if stock > thresholds.high:
        return STATUS_HIGH
    return STATUS_IN_STOCK


def get_stock_overview(vendor_id: int, thresholds: StockThresholds) -> dict:
    products = (
        db.session.query(Product)
        .filter_by(vendor_id=vendor_id, is_active=True)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    counts = {STATUS_OUT_OF_STOCK: 0, STATUS_LOW: 0, STATUS_IN_STOCK: 0, STATUS_HIGH: 0}
    items = []
    for product in products:
        status = stock_status(product.stock, thresholds)
        counts[status] += 1
        items.append({
            "product_id": product.id,
            "name": product.name,
            "unit": product.unit,
            "stock": product.stock,
            "status": status,
        })

    return {
        "vendor_id": vendor_id,
        "thresholds": {"low": thresholds.low, "high": thresholds.high},
        "counts": counts,
        "items": items,
    }


def verify_stock_ledger(vendor_id: int) -> list[dict]:
    """
    Recompute every product's stock from its movements.

    Returns one entry per product whose live stock, movement sum or
    previous/new chain disagrees. An empty list means no drift.
    """
    sums = dict(
        db.session.query(
            StockMovement.product_id,
            func.coalesce(
                func.sum(
                    case(
                        (StockMovement.direction == DIRECTION_IN, StockMovement.quantity),
                        else_=-StockMovement.quantity,
                    )
                ),
                0,
            ),
        )
        .filter(StockMovement.vendor_id == vendor_id)
        .group_by(StockMovement.product_id)
        .all()
    )

    problems = []
    for product in db.session.query(Product).filter_by(vendor_id=vendor_id).order_by(Product.id).all():
        opening = product.opening_stock or 0
        expected = opening + int(sums.get(product.id, 0))
        chain_breaks = []
        running = opening
        for movement in get_movements(vendor_id, product.id):
            if movement.previous_stock != running:
                chain_breaks.append(movement.id)
            running = movement.new_stock
        if expected != product.stock or chain_breaks or product.stock < 0:
            problems.append({
                "product_id": product.id,
                "stock": product.stock,
                "expected_stock": expected,
                "chain_breaks": chain_breaks,
            })
    return problems
