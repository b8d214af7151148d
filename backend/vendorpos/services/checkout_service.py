# Overview: Service-layer operations for POS checkout; posts a bill and everything hanging off it atomically.

"""
Checkout Poster

WHY: A POS sale touches bills, stock, orders, payments, the khata ledger
and coupon usage. Either every one of those writes is visible or none is.

UNIT OF WORK (single DB transaction, retried on contention):
    validate   cart lines, customer, coupon (locked), payment amount, on-hand stock
    bill       allocate bill number, Bill + BillCharge rows
    stock      stock-out per product line + BillLine per cart line
    order      Order + OrderItems (only when a customer is attached)
    payment    Payment row (only when something was paid)
    ledger     'in' posting for the amount paid, 'out' posting for the amount due
               (only when a customer is attached)
    coupon     CouponUsage row

Errors raised in the validate stage surface unchanged, before anything is
written. A failure in any later stage rolls the whole transaction back
and surfaces as CommitError(stage, cause).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import (
    Vendor,
    Product,
    Service,
    Customer,
    Bill,
    BillLine,
    BillCharge,
    Payment,
    Order,
    OrderItem,
)
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .pricing_service import (
    Cart,
    CartLine,
    DiscountRule,
    PricingError,
    InvalidCartLine,
    ITEM_PRODUCT,
    ITEM_SERVICE,
    price_cart,
)
from .coupon_service import CouponError, validate_coupon, record_coupon_usage
from .stock_service import StockError, InsufficientStock, ProductNotFound, _read_stock, _stock_out_inner
from .ledger_service import (
    LedgerError,
    DIRECTION_IN,
    DIRECTION_OUT,
    CATEGORY_PRODUCT_SALE,
    METHOD_CASH,
    METHOD_CREDIT,
    VALID_PAYMENT_METHODS,
    REFERENCE_BILL,
    REFERENCE_ORDER,
    post_inner,
)
from .vendor_service import VendorSettings, allocate_bill_number


WALK_IN = "walk-in"

PAYMENT_FULL = "full"
PAYMENT_PARTIAL = "partial"
PAYMENT_CREDIT = "credit"
VALID_PAYMENT_TYPES = (PAYMENT_FULL, PAYMENT_PARTIAL, PAYMENT_CREDIT)

STATUS_PAID = "paid"
STATUS_PARTIAL = "partial"
STATUS_CREDIT = "credit"

STAGE_VALIDATE = "validate"
STAGE_BILL = "bill"
STAGE_STOCK = "stock"
STAGE_ORDER = "order"
STAGE_PAYMENT = "payment"
STAGE_LEDGER = "ledger"
STAGE_COUPON = "coupon"


class CheckoutError(Exception):
    """Raised for checkout errors detected before anything is written."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CustomerNotFound(CheckoutError):
    status_code = 404


class InvalidPaymentAmount(CheckoutError):
    def __init__(self, amount, minimum: int, maximum: int):
        super().__init__(
            f"Payment amount must be between {minimum} and {maximum}",
            details={"amount_cents": amount, "min": minimum, "max": maximum},
        )
        self.amount = amount
        self.min = minimum
        self.max = maximum


class CommitError(CheckoutError):
    """
    The post failed after it started writing; nothing was kept.

    `stage` names the step that failed, `cause` is the original exception.
    """

    def __init__(self, stage: str, cause: Exception):
        details = {
            "stage": stage,
            "cause": type(cause).__name__,
            "message": str(cause),
        }
        cause_details = getattr(cause, "details", None)
        if cause_details:
            details["cause_details"] = cause_details
        super().__init__(f"Checkout failed at stage '{stage}': {cause}", details)
        self.stage = stage
        self.cause = cause
        self.status_code = getattr(cause, "status_code", 500)


@dataclass(frozen=True)
class PaymentPlan:
    payment_type: str
    amount_cents: int | None = None
    payment_method: str = METHOD_CASH
    notes: str | None = None
    reference: str | None = None


def resolve_payment(plan: PaymentPlan, grand_total_cents: int) -> tuple[int, int, str]:
    """
    Returns (paid_cents, due_cents, payment_status).

    full -> grand total, credit -> 0, partial -> the supplied amount, which
    must be an integer within [0, grand total].
    """
    if plan.payment_type not in VALID_PAYMENT_TYPES:
        raise CheckoutError(
            f"Invalid payment type: {plan.payment_type}. Must be one of {list(VALID_PAYMENT_TYPES)}"
        )
    if plan.payment_method not in VALID_PAYMENT_METHODS:
        raise CheckoutError(
            f"Invalid payment method: {plan.payment_method}",
            {"allowed": list(VALID_PAYMENT_METHODS)},
        )

    if plan.payment_type == PAYMENT_FULL:
        paid = grand_total_cents
    elif plan.payment_type == PAYMENT_CREDIT:
        paid = 0
    else:
        amount = plan.amount_cents
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidPaymentAmount(amount, 0, grand_total_cents)
        if amount < 0 or amount > grand_total_cents:
            raise InvalidPaymentAmount(amount, 0, grand_total_cents)
        paid = amount

    if paid >= grand_total_cents:
        status = STATUS_PAID
    elif paid > 0:
        status = STATUS_PARTIAL
    else:
        status = STATUS_CREDIT
    return paid, grand_total_cents - paid, status


def normalize_customer_id(customer_id) -> int | None:
    if customer_id is None or customer_id == WALK_IN:
        return None
    return customer_id


def resolve_cart_lines(vendor_id: int, items) -> list[CartLine]:
    """
    Build priced cart lines from (item_type, item_id, quantity) requests,
    snapshotting the catalog name, unit and price. Repeated items are
    merged into one line.
    """
    cart = Cart()
    for item in items:
        item_type = item.get("item_type")
        item_id = item.get("item_id")
        if item_type == ITEM_PRODUCT:
            record = db.session.get(Product, item_id)
            if record is None or record.vendor_id != vendor_id or not record.is_active:
                raise ProductNotFound(f"Product {item_id} not found", {"product_id": item_id})
        elif item_type == ITEM_SERVICE:
            record = db.session.get(Service, item_id)
            if record is None or record.vendor_id != vendor_id or not record.is_active:
                raise InvalidCartLine(f"Service {item_id} not found", {"service_id": item_id})
        else:
            raise InvalidCartLine(f"Invalid item type: {item_type}", {"item_type": item_type})

        line = CartLine(
            item_type=item_type,
            item_id=record.id,
            name=record.name,
            unit_price_cents=record.price_cents,
            quantity=item.get("quantity"),
            unit=record.unit,
        )
        cart.add(line)
    return list(cart.lines)


def _merge_lines(lines) -> tuple[CartLine, ...]:
    cart = Cart()
    for line in lines:
        cart.add(line)
    return cart.lines


def _validate_on_hand(vendor_id: int, lines) -> None:
    product_totals: dict[int, int] = {}
    for line in lines:
        if line.is_product:
            product_totals[line.item_id] = product_totals.get(line.item_id, 0) + line.quantity

    for product_id, qty in product_totals.items():
        product = db.session.get(Product, product_id)
        if product is None or product.vendor_id != vendor_id or not product.is_active:
            raise ProductNotFound(f"Product {product_id} not found", {"product_id": product_id})
        available = _read_stock(product_id)
        if available < qty:
            raise InsufficientStock(available=available, requested=qty, product_id=product_id)


def _get_customer(vendor_id: int, customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None or customer.vendor_id != vendor_id or not customer.is_active:
        raise CustomerNotFound(f"Customer {customer_id} not found", {"customer_id": customer_id})
    return customer


def _items_note(lines) -> str:
    return ", ".join(f"{line.quantity}x {line.name}" for line in lines)


def commit_checkout(
    *,
    vendor_id: int,
    lines,
    payment_plan: PaymentPlan,
    settings: VendorSettings,
    discount: DiscountRule | None = None,
    coupon_code: str | None = None,
    charges=(),
    customer_id=None,
) -> Bill:
    """
    Post a checkout as one atomic unit and return the committed Bill.

    Raises:
        InvalidCartLine, PricingError: malformed cart
        CouponError: coupon rejected (same order as validate_coupon)
        InsufficientStock: not enough on hand for the cart
        InvalidPaymentAmount: partial amount outside [0, grand total]
        CheckoutError: empty cart, zero total, unknown customer
        CommitError: a write step failed; everything was rolled back
    """
    lines = _merge_lines(lines)
    charges = tuple(charges)
    customer_id = normalize_customer_id(customer_id)

    if not lines:
        raise CheckoutError("Cart is empty")
    if discount is not None and coupon_code:
        raise CheckoutError("A coupon and a manual discount cannot be combined")

    state = {"stage": STAGE_VALIDATE}

    def _op():
        state["stage"] = STAGE_VALIDATE
        try:
            begin_write_transaction()

            vendor = lock_for_update(db.session.query(Vendor).filter_by(id=vendor_id)).first()
            if vendor is None:
                raise CheckoutError(f"Vendor {vendor_id} not found")
            if customer_id is not None:
                _get_customer(vendor_id, customer_id)

            rule = discount
            coupon = None
            if coupon_code:
                subtotal = price_cart(lines, None, charges, tax_rate_bps=settings.tax_rate_bps).subtotal_cents
                coupon = validate_coupon(coupon_code, vendor_id, subtotal, lock=True)
                rule = coupon.to_rule()

            pricing = price_cart(lines, rule, charges, tax_rate_bps=settings.tax_rate_bps)
            if pricing.grand_total_cents <= 0:
                raise CheckoutError("Invalid total amount", {"grand_total_cents": pricing.grand_total_cents})

            paid, due, status = resolve_payment(payment_plan, pricing.grand_total_cents)
            _validate_on_hand(vendor_id, lines)

            # -- writes start here --
            state["stage"] = STAGE_BILL
            bill_number = allocate_bill_number(vendor)
            bill = Bill(
                vendor_id=vendor_id,
                bill_number=bill_number,
                customer_id=customer_id,
                subtotal_cents=pricing.subtotal_cents,
                discount_type=rule.label if rule else None,
                discount_cents=pricing.discount_cents,
                coupon_id=coupon.coupon_id if coupon else None,
                coupon_code=coupon.code if coupon else None,
                tax_rate_bps=pricing.tax_rate_bps,
                tax_cents=pricing.tax_cents,
                charges_total_cents=pricing.charges_total_cents,
                grand_total_cents=pricing.grand_total_cents,
                payment_type=payment_plan.payment_type,
                payment_status=status,
                payment_method=payment_plan.payment_method if paid > 0 else None,
                paid_cents=paid,
                due_cents=due,
                notes=payment_plan.notes,
            )
            db.session.add(bill)
            db.session.flush()

            for charge in pricing.charges:
                db.session.add(BillCharge(
                    bill_id=bill.id,
                    label=charge.label,
                    base_cents=charge.base_cents,
                    tax_rate_bps=charge.tax_rate_bps,
                    tax_cents=charge.tax_cents,
                    total_cents=charge.total_cents,
                ))

            state["stage"] = STAGE_STOCK
            for number, line in enumerate(pricing.lines, start=1):
                movement = None
                if line.is_product:
                    movement = _stock_out_inner(
                        vendor_id=vendor_id,
                        product_id=line.item_id,
                        quantity=line.quantity,
                        reason=f"POS Sale - {bill_number}",
                        bill_id=bill.id,
                    )
                db.session.add(BillLine(
                    bill_id=bill.id,
                    line_number=number,
                    item_type=line.item_type,
                    product_id=line.item_id if line.is_product else None,
                    service_id=None if line.is_product else line.item_id,
                    name=line.name,
                    unit=line.unit,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    line_total_cents=line.line_total_cents,
                    stock_movement_id=movement.id if movement else None,
                ))
            db.session.flush()

            order = None
            if customer_id is not None:
                state["stage"] = STAGE_ORDER
                order = Order(
                    vendor_id=vendor_id,
                    bill_id=bill.id,
                    customer_id=customer_id,
                    subtotal_cents=bill.subtotal_cents,
                    discount_cents=bill.discount_cents,
                    tax_cents=bill.tax_cents,
                    charges_total_cents=bill.charges_total_cents,
                    grand_total_cents=bill.grand_total_cents,
                    paid_cents=paid,
                    due_cents=due,
                    payment_status=status,
                )
                db.session.add(order)
                db.session.flush()
                for line in pricing.lines:
                    if not line.is_product:
                        continue
                    db.session.add(OrderItem(
                        order_id=order.id,
                        product_id=line.item_id,
                        product_name=line.name,
                        unit=line.unit,
                        quantity=line.quantity,
                        unit_price_cents=line.unit_price_cents,
                        total_cents=line.line_total_cents,
                    ))
                db.session.flush()

            if paid > 0:
                state["stage"] = STAGE_PAYMENT
                db.session.add(Payment(
                    vendor_id=vendor_id,
                    bill_id=bill.id,
                    amount_cents=paid,
                    payment_method=payment_plan.payment_method,
                    reference=payment_plan.reference,
                ))
                db.session.flush()

            if customer_id is not None:
                state["stage"] = STAGE_LEDGER
                reference_type = REFERENCE_ORDER if order else REFERENCE_BILL
                reference_id = order.id if order else bill.id
                note = _items_note(pricing.lines)
                if paid > 0:
                    post_inner(
                        vendor_id=vendor_id,
                        customer_id=customer_id,
                        direction=DIRECTION_IN,
                        amount_cents=paid,
                        category=CATEGORY_PRODUCT_SALE,
                        payment_method=payment_plan.payment_method,
                        description=f"POS Sale - Bill {bill_number}",
                        note=note,
                        reference_type=reference_type,
                        reference_id=reference_id,
                        bill_id=bill.id,
                        exclude_from_balance=settings.exclude_pos_payments_from_balance,
                        is_pos_sale=True,
                    )
                if due > 0:
                    post_inner(
                        vendor_id=vendor_id,
                        customer_id=customer_id,
                        direction=DIRECTION_OUT,
                        amount_cents=due,
                        category=CATEGORY_PRODUCT_SALE,
                        payment_method=METHOD_CREDIT,
                        description=f"Credit Due - Bill {bill_number}",
                        note=note,
                        reference_type=reference_type,
                        reference_id=reference_id,
                        bill_id=bill.id,
                        exclude_from_balance=False,
                        is_pos_sale=True,
                    )

            if coupon is not None:
                state["stage"] = STAGE_COUPON
                record_coupon_usage(
                    coupon_id=coupon.coupon_id,
                    vendor_id=vendor_id,
                    bill_id=bill.id,
                    customer_id=customer_id,
                    discount_cents=pricing.discount_cents,
                )

            db.session.commit()
            return bill
        except (OperationalError, StaleDataError):
            # run_with_retry rolls back and retries
            raise
        except (PricingError, CouponError, StockError, CheckoutError, LedgerError) as exc:
            db.session.rollback()
            if state["stage"] == STAGE_VALIDATE:
                raise
            raise CommitError(state["stage"], exc) from exc
        except Exception as exc:
            db.session.rollback()
            raise CommitError(state["stage"], exc) from exc

    try:
        return run_with_retry(_op)
    except (OperationalError, StaleDataError) as exc:
        raise CommitError(state["stage"], exc) from exc


def get_bill(vendor_id: int, bill_id: int) -> Bill | None:
    bill = db.session.get(Bill, bill_id)
    if bill is None or bill.vendor_id != vendor_id:
        return None
    return bill


def bill_detail(bill: Bill) -> dict:
    data = bill.to_dict()
    data["lines"] = [line.to_dict() for line in bill.lines]
    data["charges"] = [charge.to_dict() for charge in bill.charges]
    data["payments"] = [payment.to_dict() for payment in bill.payments]
    data["order"] = bill.order.to_dict() if bill.order else None
    return data


def verify_bills(vendor_id: int) -> list[dict]:
    """
    Re-add every bill's parts. Returns one entry per bill whose lines,
    payments or paid/due split disagree with its stored totals.
    """
    problems = []
    bills = db.session.query(Bill).filter_by(vendor_id=vendor_id).order_by(Bill.id).all()
    for bill in bills:
        issues = []
        if sum(line.line_total_cents for line in bill.lines) != bill.subtotal_cents:
            issues.append("lines_vs_subtotal")
        if sum(charge.total_cents for charge in bill.charges) != bill.charges_total_cents:
            issues.append("charges_vs_total")
        if bill.paid_cents + bill.due_cents != bill.grand_total_cents:
            issues.append("paid_plus_due")
        if sum(payment.amount_cents for payment in bill.payments) != bill.paid_cents:
            issues.append("payments_vs_paid")
        if issues:
            problems.append({"bill_id": bill.id, "bill_number": bill.bill_number, "issues": issues})
    return problems
