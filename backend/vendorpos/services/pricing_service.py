"""
Pricing Service - pure cart arithmetic

WHY: The checkout screen re-prices on every keystroke and the commit path
must reproduce exactly the same numbers, so pricing is a pure function of
its inputs with no database access.

MONEY & RATES:
- All amounts are integers in minor currency units (paise / cents).
- All rates are integer basis points (10000 = 100%).

ROUNDING (fixed policy):
- Every derived amount (percentage discount, item tax, each charge's tax)
  is rounded ONCE, half-up, to the nearest minor unit at the moment it is
  derived. Totals are then plain integer sums, so a preview and a
  committed bill built from the same inputs can never differ.

ALGORITHM:
    subtotal   = SUM(unit_price * quantity)
    discount   = clamp(rule(subtotal), 0, subtotal)
    taxable    = subtotal - discount
    tax        = round(taxable * tax_rate)
    charge.tax = round(charge.base * charge.tax_rate); charge.total = base + tax
    grand      = taxable + tax + SUM(charge.total)
"""

from __future__ import annotations

from dataclasses import dataclass, field

BPS_DENOMINATOR = 10_000
DEFAULT_TAX_RATE_BPS = 1800

ITEM_PRODUCT = "product"
ITEM_SERVICE = "service"
VALID_ITEM_TYPES = (ITEM_PRODUCT, ITEM_SERVICE)

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
VALID_DISCOUNT_KINDS = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)


class PricingError(Exception):
    """Raised for invalid pricing input."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InvalidCartLine(PricingError):
    """Cart line with a negative/zero quantity, negative price or unknown item type."""


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounded half-up (numerator >= 0, denominator > 0)."""
    return (2 * numerator + denominator) // (2 * denominator)


def apply_rate(amount_cents: int, rate_bps: int) -> int:
    return round_half_up(amount_cents * rate_bps, BPS_DENOMINATOR)


def discount_for(kind: str, value: int, subtotal_cents: int) -> int:
    """
    Raw discount contribution of a rule, NOT clamped against the subtotal.

    percentage: value is basis points of the subtotal
    fixed:      value is an amount in minor units
    """
    if kind == DISCOUNT_PERCENTAGE:
        if value <= 0:
            return 0
        return apply_rate(subtotal_cents, value)
    if kind == DISCOUNT_FIXED:
        return value
    raise PricingError(f"Invalid discount type: {kind}. Must be one of {list(VALID_DISCOUNT_KINDS)}")


@dataclass(frozen=True)
class CartLine:
    """One cart entry; `unit_price_cents` is the price snapshot taken when the item was added."""
    item_type: str
    item_id: int
    name: str
    unit_price_cents: int
    quantity: int
    unit: str = "pcs"

    @property
    def key(self) -> tuple[str, int]:
        return (self.item_type, self.item_id)

    @property
    def is_product(self) -> bool:
        return self.item_type == ITEM_PRODUCT

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def validate(self) -> None:
        details = {"item_type": self.item_type, "item_id": self.item_id}
        if self.item_type not in VALID_ITEM_TYPES:
            raise InvalidCartLine(f"Invalid item type: {self.item_type}", details)
        if not _is_int(self.quantity) or self.quantity < 1:
            raise InvalidCartLine("Quantity must be a positive integer", {**details, "quantity": self.quantity})
        if not _is_int(self.unit_price_cents) or self.unit_price_cents < 0:
            raise InvalidCartLine(
                "Unit price must be a non-negative integer",
                {**details, "unit_price_cents": self.unit_price_cents},
            )

    def to_dict(self) -> dict:
        return {
            "item_type": self.item_type,
            "item_id": self.item_id,
            "name": self.name,
            "unit": self.unit,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
        }


@dataclass(frozen=True)
class DiscountRule:
    """
    A single discount source: either a manual discount or an applied coupon.

    Only one rule reaches the calculator, which keeps coupon and manual
    discount mutually exclusive by construction.
    """
    kind: str
    value: int
    coupon_id: int | None = None
    coupon_code: str | None = None

    @property
    def is_coupon(self) -> bool:
        return self.coupon_id is not None

    @property
    def label(self) -> str:
        return "coupon" if self.is_coupon else self.kind


@dataclass(frozen=True)
class ChargeInput:
    label: str
    base_cents: int
    tax_rate_bps: int = DEFAULT_TAX_RATE_BPS


@dataclass(frozen=True)
class PricedCharge:
    label: str
    base_cents: int
    tax_rate_bps: int
    tax_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "base_cents": self.base_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


@dataclass(frozen=True)
class PricingResult:
    lines: tuple[CartLine, ...]
    subtotal_cents: int
    discount_cents: int
    taxable_cents: int
    tax_rate_bps: int
    tax_cents: int
    charges: tuple[PricedCharge, ...]
    charges_total_cents: int
    grand_total_cents: int
    discount_rule: DiscountRule | None = None

    def to_dict(self) -> dict:
        rule = self.discount_rule
        return {
            "lines": [line.to_dict() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "discount_type": rule.label if rule else None,
            "discount_cents": self.discount_cents,
            "coupon_code": rule.coupon_code if rule else None,
            "taxable_cents": self.taxable_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "charges": [c.to_dict() for c in self.charges],
            "charges_total_cents": self.charges_total_cents,
            "grand_total_cents": self.grand_total_cents,
        }


def price_charge(charge: ChargeInput) -> PricedCharge:
    if not _is_int(charge.base_cents) or charge.base_cents < 0:
        raise PricingError("Charge amount must be a non-negative integer", {"label": charge.label})
    if not _is_int(charge.tax_rate_bps) or charge.tax_rate_bps < 0:
        raise PricingError("Charge tax rate must be a non-negative integer", {"label": charge.label})
    tax = apply_rate(charge.base_cents, charge.tax_rate_bps)
    return PricedCharge(
        label=charge.label,
        base_cents=charge.base_cents,
        tax_rate_bps=charge.tax_rate_bps,
        tax_cents=tax,
        total_cents=charge.base_cents + tax,
    )


def price_cart(
    lines,
    discount_rule: DiscountRule | None = None,
    charges=(),
    *,
    tax_rate_bps: int = DEFAULT_TAX_RATE_BPS,
) -> PricingResult:
    """
    Price a cart. Pure and deterministic.

    A discount outside [0, subtotal] is clamped silently, never rejected.

    Raises:
        InvalidCartLine: negative/zero quantity or negative unit price
        PricingError: malformed discount rule, charge or tax rate
    """
    lines = tuple(lines)
    for line in lines:
        line.validate()

    if not _is_int(tax_rate_bps) or tax_rate_bps < 0:
        raise PricingError("Tax rate must be a non-negative integer")

    subtotal = sum(line.line_total_cents for line in lines)

    discount = 0
    if discount_rule is not None:
        if not _is_int(discount_rule.value):
            raise PricingError("Discount value must be an integer")
        discount = discount_for(discount_rule.kind, discount_rule.value, subtotal)
    discount = max(0, min(discount, subtotal))

    taxable = subtotal - discount
    tax = apply_rate(taxable, tax_rate_bps)

    priced_charges = tuple(price_charge(c) for c in charges)
    charges_total = sum(c.total_cents for c in priced_charges)

    return PricingResult(
        lines=lines,
        subtotal_cents=subtotal,
        discount_cents=discount,
        taxable_cents=taxable,
        tax_rate_bps=tax_rate_bps,
        tax_cents=tax,
        charges=priced_charges,
        charges_total_cents=charges_total,
        grand_total_cents=taxable + tax + charges_total,
        discount_rule=discount_rule,
    )


@dataclass
class Cart:
    """
    In-memory cart: ordered, one line per item.

    Adding an item that is already present increments its quantity instead
    of appending a second line. Stock checks are the caller's job (see
    stock_service.reserve) and must happen before add()/increment().
    """
    _lines: dict = field(default_factory=dict)

    def quantity_of(self, item_type: str, item_id: int) -> int:
        line = self._lines.get((item_type, item_id))
        return line.quantity if line else 0

    def add(self, line: CartLine) -> CartLine:
        line.validate()
        existing = self._lines.get(line.key)
        if existing is None:
            self._lines[line.key] = line
            return line
        merged = CartLine(
            item_type=existing.item_type,
            item_id=existing.item_id,
            name=existing.name,
            unit_price_cents=existing.unit_price_cents,
            quantity=existing.quantity + line.quantity,
            unit=existing.unit,
        )
        self._lines[line.key] = merged
        return merged

    def set_quantity(self, item_type: str, item_id: int, quantity: int) -> CartLine | None:
        """Set a line's quantity; zero removes the line."""
        key = (item_type, item_id)
        existing = self._lines.get(key)
        if existing is None:
            raise InvalidCartLine("Item is not in the cart", {"item_type": item_type, "item_id": item_id})
        if quantity == 0:
            del self._lines[key]
            return None
        updated = CartLine(
            item_type=existing.item_type,
            item_id=existing.item_id,
            name=existing.name,
            unit_price_cents=existing.unit_price_cents,
            quantity=quantity,
            unit=existing.unit,
        )
        updated.validate()
        self._lines[key] = updated
        return updated

    def remove(self, item_type: str, item_id: int) -> None:
        self._lines.pop((item_type, item_id), None)

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)
