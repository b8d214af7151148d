"""
Coupon Service

WHY: The POS applies a coupon before payment is taken, and the same code
is validated again inside the checkout commit. Validation therefore has
no side effects; usage is only recorded by the checkout poster once the
bill is committed.

CHECK ORDER (first failure wins):
1. code exists, belongs to the vendor and is active -> CouponNotFound
2. now within [starts_at, expires_at]                 -> CouponExpired
3. usage count < usage_limit                          -> CouponExhausted
4. subtotal >= minimum_subtotal                       -> CouponMinimumNotMet

The discount contribution returned on success is NOT clamped against the
subtotal; clamping is done by pricing_service.price_cart.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Coupon, CouponUsage
from vendorpos.time_utils import utcnow, within_window, to_utc_z
from .concurrency import lock_for_update
from .pricing_service import DiscountRule, VALID_DISCOUNT_KINDS, DISCOUNT_PERCENTAGE, discount_for, BPS_DENOMINATOR


COUPON_ACTIVE = "active"
COUPON_INACTIVE = "inactive"


class CouponError(Exception):
    """Raised when a coupon cannot be applied. `reason` is a stable machine-readable code."""
    status_code = 400
    reason = "coupon_invalid"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}
        self.details.setdefault("reason", self.reason)


class CouponNotFound(CouponError):
    status_code = 404
    reason = "not_found"


class CouponExpired(CouponError):
    reason = "expired"


class CouponExhausted(CouponError):
    status_code = 409
    reason = "exhausted"


class CouponMinimumNotMet(CouponError):
    reason = "minimum_not_met"


@dataclass(frozen=True)
class CouponResult:
    coupon_id: int
    code: str
    discount_type: str
    discount_value: int
    discount_cents: int
    minimum_subtotal_cents: int
    uses_remaining: int | None

    def to_rule(self) -> DiscountRule:
        return DiscountRule(
            kind=self.discount_type,
            value=self.discount_value,
            coupon_id=self.coupon_id,
            coupon_code=self.code,
        )

    def to_dict(self) -> dict:
        return {
            "coupon_id": self.coupon_id,
            "code": self.code,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_cents": self.discount_cents,
            "minimum_subtotal_cents": self.minimum_subtotal_cents,
            "uses_remaining": self.uses_remaining,
        }


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def get_usage_count(coupon_id: int) -> int:
    return int(
        db.session.query(func.count(CouponUsage.id)).filter(CouponUsage.coupon_id == coupon_id).scalar() or 0
    )


def validate_coupon(
    code: str,
    vendor_id: int,
    subtotal_cents: int,
    *,
    now: datetime | None = None,
    lock: bool = False,
) -> CouponResult:
    """
    Check a coupon code for this vendor and subtotal.

    Idempotent: calling it any number of times changes nothing.
    `lock=True` is used inside the checkout transaction.
    """
    normalized = normalize_code(code)
    if not normalized:
        raise CouponNotFound("Coupon code is required", {"code": code})

    q = db.session.query(Coupon).filter_by(vendor_id=vendor_id, code=normalized)
    if lock:
        q = lock_for_update(q)
    coupon = q.first()
    if coupon is None or coupon.status != COUPON_ACTIVE:
        raise CouponNotFound(f"Coupon {normalized} not found", {"code": normalized})

    moment = now or utcnow()
    if not within_window(moment, coupon.starts_at, coupon.expires_at):
        if coupon.starts_at is not None and moment < coupon.starts_at:
            message = f"Coupon {normalized} is not valid yet"
        else:
            message = f"Coupon {normalized} has expired"
        raise CouponExpired(message, {
            "code": normalized,
            "starts_at": to_utc_z(coupon.starts_at),
            "expires_at": to_utc_z(coupon.expires_at),
        })

    used = get_usage_count(coupon.id)
    if coupon.usage_limit is not None and used >= coupon.usage_limit:
        raise CouponExhausted(f"Coupon {normalized} has reached its usage limit", {
            "code": normalized,
            "usage_limit": coupon.usage_limit,
            "used": used,
        })

    if subtotal_cents < coupon.minimum_subtotal_cents:
        raise CouponMinimumNotMet(f"Coupon {normalized} requires a minimum subtotal", {
            "code": normalized,
            "minimum_subtotal_cents": coupon.minimum_subtotal_cents,
            "subtotal_cents": subtotal_cents,
        })

    return CouponResult(
        coupon_id=coupon.id,
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        discount_cents=discount_for(coupon.discount_type, coupon.discount_value, subtotal_cents),
        minimum_subtotal_cents=coupon.minimum_subtotal_cents,
        uses_remaining=None if coupon.usage_limit is None else coupon.usage_limit - used,
    )


def record_coupon_usage(
    *,
    coupon_id: int,
    vendor_id: int,
    bill_id: int,
    customer_id: int | None,
    discount_cents: int,
) -> CouponUsage:
    """Append a usage row (no commit). Only the checkout poster calls this."""
    usage = CouponUsage(
        coupon_id=coupon_id,
        vendor_id=vendor_id,
        bill_id=bill_id,
        customer_id=customer_id,
        discount_cents=discount_cents,
    )
    db.session.add(usage)
    db.session.flush()
    return usage


def create_coupon(vendor_id: int, data: dict) -> Coupon:
    code = normalize_code(data.get("code"))
    if not code:
        raise CouponError("code is required")

    discount_type = data.get("discount_type")
    if discount_type not in VALID_DISCOUNT_KINDS:
        raise CouponError(f"discount_type must be one of {list(VALID_DISCOUNT_KINDS)}")

    value = data.get("discount_value")
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise CouponError("discount_value must be a non-negative integer")
    if discount_type == DISCOUNT_PERCENTAGE and value > BPS_DENOMINATOR:
        raise CouponError("percentage discount_value is in basis points and cannot exceed 10000")

    usage_limit = data.get("usage_limit")
    if usage_limit is not None and usage_limit < 1:
        raise CouponError("usage_limit must be >= 1 when set")

    minimum_subtotal = data.get("minimum_subtotal_cents") or 0
    if minimum_subtotal < 0:
        raise CouponError("minimum_subtotal_cents must be >= 0")

    status = data.get("status") or COUPON_ACTIVE
    if status not in (COUPON_ACTIVE, COUPON_INACTIVE):
        raise CouponError(f"status must be one of {[COUPON_ACTIVE, COUPON_INACTIVE]}")

    starts_at = data.get("starts_at")
    expires_at = data.get("expires_at")
    if starts_at and expires_at and expires_at < starts_at:
        raise CouponError("expires_at must not be before starts_at")

    if db.session.query(Coupon).filter_by(vendor_id=vendor_id, code=code).first():
        raise CouponError(f"Coupon {code} already exists", {"code": code})

    coupon = Coupon(
        vendor_id=vendor_id,
        code=code,
        description=data.get("description"),
        discount_type=discount_type,
        discount_value=value,
        minimum_subtotal_cents=minimum_subtotal,
        starts_at=starts_at,
        expires_at=expires_at,
        usage_limit=usage_limit,
        status=status,
    )
    db.session.add(coupon)
    db.session.commit()
    return coupon


def list_coupons(vendor_id: int, active_only: bool = False) -> list[dict]:
    q = db.session.query(Coupon).filter_by(vendor_id=vendor_id)
    if active_only:
        q = q.filter_by(status=COUPON_ACTIVE)
    items = []
    for coupon in q.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all():
        row = coupon.to_dict()
        row["used_count"] = get_usage_count(coupon.id)
        items.append(row)
    return items
