from datetime import timedelta

import pytest

from conftest import make_coupon
from vendorpos.models import Bill, CouponUsage
from vendorpos.services import coupon_service
from vendorpos.services.coupon_service import (
    CouponError,
    CouponExhausted,
    CouponExpired,
    CouponMinimumNotMet,
    CouponNotFound,
)
from vendorpos.time_utils import utcnow


def test_valid_percentage_coupon(db_session, vendor):
    coupon = make_coupon(db_session, vendor)

    result = coupon_service.validate_coupon("save20", vendor.id, 200)

    assert result.coupon_id == coupon.id
    assert result.code == "SAVE20"
    assert result.discount_cents == 40
    assert result.uses_remaining is None
    rule = result.to_rule()
    assert rule.is_coupon
    assert rule.value == 2000


def test_code_is_trimmed_and_case_insensitive(db_session, vendor):
    make_coupon(db_session, vendor, discount_type="fixed", discount_value=30)
    assert coupon_service.validate_coupon("  Save20 ", vendor.id, 200).discount_cents == 30


def test_unknown_code_is_not_found(db_session, vendor):
    with pytest.raises(CouponNotFound) as exc:
        coupon_service.validate_coupon("NOPE", vendor.id, 200)
    assert exc.value.reason == "not_found"


def test_other_vendors_coupon_is_not_found(db_session, vendor, other_vendor):
    make_coupon(db_session, other_vendor)
    with pytest.raises(CouponNotFound):
        coupon_service.validate_coupon("SAVE20", vendor.id, 200)


def test_inactive_coupon_is_not_found(db_session, vendor):
    make_coupon(db_session, vendor, status="inactive")
    with pytest.raises(CouponNotFound):
        coupon_service.validate_coupon("SAVE20", vendor.id, 200)


def test_expired_coupon(db_session, vendor):
    make_coupon(db_session, vendor, expires_at=utcnow() - timedelta(days=1))
    with pytest.raises(CouponExpired) as exc:
        coupon_service.validate_coupon("SAVE20", vendor.id, 200)
    assert exc.value.reason == "expired"


def test_not_yet_started_coupon_reports_expired(db_session, vendor):
    make_coupon(db_session, vendor, starts_at=utcnow() + timedelta(days=1))
    with pytest.raises(CouponExpired):
        coupon_service.validate_coupon("SAVE20", vendor.id, 200)


def test_window_bounds_are_inclusive(db_session, vendor):
    now = utcnow()
    make_coupon(db_session, vendor, starts_at=now, expires_at=now)
    assert coupon_service.validate_coupon("SAVE20", vendor.id, 200, now=now).discount_cents == 40


def test_minimum_not_met(db_session, vendor):
    make_coupon(db_session, vendor, minimum_subtotal_cents=500)
    with pytest.raises(CouponMinimumNotMet) as exc:
        coupon_service.validate_coupon("SAVE20", vendor.id, 200)
    assert exc.value.details["minimum_subtotal_cents"] == 500


def test_exhausted_checked_before_minimum(db_session, vendor):
    coupon = make_coupon(db_session, vendor, usage_limit=1, minimum_subtotal_cents=10_000)
    bill = Bill(
        vendor_id=vendor.id, bill_number="BILL-X", subtotal_cents=200, discount_cents=0,
        tax_rate_bps=1800, tax_cents=36, charges_total_cents=0, grand_total_cents=236,
        payment_type="full", payment_status="paid", paid_cents=236, due_cents=0,
    )
    db_session.add(bill)
    db_session.flush()
    db_session.add(CouponUsage(coupon_id=coupon.id, vendor_id=vendor.id, bill_id=bill.id, discount_cents=0))
    db_session.commit()

    with pytest.raises(CouponExhausted):
        coupon_service.validate_coupon("SAVE20", vendor.id, 200)


def test_expired_checked_before_exhausted_and_minimum(db_session, vendor):
    make_coupon(
        db_session, vendor,
        expires_at=utcnow() - timedelta(days=1),
        usage_limit=1,
        minimum_subtotal_cents=10_000,
    )
    with pytest.raises(CouponExpired):
        coupon_service.validate_coupon("SAVE20", vendor.id, 200)


def test_validation_has_no_side_effects(db_session, vendor):
    make_coupon(db_session, vendor, usage_limit=1)

    for _ in range(3):
        result = coupon_service.validate_coupon("SAVE20", vendor.id, 200)
        assert result.uses_remaining == 1

    assert db_session.query(CouponUsage).count() == 0


def test_create_coupon_normalizes_code(db_session, vendor):
    coupon = coupon_service.create_coupon(vendor.id, {
        "code": " diwali ",
        "discount_type": "fixed",
        "discount_value": 100,
    })
    assert coupon.code == "DIWALI"
    assert coupon.status == "active"


def test_create_coupon_rejects_duplicates_and_bad_values(db_session, vendor):
    coupon_service.create_coupon(vendor.id, {"code": "A1", "discount_type": "fixed", "discount_value": 1})

    with pytest.raises(CouponError):
        coupon_service.create_coupon(vendor.id, {"code": "a1", "discount_type": "fixed", "discount_value": 1})
    with pytest.raises(CouponError):
        coupon_service.create_coupon(vendor.id, {"code": "B1", "discount_type": "percentage", "discount_value": 10001})
    with pytest.raises(CouponError):
        coupon_service.create_coupon(vendor.id, {"code": "C1", "discount_type": "bogo", "discount_value": 1})


@pytest.mark.parametrize("overrides", [
    {"minimum_subtotal_cents": -1},
    {"status": "paused"},
    {"status": "ACTIVE"},
])
def test_create_coupon_rejects_bad_minimum_and_status(db_session, vendor, overrides):
    data = {"code": "FEST", "discount_type": "fixed", "discount_value": 50}
    data.update(overrides)

    with pytest.raises(CouponError):
        coupon_service.create_coupon(vendor.id, data)
    assert coupon_service.list_coupons(vendor.id) == []


def test_create_coupon_accepts_inactive_status(db_session, vendor):
    coupon = coupon_service.create_coupon(vendor.id, {
        "code": "LATER",
        "discount_type": "fixed",
        "discount_value": 50,
        "minimum_subtotal_cents": 0,
        "status": "inactive",
    })
    assert coupon.status == "inactive"
    assert coupon_service.list_coupons(vendor.id, active_only=True) == []


def test_list_coupons_reports_usage(db_session, vendor):
    make_coupon(db_session, vendor)
    make_coupon(db_session, vendor, code="OFF", status="inactive")

    everything = coupon_service.list_coupons(vendor.id)
    active = coupon_service.list_coupons(vendor.id, active_only=True)

    assert {c["code"] for c in everything} == {"SAVE20", "OFF"}
    assert [c["code"] for c in active] == ["SAVE20"]
    assert active[0]["used_count"] == 0
