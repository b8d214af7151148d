# Overview: Flask API routes for coupons; issuing, listing and side-effect-free validation.

from flask import Blueprint, request, jsonify
from flask import current_app

from ..models import Coupon
from ..decorators import require_vendor
from ..services import coupon_service
from ..services.coupon_service import CouponError
from ..validation import (
    COUPON_POLICY,
    ValidationError,
    parse_bool,
    parse_int,
    validate_payload,
)


coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/vendors/<int:vendor_id>/coupons")


@coupons_bp.get("")
@require_vendor
def list_coupons_route(vendor_id: int):
    active_only = parse_bool(request.args.get("active_only"))
    return jsonify({"coupons": coupon_service.list_coupons(vendor_id, active_only=active_only)}), 200


@coupons_bp.post("")
@require_vendor
def create_coupon_route(vendor_id: int):
    """
    Issue a coupon.

    Percentage discounts are basis points (2000 = 20%); fixed discounts
    are minor units.
    """
    try:
        patch = validate_payload(
            model=Coupon,
            payload=request.get_json(silent=True) or {},
            policy=COUPON_POLICY,
        )
        coupon = coupon_service.create_coupon(vendor_id, patch)
        return jsonify({"coupon": coupon.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CouponError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create coupon")
        return jsonify({"error": "Internal server error"}), 500


@coupons_bp.post("/validate")
@require_vendor
def validate_coupon_route(vendor_id: int):
    """
    Validate a code against a subtotal. Never records usage.

    Body: code, subtotal_cents
    """
    try:
        data = request.get_json(silent=True) or {}
        subtotal = parse_int(data.get("subtotal_cents"), "subtotal_cents", minimum=0)
        result = coupon_service.validate_coupon(data.get("code"), vendor_id, subtotal)
        return jsonify({"valid": True, "coupon": result.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CouponError as e:
        return jsonify({
            "valid": False,
            "error": str(e),
            "reason": e.reason,
            "details": e.details,
        }), e.status_code
    except Exception:
        current_app.logger.exception("Failed to validate coupon")
        return jsonify({"error": "Internal server error"}), 500
