# Overview: Flask API routes for the POS counter; pricing previews, cart checks and checkout.

"""POS API routes (vendor-scoped)"""

from flask import Blueprint, request, jsonify, g
from flask import current_app

from ..decorators import require_vendor
from ..services import checkout_service, pricing_service, stock_service
from ..services.pricing_service import PricingError
from ..services.coupon_service import CouponError, validate_coupon
from ..services.stock_service import StockError
from ..services.checkout_service import CheckoutError, CommitError
from ..validation import (
    ValidationError,
    parse_cart_items,
    parse_cart_lines,
    parse_charges,
    parse_discount,
    parse_int,
    parse_payment_plan,
)


pos_bp = Blueprint("pos", __name__, url_prefix="/api/vendors/<int:vendor_id>")


def _error(e, status=None):
    return jsonify({"error": str(e), "details": getattr(e, "details", {})}), status or e.status_code


def _cart_lines(vendor_id: int, data: dict):
    """Catalog-priced lines from `items`, or client-priced `lines` for quick previews."""
    if "items" in data:
        return checkout_service.resolve_cart_lines(vendor_id, parse_cart_items(data.get("items")))
    return parse_cart_lines(data.get("lines"))


@pos_bp.post("/pos/price")
@require_vendor
def price_cart_route(vendor_id: int):
    """
    Price a cart without writing anything.

    Body: items | lines, discount?, coupon_code?, charges?
    The coupon is validated (no side effects) against the cart subtotal.
    """
    settings = g.vendor_settings
    try:
        data = request.get_json(silent=True) or {}
        lines = _cart_lines(vendor_id, data)
        charges = parse_charges(data.get("charges"), settings.charge_tax_rate_bps)
        rule = parse_discount(data.get("discount"))
        coupon_code = data.get("coupon_code")
        if coupon_code and rule is not None:
            return jsonify({"error": "A coupon and a manual discount cannot be combined", "details": {}}), 400

        coupon = None
        if coupon_code:
            subtotal = pricing_service.price_cart(lines, tax_rate_bps=settings.tax_rate_bps).subtotal_cents
            coupon = validate_coupon(coupon_code, vendor_id, subtotal)
            rule = coupon.to_rule()

        result = pricing_service.price_cart(lines, rule, charges, tax_rate_bps=settings.tax_rate_bps)
        body = result.to_dict()
        body["coupon"] = coupon.to_dict() if coupon else None
        return jsonify(body), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (PricingError, CouponError, StockError) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to price cart")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/pos/cart/check")
@require_vendor
def check_cart_line_route(vendor_id: int):
    """
    Check that a product can be added / incremented in the cart.

    Body: product_id, quantity (the line's total desired quantity)
    409 with {available, requested} when stock is short.
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = parse_int(data.get("product_id"), "product_id", minimum=1)
        quantity = parse_int(data.get("quantity"), "quantity")
        available = stock_service.reserve(vendor_id=vendor_id, product_id=product_id, quantity=quantity)
        return jsonify({"ok": True, "product_id": product_id, "available": available, "requested": quantity}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StockError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to check cart line")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/pos/checkout")
@require_vendor
def checkout_route(vendor_id: int):
    """
    Commit a checkout.

    Body: items, customer_id? ("walk-in" or null for none), discount?,
          coupon_code?, charges?, payment {type, amount_cents?, method, notes?}
    """
    settings = g.vendor_settings
    try:
        data = request.get_json(silent=True) or {}
        lines = checkout_service.resolve_cart_lines(vendor_id, parse_cart_items(data.get("items")))
        charges = parse_charges(data.get("charges"), settings.charge_tax_rate_bps)
        discount = parse_discount(data.get("discount"))
        plan = parse_payment_plan(data.get("payment"))

        customer_id = data.get("customer_id")
        if customer_id not in (None, checkout_service.WALK_IN):
            customer_id = parse_int(customer_id, "customer_id", minimum=1)

        bill = checkout_service.commit_checkout(
            vendor_id=vendor_id,
            lines=lines,
            discount=discount,
            coupon_code=data.get("coupon_code"),
            charges=charges,
            customer_id=customer_id,
            payment_plan=plan,
            settings=settings,
        )
        current_app.logger.info(
            "Checkout committed: vendor=%s bill=%s total=%s paid=%s",
            vendor_id, bill.bill_number, bill.grand_total_cents, bill.paid_cents,
        )
        return jsonify({"bill": checkout_service.bill_detail(bill)}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CommitError as e:
        if e.status_code >= 500:
            current_app.logger.exception("Checkout rolled back at stage %s", e.stage)
            return jsonify({"error": "Checkout failed", "details": {"stage": e.stage}}), 500
        current_app.logger.warning("Checkout rolled back at stage %s: %s", e.stage, e.cause)
        return _error(e)
    except (PricingError, CouponError, StockError, CheckoutError) as e:
        current_app.logger.warning("Checkout rejected for vendor %s: %s", vendor_id, e)
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to commit checkout")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/bills/<int:bill_id>")
@require_vendor
def get_bill_route(vendor_id: int, bill_id: int):
    """Get a bill with lines, charges, payments and its order."""
    bill = checkout_service.get_bill(vendor_id, bill_id)
    if not bill:
        return jsonify({"error": "Bill not found"}), 404
    return jsonify({"bill": checkout_service.bill_detail(bill)}), 200
