# backend/vendorpos/routes/inventory.py
"""
Stock ledger routes (vendor-scoped).

Every stock change goes through stock_service and appends one movement.
Quantities are strict positive integers.
"""
from flask import Blueprint, request, jsonify, g
from flask import current_app

from ..decorators import require_vendor
from ..services import stock_service
from ..services.stock_service import StockError, StockThresholds
from ..validation import (
    ValidationError,
    parse_bool,
    parse_date_arg,
    parse_int,
    parse_optional_int,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/vendors/<int:vendor_id>")


def _thresholds() -> StockThresholds:
    settings = g.vendor_settings
    return StockThresholds(low=settings.low_stock_threshold, high=settings.high_stock_threshold)


@inventory_bp.post("/products/<int:product_id>/stock-in")
@require_vendor
def stock_in_route(vendor_id: int, product_id: int):
    """
    Receive stock.

    Body: quantity, reason, supplier_name?, batch_number?,
          purchase_cost_cents?, expiry_date? (YYYY-MM-DD)
    """
    payload = request.get_json(silent=True) or {}

    try:
        quantity = parse_int(payload.get("quantity"), "quantity", minimum=1)
        cost = parse_optional_int(payload.get("purchase_cost_cents"), "purchase_cost_cents", minimum=0)
        expiry = parse_date_arg(payload.get("expiry_date"), "expiry_date")
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        movement = stock_service.stock_in(
            vendor_id=vendor_id,
            product_id=product_id,
            quantity=quantity,
            reason=payload.get("reason"),
            supplier_name=payload.get("supplier_name"),
            batch_number=payload.get("batch_number"),
            purchase_cost_cents=cost,
            expiry_date=expiry,
        )
    except StockError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to stock in")
        return jsonify({"error": "Internal server error"}), 500

    return {"movement": movement.to_dict()}, 201


@inventory_bp.post("/products/<int:product_id>/stock-out")
@require_vendor
def stock_out_route(vendor_id: int, product_id: int):
    """
    Remove stock (damage, adjustment...). Rejected with 409 when short.

    Body: quantity, reason? (default "Manual adjustment")
    """
    payload = request.get_json(silent=True) or {}

    try:
        quantity = parse_int(payload.get("quantity"), "quantity", minimum=1)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        movement = stock_service.stock_out(
            vendor_id=vendor_id,
            product_id=product_id,
            quantity=quantity,
            reason=payload.get("reason"),
        )
    except StockError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to stock out")
        return jsonify({"error": "Internal server error"}), 500

    return {"movement": movement.to_dict()}, 201


@inventory_bp.get("/stock-movements")
@require_vendor
def list_movements_route(vendor_id: int):
    """Movements in append order; ?newest_first=true reverses, ?limit caps."""
    try:
        product_id = parse_optional_int(request.args.get("product_id"), "product_id", minimum=1)
        limit = parse_optional_int(request.args.get("limit"), "limit", minimum=1, maximum=1000)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        movements = stock_service.get_movements(
            vendor_id,
            product_id,
            newest_first=parse_bool(request.args.get("newest_first")),
            limit=limit,
        )
    except StockError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code

    return {"movements": [m.to_dict() for m in movements]}, 200


@inventory_bp.get("/stock-status")
@require_vendor
def stock_status_route(vendor_id: int):
    return stock_service.get_stock_overview(vendor_id, _thresholds()), 200
