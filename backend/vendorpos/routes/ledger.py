# Overview: Flask API routes for the khata ledger; postings, manual entries and party balances.

from flask import Blueprint, request, jsonify
from flask import current_app

from ..models import LedgerTransaction
from ..decorators import require_vendor
from ..services import balance_service, ledger_service
from ..services.ledger_service import LedgerError
from ..validation import (
    LEDGER_ENTRY_POLICY,
    ValidationError,
    parse_bool,
    parse_datetime_arg,
    parse_optional_int,
    validate_payload,
)

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start_date / end_date filtering is inclusive at both ends.

Balances:
- customer: out - in (positive = you will get)
- supplier: in - out (positive = you will give)
- postings flagged exclude_from_balance are skipped unless ?include_excluded=true
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/vendors/<int:vendor_id>")


@ledger_bp.get("/ledger-transactions")
@require_vendor
def list_ledger_transactions_route(vendor_id: int):
    try:
        customer_id = parse_optional_int(request.args.get("customer_id"), "customer_id", minimum=1)
        supplier_id = parse_optional_int(request.args.get("supplier_id"), "supplier_id", minimum=1)
        limit = parse_optional_int(request.args.get("limit"), "limit", minimum=1, maximum=500)
        start_dt = parse_datetime_arg(request.args.get("start_date"), "start_date")
        end_dt = parse_datetime_arg(request.args.get("end_date"), "end_date")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        postings = ledger_service.list_ledger_transactions(
            vendor_id,
            customer_id=customer_id,
            supplier_id=supplier_id,
            direction=request.args.get("direction") or None,
            category=request.args.get("category") or None,
            start=start_dt,
            end=end_dt,
            include_excluded=parse_bool(request.args.get("include_excluded"), default=True),
            limit=limit,
        )
    except LedgerError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code

    return jsonify({"transactions": [p.to_dict() for p in postings]}), 200


@ledger_bp.post("/ledger-transactions")
@require_vendor
def create_ledger_transaction_route(vendor_id: int):
    """
    Manual khata entry: direction 'out' = you gave, 'in' = you got.

    Body: customer_id | supplier_id, direction, amount_cents, category?,
          payment_method?, description?, note?, occurred_at?
    """
    try:
        patch = validate_payload(
            model=LedgerTransaction,
            payload=request.get_json(silent=True) or {},
            policy=LEDGER_ENTRY_POLICY,
        )
        posting = ledger_service.create_ledger_transaction(vendor_id, patch)
        return jsonify({"transaction": posting.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except LedgerError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create ledger transaction")
        return jsonify({"error": "Internal server error"}), 500


def _balance_response(vendor_id: int, **party):
    try:
        summary = balance_service.get_party_summary(
            vendor_id,
            include_excluded=parse_bool(request.args.get("include_excluded")),
            **party,
        )
    except LedgerError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    return jsonify(summary), 200


@ledger_bp.get("/customers/<int:customer_id>/balance")
@require_vendor
def customer_balance_route(vendor_id: int, customer_id: int):
    return _balance_response(vendor_id, customer_id=customer_id)


@ledger_bp.get("/suppliers/<int:supplier_id>/balance")
@require_vendor
def supplier_balance_route(vendor_id: int, supplier_id: int):
    return _balance_response(vendor_id, supplier_id=supplier_id)


@ledger_bp.get("/balances")
@require_vendor
def list_balances_route(vendor_id: int):
    party_type = request.args.get("party_type", balance_service.PARTY_CUSTOMER)
    try:
        items = balance_service.list_party_balances(
            vendor_id,
            party_type,
            include_excluded=parse_bool(request.args.get("include_excluded")),
        )
    except LedgerError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code

    return jsonify({"party_type": party_type, "balances": items}), 200
