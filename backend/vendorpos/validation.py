from __future__ import annotations
from datetime import date, datetime
from vendorpos.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .services.pricing_service import CartLine, ChargeInput, DiscountRule, DEFAULT_TAX_RATE_BPS
from .services.checkout_service import PaymentPlan


# Maximum single amount: 9,999,999.99 in major units (999,999,999 minor units)
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


COUPON_POLICY = ModelValidationPolicy(
    writable_fields={
        "code",
        "description",
        "discount_type",
        "discount_value",
        "minimum_subtotal_cents",
        "starts_at",
        "expires_at",
        "usage_limit",
        "status",
    },
    required_on_create={"code", "discount_type", "discount_value"},
)

LEDGER_ENTRY_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id",
        "supplier_id",
        "direction",
        "amount_cents",
        "category",
        "payment_method",
        "description",
        "note",
        "occurred_at",
    },
    required_on_create={"direction", "amount_cents"},
)


def parse_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer parsing: ints and plain-digit strings only.
    Floats, decimals, scientific notation and booleans are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            parsed = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and parsed < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and parsed > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return parsed


def parse_optional_int(value: Any, field: str, **bounds) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_int(value, field, **bounds)


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_datetime_arg(value: Any, field: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_date_arg(value: Any, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, col.key, maximum=MAX_AMOUNT_CENTS)

    if isinstance(coltype, Boolean):
        return parse_bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            dt = parse_datetime_arg(value, col.key)
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        return parse_date_arg(value, col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool = False,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable and col.default is None:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


# =============================================================================
# CHECKOUT PAYLOADS
# =============================================================================

def parse_cart_items(raw: Any) -> list[dict]:
    """[{item_type, item_id, quantity}] with strict integer ids and quantities."""
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")
    items = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{index}] must be an object")
        items.append({
            "item_type": entry.get("item_type", "product"),
            "item_id": parse_int(entry.get("item_id"), f"items[{index}].item_id", minimum=1),
            "quantity": parse_int(entry.get("quantity"), f"items[{index}].quantity"),
        })
    return items


def parse_cart_lines(raw: Any) -> list[CartLine]:
    """Lines that already carry a price snapshot (used by the preview endpoint)."""
    if not isinstance(raw, list):
        raise ValidationError("lines must be a list")
    lines = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"lines[{index}] must be an object")
        lines.append(CartLine(
            item_type=entry.get("item_type", "product"),
            item_id=parse_int(entry.get("item_id"), f"lines[{index}].item_id"),
            name=str(entry.get("name") or ""),
            unit_price_cents=parse_int(entry.get("unit_price_cents"), f"lines[{index}].unit_price_cents"),
            quantity=parse_int(entry.get("quantity"), f"lines[{index}].quantity"),
            unit=str(entry.get("unit") or "pcs"),
        ))
    return lines


def parse_charges(raw: Any, default_rate_bps: int = DEFAULT_TAX_RATE_BPS) -> list[ChargeInput]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("charges must be a list")
    charges = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"charges[{index}] must be an object")
        label = str(entry.get("label") or "").strip()
        if not label:
            raise ValidationError(f"charges[{index}].label is required")
        rate = entry.get("tax_rate_bps")
        charges.append(ChargeInput(
            label=label,
            base_cents=parse_int(entry.get("base_cents"), f"charges[{index}].base_cents", minimum=0),
            tax_rate_bps=default_rate_bps if rate is None else parse_int(rate, f"charges[{index}].tax_rate_bps", minimum=0),
        ))
    return charges


def parse_discount(raw: Any) -> DiscountRule | None:
    """{"type": "percentage"|"fixed", "value": int} or null. Percentages are basis points."""
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("discount must be an object")
    kind = raw.get("type")
    if kind in (None, "none"):
        return None
    return DiscountRule(kind=kind, value=parse_int(raw.get("value"), "discount.value"))


def parse_payment_plan(raw: Any) -> PaymentPlan:
    if not isinstance(raw, dict):
        raise ValidationError("payment must be an object")
    payment_type = raw.get("type")
    if not payment_type:
        raise ValidationError("payment.type is required")
    amount = raw.get("amount_cents")
    # range checks belong to resolve_payment so they report {min, max}
    if amount is not None:
        amount = parse_int(amount, "payment.amount_cents")
    return PaymentPlan(
        payment_type=payment_type,
        amount_cents=amount,
        payment_method=raw.get("method") or "cash",
        notes=raw.get("notes"),
        reference=raw.get("reference"),
    )
