# Overview: Service-layer operations for vendors; resolves per-vendor checkout settings.

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from flask import current_app

from ..extensions import db
from ..models import Vendor


class VendorError(Exception):
    """Raised for vendor lookup/creation errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class VendorNotFound(VendorError):
    status_code = 404


@dataclass(frozen=True)
class VendorSettings:
    """
    Resolved, immutable settings snapshot for one vendor.

    Passed explicitly into the checkout core so that nothing reads
    ambient request/session state.
    """
    vendor_id: int
    tax_rate_bps: int
    charge_tax_rate_bps: int
    low_stock_threshold: int
    high_stock_threshold: int
    exclude_pos_payments_from_balance: bool

    def to_dict(self) -> dict:
        return {
            "vendor_id": self.vendor_id,
            "tax_rate_bps": self.tax_rate_bps,
            "charge_tax_rate_bps": self.charge_tax_rate_bps,
            "low_stock_threshold": self.low_stock_threshold,
            "high_stock_threshold": self.high_stock_threshold,
            "exclude_pos_payments_from_balance": self.exclude_pos_payments_from_balance,
        }


def _pick(override, default):
    return default if override is None else override


def resolve_settings(vendor: Vendor, config: Mapping | None = None) -> VendorSettings:
    """Vendor column when set, deployment config otherwise."""
    cfg = current_app.config if config is None else config
    return VendorSettings(
        vendor_id=vendor.id,
        tax_rate_bps=_pick(vendor.tax_rate_bps, cfg.get("POS_TAX_RATE_BPS", 1800)),
        charge_tax_rate_bps=cfg.get("POS_CHARGE_TAX_RATE_BPS", 1800),
        low_stock_threshold=_pick(vendor.low_stock_threshold, cfg.get("STOCK_LOW_THRESHOLD", 10)),
        high_stock_threshold=_pick(vendor.high_stock_threshold, cfg.get("STOCK_HIGH_THRESHOLD", 100)),
        exclude_pos_payments_from_balance=_pick(
            vendor.exclude_pos_payments_from_balance,
            cfg.get("LEDGER_EXCLUDE_POS_PAYMENTS", True),
        ),
    )


def get_vendor(vendor_id: int, *, require_active: bool = True) -> Vendor:
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        raise VendorNotFound(f"Vendor {vendor_id} not found")
    if require_active and not vendor.is_active:
        raise VendorNotFound(f"Vendor {vendor_id} is inactive")
    return vendor


def get_vendor_settings(vendor_id: int) -> VendorSettings:
    return resolve_settings(get_vendor(vendor_id))


def create_vendor(name: str, code: str, **overrides) -> Vendor:
    code = (code or "").strip().upper()
    if not name or not name.strip():
        raise VendorError("Vendor name is required")
    if not code:
        raise VendorError("Vendor code is required")
    if db.session.query(Vendor).filter_by(code=code).first():
        raise VendorError(f"Vendor code {code} already exists")

    vendor = Vendor(name=name.strip(), code=code, **overrides)
    db.session.add(vendor)
    db.session.commit()
    return vendor


def allocate_bill_number(vendor: Vendor) -> str:
    """
    Reserve the next bill number for a vendor (no commit).

    Vendor carries a version_id, so two concurrent checkouts that read the
    same counter fail with StaleDataError on flush and are retried.
    """
    seq = vendor.next_bill_number or 1
    vendor.next_bill_number = seq + 1
    db.session.flush()
    return f"BILL-{vendor.id}-{seq:06d}"
