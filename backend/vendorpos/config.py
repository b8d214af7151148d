# backend/vendorpos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/vendorpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///vendorpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Deployment-wide checkout defaults; a vendor row may override each of them.
    # Rates are basis points (1800 = 18%).
    POS_TAX_RATE_BPS = _env_int("POS_TAX_RATE_BPS", 1800)
    POS_CHARGE_TAX_RATE_BPS = _env_int("POS_CHARGE_TAX_RATE_BPS", 1800)

    STOCK_LOW_THRESHOLD = _env_int("STOCK_LOW_THRESHOLD", 10)
    STOCK_HIGH_THRESHOLD = _env_int("STOCK_HIGH_THRESHOLD", 100)

    # POS receipts are recorded on the customer's khata but kept out of the due balance
    LEDGER_EXCLUDE_POS_PAYMENTS = _env_bool("LEDGER_EXCLUDE_POS_PAYMENTS", True)

    # Take the SQLite write lock up front so concurrent checkouts serialize
    SQLITE_BEGIN_IMMEDIATE = _env_bool("SQLITE_BEGIN_IMMEDIATE", True)

    # POS frontend dev servers; comma-separated override
    CORS_ALLOWED_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    )
