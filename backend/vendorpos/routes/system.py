# backend/vendorpos/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Vendor, Product, Bill, LedgerTransaction
from vendorpos.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity with a few cheap counts.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "vendors": db.session.query(Vendor).count(),
            "products": db.session.query(Product).count(),
            "bills": db.session.query(Bill).count(),
            "ledger_transactions": db.session.query(LedgerTransaction).count(),
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }

    elapsed_ms = (time.time() - start_time) * 1000
    return {
        "status": "healthy",
        "latency_ms": round(elapsed_ms, 2),
        "details": details,
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    start_time = time.time()
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
        },
    }
    return response, 200 if healthy else 503


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info. Never exposes keys or credentials."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
        "defaults": {
            "tax_rate_bps": current_app.config.get("POS_TAX_RATE_BPS"),
            "stock_low_threshold": current_app.config.get("STOCK_LOW_THRESHOLD"),
            "stock_high_threshold": current_app.config.get("STOCK_HIGH_THRESHOLD"),
        },
    }
