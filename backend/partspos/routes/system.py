# backend/partspos/routes/system.py
"""
System health endpoint.

Checks database connectivity and reports ledger drift counts so a deployment
can tell at a glance whether stock counters and the ledger still agree.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import InventoryTransaction, Product
from ..services.ledger_service import find_ledger_drift
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        transaction_count = db.session.query(InventoryTransaction).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "inventory_transactions": transaction_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_ledger_health() -> dict:
    """Degraded (still operational) when stock counters and the ledger disagree."""
    start_time = time.time()
    try:
        drift = find_ledger_drift()
        elapsed_ms = (time.time() - start_time) * 1000
        mismatches = len(drift["stock_mismatches"])
        arithmetic = len(drift["arithmetic_errors"])

        return {
            "status": "degraded" if (mismatches or arithmetic) else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "stock_mismatches": mismatches,
                "arithmetic_errors": arithmetic,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Ledger health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Ledger check error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    ledger_health = check_ledger_health() if database_health["status"] == "healthy" else {
        "status": "unhealthy",
        "error": "Skipped: database unavailable",
    }

    all_checks = [database_health, ledger_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "ledger": ledger_health,
        }
    }, http_status
