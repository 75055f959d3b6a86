# backend/partspos/routes/inventory.py
"""
Inventory routes: manual count adjustments and ledger reads.

Time semantics:
- startDate / endDate are ISO-8601 dates and inclusive whole days (UTC).
- Results are newest first.
"""
from flask import Blueprint, current_app, request

from ..errors import CoreError, ValidationError
from ..services import inventory_service, ledger_service
from ..validation import coerce_int
from . import json_body, query_date, query_limit, retry_write


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")

ADJUST_FIELDS = {"product_id", "new_physical_count", "notes"}


@inventory_bp.post("/inventory/adjust")
def adjust_inventory_route():
    """
    Reconcile a physical count against recorded stock.

    Request body:
    {
        "product_id": "P1718...",
        "new_physical_count": 12,
        "notes": "Cycle count aisle 4"  (optional)
    }

    Returns:
        200: before/after/delta summary
        400: invalid input
        404: product not found
    """
    try:
        payload = json_body()
        unknown = sorted(set(payload) - ADJUST_FIELDS)
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(unknown)}")
        product_id = payload.get("product_id")
        if not product_id:
            raise ValidationError("product_id is required")
        if payload.get("new_physical_count") is None:
            raise ValidationError("new_physical_count is required")
        count = coerce_int("new_physical_count", payload["new_physical_count"])
        notes = (payload.get("notes") or "").strip() or None

        result = retry_write(lambda: inventory_service.adjust_stock(
            product_id=product_id,
            new_physical_count=count,
            notes=notes,
        ))
    except CoreError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return {"error": "Internal server error"}, 500

    return {"message": "Stock adjusted successfully.", "adjustment": result.to_dict()}, 200


@inventory_bp.get("/inventory-transactions")
def inventory_transactions_route():
    """
    List ledger entries.

    Query params:
    - type: Sale | Purchase | Return | Adjustment (optional)
    - startDate, endDate: ISO-8601 dates, inclusive (optional)
    - productId: str (optional)
    - limit: int (optional, default 500)
    """
    transactions = ledger_service.list_inventory_transactions(
        transaction_type=request.args.get("type") or None,
        start_date=query_date("startDate"),
        end_date=query_date("endDate"),
        product_id=request.args.get("productId") or None,
        limit=query_limit(),
    )
    return {"items": [tx.to_dict() for tx in transactions], "count": len(transactions)}


@inventory_bp.get("/inventory/reconcile")
def reconcile_route():
    """Report products whose stock counter disagrees with their latest ledger entry."""
    drift = ledger_service.find_ledger_drift()
    drift["ok"] = not drift["stock_mismatches"] and not drift["arithmetic_errors"]
    return drift
