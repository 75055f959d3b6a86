# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/partspos/routes/sales.py
"""Sales API routes: checkout and sale reads."""

from flask import Blueprint, request, jsonify, current_app

from ..errors import CoreError, ValidationError
from ..services import sales_service
from ..validation import parse_lines
from . import json_body, query_date, query_limit, retry_write


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Record a completed sale.

    Request body:
    {
        "items": [
            {"product_id": "P...", "product_name": "Brake pad", "quantity": 2,
             "unit_price_cents": 1500, "total_price_cents": 3000}
        ],
        "payment_method": "Cash",
        "cashier_id": "u-17",
        "customer_id": "C...",  (optional; required for Credit)
        "customer_name": "Ana"  (optional)
    }

    Returns:
        201: sale with lines
        400: invalid input
        404: product or customer not found
        409: insufficient stock or credit limit exceeded
    """
    try:
        data = json_body()
        items = parse_lines(
            data,
            int_fields={"quantity", "unit_price_cents"},
            optional_int_fields={"total_price_cents"},
            str_fields={"product_id", "product_name"},
        )
        payment_method = data.get("payment_method")
        cashier_id = data.get("cashier_id")
        if not payment_method:
            raise ValidationError("payment_method is required")
        if not cashier_id:
            raise ValidationError("cashier_id is required")

        sale = retry_write(lambda: sales_service.record_sale(
            items=items,
            payment_method=payment_method,
            cashier_id=str(cashier_id),
            customer_id=data.get("customer_id") or None,
            customer_name=data.get("customer_name") or None,
        ))
    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict()}), 201


@sales_bp.get("")
def list_sales_route():
    """
    List sales newest first.

    Query params:
    - period: "today" (optional)
    - limit: int (optional, default 500)
    """
    sales = sales_service.list_sales(period=request.args.get("period") or None, limit=query_limit())
    return jsonify({"items": [s.to_dict(include_items=False) for s in sales], "count": len(sales)})


@sales_bp.get("/stats/daily-summary")
def daily_summary_route():
    """Revenue, cost of goods and gross profit for ?date=YYYY-MM-DD (default today, UTC)."""
    return jsonify(sales_service.daily_sales_summary(query_date("date")))


@sales_bp.get("/<sale_id>")
def get_sale_route(sale_id: str):
    sale = sales_service.get_sale(sale_id)
    return jsonify({"sale": sale.to_dict()})
