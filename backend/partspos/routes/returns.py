# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/partspos/routes/returns.py
"""
Return Processing API Routes

WHY: Put returned goods back on the shelf against the original sale.

DESIGN:
- A return always references the original sale
- Quantities are limited to what is still recorded on the sale
- All lines succeed or none do
"""

from flask import Blueprint, jsonify, current_app

from ..errors import CoreError, ValidationError
from ..services import return_service
from ..validation import parse_lines
from . import json_body, retry_write


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
def process_return_route():
    """
    Process a return.

    Request body:
    {
        "sale_id": "S...",
        "items": [{"product_id": "P...", "quantity": 2}]
    }

    Returns:
        200: refund total, updated sale and ledger entries
        400: invalid input
        404: sale not found
        409: return exceeds the quantity remaining on the sale
    """
    try:
        data = json_body()
        sale_id = data.get("sale_id")
        if not sale_id:
            raise ValidationError("sale_id is required")
        items = parse_lines(data, int_fields={"quantity"}, str_fields={"product_id"})

        result = retry_write(lambda: return_service.process_return(sale_id=str(sale_id), items=items))
    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result.to_dict()), 200
