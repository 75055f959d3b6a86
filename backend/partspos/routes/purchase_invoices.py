# Overview: Flask API routes for supplier invoices, receiving and supplier payments.

# backend/partspos/routes/purchase_invoices.py
"""
Purchase Invoice API Routes

WHY: Supplier invoices drive stock in (receiving) and money out (payments).

DESIGN:
- Header CRUD: create / list / get / update / delete (delete only while the
  invoice is unreceived and unpaid)
- POST /<id>/receive adds stock for every line in one transaction
- POST /<id>/payments lowers the balance due; overpayment is rejected
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import CoreError, ValidationError
from ..models import PurchaseInvoice, PurchaseInvoicePayment
from ..services import payment_service, receive_service
from ..validation import ModelValidationPolicy, parse_lines, validate_payload
from . import json_body, query_limit, retry_write


purchase_invoices_bp = Blueprint("purchase_invoices", __name__, url_prefix="/api/purchase-invoices")

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={"invoice_number", "invoice_date", "supplier_name", "total_amount_cents", "payment_terms"},
    required_on_create={"invoice_number", "invoice_date", "supplier_name", "total_amount_cents", "payment_terms"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"amount_cents", "payment_method", "payment_date", "notes"},
    required_on_create={"amount_cents", "payment_method"},
)


def _internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# INVOICE HEADERS
# =============================================================================

@purchase_invoices_bp.post("")
def create_invoice_route():
    """
    Create a supplier invoice (Unpaid, balance due = total, not processed).

    Request body:
    {
        "invoice_number": "F-2024-118",
        "invoice_date": "2024-06-01",
        "supplier_name": "Repuestos Norte",
        "total_amount_cents": 250000,
        "payment_terms": "Credit"
    }
    """
    try:
        patch = validate_payload(model=PurchaseInvoice, payload=json_body(), policy=INVOICE_POLICY, partial=False)
        invoice = retry_write(lambda: receive_service.create_purchase_invoice(**patch))
    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to create purchase invoice")

    return jsonify({"invoice": invoice.to_dict()}), 201


@purchase_invoices_bp.get("")
def list_invoices_route():
    """
    List invoices, newest invoice date first.

    Query params:
    - processed: "true" | "false" (optional)
    - limit: int (optional, default 500)
    """
    raw = request.args.get("processed")
    if raw is None or raw == "":
        processed = None
    elif raw.lower() in ("true", "1"):
        processed = True
    elif raw.lower() in ("false", "0"):
        processed = False
    else:
        raise ValidationError("processed must be true or false")

    invoices = receive_service.list_purchase_invoices(processed=processed, limit=query_limit())
    return jsonify({"items": [i.to_dict(include_items=False) for i in invoices], "count": len(invoices)})


@purchase_invoices_bp.get("/<invoice_id>")
def get_invoice_route(invoice_id: str):
    invoice = receive_service.get_purchase_invoice(invoice_id)
    return jsonify({"invoice": invoice.to_dict()})


@purchase_invoices_bp.put("/<invoice_id>")
def update_invoice_route(invoice_id: str):
    """Edit header fields; a new total recomputes balance due and payment status."""
    try:
        patch = validate_payload(model=PurchaseInvoice, payload=json_body(), policy=INVOICE_POLICY, partial=True)
        invoice = retry_write(lambda: receive_service.update_purchase_invoice(invoice_id, **patch))
    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to update purchase invoice")

    return jsonify({"invoice": invoice.to_dict()})


@purchase_invoices_bp.delete("/<invoice_id>")
def delete_invoice_route(invoice_id: str):
    try:
        retry_write(lambda: receive_service.delete_purchase_invoice(invoice_id))
    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to delete purchase invoice")

    return jsonify({"ok": True})


# =============================================================================
# RECEIVING
# =============================================================================

@purchase_invoices_bp.post("/<invoice_id>/receive")
def receive_invoice_route(invoice_id: str):
    """
    Receive goods against the invoice.

    Request body:
    {
        "items": [
            {"product_id": "P...", "quantity": 10, "cost_price_cents": 900,
             "new_selling_price_cents": 1500}  (new price optional)
        ],
        "allow_rereceive": false  (optional)
    }

    Returns:
        200: invoice with received lines
        400: invalid input
        404: invoice or product not found
        409: invoice already received
    """
    try:
        data = json_body()
        items = parse_lines(
            data,
            int_fields={"quantity", "cost_price_cents"},
            optional_int_fields={"new_selling_price_cents"},
            str_fields={"product_id"},
        )
        allow_rereceive = data.get("allow_rereceive", False)
        if not isinstance(allow_rereceive, bool):
            raise ValidationError("allow_rereceive must be a boolean")

        invoice = retry_write(lambda: receive_service.receive_purchase_invoice(
            invoice_id, items, allow_rereceive=allow_rereceive,
        ))
    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to receive purchase invoice")

    return jsonify({"message": "Invoice processed successfully.", "invoice": invoice.to_dict()})


# =============================================================================
# PAYMENTS
# =============================================================================

@purchase_invoices_bp.post("/<invoice_id>/payments")
def record_payment_route(invoice_id: str):
    """
    Record a payment to the supplier.

    Request body:
    {
        "amount_cents": 40000,
        "payment_method": "Transfer",
        "payment_date": "2024-06-15",  (optional, default today)
        "notes": "..."  (optional)
    }

    Returns:
        201: new balance and payment status
        409: amount exceeds the balance due
    """
    try:
        patch = validate_payload(
            model=PurchaseInvoicePayment, payload=json_body(), policy=PAYMENT_POLICY, partial=False,
        )
        result = retry_write(lambda: payment_service.record_payment(invoice_id=invoice_id, **patch))
    except CoreError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _internal_error("Failed to record payment")

    return jsonify(result.to_dict()), 201


@purchase_invoices_bp.get("/<invoice_id>/payments")
def list_payments_route(invoice_id: str):
    payments = payment_service.list_payments(invoice_id)
    return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)})
