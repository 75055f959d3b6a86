# Overview: Typed error taxonomy shared by the ledger services and the HTTP layer.

"""
Error kinds raised by the core.

- ValidationError (400): malformed input, rejected before any transaction opens.
- NotFoundError (404): a referenced product/sale/invoice/customer is missing.
- ConflictError (409): a business rule failed after locks were taken
  (insufficient stock, overpayment, ...). The transaction is rolled back and the
  caller may retry with corrected input.

Each error carries a machine-readable `kind` and a `details` dict with enough
context (ids, requested vs. available quantities) for the caller to build a
message. Storage errors are never wrapped; they propagate as SQLAlchemy raised them.
"""

from __future__ import annotations


class CoreError(Exception):
    """Base class for all typed core errors."""

    status_code = 500
    kind = "core_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class ValidationError(CoreError):
    """400-level input problem."""
    status_code = 400
    kind = "validation_error"


class NotFoundError(CoreError):
    """404-level missing reference."""
    status_code = 404
    kind = "not_found"


class ConflictError(CoreError):
    """409-level business rule conflict detected inside the transaction."""
    status_code = 409
    kind = "conflict"


class LedgerError(CoreError):
    """An inventory ledger entry was built with inconsistent values."""
    kind = "ledger_error"


# =============================================================================
# NOT FOUND
# =============================================================================

class ProductNotFound(NotFoundError):
    kind = "product_not_found"

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found", {"product_id": product_id})
        self.product_id = product_id


class SaleNotFound(NotFoundError):
    kind = "sale_not_found"

    def __init__(self, sale_id: str):
        super().__init__(f"Sale {sale_id} not found", {"sale_id": sale_id})
        self.sale_id = sale_id


class InvoiceNotFound(NotFoundError):
    kind = "invoice_not_found"

    def __init__(self, invoice_id: str):
        super().__init__(f"Purchase invoice {invoice_id} not found", {"invoice_id": invoice_id})
        self.invoice_id = invoice_id


class CustomerNotFound(NotFoundError):
    kind = "customer_not_found"

    def __init__(self, customer_id: str):
        super().__init__(f"Customer {customer_id} not found", {"customer_id": customer_id})
        self.customer_id = customer_id


# =============================================================================
# CONFLICTS
# =============================================================================

class InsufficientStock(ConflictError):
    kind = "insufficient_stock"

    def __init__(self, product_id: str, requested: int, available: int, product_name: str | None = None):
        label = f"{product_name} (ID: {product_id})" if product_name else product_id
        super().__init__(
            f"Insufficient stock for product {label}: requested {requested}, available {available}",
            {"product_id": product_id, "requested_quantity": requested, "available_quantity": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ReturnExceedsOriginal(ConflictError):
    kind = "return_exceeds_original"

    def __init__(self, sale_id: str, product_id: str, requested: int, available: int):
        super().__init__(
            f"Cannot return {requested} of product {product_id}: "
            f"only {available} remaining on sale {sale_id}",
            {
                "sale_id": sale_id,
                "product_id": product_id,
                "requested_quantity": requested,
                "available_quantity": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class OverpaymentRejected(ConflictError):
    kind = "overpayment_rejected"

    def __init__(self, invoice_id: str, amount_cents: int, balance_due_cents: int):
        super().__init__(
            f"Payment amount ({amount_cents}) cannot be greater than the balance due ({balance_due_cents})",
            {
                "invoice_id": invoice_id,
                "amount_cents": amount_cents,
                "balance_due_cents": balance_due_cents,
            },
        )
        self.amount_cents = amount_cents
        self.balance_due_cents = balance_due_cents


class InvoiceAlreadyProcessed(ConflictError):
    kind = "invoice_already_processed"

    def __init__(self, invoice_id: str):
        super().__init__(
            f"Purchase invoice {invoice_id} has already been received; "
            "pass allow_rereceive to receive additional goods against it",
            {"invoice_id": invoice_id},
        )


class InvoiceInUse(ConflictError):
    kind = "invoice_in_use"


class InvoiceTotalBelowPaid(ConflictError):
    kind = "invoice_total_below_paid"

    def __init__(self, invoice_id: str, total_amount_cents: int, paid_cents: int):
        super().__init__(
            f"Invoice total ({total_amount_cents}) cannot be lower than the amount already paid ({paid_cents})",
            {"invoice_id": invoice_id, "total_amount_cents": total_amount_cents, "paid_cents": paid_cents},
        )


class DuplicateInvoiceNumber(ConflictError):
    kind = "duplicate_invoice_number"

    def __init__(self, invoice_number: str):
        super().__init__(
            f"Invoice number {invoice_number} already exists",
            {"invoice_number": invoice_number},
        )


class CreditLimitExceeded(ConflictError):
    kind = "credit_limit_exceeded"

    def __init__(self, customer_id: str, new_balance_cents: int, credit_limit_cents: int):
        super().__init__(
            f"Credit sale would raise the outstanding balance of customer {customer_id} "
            f"to {new_balance_cents}, above the credit limit of {credit_limit_cents}",
            {
                "customer_id": customer_id,
                "new_balance_cents": new_balance_cents,
                "credit_limit_cents": credit_limit_cents,
            },
        )


class ProductInUse(ConflictError):
    kind = "product_in_use"

    def __init__(self, product_id: str):
        super().__init__(
            f"Product {product_id} is referenced by ledger entries or document lines and cannot be deleted",
            {"product_id": product_id},
        )
