# Overview: Service-layer operations for supplier invoices; creation, header edits and receiving goods.

# backend/partspos/services/receive_service.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    ConflictError,
    DuplicateInvoiceNumber,
    InvoiceAlreadyProcessed,
    InvoiceInUse,
    InvoiceNotFound,
    InvoiceTotalBelowPaid,
    NotFoundError,
    ValidationError,
)
from ..models import PurchaseInvoice, PurchaseInvoiceItem, PurchaseInvoicePayment
from ..models.inventory import TRANSACTION_PURCHASE
from ..models.purchasing import PAYMENT_TERMS
from ..time_utils import utcnow
from .concurrency import write_transaction
from .document_service import new_document_id
from .inventory_service import mutate_stock
from .ledger_service import record_inventory_transaction
from .payment_service import derive_payment_status, get_invoice_for_update, total_paid_cents
"""
Purchase Invoice Invariants

- An invoice is created with balance_due == total, processed False and the
  status derived from that balance (Unpaid, or Paid for a zero total).
- Receiving goods is all-or-nothing: every line locks its product, adds stock,
  upserts the invoice line and appends a Purchase ledger entry; processed flips
  to True at the end of the same transaction.
- An invoice is received once. A second receive requires allow_rereceive=True
  and then accumulates on the existing lines.
- Deleting an invoice never reverts stock, so only unprocessed invoices without
  payments may be deleted.
"""


UPDATABLE_FIELDS = ("invoice_number", "invoice_date", "supplier_name", "total_amount_cents", "payment_terms")


@dataclass(frozen=True)
class ReceiveLineRequest:
    product_id: str
    quantity: int
    cost_price_cents: int
    new_selling_price_cents: int | None = None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def format_cents(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _validate_header(*, invoice_number, invoice_date, supplier_name, total_amount_cents, payment_terms) -> None:
    if not isinstance(invoice_number, str) or not invoice_number.strip():
        raise ValidationError("invoice_number is required")
    if not isinstance(invoice_date, date):
        raise ValidationError("invoice_date must be a date")
    if not isinstance(supplier_name, str) or not supplier_name.strip():
        raise ValidationError("supplier_name is required")
    if not _is_int(total_amount_cents) or total_amount_cents < 0:
        raise ValidationError("total_amount_cents must be a non-negative integer")
    if payment_terms not in PAYMENT_TERMS:
        raise ValidationError(f"Invalid payment terms: {payment_terms}. Must be one of {list(PAYMENT_TERMS)}")


def _validate_lines(items) -> list[ReceiveLineRequest]:
    if not items:
        raise ValidationError("At least one item is required to receive an invoice.")

    lines = []
    for index, item in enumerate(items):
        if isinstance(item, ReceiveLineRequest):
            line = item
        else:
            try:
                line = ReceiveLineRequest(**item)
            except TypeError as exc:
                raise ValidationError(f"Invalid invoice line: {exc}", details={"line": index})
        where = {"line": index, "product_id": line.product_id}
        if not line.product_id:
            raise ValidationError("product_id is required", details=where)
        if not _is_int(line.quantity) or line.quantity < 1:
            raise ValidationError("Quantity must be at least 1.", details=where)
        if not _is_int(line.cost_price_cents) or line.cost_price_cents < 0:
            raise ValidationError("Cost price must be non-negative.", details=where)
        if line.new_selling_price_cents is not None and (
            not _is_int(line.new_selling_price_cents) or line.new_selling_price_cents < 0
        ):
            raise ValidationError("New selling price must be non-negative.", details=where)
        lines.append(line)
    return lines


def _invoice_number_taken(invoice_number: str, exclude_id: str | None = None) -> bool:
    q = db.session.query(PurchaseInvoice.id).filter(PurchaseInvoice.invoice_number == invoice_number)
    if exclude_id:
        q = q.filter(PurchaseInvoice.id != exclude_id)
    return q.first() is not None


# =============================================================================
# HEADER LIFECYCLE
# =============================================================================

def create_purchase_invoice(
    *,
    invoice_number: str,
    invoice_date: date,
    supplier_name: str,
    total_amount_cents: int,
    payment_terms: str,
) -> PurchaseInvoice:
    _validate_header(
        invoice_number=invoice_number,
        invoice_date=invoice_date,
        supplier_name=supplier_name,
        total_amount_cents=total_amount_cents,
        payment_terms=payment_terms,
    )
    invoice_number = invoice_number.strip()

    try:
        with write_transaction():
            if _invoice_number_taken(invoice_number):
                raise DuplicateInvoiceNumber(invoice_number)

            invoice = PurchaseInvoice(
                id=new_document_id("PI"),
                invoice_number=invoice_number,
                invoice_date=invoice_date,
                supplier_name=supplier_name.strip(),
                total_amount_cents=total_amount_cents,
                payment_terms=payment_terms,
                processed=False,
                balance_due_cents=total_amount_cents,
                payment_status=derive_payment_status(total_amount_cents, total_amount_cents),
            )
            db.session.add(invoice)
    except IntegrityError:
        # Lost the race on the unique index
        raise DuplicateInvoiceNumber(invoice_number)

    current_app.logger.info("Purchase invoice %s (%s) created", invoice.id, invoice_number)
    return invoice


def update_purchase_invoice(invoice_id: str, **fields) -> PurchaseInvoice:
    """
    Edit header fields. A new total recomputes balance_due (total - paid) and
    the payment status.

    Raises:
        ValidationError: unknown field or bad value
        InvoiceNotFound: invoice does not exist
        DuplicateInvoiceNumber: number already used by another invoice
        InvoiceTotalBelowPaid: new total is lower than what was already paid
    """
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unsupported field(s): {sorted(unknown)}")
    if not fields:
        raise ValidationError("No fields to update")

    with write_transaction():
        invoice = get_invoice_for_update(invoice_id)

        merged = {name: getattr(invoice, name) for name in UPDATABLE_FIELDS}
        merged.update(fields)
        _validate_header(**merged)

        new_number = merged["invoice_number"].strip()
        if new_number != invoice.invoice_number and _invoice_number_taken(new_number, exclude_id=invoice.id):
            raise DuplicateInvoiceNumber(new_number)

        if "total_amount_cents" in fields:
            paid = total_paid_cents(invoice.id)
            new_total = fields["total_amount_cents"]
            if new_total < paid:
                raise InvoiceTotalBelowPaid(invoice.id, new_total, paid)
            invoice.total_amount_cents = new_total
            invoice.balance_due_cents = new_total - paid
            invoice.payment_status = derive_payment_status(invoice.balance_due_cents, new_total)

        invoice.invoice_number = new_number
        invoice.invoice_date = merged["invoice_date"]
        invoice.supplier_name = merged["supplier_name"].strip()
        invoice.payment_terms = merged["payment_terms"]
        db.session.flush()

    current_app.logger.info("Purchase invoice %s updated: %s", invoice_id, sorted(fields))
    return invoice


def delete_purchase_invoice(invoice_id: str) -> None:
    with write_transaction():
        invoice = get_invoice_for_update(invoice_id)

        if invoice.processed:
            raise InvoiceInUse(
                f"Purchase invoice {invoice_id} has been received; stock would not be reverted",
                {"invoice_id": invoice_id, "processed": True},
            )
        has_payments = (
            db.session.query(PurchaseInvoicePayment.id)
            .filter(PurchaseInvoicePayment.purchase_invoice_id == invoice_id)
            .first()
        )
        if has_payments is not None:
            raise InvoiceInUse(
                f"Purchase invoice {invoice_id} has payments recorded against it",
                {"invoice_id": invoice_id, "has_payments": True},
            )

        db.session.delete(invoice)

    current_app.logger.info("Purchase invoice %s deleted", invoice_id)


# =============================================================================
# RECEIVING
# =============================================================================

def receive_purchase_invoice(invoice_id: str, items, *, allow_rereceive: bool = False) -> PurchaseInvoice:
    """
    Receive goods against a supplier invoice.

    Per line: add stock (never blocked), set the product's cost and optionally
    its selling price, upsert the invoice line and write a Purchase ledger entry.

    Raises:
        ValidationError: malformed lines (before any transaction opens)
        InvoiceNotFound: invoice does not exist
        InvoiceAlreadyProcessed: already received and allow_rereceive is False
        ProductNotFound: a line references a missing product; nothing is received
    """
    lines = _validate_lines(items)

    try:
        with write_transaction():
            invoice = get_invoice_for_update(invoice_id)
            if invoice.processed and not allow_rereceive:
                raise InvoiceAlreadyProcessed(invoice_id)

            existing = {item.product_id: item for item in invoice.items}

            for line in lines:
                mutation = mutate_stock(line.product_id, line.quantity, allow_negative=True)
                product = mutation.product

                product.cost_cents = line.cost_price_cents
                notes = (
                    f"Received {line.quantity} units from supplier invoice {invoice.invoice_number}. "
                    f"Cost updated to {format_cents(line.cost_price_cents)}."
                )
                if line.new_selling_price_cents is not None:
                    product.price_cents = line.new_selling_price_cents
                    notes += f" Price updated to {format_cents(line.new_selling_price_cents)}."

                line_cost = line.quantity * line.cost_price_cents
                item = existing.get(line.product_id)
                if item is None:
                    item = PurchaseInvoiceItem(
                        product_id=product.id,
                        product_name=product.name,
                        quantity=line.quantity,
                        cost_price_cents=line.cost_price_cents,
                        total_cost_cents=line_cost,
                    )
                    invoice.items.append(item)
                    existing[line.product_id] = item
                else:
                    item.quantity += line.quantity
                    item.total_cost_cents += line_cost
                    item.cost_price_cents = line.cost_price_cents
                    item.product_name = product.name
                db.session.flush()

                record_inventory_transaction(
                    product_id=product.id,
                    product_name=product.name,
                    transaction_type=TRANSACTION_PURCHASE,
                    quantity_change=line.quantity,
                    stock_before=mutation.stock_before,
                    stock_after=mutation.stock_after,
                    related_document_id=invoice.id,
                    notes=notes,
                )

            invoice.processed = True
            invoice.processed_at = utcnow()
            db.session.flush()
    except (ConflictError, NotFoundError) as exc:
        current_app.logger.warning("Receiving invoice %s rejected: %s", invoice_id, exc.message)
        raise

    current_app.logger.info("Purchase invoice %s received: %d line(s)", invoice_id, len(lines))
    return invoice


# =============================================================================
# QUERIES
# =============================================================================

def get_purchase_invoice(invoice_id: str) -> PurchaseInvoice:
    invoice = db.session.get(PurchaseInvoice, invoice_id)
    if invoice is None:
        raise InvoiceNotFound(invoice_id)
    return invoice


def list_purchase_invoices(*, processed: bool | None = None, limit: int = 500) -> list[PurchaseInvoice]:
    q = db.session.query(PurchaseInvoice)
    if processed is not None:
        q = q.filter(PurchaseInvoice.processed.is_(processed))
    return q.order_by(PurchaseInvoice.invoice_date.desc(), PurchaseInvoice.created_at.desc()).limit(limit).all()
