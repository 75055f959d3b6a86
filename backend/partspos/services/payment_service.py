# Overview: Service-layer operations for supplier payments against purchase invoices.

"""
Payment Ledger

WHY: balance_due and payment_status on a PurchaseInvoice are derived state.
They change in exactly two places: here (a payment lowers the balance) and in
receive_service.update_purchase_invoice (a header total edit). Both use
derive_payment_status(), the only place the status rule lives.

Payments are append-only. There is no reversal; a mistaken payment is
corrected by editing the invoice total.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app

from ..extensions import db
from ..errors import InvoiceNotFound, OverpaymentRejected, ValidationError
from ..models import PurchaseInvoice, PurchaseInvoicePayment
from ..models.purchasing import PAYMENT_STATUS_PAID, PAYMENT_STATUS_PARTIAL, PAYMENT_STATUS_UNPAID
from ..time_utils import utcnow
from .concurrency import lock_for_update, write_transaction


@dataclass(frozen=True)
class PaymentResult:
    invoice: PurchaseInvoice
    payment: PurchaseInvoicePayment
    new_balance_cents: int
    payment_status: str

    def to_dict(self) -> dict:
        return {
            "message": "Payment recorded successfully.",
            "invoice": self.invoice.to_dict(include_items=False),
            "payment": self.payment.to_dict(),
            "new_balance_cents": self.new_balance_cents,
            "payment_status": self.payment_status,
        }


def derive_payment_status(balance_due_cents: int, total_amount_cents: int) -> str:
    if balance_due_cents <= 0:
        return PAYMENT_STATUS_PAID
    if balance_due_cents < total_amount_cents:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_UNPAID


def get_invoice_for_update(invoice_id: str) -> PurchaseInvoice:
    invoice = lock_for_update(db.session.query(PurchaseInvoice).filter_by(id=invoice_id)).first()
    if invoice is None:
        raise InvoiceNotFound(invoice_id)
    return invoice


def record_payment(
    *,
    invoice_id: str,
    amount_cents: int,
    payment_method: str,
    payment_date: date | None = None,
    notes: str | None = None,
) -> PaymentResult:
    """
    Record a payment to the supplier and lower the invoice balance.

    Raises:
        ValidationError: non-positive amount or missing method
        InvoiceNotFound: invoice does not exist
        OverpaymentRejected: amount exceeds the current balance due
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Payment amount must be a positive integer number of cents")
    if not payment_method:
        raise ValidationError("payment_method is required")

    with write_transaction():
        invoice = get_invoice_for_update(invoice_id)

        if amount_cents > invoice.balance_due_cents:
            current_app.logger.warning(
                "Overpayment rejected on invoice %s: %d > %d",
                invoice_id, amount_cents, invoice.balance_due_cents,
            )
            raise OverpaymentRejected(invoice_id, amount_cents, invoice.balance_due_cents)

        payment = PurchaseInvoicePayment(
            purchase_invoice_id=invoice.id,
            payment_date=payment_date or utcnow().date(),
            amount_cents=amount_cents,
            payment_method=payment_method,
            notes=notes,
        )
        db.session.add(payment)

        invoice.balance_due_cents -= amount_cents
        invoice.payment_status = derive_payment_status(invoice.balance_due_cents, invoice.total_amount_cents)
        db.session.flush()

        new_balance = invoice.balance_due_cents
        status = invoice.payment_status

    current_app.logger.info(
        "Payment of %d cents recorded on invoice %s; balance %d (%s)",
        amount_cents, invoice_id, new_balance, status,
    )
    return PaymentResult(invoice=invoice, payment=payment, new_balance_cents=new_balance, payment_status=status)


def list_payments(invoice_id: str) -> list[PurchaseInvoicePayment]:
    """Payments for one invoice, newest first."""
    if db.session.get(PurchaseInvoice, invoice_id) is None:
        raise InvoiceNotFound(invoice_id)
    return (
        db.session.query(PurchaseInvoicePayment)
        .filter(PurchaseInvoicePayment.purchase_invoice_id == invoice_id)
        .order_by(PurchaseInvoicePayment.payment_date.desc(), PurchaseInvoicePayment.id.desc())
        .all()
    )


def total_paid_cents(invoice_id: str) -> int:
    paid = (
        db.session.query(db.func.coalesce(db.func.sum(PurchaseInvoicePayment.amount_cents), 0))
        .filter(PurchaseInvoicePayment.purchase_invoice_id == invoice_id)
        .scalar()
    )
    return int(paid or 0)
