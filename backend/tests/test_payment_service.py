"""
Supplier payment tests.

Verifies:
- derive_payment_status thresholds
- balance_due == total - sum(payments) after every payment
- overpayment is rejected without touching the invoice
"""

from datetime import date

import pytest

from partspos.errors import InvoiceNotFound, OverpaymentRejected, ValidationError
from partspos.extensions import db
from partspos.models import PurchaseInvoice, PurchaseInvoicePayment
from partspos.services import payment_service, receive_service


@pytest.fixture
def invoice_id(db_session):
    return receive_service.create_purchase_invoice(
        invoice_number="PAY-1",
        invoice_date=date(2024, 6, 1),
        supplier_name="Repuestos Norte",
        total_amount_cents=10000,
        payment_terms="Credit",
    ).id


def _paid_total(invoice_id):
    return sum(
        p.amount_cents
        for p in db.session.query(PurchaseInvoicePayment).filter_by(purchase_invoice_id=invoice_id)
    )


@pytest.mark.parametrize(
    "balance,total,expected",
    [
        (0, 10000, "Paid"),
        (-5, 10000, "Paid"),
        (0, 0, "Paid"),
        (1, 10000, "Partially Paid"),
        (9999, 10000, "Partially Paid"),
        (10000, 10000, "Unpaid"),
    ],
)
def test_derive_payment_status(balance, total, expected):
    assert payment_service.derive_payment_status(balance, total) == expected


class TestRecordPayment:

    def test_partial_then_full_then_overpay(self, invoice_id):
        first = payment_service.record_payment(invoice_id=invoice_id, amount_cents=4000, payment_method="Cash")
        assert first.new_balance_cents == 6000
        assert first.payment_status == "Partially Paid"

        second = payment_service.record_payment(invoice_id=invoice_id, amount_cents=6000, payment_method="Transfer")
        assert second.new_balance_cents == 0
        assert second.payment_status == "Paid"

        with pytest.raises(OverpaymentRejected) as exc_info:
            payment_service.record_payment(invoice_id=invoice_id, amount_cents=1, payment_method="Cash")
        assert exc_info.value.balance_due_cents == 0

        invoice = db.session.get(PurchaseInvoice, invoice_id)
        assert invoice.balance_due_cents == 0
        assert invoice.balance_due_cents == invoice.total_amount_cents - _paid_total(invoice_id)
        assert db.session.query(PurchaseInvoicePayment).count() == 2

    def test_overpayment_leaves_invoice_untouched(self, invoice_id):
        with pytest.raises(OverpaymentRejected):
            payment_service.record_payment(invoice_id=invoice_id, amount_cents=10001, payment_method="Cash")

        invoice = db.session.get(PurchaseInvoice, invoice_id)
        assert invoice.balance_due_cents == 10000
        assert invoice.payment_status == "Unpaid"
        assert db.session.query(PurchaseInvoicePayment).count() == 0

    def test_payment_details_are_stored(self, invoice_id):
        result = payment_service.record_payment(
            invoice_id=invoice_id,
            amount_cents=2500,
            payment_method="Card",
            payment_date=date(2024, 6, 15),
            notes="First installment",
        )

        payment = db.session.get(PurchaseInvoicePayment, result.payment.id)
        assert payment.payment_date == date(2024, 6, 15)
        assert payment.notes == "First installment"

    @pytest.mark.parametrize("amount", [0, -100, 10.5, True])
    def test_invalid_amount(self, invoice_id, amount):
        with pytest.raises(ValidationError):
            payment_service.record_payment(invoice_id=invoice_id, amount_cents=amount, payment_method="Cash")

    def test_missing_invoice(self, db_session):
        with pytest.raises(InvoiceNotFound):
            payment_service.record_payment(invoice_id="PI-missing", amount_cents=100, payment_method="Cash")


class TestListPayments:

    def test_newest_first(self, invoice_id):
        payment_service.record_payment(
            invoice_id=invoice_id, amount_cents=100, payment_method="Cash", payment_date=date(2024, 6, 2),
        )
        payment_service.record_payment(
            invoice_id=invoice_id, amount_cents=200, payment_method="Cash", payment_date=date(2024, 6, 9),
        )
        payment_service.record_payment(
            invoice_id=invoice_id, amount_cents=300, payment_method="Cash", payment_date=date(2024, 6, 9),
        )

        amounts = [p.amount_cents for p in payment_service.list_payments(invoice_id)]
        assert amounts == [300, 200, 100]

    def test_missing_invoice(self, db_session):
        with pytest.raises(InvoiceNotFound):
            payment_service.list_payments("PI-missing")
