"""
Purchase invoice tests: header lifecycle and receiving goods.
"""

from datetime import date

import pytest

from partspos.errors import (
    DuplicateInvoiceNumber,
    InvoiceAlreadyProcessed,
    InvoiceInUse,
    InvoiceNotFound,
    InvoiceTotalBelowPaid,
    ProductNotFound,
    ValidationError,
)
from partspos.extensions import db
from partspos.models import InventoryTransaction, Product, PurchaseInvoice, PurchaseInvoiceItem
from partspos.services import payment_service, receive_service


@pytest.fixture
def make_invoice(db_session):
    def _make(invoice_number="F-1", total_amount_cents=10000, payment_terms="Credit"):
        return receive_service.create_purchase_invoice(
            invoice_number=invoice_number,
            invoice_date=date(2024, 6, 1),
            supplier_name="Repuestos Norte",
            total_amount_cents=total_amount_cents,
            payment_terms=payment_terms,
        ).id

    return _make


# =============================================================================
# HEADER LIFECYCLE
# =============================================================================


class TestInvoiceHeader:

    @pytest.mark.parametrize("total,expected_status", [(25000, "Unpaid"), (0, "Paid")])
    def test_create_derives_status_from_balance(self, make_invoice, total, expected_status):
        invoice = db.session.get(PurchaseInvoice, make_invoice(total_amount_cents=total))

        assert invoice.id.startswith("PI")
        assert invoice.balance_due_cents == total
        assert invoice.payment_status == expected_status
        assert invoice.payment_status == payment_service.derive_payment_status(
            invoice.balance_due_cents, invoice.total_amount_cents,
        )
        assert invoice.processed is False

    def test_duplicate_number(self, make_invoice):
        make_invoice("F-2")

        with pytest.raises(DuplicateInvoiceNumber):
            make_invoice("F-2")

        assert db.session.query(PurchaseInvoice).count() == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"invoice_number": "  "},
            {"supplier_name": ""},
            {"total_amount_cents": -1},
            {"payment_terms": "Barter"},
            {"invoice_date": "2024-06-01"},
        ],
    )
    def test_invalid_header(self, db_session, overrides):
        fields = {
            "invoice_number": "F-3",
            "invoice_date": date(2024, 6, 1),
            "supplier_name": "Repuestos Norte",
            "total_amount_cents": 1000,
            "payment_terms": "Cash",
        }
        fields.update(overrides)

        with pytest.raises(ValidationError):
            receive_service.create_purchase_invoice(**fields)

    def test_update_total_recomputes_balance(self, make_invoice):
        invoice_id = make_invoice(total_amount_cents=10000)
        payment_service.record_payment(invoice_id=invoice_id, amount_cents=4000, payment_method="Cash")

        invoice = receive_service.update_purchase_invoice(invoice_id, total_amount_cents=12000)

        assert invoice.balance_due_cents == 8000
        assert invoice.payment_status == "Partially Paid"

        invoice = receive_service.update_purchase_invoice(invoice_id, total_amount_cents=4000)
        assert invoice.balance_due_cents == 0
        assert invoice.payment_status == "Paid"

    def test_update_total_below_paid(self, make_invoice):
        invoice_id = make_invoice(total_amount_cents=10000)
        payment_service.record_payment(invoice_id=invoice_id, amount_cents=6000, payment_method="Cash")

        with pytest.raises(InvoiceTotalBelowPaid):
            receive_service.update_purchase_invoice(invoice_id, total_amount_cents=5000)

        invoice = db.session.get(PurchaseInvoice, invoice_id)
        assert invoice.total_amount_cents == 10000
        assert invoice.balance_due_cents == 4000

    def test_update_header_fields(self, make_invoice):
        invoice_id = make_invoice()

        invoice = receive_service.update_purchase_invoice(
            invoice_id, supplier_name="Frenos del Sur", invoice_number="F-1B",
        )

        assert invoice.supplier_name == "Frenos del Sur"
        assert invoice.invoice_number == "F-1B"
        assert invoice.balance_due_cents == 10000

    def test_update_rejects_unknown_field(self, make_invoice):
        invoice_id = make_invoice()

        with pytest.raises(ValidationError):
            receive_service.update_purchase_invoice(invoice_id, processed=True)

    def test_delete_unprocessed(self, make_invoice):
        invoice_id = make_invoice()

        receive_service.delete_purchase_invoice(invoice_id)

        assert db.session.get(PurchaseInvoice, invoice_id) is None

    def test_delete_with_payments_refused(self, make_invoice):
        invoice_id = make_invoice()
        payment_service.record_payment(invoice_id=invoice_id, amount_cents=100, payment_method="Cash")

        with pytest.raises(InvoiceInUse):
            receive_service.delete_purchase_invoice(invoice_id)

    def test_delete_processed_refused(self, make_invoice, make_product):
        invoice_id = make_invoice()
        product_id = make_product("PI-0", stock=0)
        receive_service.receive_purchase_invoice(
            invoice_id, [{"product_id": product_id, "quantity": 1, "cost_price_cents": 100}],
        )

        with pytest.raises(InvoiceInUse):
            receive_service.delete_purchase_invoice(invoice_id)

    def test_missing_invoice(self, db_session):
        with pytest.raises(InvoiceNotFound):
            receive_service.get_purchase_invoice("PI-missing")


# =============================================================================
# RECEIVING
# =============================================================================


class TestReceiveInvoice:

    def test_receive_adds_stock_and_updates_prices(self, make_invoice, make_product):
        invoice_id = make_invoice("F-10")
        product_id = make_product("PI-1", stock=4, cost_cents=800, price_cents=1400)

        invoice = receive_service.receive_purchase_invoice(
            invoice_id,
            [{"product_id": product_id, "quantity": 10, "cost_price_cents": 900, "new_selling_price_cents": 1500}],
        )

        assert invoice.processed is True
        assert invoice.processed_at is not None

        product = db.session.get(Product, product_id)
        assert (product.stock, product.cost_cents, product.price_cents) == (14, 900, 1500)

        item = db.session.query(PurchaseInvoiceItem).filter_by(purchase_invoice_id=invoice_id).one()
        assert (item.quantity, item.cost_price_cents, item.total_cost_cents) == (10, 900, 9000)

        entry = db.session.query(InventoryTransaction).filter_by(product_id=product_id).one()
        assert entry.transaction_type == "Purchase"
        assert (entry.quantity_change, entry.stock_before, entry.stock_after) == (10, 4, 14)
        assert entry.related_document_id == invoice_id
        assert entry.notes == (
            "Received 10 units from supplier invoice F-10. Cost updated to 9.00. Price updated to 15.00."
        )

    def test_price_untouched_without_new_price(self, make_invoice, make_product):
        invoice_id = make_invoice()
        product_id = make_product("PI-2", stock=0, cost_cents=800, price_cents=1400)

        receive_service.receive_purchase_invoice(
            invoice_id, [{"product_id": product_id, "quantity": 1, "cost_price_cents": 850}],
        )

        product = db.session.get(Product, product_id)
        assert (product.cost_cents, product.price_cents) == (850, 1400)

    def test_second_receive_requires_flag(self, make_invoice, make_product):
        invoice_id = make_invoice()
        product_id = make_product("PI-3", stock=0)
        items = [{"product_id": product_id, "quantity": 10, "cost_price_cents": 500}]
        receive_service.receive_purchase_invoice(invoice_id, items)

        with pytest.raises(InvoiceAlreadyProcessed):
            receive_service.receive_purchase_invoice(invoice_id, items)
        assert db.session.get(Product, product_id).stock == 10

        receive_service.receive_purchase_invoice(
            invoice_id,
            [{"product_id": product_id, "quantity": 5, "cost_price_cents": 600}],
            allow_rereceive=True,
        )

        item = db.session.query(PurchaseInvoiceItem).filter_by(purchase_invoice_id=invoice_id).one()
        assert item.quantity == 15
        assert item.total_cost_cents == 10 * 500 + 5 * 600
        assert item.cost_price_cents == 600
        assert db.session.get(Product, product_id).stock == 15

    def test_missing_product_rolls_back_batch(self, make_invoice, make_product):
        invoice_id = make_invoice()
        product_id = make_product("PI-4", stock=2, cost_cents=100)

        with pytest.raises(ProductNotFound):
            receive_service.receive_purchase_invoice(
                invoice_id,
                [
                    {"product_id": product_id, "quantity": 3, "cost_price_cents": 200},
                    {"product_id": "P-missing", "quantity": 1, "cost_price_cents": 200},
                ],
            )

        product = db.session.get(Product, product_id)
        assert (product.stock, product.cost_cents) == (2, 100)
        assert db.session.get(PurchaseInvoice, invoice_id).processed is False
        assert db.session.query(InventoryTransaction).count() == 0
        assert db.session.query(PurchaseInvoiceItem).count() == 0

    def test_receive_grows_negative_stock(self, make_invoice, make_product):
        invoice_id = make_invoice()
        product_id = make_product("PI-5", stock=-3)

        receive_service.receive_purchase_invoice(
            invoice_id, [{"product_id": product_id, "quantity": 2, "cost_price_cents": 100}],
        )

        assert db.session.get(Product, product_id).stock == -1

    @pytest.mark.parametrize(
        "items",
        [
            [],
            [{"product_id": "P1", "quantity": 0, "cost_price_cents": 1}],
            [{"product_id": "P1", "quantity": 1, "cost_price_cents": -1}],
            [{"product_id": "P1", "quantity": 1, "cost_price_cents": 1, "new_selling_price_cents": -5}],
            [{"product_id": "P1", "quantity": 1}],
        ],
    )
    def test_invalid_lines(self, make_invoice, items):
        invoice_id = make_invoice()

        with pytest.raises(ValidationError):
            receive_service.receive_purchase_invoice(invoice_id, items)
