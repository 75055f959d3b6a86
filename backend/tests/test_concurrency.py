"""
Concurrency tests against a file-backed SQLite database.

Each worker runs in its own thread and app context (its own session and
connection), so the write lock taken by BEGIN IMMEDIATE is what serializes
the read-compute-write sequences.
"""

import threading
from datetime import date

import pytest

from partspos import create_app
from partspos.errors import InsufficientStock, OverpaymentRejected
from partspos.extensions import db
from partspos.models import InventoryTransaction, Product, PurchaseInvoice
from partspos.services import payment_service, receive_service, sales_service


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "concurrency.db"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 15}},
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def _run_workers(app, target, args_list):
    results = []
    lock = threading.Lock()

    def worker(*args):
        with app.app_context():
            try:
                outcome = target(*args)
                with lock:
                    results.append(("ok", outcome))
            except Exception as exc:
                with lock:
                    results.append(("error", exc))
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_two_sales_for_last_unit(file_app):
    with file_app.app_context():
        product = Product(code="LAST-1", name="Last unit", stock=1, price_cents=1000)
        db.session.add(product)
        db.session.commit()
        product_id = product.id

    def sell():
        return sales_service.record_sale(
            items=[{"product_id": product_id, "product_name": "Last unit", "quantity": 1, "unit_price_cents": 1000}],
            payment_method="Cash",
            cashier_id="cashier-1",
        ).id

    results = _run_workers(file_app, sell, [(), ()])

    successes = [value for status, value in results if status == "ok"]
    failures = [value for status, value in results if status == "error"]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStock)

    with file_app.app_context():
        assert db.session.get(Product, product_id).stock == 0
        entries = db.session.query(InventoryTransaction).filter_by(product_id=product_id).all()
        assert len(entries) == 1
        assert (entries[0].stock_before, entries[0].stock_after) == (1, 0)


def test_concurrent_sales_never_oversell(file_app):
    with file_app.app_context():
        product = Product(code="MANY-1", name="Oil filter", stock=5, price_cents=990)
        db.session.add(product)
        db.session.commit()
        product_id = product.id

    def sell():
        return sales_service.record_sale(
            items=[{"product_id": product_id, "product_name": "Oil filter", "quantity": 1, "unit_price_cents": 990}],
            payment_method="Cash",
            cashier_id="cashier-1",
        ).id

    results = _run_workers(file_app, sell, [()] * 8)

    assert sum(1 for status, _ in results if status == "ok") == 5
    assert all(isinstance(value, InsufficientStock) for status, value in results if status == "error")

    with file_app.app_context():
        assert db.session.get(Product, product_id).stock == 0
        entries = (
            db.session.query(InventoryTransaction)
            .filter_by(product_id=product_id)
            .order_by(InventoryTransaction.id)
            .all()
        )
        assert [e.stock_after for e in entries] == [4, 3, 2, 1, 0]


def test_concurrent_payments_never_overpay(file_app):
    with file_app.app_context():
        invoice_id = receive_service.create_purchase_invoice(
            invoice_number="CONC-1",
            invoice_date=date(2024, 6, 1),
            supplier_name="Repuestos Norte",
            total_amount_cents=10000,
            payment_terms="Credit",
        ).id

    def pay():
        return payment_service.record_payment(
            invoice_id=invoice_id, amount_cents=6000, payment_method="Cash",
        ).new_balance_cents

    results = _run_workers(file_app, pay, [(), ()])

    assert [value for status, value in results if status == "ok"] == [4000]
    assert [type(value) for status, value in results if status == "error"] == [OverpaymentRejected]

    with file_app.app_context():
        invoice = db.session.get(PurchaseInvoice, invoice_id)
        assert invoice.balance_due_cents == 4000
        assert invoice.payment_status == "Partially Paid"
