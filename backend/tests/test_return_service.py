"""
Return processing tests.

Verifies:
- a return restores stock, shrinks the sale line and recomputes the sale total
- returns never exceed what is still recorded on the sale, so a repeated
  return fails instead of double-crediting stock
- customer balances are reduced for returned goods
"""

import pytest

from partspos.errors import ReturnExceedsOriginal, SaleNotFound, ValidationError
from partspos.extensions import db
from partspos.models import Customer, InventoryTransaction, Product, Sale, SaleItem
from partspos.services import return_service, sales_service


def _sell(product_id, quantity, unit_price_cents=1000, **kwargs):
    return sales_service.record_sale(
        items=[{
            "product_id": product_id,
            "product_name": "Part",
            "quantity": quantity,
            "unit_price_cents": unit_price_cents,
        }],
        payment_method=kwargs.pop("payment_method", "Cash"),
        cashier_id="cashier-1",
        **kwargs,
    )


def _return_entries(sale_id):
    return (
        db.session.query(InventoryTransaction)
        .filter_by(transaction_type="Return", related_document_id=sale_id)
        .all()
    )


class TestProcessReturn:

    def test_sell_five_return_two(self, make_product):
        product_id = make_product("R-1", stock=10)
        sale_id = _sell(product_id, 5).id

        result = return_service.process_return(
            sale_id=sale_id, items=[{"product_id": product_id, "quantity": 2}],
        )

        assert result.refund_total_cents == 2000
        assert db.session.get(Product, product_id).stock == 7

        item = db.session.query(SaleItem).filter_by(sale_id=sale_id).one()
        assert item.quantity == 3
        assert item.total_price_cents == 3000
        assert db.session.get(Sale, sale_id).total_amount_cents == 3000

        entries = _return_entries(sale_id)
        assert len(entries) == 1
        assert (entries[0].quantity_change, entries[0].stock_before, entries[0].stock_after) == (2, 5, 7)

    def test_repeated_full_return_fails(self, make_product):
        product_id = make_product("R-2", stock=5)
        sale_id = _sell(product_id, 2).id
        items = [{"product_id": product_id, "quantity": 2}]

        return_service.process_return(sale_id=sale_id, items=items)
        with pytest.raises(ReturnExceedsOriginal) as exc_info:
            return_service.process_return(sale_id=sale_id, items=items)

        assert exc_info.value.available == 0
        assert db.session.get(Product, product_id).stock == 5
        assert len(_return_entries(sale_id)) == 1

    def test_exceeding_remaining_quantity(self, make_product):
        product_id = make_product("R-3", stock=5)
        sale_id = _sell(product_id, 3).id
        return_service.process_return(sale_id=sale_id, items=[{"product_id": product_id, "quantity": 2}])

        with pytest.raises(ReturnExceedsOriginal):
            return_service.process_return(sale_id=sale_id, items=[{"product_id": product_id, "quantity": 2}])

        assert db.session.query(SaleItem).filter_by(sale_id=sale_id).one().quantity == 1

    def test_product_repeated_across_lines(self, make_product):
        product_id = make_product("R-10", stock=10)
        sale_id = sales_service.record_sale(
            items=[
                {"product_id": product_id, "product_name": "Part", "quantity": 2, "unit_price_cents": 1000},
                {"product_id": product_id, "product_name": "Part", "quantity": 3, "unit_price_cents": 1200},
            ],
            payment_method="Cash",
            cashier_id="cashier-1",
        ).id

        result = return_service.process_return(
            sale_id=sale_id, items=[{"product_id": product_id, "quantity": 4}],
        )

        assert result.refund_total_cents == 2 * 1000 + 2 * 1200
        assert db.session.get(Product, product_id).stock == 9

        lines = db.session.query(SaleItem).filter_by(sale_id=sale_id).order_by(SaleItem.id).all()
        assert [(line.quantity, line.total_price_cents) for line in lines] == [(0, 0), (1, 1200)]
        assert db.session.get(Sale, sale_id).total_amount_cents == 1200

        entries = _return_entries(sale_id)
        assert len(entries) == 1
        assert (entries[0].quantity_change, entries[0].stock_before, entries[0].stock_after) == (4, 5, 9)

        with pytest.raises(ReturnExceedsOriginal) as exc_info:
            return_service.process_return(sale_id=sale_id, items=[{"product_id": product_id, "quantity": 2}])
        assert exc_info.value.available == 1

    def test_product_not_on_sale(self, make_product):
        sold = make_product("R-4", stock=5)
        other = make_product("R-5", stock=5)
        sale_id = _sell(sold, 1).id

        with pytest.raises(ReturnExceedsOriginal):
            return_service.process_return(sale_id=sale_id, items=[{"product_id": other, "quantity": 1}])

        assert db.session.get(Product, other).stock == 5

    def test_failing_line_rolls_back_earlier_lines(self, make_product):
        product_id = make_product("R-6", stock=5)
        sale_id = _sell(product_id, 2).id

        with pytest.raises(ReturnExceedsOriginal):
            return_service.process_return(
                sale_id=sale_id,
                items=[
                    {"product_id": product_id, "quantity": 1},
                    {"product_id": product_id, "quantity": 2},
                ],
            )

        assert db.session.get(Product, product_id).stock == 3
        assert _return_entries(sale_id) == []

    def test_return_grows_negative_stock(self, make_product):
        product_id = make_product("R-7", stock=1)
        sale_id = _sell(product_id, 1).id
        product = db.session.get(Product, product_id)
        product.stock = -4
        db.session.commit()

        return_service.process_return(sale_id=sale_id, items=[{"product_id": product_id, "quantity": 1}])

        assert db.session.get(Product, product_id).stock == -3

    def test_missing_sale(self, db_session):
        with pytest.raises(SaleNotFound):
            return_service.process_return(sale_id="S-missing", items=[{"product_id": "P1", "quantity": 1}])

    @pytest.mark.parametrize("items", [[], [{"product_id": "P1", "quantity": 0}], [{"quantity": 1}]])
    def test_invalid_requests(self, db_session, items):
        with pytest.raises(ValidationError):
            return_service.process_return(sale_id="S1", items=items)


class TestReturnCustomerBalances:

    def test_credit_return_reduces_outstanding(self, make_product, make_customer):
        product_id = make_product("RC-1", stock=10)
        customer_id = make_customer(credit_limit_cents=100000)
        sale_id = _sell(product_id, 4, unit_price_cents=2500, payment_method="Credit", customer_id=customer_id).id

        return_service.process_return(sale_id=sale_id, items=[{"product_id": product_id, "quantity": 1}])

        customer = db.session.get(Customer, customer_id)
        assert customer.total_spent_cents == 7500
        assert customer.outstanding_balance_cents == 7500
        assert customer.purchase_history_count == 1

    def test_cash_return_keeps_outstanding(self, make_product, make_customer):
        product_id = make_product("RC-2", stock=10)
        customer_id = make_customer()
        sale_id = _sell(product_id, 2, customer_id=customer_id).id

        return_service.process_return(sale_id=sale_id, items=[{"product_id": product_id, "quantity": 2}])

        customer = db.session.get(Customer, customer_id)
        assert customer.total_spent_cents == 0
        assert customer.outstanding_balance_cents == 0
