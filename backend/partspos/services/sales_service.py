"""
Sales Service - checkout against the inventory ledger

WHY: A sale is the one flow that may NOT take stock below zero. Every line
deducts stock through inventory_service.mutate_stock(allow_negative=False)
and appends a Sale ledger entry in the same transaction as the sale header
and lines; a single failing line rolls back the whole sale.

ORDER OF WRITES (per line):
1. lock product + deduct stock (InsufficientStock / ProductNotFound abort here)
2. insert SaleItem with the product's cost snapshotted
3. append ledger entry (Sale, -quantity, related_document_id = sale id)

Customer aggregates are applied before the lines so that the ledger entry is
always the last write for its product before commit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, NotFoundError, SaleNotFound, ValidationError
from ..models import Sale, SaleItem
from ..models.inventory import TRANSACTION_SALE
from ..models.sales import PAYMENT_METHOD_CREDIT, SALE_PAYMENT_METHODS
from ..time_utils import utcnow, start_of_day, end_of_day
from .concurrency import write_transaction
from .customer_service import apply_sale, get_customer_for_update
from .document_service import new_document_id
from .inventory_service import mutate_stock
from .ledger_service import record_inventory_transaction


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: str
    product_name: str
    quantity: int
    unit_price_cents: int
    total_price_cents: int | None = None

    @property
    def line_total_cents(self) -> int:
        if self.total_price_cents is not None:
            return self.total_price_cents
        return self.quantity * self.unit_price_cents


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_lines(items) -> list[SaleLineRequest]:
    if not items:
        raise ValidationError("Sale must have at least one item.")

    lines = []
    for index, item in enumerate(items):
        if isinstance(item, SaleLineRequest):
            line = item
        else:
            try:
                line = SaleLineRequest(**item)
            except TypeError as exc:
                raise ValidationError(f"Invalid sale line: {exc}", details={"line": index})
        where = {"line": index, "product_id": line.product_id}
        if not line.product_id:
            raise ValidationError("product_id is required", details=where)
        if not _is_int(line.quantity) or line.quantity < 1:
            raise ValidationError("quantity must be an integer of at least 1", details=where)
        if not _is_int(line.unit_price_cents) or line.unit_price_cents < 0:
            raise ValidationError("unit_price_cents must be a non-negative integer", details=where)
        if line.total_price_cents is not None and (
            not _is_int(line.total_price_cents) or line.total_price_cents < 0
        ):
            raise ValidationError("total_price_cents must be a non-negative integer", details=where)
        lines.append(line)
    return lines


def record_sale(
    *,
    items,
    payment_method: str,
    cashier_id: str,
    customer_id: str | None = None,
    customer_name: str | None = None,
) -> Sale:
    """
    Record a completed sale: header, lines, stock deductions and ledger entries.

    Args:
        items: SaleLineRequest objects or dicts with product_id, product_name,
            quantity, unit_price_cents and optional total_price_cents
        payment_method: Cash, Card, Transfer, Combined or Credit
        cashier_id: user ringing up the sale
        customer_id: optional; required for Credit sales
        customer_name: optional display name (defaults to the customer's name)

    Returns:
        The committed Sale with its items

    Raises:
        ValidationError: malformed cart (before any transaction opens)
        InsufficientStock: a line would take stock below zero
        ProductNotFound / CustomerNotFound: missing reference
        CreditLimitExceeded: Credit sale over the customer's limit
    """
    lines = _validate_lines(items)

    if payment_method not in SALE_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}. Must be one of {list(SALE_PAYMENT_METHODS)}"
        )
    if not cashier_id:
        raise ValidationError("cashier_id is required")
    if payment_method == PAYMENT_METHOD_CREDIT and not customer_id:
        raise ValidationError("Credit sales require a customer")

    total_cents = sum(line.line_total_cents for line in lines)
    sale_id = new_document_id("S")

    try:
        with write_transaction():
            customer = get_customer_for_update(customer_id) if customer_id else None

            sale = Sale(
                id=sale_id,
                date=utcnow(),
                total_amount_cents=total_cents,
                customer_id=customer_id,
                customer_name=customer_name or (customer.name if customer else None),
                payment_method=payment_method,
                cashier_id=cashier_id,
            )
            db.session.add(sale)

            if customer is not None:
                apply_sale(customer, total_cents=total_cents, payment_method=payment_method)

            for line in lines:
                mutation = mutate_stock(line.product_id, -line.quantity, allow_negative=False)

                sale.items.append(SaleItem(
                    product_id=line.product_id,
                    product_name=line.product_name or mutation.product.name,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    cost_price_cents=mutation.product.cost_cents,
                    total_price_cents=line.line_total_cents,
                ))
                db.session.flush()

                record_inventory_transaction(
                    product_id=line.product_id,
                    product_name=mutation.product.name,
                    transaction_type=TRANSACTION_SALE,
                    quantity_change=-line.quantity,
                    stock_before=mutation.stock_before,
                    stock_after=mutation.stock_after,
                    related_document_id=sale_id,
                    notes=f"Sale of {line.quantity} units in sale {sale_id}.",
                )
    except (ConflictError, NotFoundError) as exc:
        current_app.logger.warning("Sale rejected: %s", exc.message)
        raise

    current_app.logger.info(
        "Sale %s recorded: %d line(s), total %d cents", sale_id, len(lines), total_cents
    )
    return sale


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: str) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFound(sale_id)
    return sale


def list_sales(period: str | None = None, limit: int = 500) -> list[Sale]:
    """All sales newest first; period="today" limits to the current UTC day."""
    q = db.session.query(Sale)
    if period == "today":
        today = utcnow().date()
        q = q.filter(Sale.date >= start_of_day(today), Sale.date <= end_of_day(today))
    elif period is not None:
        raise ValidationError(f"Unsupported period: {period}")
    return q.order_by(Sale.date.desc(), Sale.id.desc()).limit(limit).all()


def daily_sales_summary(day: date | None = None) -> dict:
    """Revenue, cost of goods and gross profit for one day, from current sale lines."""
    day = day or utcnow().date()
    window = (Sale.date >= start_of_day(day), Sale.date <= end_of_day(day))

    sale_count, revenue = (
        db.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_amount_cents), 0),
        )
        .filter(*window)
        .one()
    )
    cost_of_goods = (
        db.session.query(
            func.coalesce(func.sum(SaleItem.quantity * SaleItem.cost_price_cents), 0)
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(*window)
        .scalar()
    )

    revenue = int(revenue or 0)
    cost_of_goods = int(cost_of_goods or 0)
    return {
        "date": day.isoformat(),
        "sale_count": int(sale_count or 0),
        "revenue_cents": revenue,
        "cost_of_goods_cents": cost_of_goods,
        "gross_profit_cents": revenue - cost_of_goods,
    }
