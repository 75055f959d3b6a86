"""
Return Processing Service

WHY: A return puts goods back on the shelf and reduces what the customer
still owns on the original sale.

DESIGN PRINCIPLES:
- Returns reference the original Sale (ledger related_document_id = sale id)
- The original SaleItem is reduced in place: quantity -= returned,
  total_price = quantity * unit_price; Sale.total_amount is then recomputed
  from the remaining lines. The Sale is therefore the live "still owned" view,
  and the Return ledger entries are the history of what came back.
- A product can never be returned beyond its remaining quantity summed over
  all of its lines on the sale (a cart may repeat a product), which
  also makes a repeated identical return fail instead of double-crediting stock
- Stock is restored through mutate_stock(allow_negative=True): returns always
  succeed in growing stock
- All lines succeed or none do
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ReturnExceedsOriginal, SaleNotFound, ValidationError
from ..models import InventoryTransaction, Sale, SaleItem
from ..models.inventory import TRANSACTION_RETURN
from .concurrency import lock_for_update, write_transaction
from .customer_service import apply_return, get_customer_for_update
from .inventory_service import mutate_stock
from .ledger_service import record_inventory_transaction


@dataclass(frozen=True)
class ReturnLineRequest:
    product_id: str
    quantity: int


@dataclass
class ReturnResult:
    sale: Sale
    refund_total_cents: int
    transactions: list[InventoryTransaction] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "message": "Return processed successfully.",
            "refund_total_cents": self.refund_total_cents,
            "sale": self.sale.to_dict(),
            "transactions": [tx.to_dict() for tx in self.transactions],
        }


def _validate_lines(items) -> list[ReturnLineRequest]:
    if not items:
        raise ValidationError("At least one item must be selected for return.")

    lines = []
    for index, item in enumerate(items):
        if isinstance(item, ReturnLineRequest):
            line = item
        else:
            try:
                line = ReturnLineRequest(product_id=item["product_id"], quantity=item["quantity"])
            except (KeyError, TypeError) as exc:
                raise ValidationError(f"Invalid return line: {exc}", details={"line": index})
        if not line.product_id:
            raise ValidationError("product_id is required", details={"line": index})
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
            raise ValidationError(
                "Return quantity must be at least 1.",
                details={"line": index, "product_id": line.product_id},
            )
        lines.append(line)
    return lines


def _sale_items_for(sale: Sale, product_id: str) -> list[SaleItem]:
    """Lines for product_id that still hold quantity, in cart order (a cart may repeat a product)."""
    return sorted(
        (item for item in sale.items if item.product_id == product_id and item.quantity > 0),
        key=lambda item: item.id,
    )


def _take_from_lines(sale_items: list[SaleItem], quantity: int) -> int:
    """Reduce the lines by quantity, first line first; returns the refund in cents."""
    refund = 0
    remaining = quantity
    for item in sale_items:
        if not remaining:
            break
        taken = min(item.quantity, remaining)
        item.quantity -= taken
        item.total_price_cents = item.quantity * item.unit_price_cents
        refund += taken * item.unit_price_cents
        remaining -= taken
    return refund


def process_return(*, sale_id: str, items) -> ReturnResult:
    """
    Return goods from a prior sale.

    Args:
        sale_id: Original sale
        items: ReturnLineRequest objects or dicts with product_id and quantity

    Returns:
        ReturnResult with the refund total, the updated sale and the ledger entries

    Raises:
        ValidationError: malformed request (before any transaction opens)
        SaleNotFound: sale does not exist
        ReturnExceedsOriginal: product not on the sale, or more than the
            quantity remaining across the product's lines
        ProductNotFound: the product was removed from the catalog
    """
    lines = _validate_lines(items)

    try:
        with write_transaction():
            sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
            if sale is None:
                raise SaleNotFound(sale_id)

            refund_total = 0
            transactions = []

            for line in lines:
                sale_items = _sale_items_for(sale, line.product_id)
                available = sum(item.quantity for item in sale_items)
                if line.quantity > available:
                    raise ReturnExceedsOriginal(sale_id, line.product_id, line.quantity, available)

                mutation = mutate_stock(line.product_id, line.quantity, allow_negative=True)

                refund_total += _take_from_lines(sale_items, line.quantity)
                db.session.flush()

                transactions.append(record_inventory_transaction(
                    product_id=line.product_id,
                    product_name=sale_items[0].product_name,
                    transaction_type=TRANSACTION_RETURN,
                    quantity_change=line.quantity,
                    stock_before=mutation.stock_before,
                    stock_after=mutation.stock_after,
                    related_document_id=sale_id,
                    notes=f"Return of {line.quantity} units from sale {sale_id}.",
                ))

            sale.total_amount_cents = sum(item.total_price_cents for item in sale.items)

            if sale.customer_id:
                customer = get_customer_for_update(sale.customer_id)
                apply_return(customer, refund_cents=refund_total, payment_method=sale.payment_method)
    except (ConflictError, NotFoundError) as exc:
        current_app.logger.warning("Return against sale %s rejected: %s", sale_id, exc.message)
        raise

    current_app.logger.info(
        "Return processed for sale %s: %d line(s), refund %d cents", sale_id, len(lines), refund_total
    )
    return ReturnResult(sale=sale, refund_total_cents=refund_total, transactions=transactions)
