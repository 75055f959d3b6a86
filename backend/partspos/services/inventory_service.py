# Overview: Service-layer operations for inventory; stock mutation, manual adjustments and catalog reads.

# backend/partspos/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStock, ProductInUse, ProductNotFound, ValidationError
from ..models import InventoryTransaction, Product, PurchaseInvoiceItem, SaleItem
from ..models.inventory import TRANSACTION_ADJUSTMENT
from .concurrency import lock_for_update, write_transaction
from .document_service import new_adjustment_reference
from .ledger_service import record_inventory_transaction
"""
Inventory Invariants (authoritative)

Stock model:
- Product.stock is a mutable counter; every change goes through mutate_stock()
  and is paired with exactly one InventoryTransaction in the same DB transaction.
- mutate_stock() locks the product row (SELECT ... FOR UPDATE; BEGIN IMMEDIATE on
  SQLite) before reading the current value.

Negative stock:
- Only the sale path (allow_negative=False) refuses to take stock below zero.
- Returns, purchases and adjustments move the counter freely in either direction;
  they are corrections and must never be blocked by a stale counter.
"""


@dataclass(frozen=True)
class StockMutation:
    """Before/after pair handed to the ledger writer."""
    product: Product
    stock_before: int
    stock_after: int

    @property
    def delta(self) -> int:
        return self.stock_after - self.stock_before


@dataclass(frozen=True)
class AdjustmentResult:
    product_id: str
    product_name: str
    stock_before: int
    stock_after: int
    quantity_change: int
    notes: str
    related_document_id: str
    transaction: InventoryTransaction

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "quantity_change": self.quantity_change,
            "notes": self.notes,
            "related_document_id": self.related_document_id,
            "transaction_id": self.transaction.id,
        }


def get_product_for_update(product_id: str) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise ProductNotFound(product_id)
    return product


def mutate_stock(product_id: str, delta: int, *, allow_negative: bool = False) -> StockMutation:
    """
    Apply a signed delta to a product's stock counter under a row lock.

    Must run inside an open write transaction (write_transaction()); it
    flushes but never commits, so the caller records the ledger entry and
    commits both together.

    Raises:
        ProductNotFound: product does not exist
        InsufficientStock: delta < 0, allow_negative is False and stock + delta < 0
    """
    product = get_product_for_update(product_id)

    stock_before = product.stock
    stock_after = stock_before + delta

    if delta < 0 and not allow_negative and stock_after < 0:
        raise InsufficientStock(
            product_id,
            requested=-delta,
            available=stock_before,
            product_name=product.name,
        )

    product.stock = stock_after
    db.session.flush()
    return StockMutation(product=product, stock_before=stock_before, stock_after=stock_after)


def adjust_stock(
    *,
    product_id: str,
    new_physical_count: int,
    notes: str | None = None,
    related_document_id: str | None = None,
) -> AdjustmentResult:
    """
    Reconcile a physical count against recorded stock.

    The delta (count - current stock) goes through mutate_stock() with
    allow_negative=True and is always logged as an Adjustment entry, also
    when the count matches and the delta is zero.
    """
    if isinstance(new_physical_count, bool) or not isinstance(new_physical_count, int):
        raise ValidationError("new_physical_count must be an integer")
    if new_physical_count < 0:
        raise ValidationError("new_physical_count must be a non-negative integer")

    reference = related_document_id or new_adjustment_reference()

    with write_transaction():
        product = get_product_for_update(product_id)
        delta = new_physical_count - product.stock

        mutation = mutate_stock(product_id, delta, allow_negative=True)
        entry_notes = notes or f"Physical inventory count adjustment. Change: {delta}."

        tx = record_inventory_transaction(
            product_id=product.id,
            product_name=product.name,
            transaction_type=TRANSACTION_ADJUSTMENT,
            quantity_change=mutation.delta,
            stock_before=mutation.stock_before,
            stock_after=mutation.stock_after,
            related_document_id=reference,
            notes=entry_notes,
        )
        result = AdjustmentResult(
            product_id=product.id,
            product_name=product.name,
            stock_before=mutation.stock_before,
            stock_after=mutation.stock_after,
            quantity_change=mutation.delta,
            notes=entry_notes,
            related_document_id=reference,
            transaction=tx,
        )

    current_app.logger.info(
        "Stock adjusted for product %s: %s -> %s (%s)",
        result.product_id, result.stock_before, result.stock_after, reference,
    )
    return result


# =============================================================================
# CATALOG READS
# =============================================================================

def get_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return product


def list_products(search: str | None = None, limit: int = 500) -> list[Product]:
    q = db.session.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            Product.name.ilike(pattern)
            | Product.code.ilike(pattern)
            | Product.reference.ilike(pattern)
            | Product.barcode.ilike(pattern)
        )
    return q.order_by(Product.name.asc()).limit(limit).all()


def _out_of_stock_filter():
    return Product.stock <= 0


def _low_stock_filter():
    return (Product.stock > 0) & (Product.stock < Product.min_stock)


def list_low_stock_products(limit: int = 500) -> list[Product]:
    """In stock but below min_stock, scarcest first."""
    return (
        db.session.query(Product)
        .filter(_low_stock_filter())
        .order_by(Product.stock.asc(), Product.name.asc())
        .limit(limit)
        .all()
    )


def list_out_of_stock_products(limit: int = 500) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(_out_of_stock_filter())
        .order_by(Product.name.asc())
        .limit(limit)
        .all()
    )


def get_product_stats() -> dict:
    """Totals for the inventory dashboard."""
    total_products = db.session.query(func.count(Product.id)).scalar() or 0
    out_of_stock = db.session.query(func.count(Product.id)).filter(_out_of_stock_filter()).scalar() or 0
    low_stock = (
        db.session.query(func.count(Product.id))
        .filter(_low_stock_filter())
        .scalar()
        or 0
    )
    inventory_value = (
        db.session.query(func.coalesce(func.sum(Product.stock * Product.cost_cents), 0))
        .filter(Product.stock > 0)
        .scalar()
        or 0
    )
    return {
        "total_products": int(total_products),
        "out_of_stock_items": int(out_of_stock),
        "low_stock_items": int(low_stock),
        "inventory_value_cents": int(inventory_value),
    }


def delete_product(product_id: str) -> None:
    """Delete a product that no ledger entry, sale line or invoice line references."""
    with write_transaction():
        product = get_product_for_update(product_id)

        for model in (InventoryTransaction, SaleItem, PurchaseInvoiceItem):
            in_use = db.session.query(model.id).filter(model.product_id == product_id).first()
            if in_use is not None:
                raise ProductInUse(product_id)

        db.session.delete(product)

    current_app.logger.info("Product %s deleted", product_id)
