# Overview: Service-layer operations for the inventory ledger; append, list and reconcile.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..errors import LedgerError, ValidationError
from ..models import InventoryTransaction, Product
from ..models.inventory import TRANSACTION_TYPES
from ..time_utils import start_of_day, end_of_day
"""
Inventory Ledger Invariants (authoritative)

- Append-only: one InventoryTransaction per stock-affecting event.
- No domain/business logic in the ledger writer itself; callers mutate stock
  first (inventory_service.mutate_stock) and pass the before/after pair here.
- Entries are written inside the same DB transaction as the stock mutation
  they record; the writer flushes but never commits.
- stock_after == stock_before + quantity_change for every entry.
- For every product, stock == stock_after of its most recent entry
  (find_ledger_drift() reports violations).
- Date filters in the read API are inclusive whole days.
"""


def record_inventory_transaction(
    *,
    product_id: str,
    product_name: str,
    transaction_type: str,
    quantity_change: int,
    stock_before: int,
    stock_after: int,
    related_document_id: str | None = None,
    notes: str | None = None,
) -> InventoryTransaction:
    """
    Append one inventory ledger entry.

    - No stock logic here.
    - No deletes/updates of existing entries.
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise LedgerError(
            f"Unknown transaction type {transaction_type!r}",
            details={"transaction_type": transaction_type},
        )
    if stock_before + quantity_change != stock_after:
        raise LedgerError(
            "Ledger entry arithmetic mismatch",
            details={
                "product_id": product_id,
                "quantity_change": quantity_change,
                "stock_before": stock_before,
                "stock_after": stock_after,
            },
        )

    tx = InventoryTransaction(
        product_id=product_id,
        product_name=product_name,
        transaction_type=transaction_type,
        quantity_change=quantity_change,
        stock_before=stock_before,
        stock_after=stock_after,
        related_document_id=related_document_id,
        notes=notes,
    )
    db.session.add(tx)
    db.session.flush()  # ensures tx.id is assigned without committing
    return tx


def list_inventory_transactions(
    *,
    transaction_type: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    product_id: str | None = None,
    related_document_id: str | None = None,
    limit: int | None = 500,
) -> list[InventoryTransaction]:
    """Newest first (transaction_date desc, id desc)."""
    if transaction_type is not None and transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"Invalid transaction type: {transaction_type}. Must be one of {list(TRANSACTION_TYPES)}"
        )

    q = db.session.query(InventoryTransaction)
    if transaction_type:
        q = q.filter(InventoryTransaction.transaction_type == transaction_type)
    if start_date:
        q = q.filter(InventoryTransaction.transaction_date >= start_of_day(start_date))
    if end_date:
        q = q.filter(InventoryTransaction.transaction_date <= end_of_day(end_date))
    if product_id:
        q = q.filter(InventoryTransaction.product_id == product_id)
    if related_document_id:
        q = q.filter(InventoryTransaction.related_document_id == related_document_id)

    q = q.order_by(
        InventoryTransaction.transaction_date.desc(),
        InventoryTransaction.id.desc(),
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def latest_transaction_for_product(product_id: str) -> InventoryTransaction | None:
    return (
        db.session.query(InventoryTransaction)
        .filter_by(product_id=product_id)
        .order_by(InventoryTransaction.id.desc())
        .first()
    )


def find_ledger_drift() -> dict:
    """
    Reconcile product stock counters against the ledger.

    Returns:
        {
          "stock_mismatches": [{product_id, stock, ledger_stock_after, transaction_id}],
          "arithmetic_errors": [transaction ids whose before/change/after disagree],
        }

    Products without any ledger entry are not reported: their stock predates
    the ledger (opening balance set by catalog management).
    """
    latest_ids = (
        db.session.query(
            InventoryTransaction.product_id.label("product_id"),
            func.max(InventoryTransaction.id).label("latest_id"),
        )
        .group_by(InventoryTransaction.product_id)
        .subquery()
    )

    rows = (
        db.session.query(Product.id, Product.stock, InventoryTransaction.stock_after, InventoryTransaction.id)
        .join(latest_ids, latest_ids.c.product_id == Product.id)
        .join(InventoryTransaction, InventoryTransaction.id == latest_ids.c.latest_id)
        .filter(Product.stock != InventoryTransaction.stock_after)
        .order_by(Product.id)
        .all()
    )
    mismatches = [
        {
            "product_id": product_id,
            "stock": stock,
            "ledger_stock_after": stock_after,
            "transaction_id": tx_id,
        }
        for product_id, stock, stock_after, tx_id in rows
    ]

    broken = (
        db.session.query(InventoryTransaction.id)
        .filter(
            InventoryTransaction.stock_before + InventoryTransaction.quantity_change
            != InventoryTransaction.stock_after
        )
        .order_by(InventoryTransaction.id)
        .all()
    )

    return {
        "stock_mismatches": mismatches,
        "arithmetic_errors": [tx_id for (tx_id,) in broken],
    }
