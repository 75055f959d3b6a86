from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..errors import LedgerError
from ..time_utils import utcnow, to_utc_z

TRANSACTION_SALE = "Sale"
TRANSACTION_PURCHASE = "Purchase"
TRANSACTION_RETURN = "Return"
TRANSACTION_ADJUSTMENT = "Adjustment"

TRANSACTION_TYPES = (
    TRANSACTION_SALE,
    TRANSACTION_PURCHASE,
    TRANSACTION_RETURN,
    TRANSACTION_ADJUSTMENT,
)


class InventoryTransaction(db.Model):
    """
    Append-only inventory ledger entry (one per stock-affecting event).

    related_document_id points at a sale, purchase invoice or adjustment
    reference. It is deliberately not a foreign key because it spans
    heterogeneous document types.

    Rows are never updated or deleted; corrections are new entries.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_product_date", "product_id", "transaction_date"),
        db.Index("ix_invtx_type_date", "transaction_type", "transaction_date"),
        db.CheckConstraint(
            "stock_after = stock_before + quantity_change",
            name="ck_invtx_stock_arithmetic",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    # Snapshot: the product may be renamed later
    product_name = db.Column(db.String(255), nullable=False)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)
    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    related_document_id = db.Column(db.String(64), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "transaction_type": self.transaction_type,
            "quantity_change": self.quantity_change,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "related_document_id": self.related_document_id,
            "notes": self.notes,
            "transaction_date": to_utc_z(self.transaction_date),
        }


@event.listens_for(InventoryTransaction, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise LedgerError(f"Inventory transaction {target.id} is immutable")


@event.listens_for(InventoryTransaction, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise LedgerError(f"Inventory transaction {target.id} is immutable and cannot be deleted")
