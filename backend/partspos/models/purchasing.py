from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

PAYMENT_TERMS_CREDIT = "Credit"
PAYMENT_TERMS_CASH = "Cash"
PAYMENT_TERMS = (PAYMENT_TERMS_CREDIT, PAYMENT_TERMS_CASH)

PAYMENT_STATUS_UNPAID = "Unpaid"
PAYMENT_STATUS_PARTIAL = "Partially Paid"
PAYMENT_STATUS_PAID = "Paid"


class PurchaseInvoice(db.Model):
    """
    Supplier invoice header.

    INVARIANTS:
    - balance_due_cents == total_amount_cents - SUM(payments.amount_cents)
    - balance_due_cents >= 0
    - payment_status == payment_service.derive_payment_status(balance_due, total)

    processed flips False -> True when goods are received against the invoice.
    """
    __tablename__ = "purchase_invoices"
    __table_args__ = (
        db.CheckConstraint("balance_due_cents >= 0", name="ck_purchase_invoices_balance_nonneg"),
        db.Index("ix_purchase_invoices_date", "invoice_date"),
    )

    id = db.Column(db.String(64), primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)
    invoice_date = db.Column(db.Date, nullable=False)
    supplier_name = db.Column(db.String(255), nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    payment_terms = db.Column(db.String(16), nullable=False)

    processed = db.Column(db.Boolean, nullable=False, default=False)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    balance_due_cents = db.Column(db.Integer, nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_UNPAID, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "PurchaseInvoiceItem",
        back_populates="invoice",
        lazy=True,
        order_by="PurchaseInvoiceItem.id",
        cascade="all, delete-orphan",
    )
    payments = db.relationship(
        "PurchaseInvoicePayment",
        back_populates="invoice",
        lazy=True,
        order_by="PurchaseInvoicePayment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "invoice_date": self.invoice_date.isoformat() if self.invoice_date else None,
            "supplier_name": self.supplier_name,
            "total_amount_cents": self.total_amount_cents,
            "payment_terms": self.payment_terms,
            "processed": self.processed,
            "processed_at": to_utc_z(self.processed_at) if self.processed_at else None,
            "balance_due_cents": self.balance_due_cents,
            "payment_status": self.payment_status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseInvoiceItem(db.Model):
    """
    Goods received against an invoice, one row per product.

    Receiving the same product again accumulates quantity / total_cost_cents;
    product_name and cost_price_cents take the latest values.
    """
    __tablename__ = "purchase_invoice_items"
    __table_args__ = (
        db.UniqueConstraint("purchase_invoice_id", "product_id", name="uq_purchase_invoice_items_invoice_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_invoice_id = db.Column(db.String(64), db.ForeignKey("purchase_invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False)

    invoice = db.relationship("PurchaseInvoice", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_invoice_id": self.purchase_invoice_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "cost_price_cents": self.cost_price_cents,
            "total_cost_cents": self.total_cost_cents,
        }


class PurchaseInvoicePayment(db.Model):
    """Payment made to the supplier against an invoice. Never edited or reversed."""
    __tablename__ = "purchase_invoice_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_purchase_invoice_payments_amount_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_invoice_id = db.Column(db.String(64), db.ForeignKey("purchase_invoices.id"), nullable=False, index=True)
    payment_date = db.Column(db.Date, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    invoice = db.relationship("PurchaseInvoice", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_invoice_id": self.purchase_invoice_id,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
