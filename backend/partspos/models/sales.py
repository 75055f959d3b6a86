from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

PAYMENT_METHOD_CASH = "Cash"
PAYMENT_METHOD_CARD = "Card"
PAYMENT_METHOD_TRANSFER = "Transfer"
PAYMENT_METHOD_COMBINED = "Combined"
PAYMENT_METHOD_CREDIT = "Credit"

SALE_PAYMENT_METHODS = (
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CARD,
    PAYMENT_METHOD_TRANSFER,
    PAYMENT_METHOD_COMBINED,
    PAYMENT_METHOD_CREDIT,
)


class Sale(db.Model):
    """
    Sale header.

    RETURNS MUTATE THE SALE:
    A return shrinks SaleItem.quantity / total_price_cents and total_amount_cents
    is recomputed from the remaining lines, so a Sale reads as "what the
    customer still owns" rather than the original receipt. The receipt-level
    history lives in the Return entries of the inventory ledger
    (related_document_id = sale id).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_date", "date"),
    )

    id = db.Column(db.String(64), primary_key=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    payment_method = db.Column(db.String(16), nullable=False)
    cashier_id = db.Column(db.String(64), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "date": to_utc_z(self.date),
            "total_amount_cents": self.total_amount_cents,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "payment_method": self.payment_method,
            "cashier_id": self.cashier_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Individual line items on a sale. cost_price_cents is snapshotted at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_sale_items_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.String(64), db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "total_price_cents": self.total_price_cents,
        }
