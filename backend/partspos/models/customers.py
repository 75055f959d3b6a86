from __future__ import annotations

from ..extensions import db
from ..services.document_service import new_document_id
from ..time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    Denormalized aggregates (purchase_history_count, total_spent_cents,
    outstanding_balance_cents) are maintained by customer_service inside the
    sale/return transaction that changes them.

    credit_limit_cents=NULL means no limit on credit ("on account") sales.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_document_id("C"))

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    identification_number = db.Column(db.String(64), nullable=True, unique=True)

    purchase_history_count = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_limit_cents = db.Column(db.Integer, nullable=True)
    outstanding_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "identification_number": self.identification_number,
            "purchase_history_count": self.purchase_history_count,
            "total_spent_cents": self.total_spent_cents,
            "credit_limit_cents": self.credit_limit_cents,
            "outstanding_balance_cents": self.outstanding_balance_cents,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
