from __future__ import annotations

from ..extensions import db
from ..services.document_service import new_document_id
from ..time_utils import to_utc_z


class Category(db.Model):
    """Product category. Managed by catalog tooling; the ledger only reads it."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Product(db.Model):
    """
    Product master data.

    STOCK OWNERSHIP:
    Product.stock is the single mutable aggregate for "current" stock. It is
    written only by inventory_service.mutate_stock(), always inside the same
    transaction as the InventoryTransaction that records the movement.

    cost_cents / price_cents are written by catalog management or by the
    purchase invoice receiving flow (receive_service).

    version_id is a mapper version counter: an UPDATE that lost a race raises
    StaleDataError instead of silently overwriting a newer stock value.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.CheckConstraint("min_stock >= 0", name="ck_products_min_stock_nonneg"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: new_document_id("P"))

    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=False, unique=True)
    reference = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    brand = db.Column(db.String(120), nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    max_stock = db.Column(db.Integer, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.stock < self.min_stock

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} code={self.code!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "reference": self.reference,
            "barcode": self.barcode,
            "brand": self.brand,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "cost_cents": self.cost_cents,
            "price_cents": self.price_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
