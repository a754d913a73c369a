from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data, owned by catalog management.

    The core only reads it (price/cost/stock snapshot) and mutates `stock`
    through the inventory ledger.

    SOFT DELETE: deleted_at is set instead of removing the row, so the
    barcode stays reserved and can be restored ("resolve-or-restore").
    """
    __tablename__ = "products"
    __table_args__ = (
        # Stock is the hot shared resource; the DB refuses overdraft as a last line
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        db.Index("ix_products_description", "description"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    barcode = db.Column(db.String(50), nullable=True, unique=True)
    description = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=5)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Product id={self.id} barcode={self.barcode!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "description": self.description,
            "sale_price_cents": self.sale_price_cents,
            "purchase_price_cents": self.purchase_price_cents,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Client(db.Model):
    """Customer referenced (weakly) by sales. Lifecycle belongs to client management."""
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(20), nullable=True)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }
