from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


STOCK_REASON_SALE = "SALE"
STOCK_REASON_SALE_VOID = "SALE_VOID"
STOCK_REASON_ADJUST = "ADJUST"


class StockMovement(db.Model):
    """
    Append-only trace of every stock delta applied by the inventory ledger.

    Product.stock is the authoritative current quantity; this table explains
    how it got there (stock_after is the value right after the delta).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(16), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity_delta": self.quantity_delta,
            "stock_after": self.stock_after,
            "reason": self.reason,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
