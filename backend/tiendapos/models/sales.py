from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_TRANSFER = "transfer"

PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD, PAYMENT_TRANSFER)
DIGITAL_PAYMENT_METHODS = (PAYMENT_CARD, PAYMENT_TRANSFER)


class Sale(db.Model):
    """
    Posted sale. Created together with its details or not at all.

    IMMUTABLE: once posted only the void fields change. Voided sales stay
    queryable for audit but drop out of every revenue, margin and cash
    reconciliation aggregate.

    Client and cashier are weak references resolved by id at read time.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("folio", name="uq_sales_folio"),
        db.Index("ix_sales_voided_created", "voided", "created_at"),
        db.Index("ix_sales_method_created", "payment_method", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "V-000123")
    folio = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    cashier_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    payment_method = db.Column(db.String(16), nullable=False)

    # Money (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    amount_tendered_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    # Void audit trail
    voided = db.Column(db.Boolean, nullable=False, default=False)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client", backref=db.backref("sales", lazy=True))
    cashier = db.relationship("User", foreign_keys=[cashier_user_id])
    voided_by = db.relationship("User", foreign_keys=[voided_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_details: bool = False) -> dict:
        data = {
            "id": self.id,
            "folio": self.folio,
            "created_at": to_utc_z(self.created_at),
            "client_id": self.client_id,
            "cashier_user_id": self.cashier_user_id,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "amount_tendered_cents": self.amount_tendered_cents,
            "change_cents": self.change_cents,
            "voided": self.voided,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "voided_by_user_id": self.voided_by_user_id,
            "void_reason": self.void_reason,
            "version_id": self.version_id,
        }
        if include_details:
            data["details"] = [d.to_dict() for d in self.details]
        return data


class SaleDetail(db.Model):
    """
    One cart line of a posted sale.

    Price, cost and description are snapshots taken at sale time: later
    catalog edits never change historical revenue or margin.

    product_id carries no FK constraint; the product may be hard-deleted
    later and the line must survive it.
    """
    __tablename__ = "sale_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=True, index=True)

    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", backref=db.backref("details", lazy=True, order_by="SaleDetail.id"))

    @property
    def line_cost_cents(self) -> int:
        return self.unit_cost_cents * self.quantity

    @property
    def line_utility_cents(self) -> int:
        return self.line_total_cents - self.line_cost_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
        }
