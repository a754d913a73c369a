from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


MOVEMENT_INCOME = "income"
MOVEMENT_EXPENSE = "expense"
MOVEMENT_TYPES = (MOVEMENT_INCOME, MOVEMENT_EXPENSE)

CLOSING_BALANCED = "balanced"
CLOSING_SURPLUS = "surplus"
CLOSING_SHORTAGE = "shortage"


class CashMovement(db.Model):
    """
    Manual cash income/expense.

    Direction lives in `type`; amount_cents is always positive.
    Append-only: never updated. Administrative deletion is audited separately.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_cash_movements_amount_positive"),
        db.Index("ix_cash_movements_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class CashSessionClosing(db.Model):
    """
    Cash reconciliation (cierre de caja) for a period.

    Every aggregate is captured at closing time and never recomputed, so a
    historical closing stays stable whatever happens to the rows it summed.

    expected_cash = sales_cash + manual_incomes - manual_expenses
    difference    = counted_cash - expected_cash
    """
    __tablename__ = "cash_session_closings"
    __table_args__ = (
        db.Index("ix_cash_closings_period", "period_start", "period_end"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    period_start = db.Column(db.DateTime(timezone=True), nullable=False)
    period_end = db.Column(db.DateTime(timezone=True), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    sales_count = db.Column(db.Integer, nullable=False, default=0)
    sales_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_card_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_transfer_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_digital_cents = db.Column(db.Integer, nullable=False, default=0)
    manual_incomes_cents = db.Column(db.Integer, nullable=False, default=0)
    manual_expenses_cents = db.Column(db.Integer, nullable=False, default=0)
    expected_cash_cents = db.Column(db.Integer, nullable=False)
    counted_cash_cents = db.Column(db.Integer, nullable=False)
    difference_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False)  # balanced, surplus, shortage
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "period_start": to_utc_z(self.period_start),
            "period_end": to_utc_z(self.period_end),
            "user_id": self.user_id,
            "sales_count": self.sales_count,
            "sales_cash_cents": self.sales_cash_cents,
            "sales_card_cents": self.sales_card_cents,
            "sales_transfer_cents": self.sales_transfer_cents,
            "sales_digital_cents": self.sales_digital_cents,
            "manual_incomes_cents": self.manual_incomes_cents,
            "manual_expenses_cents": self.manual_expenses_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "counted_cash_cents": self.counted_cash_cents,
            "difference_cents": self.difference_cents,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
