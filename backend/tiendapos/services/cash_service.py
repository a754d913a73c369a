# Overview: Cash Ledger; manual cash incomes and expenses outside of sales.

from __future__ import annotations

from flask import current_app

from ..errors import ErrorKind, PosError
from ..extensions import db
from ..models import CashMovement, CashSessionClosing
from ..models.cash import MOVEMENT_EXPENSE, MOVEMENT_INCOME, MOVEMENT_TYPES
from ..time_utils import utcnow
from ..validation import parse_money_cents, parse_period, require_text
from .audit_service import append_audit_event
from .concurrency import begin_write, lock_for_update, run_in_transaction


class CashLedgerError(PosError):
    """Raised for cash movement errors."""


MOVEMENT_TYPE_ALIASES = {
    "ingreso": MOVEMENT_INCOME,
    "egreso": MOVEMENT_EXPENSE,
}


def normalize_movement_type(value) -> str:
    movement_type = value.strip().lower() if isinstance(value, str) else None
    movement_type = MOVEMENT_TYPE_ALIASES.get(movement_type, movement_type)
    if movement_type not in MOVEMENT_TYPES:
        raise CashLedgerError(
            "Movement type must be income or expense",
            details={"field": "type", "value": value, "allowed": list(MOVEMENT_TYPES)},
        )
    return movement_type


def record_movement(type, amount, description, actor_user_id: int | None = None) -> CashMovement:
    """
    Append a manual cash movement (change fund, supplier payment, ...).

    amount must be strictly positive; direction comes from `type`.
    """
    movement_type = normalize_movement_type(type)
    amount_cents = parse_money_cents(amount, "amount", allow_zero=False)
    description = require_text(description, "description")

    def _op():
        begin_write()
        movement = CashMovement(
            type=movement_type,
            amount_cents=amount_cents,
            description=description,
            user_id=actor_user_id,
            created_at=utcnow(),
        )
        db.session.add(movement)
        db.session.flush()

        append_audit_event(
            event_type="cash_movement.recorded",
            entity_type="cash_movement",
            entity_id=movement.id,
            actor_user_id=actor_user_id,
            occurred_at=movement.created_at,
            note=description,
            payload={"type": movement_type, "amount_cents": amount_cents},
        )
        return movement

    movement = run_in_transaction(_op)
    current_app.logger.info("Recorded cash %s of %s cents", movement.type, movement.amount_cents)
    return movement


def list_movements(start, end, type=None) -> list[CashMovement]:
    start_dt, end_dt = parse_period(start, end)
    q = db.session.query(CashMovement).filter(
        CashMovement.created_at >= start_dt,
        CashMovement.created_at < end_dt,
    )
    if type is not None:
        q = q.filter(CashMovement.type == normalize_movement_type(type))
    return q.order_by(CashMovement.created_at.desc(), CashMovement.id.desc()).all()


def get_movement(movement_id: int) -> CashMovement:
    movement = db.session.query(CashMovement).filter_by(id=movement_id).first()
    if movement is None:
        raise CashLedgerError(
            "Cash movement not found",
            ErrorKind.NOT_FOUND,
            details={"movement_id": movement_id},
        )
    return movement


def delete_movement(movement_id: int, actor_user_id: int | None = None, reason: str | None = None) -> dict:
    """
    Administrative hard delete of a cash movement.

    WHY: Mistyped movements happen and the cash screen lets an admin remove
    them. The row goes, but the audit log keeps a full snapshot plus the ids
    of closings whose period already covered it (their captured totals are
    not recomputed).

    Returns the deleted row snapshot with `covering_closing_ids`.
    """
    def _op():
        begin_write()
        movement = (
            lock_for_update(db.session.query(CashMovement).filter_by(id=movement_id))
            .first()
        )
        if movement is None:
            raise CashLedgerError(
                "Cash movement not found",
                ErrorKind.NOT_FOUND,
                details={"movement_id": movement_id},
            )

        snapshot = movement.to_dict()
        covering = [
            row.id
            for row in db.session.query(CashSessionClosing.id)
            .filter(
                CashSessionClosing.period_start <= movement.created_at,
                CashSessionClosing.period_end > movement.created_at,
            )
            .order_by(CashSessionClosing.id.asc())
            .all()
        ]

        db.session.delete(movement)
        db.session.flush()

        append_audit_event(
            event_type="cash_movement.deleted",
            entity_type="cash_movement",
            entity_id=movement_id,
            actor_user_id=actor_user_id,
            note=reason,
            payload={"movement": snapshot, "covering_closing_ids": covering},
        )
        return {**snapshot, "covering_closing_ids": covering}

    result = run_in_transaction(_op)
    current_app.logger.warning(
        "Cash movement %s (%s %s cents, %s) deleted by user %s",
        result["id"], result["type"], result["amount_cents"], result["created_at"], actor_user_id,
    )
    if result["covering_closing_ids"]:
        current_app.logger.warning(
            "Deleted cash movement %s was covered by closings %s",
            result["id"], result["covering_closing_ids"],
        )
    return result


def movement_totals(start_dt, end_dt) -> tuple[int, int]:
    """(incomes_cents, expenses_cents) in [start_dt, end_dt). Bounds must be parsed already."""
    rows = (
        db.session.query(CashMovement.type, db.func.coalesce(db.func.sum(CashMovement.amount_cents), 0))
        .filter(CashMovement.created_at >= start_dt, CashMovement.created_at < end_dt)
        .group_by(CashMovement.type)
        .all()
    )
    totals = {movement_type: int(total) for movement_type, total in rows}
    return totals.get(MOVEMENT_INCOME, 0), totals.get(MOVEMENT_EXPENSE, 0)
