# Overview: Cash Session Reconciliation (cierre de caja).

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..errors import ErrorKind, PosError
from ..extensions import db
from ..models import CashSessionClosing, Sale
from ..models.cash import CLOSING_BALANCED, CLOSING_SHORTAGE, CLOSING_SURPLUS
from ..models.sales import PAYMENT_CARD, PAYMENT_CASH, PAYMENT_TRANSFER
from ..time_utils import to_utc_z, utcnow
from ..validation import parse_money_cents, parse_period
from .audit_service import append_audit_event
from .cash_service import movement_totals
from .concurrency import begin_write, run_in_transaction
"""
Reconciliation invariants

- Window is half-open: period_start <= created_at < period_end.
- Voided sales never count.
- expected_cash = sales_cash + manual_incomes - manual_expenses
  (card and transfer sales never reach the drawer).
- difference = counted_cash - expected_cash; zero is balanced, positive is
  surplus, negative is shortage. All three are valid closings.
- A closing captures its aggregates once. Later voids or movement deletions
  do not rewrite it.
- Overlapping periods are reported, never blocked.
"""


class ClosingError(PosError):
    """Raised for cash session closing errors."""


@dataclass(frozen=True)
class PeriodTotals:
    period_start: datetime
    period_end: datetime
    sales_count: int
    sales_cash_cents: int
    sales_card_cents: int
    sales_transfer_cents: int
    manual_incomes_cents: int
    manual_expenses_cents: int

    @property
    def sales_digital_cents(self) -> int:
        return self.sales_card_cents + self.sales_transfer_cents

    @property
    def total_sales_cents(self) -> int:
        return self.sales_cash_cents + self.sales_digital_cents

    @property
    def expected_cash_cents(self) -> int:
        return self.sales_cash_cents + self.manual_incomes_cents - self.manual_expenses_cents

    def to_dict(self) -> dict:
        data = asdict(self)
        data["period_start"] = to_utc_z(self.period_start)
        data["period_end"] = to_utc_z(self.period_end)
        data["sales_digital_cents"] = self.sales_digital_cents
        data["total_sales_cents"] = self.total_sales_cents
        data["expected_cash_cents"] = self.expected_cash_cents
        return data


def classify_difference(difference_cents: int) -> str:
    if difference_cents == 0:
        return CLOSING_BALANCED
    return CLOSING_SURPLUS if difference_cents > 0 else CLOSING_SHORTAGE


def sales_totals_by_method(start_dt: datetime, end_dt: datetime) -> dict[str, tuple[int, int]]:
    """{payment_method: (count, total_cents)} for non-voided sales in [start_dt, end_dt)."""
    rows = (
        db.session.query(
            Sale.payment_method,
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_cents), 0),
        )
        .filter(
            Sale.voided.is_(False),
            Sale.created_at >= start_dt,
            Sale.created_at < end_dt,
        )
        .group_by(Sale.payment_method)
        .all()
    )
    return {method: (int(count), int(total)) for method, count, total in rows}


def compute_period_totals(period_start, period_end) -> PeriodTotals:
    start_dt, end_dt = parse_period(period_start, period_end)
    by_method = sales_totals_by_method(start_dt, end_dt)
    incomes, expenses = movement_totals(start_dt, end_dt)

    return PeriodTotals(
        period_start=start_dt,
        period_end=end_dt,
        sales_count=sum(count for count, _ in by_method.values()),
        sales_cash_cents=by_method.get(PAYMENT_CASH, (0, 0))[1],
        sales_card_cents=by_method.get(PAYMENT_CARD, (0, 0))[1],
        sales_transfer_cents=by_method.get(PAYMENT_TRANSFER, (0, 0))[1],
        manual_incomes_cents=incomes,
        manual_expenses_cents=expenses,
    )


def preview_cash_session(period_start, period_end, counted_cash=None) -> dict:
    """Same computation as close_cash_session, nothing persisted."""
    totals = compute_period_totals(period_start, period_end)
    preview = totals.to_dict()
    if counted_cash is not None:
        counted_cents = parse_money_cents(counted_cash, "counted_cash")
        difference = counted_cents - totals.expected_cash_cents
        preview.update({
            "counted_cash_cents": counted_cents,
            "difference_cents": difference,
            "status": classify_difference(difference),
        })
    return preview


def _overlapping_closing_ids(start_dt: datetime, end_dt: datetime) -> list[int]:
    q = db.session.query(CashSessionClosing.id).filter(
        CashSessionClosing.period_start < end_dt,
        CashSessionClosing.period_end > start_dt,
    )
    return [row.id for row in q.order_by(CashSessionClosing.id.asc()).all()]


def close_cash_session(
    period_start,
    period_end,
    counted_cash,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> CashSessionClosing:
    """
    Reconcile the drawer for a period and persist the closing.

    Shortage and surplus are business outcomes, not errors: the closing is
    stored either way and the difference is logged.

    The returned closing carries `overlapping_closing_ids` (earlier closings
    whose period intersects this one).
    """
    start_dt, end_dt = parse_period(period_start, period_end)
    counted_cents = parse_money_cents(counted_cash, "counted_cash")
    if notes is not None and not isinstance(notes, str):
        raise ClosingError("notes must be text", details={"field": "notes"})
    notes = notes.strip() or None if notes else None

    def _op():
        begin_write()
        totals = compute_period_totals(start_dt, end_dt)
        expected = totals.expected_cash_cents
        difference = counted_cents - expected
        overlapping = _overlapping_closing_ids(start_dt, end_dt)

        closing = CashSessionClosing(
            period_start=start_dt,
            period_end=end_dt,
            user_id=actor_user_id,
            sales_count=totals.sales_count,
            sales_cash_cents=totals.sales_cash_cents,
            sales_card_cents=totals.sales_card_cents,
            sales_transfer_cents=totals.sales_transfer_cents,
            sales_digital_cents=totals.sales_digital_cents,
            manual_incomes_cents=totals.manual_incomes_cents,
            manual_expenses_cents=totals.manual_expenses_cents,
            expected_cash_cents=expected,
            counted_cash_cents=counted_cents,
            difference_cents=difference,
            status=classify_difference(difference),
            notes=notes,
            created_at=utcnow(),
        )
        db.session.add(closing)
        db.session.flush()

        append_audit_event(
            event_type="cash_session.closed",
            entity_type="cash_session_closing",
            entity_id=closing.id,
            actor_user_id=actor_user_id,
            occurred_at=closing.created_at,
            note=notes,
            payload={
                "expected_cash_cents": expected,
                "counted_cash_cents": counted_cents,
                "difference_cents": difference,
                "status": closing.status,
                "overlapping_closing_ids": overlapping,
            },
        )
        return closing, overlapping

    closing, overlapping = run_in_transaction(_op)
    closing.overlapping_closing_ids = overlapping

    log = current_app.logger
    if closing.status == CLOSING_SHORTAGE:
        log.warning(
            "Cash closing %s: shortage of %s cents (expected %s, counted %s)",
            closing.id, -closing.difference_cents, closing.expected_cash_cents, closing.counted_cash_cents,
        )
    elif closing.status == CLOSING_SURPLUS:
        log.warning(
            "Cash closing %s: surplus of %s cents (expected %s, counted %s)",
            closing.id, closing.difference_cents, closing.expected_cash_cents, closing.counted_cash_cents,
        )
    else:
        log.info("Cash closing %s balanced at %s cents", closing.id, closing.expected_cash_cents)
    if overlapping:
        log.warning("Cash closing %s overlaps earlier closings %s", closing.id, overlapping)
    return closing


def get_closing(closing_id: int) -> CashSessionClosing:
    closing = db.session.query(CashSessionClosing).filter_by(id=closing_id).first()
    if closing is None:
        raise ClosingError(
            "Cash closing not found",
            ErrorKind.NOT_FOUND,
            details={"closing_id": closing_id},
        )
    return closing


def list_closings(start=None, end=None) -> list[CashSessionClosing]:
    """Closings whose period intersects [start, end); all of them without bounds."""
    q = db.session.query(CashSessionClosing)
    if start is not None or end is not None:
        start_dt, end_dt = parse_period(start, end)
        q = q.filter(
            CashSessionClosing.period_start < end_dt,
            CashSessionClosing.period_end > start_dt,
        )
    return q.order_by(CashSessionClosing.created_at.desc(), CashSessionClosing.id.desc()).all()
