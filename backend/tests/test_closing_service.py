"""
Cash Session Reconciliation tests.

Sales and movements are moved into a fixed past window so period
boundaries are exact.
"""

from datetime import datetime, timedelta

import pytest

from conftest import set_sale_time
from tiendapos.errors import ErrorKind, PosError
from tiendapos.extensions import db
from tiendapos.models import CashMovement, CashSessionClosing
from tiendapos.services import cash_service, closing_service, sales_service
from tiendapos.services.audit_service import list_audit_events


START = datetime(2026, 3, 2, 0, 0)
END = datetime(2026, 3, 3, 0, 0)
NOON = datetime(2026, 3, 2, 12, 0)


def _sale_at(when, cart, method, tendered=None):
    sale = sales_service.post_sale(cart, method, tendered)
    set_sale_time(sale.id, when)
    return sale


def _movement_at(when, movement_type, amount, description="mov"):
    movement = cash_service.record_movement(movement_type, amount, description)
    movement.created_at = when
    db.session.commit()
    return movement


@pytest.fixture
def example_period(db_session, make_product):
    """Cash sales 100.00, card 50.00, income 20.00, expense 10.00."""
    p = make_product("Caja de clavos", 2500, 20)
    _sale_at(NOON, [(p.id, 4)], "cash", 100)
    _sale_at(NOON, [(p.id, 2)], "card")
    _movement_at(NOON, "income", "20.00", "Fondo")
    _movement_at(NOON, "expense", "10.00", "Garrafón")
    return p


class TestCloseCashSession:
    def test_balanced_example(self, example_period, admin):
        closing = closing_service.close_cash_session(START, END, "110.00", "Cierre turno", admin.id)

        assert closing.sales_cash_cents == 10000
        assert closing.sales_card_cents == 5000
        assert closing.sales_transfer_cents == 0
        assert closing.sales_digital_cents == 5000
        assert closing.sales_count == 2
        assert closing.manual_incomes_cents == 2000
        assert closing.manual_expenses_cents == 1000
        assert closing.expected_cash_cents == 11000
        assert closing.counted_cash_cents == 11000
        assert closing.difference_cents == 0
        assert closing.status == "balanced"
        assert closing.notes == "Cierre turno"
        assert closing.user_id == admin.id
        assert closing.overlapping_closing_ids == []

    @pytest.mark.parametrize("counted, status, difference", [
        ("100.00", "shortage", -1000),
        ("125.50", "surplus", 1550),
    ])
    def test_shortage_and_surplus_are_persisted(self, example_period, admin, counted, status, difference):
        closing = closing_service.close_cash_session(START, END, counted, None, admin.id)

        assert closing.status == status
        assert closing.difference_cents == difference
        assert db.session.get(CashSessionClosing, closing.id) is not None

    def test_reconciliation_identity(self, example_period, admin):
        closing = closing_service.close_cash_session(START, END, "87.35", None, admin.id)

        assert closing.expected_cash_cents == (
            closing.sales_cash_cents + closing.manual_incomes_cents - closing.manual_expenses_cents
        )
        assert closing.difference_cents == closing.counted_cash_cents - closing.expected_cash_cents

    def test_voided_sales_excluded(self, db_session, admin, product_a, product_b):
        sale = _sale_at(NOON, [(product_a.id, 2), (product_b.id, 1)], "cash", "30.00")
        sales_service.void_sale(sale.id, admin.id)

        closing = closing_service.close_cash_session(START, END, 0, None, admin.id)

        assert closing.sales_cash_cents == 0
        assert closing.sales_count == 0
        assert closing.status == "balanced"

    def test_period_is_half_open(self, db_session, admin, product_a):
        _sale_at(START, [(product_a.id, 1)], "cash", 10)
        _sale_at(END - timedelta(microseconds=1), [(product_a.id, 1)], "cash", 10)
        _sale_at(END, [(product_a.id, 1)], "cash", 10)
        _movement_at(END, "income", 5)

        totals = closing_service.compute_period_totals(START, END)

        assert totals.sales_count == 2
        assert totals.sales_cash_cents == 2000
        assert totals.manual_incomes_cents == 0

    def test_empty_period_is_balanced_at_zero(self, db_session, admin):
        closing = closing_service.close_cash_session(START, END, "0", None, admin.id)
        assert closing.expected_cash_cents == 0
        assert closing.status == "balanced"

    @pytest.mark.parametrize("counted", [None, "abc", "-1"])
    def test_invalid_counted_cash(self, db_session, admin, counted):
        with pytest.raises(PosError) as exc:
            closing_service.close_cash_session(START, END, counted, None, admin.id)
        assert exc.value.kind == ErrorKind.INVALID_INPUT
        assert db.session.query(CashSessionClosing).count() == 0

    @pytest.mark.parametrize("start, end", [
        (None, END),
        (START, None),
        (END, START),
        (START, START),
        ("not-a-date", END),
    ])
    def test_invalid_period(self, db_session, admin, start, end):
        with pytest.raises(PosError) as exc:
            closing_service.close_cash_session(start, end, 0, None, admin.id)
        assert exc.value.kind == ErrorKind.INVALID_INPUT

    def test_iso_strings_accepted(self, example_period, admin):
        closing = closing_service.close_cash_session("2026-03-02", "2026-03-03T00:00:00Z", "110", None, admin.id)
        assert closing.expected_cash_cents == 11000

    def test_overlapping_closings_reported_not_blocked(self, example_period, admin):
        first = closing_service.close_cash_session(START, END, "110", None, admin.id)
        second = closing_service.close_cash_session(NOON, END + timedelta(hours=6), "0", None, admin.id)
        disjoint = closing_service.close_cash_session(END + timedelta(hours=6), END + timedelta(days=1), "0", None, admin.id)

        assert first.overlapping_closing_ids == []
        assert second.overlapping_closing_ids == [first.id]
        assert disjoint.overlapping_closing_ids == []

        event = list_audit_events("cash_session_closing", second.id)[0]
        assert event.event_type == "cash_session.closed"
        assert event.payload["overlapping_closing_ids"] == [first.id]

    def test_closing_is_frozen_after_later_changes(self, example_period, admin):
        closing = closing_service.close_cash_session(START, END, "110", None, admin.id)

        _movement_at(NOON, "expense", "40.00", "Gasto tardío")
        movement = db.session.query(CashMovement).filter_by(description="Fondo").one()
        cash_service.delete_movement(movement.id, admin.id)

        frozen = closing_service.get_closing(closing.id)
        assert frozen.manual_incomes_cents == 2000
        assert frozen.manual_expenses_cents == 1000
        assert frozen.expected_cash_cents == 11000

        # A fresh computation sees the new state
        totals = closing_service.compute_period_totals(START, END)
        assert totals.manual_incomes_cents == 0
        assert totals.manual_expenses_cents == 5000


class TestPreviewAndQueries:
    def test_preview_does_not_persist(self, example_period):
        preview = closing_service.preview_cash_session(START, END, "105.00")

        assert preview["expected_cash_cents"] == 11000
        assert preview["difference_cents"] == -500
        assert preview["status"] == "shortage"
        assert preview["total_sales_cents"] == 15000
        assert db.session.query(CashSessionClosing).count() == 0

    def test_preview_without_count(self, example_period):
        preview = closing_service.preview_cash_session(START, END)
        assert "difference_cents" not in preview
        assert preview["period_start"] == "2026-03-02T00:00:00Z"

    def test_list_and_get(self, db_session, admin):
        a = closing_service.close_cash_session(START, END, 0, None, admin.id)
        b = closing_service.close_cash_session(END, END + timedelta(days=1), 0, None, admin.id)

        assert {c.id for c in closing_service.list_closings()} == {a.id, b.id}
        assert [c.id for c in closing_service.list_closings(END, END + timedelta(hours=1))] == [b.id]
        assert closing_service.get_closing(a.id).id == a.id

        with pytest.raises(PosError) as exc:
            closing_service.get_closing(9999)
        assert exc.value.kind == ErrorKind.NOT_FOUND
