from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tiendapos.errors import ErrorKind, InvalidInputError, http_status_for
from tiendapos.validation import (
    MAX_AMOUNT_CENTS,
    format_cents,
    parse_money_cents,
    parse_period,
    parse_quantity,
)


class TestParseMoneyCents:
    @pytest.mark.parametrize("value, expected", [
        ("25.50", 2550),
        (25.5, 2550),
        (Decimal("0.105"), 11),
        (25, 2500),
        (" 7 ", 700),
        (0.1 + 0.2, 30),
        ("0", 0),
    ])
    def test_valid(self, value, expected):
        assert parse_money_cents(value, "amount") == expected

    @pytest.mark.parametrize("value", [None, "", "abc", True, "-0.01", "Infinity", "NaN", [1], "1e20"])
    def test_invalid(self, value):
        with pytest.raises(InvalidInputError):
            parse_money_cents(value, "amount")

    def test_zero_rejected_when_not_allowed(self):
        with pytest.raises(InvalidInputError):
            parse_money_cents("0.001", "amount", allow_zero=False)

    def test_max_amount(self):
        assert parse_money_cents("9999999.99", "amount") == MAX_AMOUNT_CENTS
        with pytest.raises(InvalidInputError):
            parse_money_cents("10000000.00", "amount")


class TestParseQuantity:
    @pytest.mark.parametrize("value, expected", [(1, 1), ("3", 3), (2.0, 2)])
    def test_valid(self, value, expected):
        assert parse_quantity(value) == expected

    @pytest.mark.parametrize("value", [0, -2, 1.5, "1.5", "x", None, False])
    def test_invalid(self, value):
        with pytest.raises(InvalidInputError):
            parse_quantity(value)


class TestParsePeriod:
    def test_dates_and_aware_datetimes_normalized(self):
        start, end = parse_period(date(2026, 1, 1), datetime(2026, 1, 1, 6, 0, tzinfo=timezone(timedelta(hours=-6))))
        assert start == datetime(2026, 1, 1)
        assert end == datetime(2026, 1, 1, 12, 0)

    def test_start_must_precede_end(self):
        with pytest.raises(InvalidInputError):
            parse_period("2026-01-02", "2026-01-01")


def test_format_cents():
    assert format_cents(12345) == "123.45"
    assert format_cents(5) == "0.05"
    assert format_cents(-100) == "-1.00"
    assert format_cents(None) is None


@pytest.mark.parametrize("kind, status", [
    (ErrorKind.SALE_NOT_FOUND, 404),
    (ErrorKind.NOT_FOUND, 404),
    (ErrorKind.ALREADY_VOIDED, 409),
    (ErrorKind.CONCURRENCY_CONFLICT, 409),
    (ErrorKind.PERSISTENCE_FAILURE, 503),
    (ErrorKind.INSUFFICIENT_PAYMENT, 400),
])
def test_http_status_for(kind, status):
    assert http_status_for(kind) == status
