# Overview: Read-only reports over posted sales, cash movements and stock.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Sale, SaleDetail
from ..models.sales import DIGITAL_PAYMENT_METHODS, PAYMENT_METHODS
from ..time_utils import to_utc_z
from ..validation import parse_int_id, parse_period
from .cash_service import movement_totals
from .closing_service import sales_totals_by_method
from .sales_service import get_sale, normalize_payment_method


def list_sales(
    start,
    end,
    payment_method=None,
    include_voided: bool = False,
    client_id=None,
) -> list[Sale]:
    """Sales created in [start, end), newest first."""
    start_dt, end_dt = parse_period(start, end)
    q = db.session.query(Sale).filter(Sale.created_at >= start_dt, Sale.created_at < end_dt)
    if not include_voided:
        q = q.filter(Sale.voided.is_(False))
    if payment_method is not None:
        q = q.filter(Sale.payment_method == normalize_payment_method(payment_method))
    if client_id is not None:
        q = q.filter(Sale.client_id == parse_int_id(client_id, "client_id"))
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def sale_margin(sale_id: int) -> dict:
    """
    Revenue, cost and utility of one sale from its own snapshots.

    Catalog price or cost edits after the sale never change this figure.
    """
    sale = get_sale(sale_id)
    lines = []
    for d in sale.details:
        lines.append({
            "product_id": d.product_id,
            "description": d.description,
            "quantity": d.quantity,
            "revenue_cents": d.line_total_cents,
            "cost_cents": d.line_cost_cents,
            "utility_cents": d.line_utility_cents,
        })

    revenue = sum(line["revenue_cents"] for line in lines)
    cost = sum(line["cost_cents"] for line in lines)
    return {
        "sale_id": sale.id,
        "folio": sale.folio,
        "voided": sale.voided,
        "lines": lines,
        "revenue_cents": revenue,
        "cost_cents": cost,
        "utility_cents": revenue - cost,
    }


def gross_profit_summary(start, end) -> dict:
    """
    Sales, cost of sales and gross utility for non-voided sales in [start, end).

    Revenue is the tax-free subtotal, so utility agrees with sale_margin.
    Tax is reported on its own line; cost comes from the detail snapshots.
    """
    start_dt, end_dt = parse_period(start, end)
    by_method = sales_totals_by_method(start_dt, end_dt)

    cost_cents = (
        db.session.query(func.coalesce(func.sum(SaleDetail.unit_cost_cents * SaleDetail.quantity), 0))
        .join(Sale, Sale.id == SaleDetail.sale_id)
        .filter(
            Sale.voided.is_(False),
            Sale.created_at >= start_dt,
            Sale.created_at < end_dt,
        )
        .scalar()
    )
    cost_cents = int(cost_cents or 0)
    revenue_cents, tax_cents = (
        db.session.query(
            func.coalesce(func.sum(Sale.subtotal_cents), 0),
            func.coalesce(func.sum(Sale.tax_cents), 0),
        )
        .filter(
            Sale.voided.is_(False),
            Sale.created_at >= start_dt,
            Sale.created_at < end_dt,
        )
        .one()
    )
    revenue_cents, tax_cents = int(revenue_cents), int(tax_cents)
    total_sales = sum(total for _, total in by_method.values())

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "sales_count": sum(count for count, _ in by_method.values()),
        "total_sales_cents": total_sales,
        "revenue_cents": revenue_cents,
        "tax_cents": tax_cents,
        "cost_of_sales_cents": cost_cents,
        "gross_utility_cents": revenue_cents - cost_cents,
        "by_payment_method": {
            method: {
                "count": by_method.get(method, (0, 0))[0],
                "total_cents": by_method.get(method, (0, 0))[1],
            }
            for method in PAYMENT_METHODS
        },
    }


def cash_summary(start, end) -> dict:
    """Cash screen summary: cash_balance = incomes - expenses + cash sales."""
    start_dt, end_dt = parse_period(start, end)
    by_method = sales_totals_by_method(start_dt, end_dt)
    incomes, expenses = movement_totals(start_dt, end_dt)

    sales = {method: by_method.get(method, (0, 0))[1] for method in PAYMENT_METHODS}
    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "incomes_cents": incomes,
        "expenses_cents": expenses,
        "sales_cash_cents": sales["cash"],
        "sales_card_cents": sales["card"],
        "sales_transfer_cents": sales["transfer"],
        "sales_digital_cents": sum(sales[method] for method in DIGITAL_PAYMENT_METHODS),
        "total_sales_cents": sum(sales.values()),
        "cash_balance_cents": incomes - expenses + sales["cash"],
    }


def low_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.deleted_at.is_(None), Product.stock <= Product.min_stock)
        .order_by(Product.stock.asc(), Product.description.asc())
        .all()
    )
