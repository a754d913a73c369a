# Overview: Flask CLI command groups for bootstrap, cash closing, and stock reports.

# backend/tiendapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "tiendapos:create_app" (PowerShell: $env:FLASK_APP="tiendapos:create_app").
# - Use: python -m flask <group> <command> [options]
#
# Bootstrap:
# - python -m flask pos init-db
#   Create all tables (development; production uses `flask db upgrade`).
# - python -m flask pos seed-demo
#   Idempotent demo data: admin and cashier users plus a few products.
#
# Cash:
# - python -m flask cash close --counted 1500.00 [--start 2026-10-19] [--end 2026-10-20] [--user-id 1] [--notes "..."]
#   Close the drawer for a period (defaults to the current UTC day).
#
# Reports:
# - python -m flask reports low-stock
#   List live products at or below their minimum stock.

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Product, User
from .models.auth import ALL_CAPABILITIES, CAP_CREATE_SALE, CAP_MANAGE_CASH
from .services import catalog_service, closing_service, reporting_service
from .time_utils import day_bounds
from .validation import format_cents


DEMO_PRODUCTS = [
    # barcode, description, sale price, purchase price, stock
    ("7501000000011", "Refresco 600ml", "18.00", "12.50", 48),
    ("7501000000028", "Galletas surtidas", "25.50", "17.00", 24),
    ("7501000000035", "Pan blanco grande", "42.00", "31.00", 10),
    ("7501000000042", "Leche entera 1L", "28.00", "22.40", 3),
]


@click.group('pos')
def pos_group():
    """Database bootstrap commands."""


@pos_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the configured database."""
    db.create_all()
    click.echo("PASS Database tables created")


@pos_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Load demo users and products.

    Safe to run repeatedly: existing usernames and barcodes are left alone.
    """
    users = [
        dict(username="admin", name="Administrador", is_admin=True, capabilities=list(ALL_CAPABILITIES)),
        dict(username="cajero", name="Cajero", is_admin=False, capabilities=[CAP_CREATE_SALE, CAP_MANAGE_CASH]),
    ]
    for data in users:
        if db.session.query(User).filter_by(username=data["username"]).first():
            click.echo(f"SKIP User {data['username']} already exists")
            continue
        db.session.add(User(**data))
        db.session.commit()
        click.echo(f"PASS Created user {data['username']}")

    for barcode, description, sale_price, purchase_price, stock in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(barcode=barcode).first():
            click.echo(f"SKIP Product {barcode} already exists")
            continue
        product, _ = catalog_service.create_or_restore_product(
            description=description,
            sale_price=sale_price,
            purchase_price=purchase_price,
            stock=stock,
            barcode=barcode,
        )
        click.echo(f"PASS Created product {product.id}: {product.description}")


@click.group('cash')
def cash_group():
    """Cash drawer commands."""


@cash_group.command('close')
@click.option('--counted', required=True, help='Counted cash in the drawer, e.g. 1500.00')
@click.option('--start', default=None, help='Period start (ISO date or datetime); defaults to today')
@click.option('--end', default=None, help='Period end, exclusive; defaults to tomorrow')
@click.option('--user-id', type=int, default=None, help='Acting user id')
@click.option('--notes', default=None)
@with_appcontext
def close_cash(counted, start, end, user_id, notes):
    """Close the cash drawer for a period and print the reconciliation."""
    default_start, default_end = day_bounds()
    try:
        closing = closing_service.close_cash_session(
            start or default_start,
            end or default_end,
            counted,
            notes,
            user_id,
        )
    except PosError as e:
        raise click.ClickException(f"{e} {e.details or ''}".strip())

    click.echo(f"Closing #{closing.id} ({closing.status})")
    click.echo(f"  Cash sales:      {format_cents(closing.sales_cash_cents)}")
    click.echo(f"  Card/transfer:   {format_cents(closing.sales_digital_cents)}")
    click.echo(f"  Manual incomes:  {format_cents(closing.manual_incomes_cents)}")
    click.echo(f"  Manual expenses: {format_cents(closing.manual_expenses_cents)}")
    click.echo(f"  Expected cash:   {format_cents(closing.expected_cash_cents)}")
    click.echo(f"  Counted cash:    {format_cents(closing.counted_cash_cents)}")
    click.echo(f"  Difference:      {format_cents(abs(closing.difference_cents))}"
               f"{' short' if closing.difference_cents < 0 else ''}")
    if closing.overlapping_closing_ids:
        click.echo(f"WARN Overlaps earlier closings: {closing.overlapping_closing_ids}")


@click.group('reports')
def reports_group():
    """Read-only reports."""


@reports_group.command('low-stock')
@with_appcontext
def low_stock():
    """List products at or below their minimum stock."""
    products = reporting_service.low_stock_products()
    if not products:
        click.echo("No products below minimum stock")
        return
    for p in products:
        click.echo(f"{p.id:>5}  {p.barcode or '-':<15} {p.description:<40} stock={p.stock} min={p.min_stock}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pos_group)
    app.cli.add_command(cash_group)
    app.cli.add_command(reports_group)
