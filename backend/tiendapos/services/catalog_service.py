# Overview: Catalog lookups consumed by the sale engine, plus thin product maintenance.

"""
Catalog Snapshot Provider

The sale engine only sees products through `get_product_snapshot`: an
immutable view of current price, cost and stock. Product maintenance below
belongs to catalog management and stays outside the sale contract.

RESOLVE-OR-RESTORE: barcodes are unique across live and soft-deleted rows.
Creating a product whose barcode belongs to a soft-deleted row restores and
updates that row instead of inserting a duplicate.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import ErrorKind, PosError
from ..extensions import db
from ..models import Product
from ..time_utils import utcnow
from ..validation import parse_money_cents, require_text
from .audit_service import append_audit_event
from .concurrency import run_in_transaction


class CatalogError(PosError):
    """Raised for catalog lookup and maintenance errors."""


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    description: str
    sale_price_cents: int
    purchase_price_cents: int
    stock: int
    min_stock: int


def _snapshot(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        id=product.id,
        description=product.description,
        sale_price_cents=product.sale_price_cents,
        purchase_price_cents=product.purchase_price_cents,
        stock=product.stock,
        min_stock=product.min_stock,
    )


def get_product(product_id: int, *, include_deleted: bool = False) -> Product | None:
    q = db.session.query(Product).filter(Product.id == product_id)
    if not include_deleted:
        q = q.filter(Product.deleted_at.is_(None))
    return q.populate_existing().first()


def get_product_snapshot(product_id: int) -> ProductSnapshot:
    """Current price/cost/stock of a live product. Soft-deleted products are not sellable."""
    product = get_product(product_id)
    if product is None:
        raise CatalogError(
            f"Product {product_id} not found",
            ErrorKind.PRODUCT_NOT_FOUND,
            details={"product_id": product_id},
        )
    return _snapshot(product)


def _parse_stock_value(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise CatalogError(f"{field} must be a non-negative integer", details={"field": field})
    return value


def create_or_restore_product(
    *,
    description: str,
    sale_price,
    purchase_price=None,
    stock: int | None = None,
    min_stock: int | None = None,
    barcode: str | None = None,
) -> tuple[Product, bool]:
    """
    Create a product, or restore the soft-deleted product owning `barcode`.

    Returns (product, restored).
    """
    values = {
        "description": require_text(description, "description"),
        "sale_price_cents": parse_money_cents(sale_price, "sale_price"),
        "purchase_price_cents": parse_money_cents(purchase_price, "purchase_price") if purchase_price is not None else 0,
        "stock": _parse_stock_value(stock, "stock") if stock is not None else 0,
        "min_stock": (
            _parse_stock_value(min_stock, "min_stock")
            if min_stock is not None
            else current_app.config.get("DEFAULT_MIN_STOCK", 5)
        ),
    }
    barcode = barcode.strip() if barcode and barcode.strip() else None

    def _op():
        existing = None
        if barcode:
            existing = db.session.query(Product).filter_by(barcode=barcode).first()

        if existing is not None:
            if not existing.is_deleted:
                raise CatalogError(
                    "Barcode already in use",
                    details={"field": "barcode", "product_id": existing.id},
                )
            for key, value in values.items():
                setattr(existing, key, value)
            existing.deleted_at = None
            db.session.flush()
            append_audit_event(
                event_type="product.restored",
                entity_type="product",
                entity_id=existing.id,
                note=f"Product {barcode} restored",
            )
            return existing, True

        product = Product(barcode=barcode, **values)
        db.session.add(product)
        db.session.flush()
        append_audit_event(
            event_type="product.created",
            entity_type="product",
            entity_id=product.id,
        )
        return product, False

    return run_in_transaction(_op)


PRODUCT_MUTABLE_FIELDS = {"description", "sale_price", "purchase_price", "min_stock", "barcode"}


def update_product(product_id: int, **changes) -> Product:
    """
    Update catalog fields. Stock is not editable here; use inventory_service.adjust_stock.

    Price changes never touch sales already posted (details keep their snapshots).
    """
    unknown = set(changes) - PRODUCT_MUTABLE_FIELDS
    if unknown:
        raise CatalogError("Unknown product fields", details={"fields": sorted(unknown)})

    def _op():
        product = get_product(product_id)
        if product is None:
            raise CatalogError("Product not found", ErrorKind.PRODUCT_NOT_FOUND, details={"product_id": product_id})

        if "description" in changes:
            product.description = require_text(changes["description"], "description")
        if "sale_price" in changes:
            product.sale_price_cents = parse_money_cents(changes["sale_price"], "sale_price")
        if "purchase_price" in changes:
            product.purchase_price_cents = parse_money_cents(changes["purchase_price"], "purchase_price")
        if "min_stock" in changes:
            product.min_stock = _parse_stock_value(changes["min_stock"], "min_stock")
        if "barcode" in changes:
            barcode = (changes["barcode"] or "").strip() or None
            if barcode:
                clash = db.session.query(Product).filter(Product.barcode == barcode, Product.id != product_id).first()
                if clash is not None:
                    raise CatalogError("Barcode already in use", details={"field": "barcode", "product_id": clash.id})
            product.barcode = barcode

        db.session.flush()
        return product

    return run_in_transaction(_op)


def soft_delete_product(product_id: int) -> Product:
    def _op():
        product = get_product(product_id)
        if product is None:
            raise CatalogError("Product not found", ErrorKind.PRODUCT_NOT_FOUND, details={"product_id": product_id})
        product.deleted_at = utcnow()
        append_audit_event(
            event_type="product.deleted",
            entity_type="product",
            entity_id=product.id,
        )
        return product

    return run_in_transaction(_op)
