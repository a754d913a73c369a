"""
Sale Engine and Sale Reversal

WHY: Posting a sale is the one place where stock, money and historical
pricing must change together. A sale and all of its details, stock
decrements and audit trail commit as one transaction or not at all.

DESIGN PRINCIPLES:
- Input problems (empty cart, bad quantity, unknown payment method,
  non-numeric tender) are rejected before anything is written.
- Catalog-dependent checks (missing product, stock, payment sufficiency)
  run under the write lock and before the first write.
- Stock is decremented with a conditional update per product; a lost race
  aborts the whole sale with CONCURRENCY_CONFLICT.
- Voiding never deletes: it restores stock and flags the sale.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ErrorKind, PosError
from ..extensions import db
from ..models import Sale, SaleDetail
from ..models.inventory import STOCK_REASON_SALE, STOCK_REASON_SALE_VOID
from ..models.sales import PAYMENT_CASH, PAYMENT_METHODS
from ..time_utils import utcnow
from ..validation import parse_int_id, parse_money_cents, parse_quantity
from . import catalog_service, client_service
from .audit_service import append_audit_event
from .catalog_service import CatalogError, ProductSnapshot
from .client_service import ClientError
from .concurrency import TRANSIENT_ERRORS, begin_write, lock_for_update, run_in_transaction
from .document_service import next_sale_folio
from .inventory_service import InventoryError, apply_stock_delta


class SaleError(PosError):
    """Raised for sale operation errors."""


# Spanish labels used by the sales screen map onto the canonical methods
PAYMENT_METHOD_ALIASES = {
    "efectivo": "cash",
    "tarjeta": "card",
    "transferencia": "transfer",
}


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    product: ProductSnapshot
    quantity: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.product.sale_price_cents


# =============================================================================
# INPUT NORMALIZATION (no database access)
# =============================================================================

def normalize_payment_method(value) -> str:
    method = value.strip().lower() if isinstance(value, str) else None
    method = PAYMENT_METHOD_ALIASES.get(method, method)
    if method not in PAYMENT_METHODS:
        raise SaleError(
            "Invalid payment method",
            ErrorKind.INVALID_PAYMENT_METHOD,
            details={"payment_method": value, "allowed": list(PAYMENT_METHODS)},
        )
    return method


def normalize_cart(cart) -> list[CartLine]:
    """
    Accept (product_id, quantity) pairs or {"product_id"|"id", "quantity"} mappings.
    """
    if not cart:
        raise SaleError("Cannot post sale with an empty cart", ErrorKind.EMPTY_CART)

    lines = []
    for index, item in enumerate(cart):
        if isinstance(item, Mapping):
            raw_product_id = item.get("product_id", item.get("id"))
            raw_quantity = item.get("quantity")
        else:
            try:
                raw_product_id, raw_quantity = item
            except (TypeError, ValueError):
                raise SaleError(
                    "Cart lines must be (product_id, quantity)",
                    ErrorKind.INVALID_INPUT,
                    details={"line": index},
                )
        lines.append(CartLine(
            product_id=parse_int_id(raw_product_id, f"cart[{index}].product_id"),
            quantity=parse_quantity(raw_quantity, f"cart[{index}].quantity"),
        ))
    return lines


def _normalize_client_ref(client_ref):
    """None, an existing client id, or inline {"name", "phone"} data."""
    if client_ref is None:
        return None
    if isinstance(client_ref, Mapping):
        return client_service.validate_client_data(client_ref.get("name"), client_ref.get("phone"))
    return parse_int_id(client_ref, "client_id")


# =============================================================================
# CATALOG-DEPENDENT VALIDATION (reads only)
# =============================================================================

def _price_cart(lines: list[CartLine]) -> list[PricedLine]:
    snapshots: dict[int, ProductSnapshot] = {}
    for line in lines:
        if line.product_id in snapshots:
            continue
        try:
            snapshots[line.product_id] = catalog_service.get_product_snapshot(line.product_id)
        except CatalogError as exc:
            raise SaleError(str(exc), exc.kind, exc.details) from exc

    requested = _quantities_by_product(lines)
    insufficient = []
    for product_id, qty in requested.items():
        on_hand = snapshots[product_id].stock
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise SaleError(
            "Insufficient stock to post sale",
            ErrorKind.INSUFFICIENT_STOCK,
            details={"items": insufficient},
        )

    return [PricedLine(product=snapshots[line.product_id], quantity=line.quantity) for line in lines]


def _quantities_by_product(lines) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def settle_payment(method: str, tendered_cents: int | None, total_cents: int) -> tuple[int, int]:
    """
    Returns (amount_tendered_cents, change_cents).

    Cash must cover the total; card and transfer are charged exactly the
    total and never give change.
    """
    if method != PAYMENT_CASH:
        return total_cents, 0
    if tendered_cents is None:
        raise SaleError("Tendered amount is required for cash sales", ErrorKind.INVALID_INPUT)
    if tendered_cents < total_cents:
        raise SaleError(
            "Insufficient payment",
            ErrorKind.INSUFFICIENT_PAYMENT,
            details={"total_cents": total_cents, "tendered_cents": tendered_cents},
        )
    return tendered_cents, tendered_cents - total_cents


def _resolve_client(client_ref) -> int | None:
    if client_ref is None:
        return None
    try:
        if isinstance(client_ref, tuple):
            name, phone = client_ref
            return client_service.create_client(name, phone, commit=False).id
        return client_service.get_client(client_ref).id
    except ClientError as exc:
        raise SaleError(str(exc), exc.kind, exc.details) from exc


# =============================================================================
# POSTING
# =============================================================================

def post_sale(
    cart,
    payment_method,
    tendered=None,
    client_ref=None,
    *,
    cashier_user_id: int | None = None,
    tax=None,
) -> Sale:
    """
    Turn a cart into a posted sale.

    Args:
        cart: ordered (product_id, quantity) lines
        payment_method: cash, card or transfer (efectivo/tarjeta/transferencia accepted)
        tendered: amount handed over; required for cash
        client_ref: None, existing client id, or {"name", "phone"} to create inline
        cashier_user_id: operator posting the sale
        tax: optional single tax line, defaults to 0

    Returns the persisted Sale with its details and change_cents.
    """
    lines = normalize_cart(cart)
    method = normalize_payment_method(payment_method)
    tax_cents = parse_money_cents(tax, "tax") if tax is not None else 0
    tendered_cents = None
    if method == PAYMENT_CASH or tendered is not None:
        tendered_cents = parse_money_cents(tendered, "tendered")
    client_ref = _normalize_client_ref(client_ref)
    folio_prefix = current_app.config.get("SALE_FOLIO_PREFIX", "V")

    def _op():
        begin_write()

        priced = _price_cart(lines)
        subtotal_cents = sum(p.line_total_cents for p in priced)
        total_cents = subtotal_cents + tax_cents
        amount_tendered_cents, change_cents = settle_payment(method, tendered_cents, total_cents)

        client_id = _resolve_client(client_ref)

        sale = Sale(
            folio=next_sale_folio(folio_prefix),
            created_at=utcnow(),
            client_id=client_id,
            cashier_user_id=cashier_user_id,
            payment_method=method,
            subtotal_cents=subtotal_cents,
            tax_cents=tax_cents,
            total_cents=total_cents,
            amount_tendered_cents=amount_tendered_cents,
            change_cents=change_cents,
            voided=False,
        )
        db.session.add(sale)
        db.session.flush()

        for product_id, qty in _quantities_by_product(lines).items():
            try:
                apply_stock_delta(
                    product_id,
                    -qty,
                    reason=STOCK_REASON_SALE,
                    sale_id=sale.id,
                    user_id=cashier_user_id,
                    note=f"Sale {sale.folio}",
                )
            except InventoryError as exc:
                # Validation saw enough stock: the row changed underneath us
                raise SaleError(
                    "Stock changed while posting the sale; retry",
                    ErrorKind.CONCURRENCY_CONFLICT,
                    details=exc.details,
                ) from exc

        for p in priced:
            db.session.add(SaleDetail(
                sale_id=sale.id,
                product_id=p.product.id,
                description=p.product.description,
                quantity=p.quantity,
                unit_price_cents=p.product.sale_price_cents,
                unit_cost_cents=p.product.purchase_price_cents,
                line_total_cents=p.line_total_cents,
            ))

        append_audit_event(
            event_type="sale.posted",
            entity_type="sale",
            entity_id=sale.id,
            actor_user_id=cashier_user_id,
            occurred_at=sale.created_at,
            note=f"Sale {sale.folio} posted",
            payload={
                "total_cents": total_cents,
                "payment_method": method,
                "lines": len(priced),
            },
        )
        db.session.flush()
        return sale

    # Folio allocation may collide with a concurrent writer; retry the whole sale
    sale = run_in_transaction(_op, retry_on=TRANSIENT_ERRORS + (IntegrityError,))
    current_app.logger.info(
        "Posted sale %s (%s) total_cents=%s change_cents=%s",
        sale.folio, sale.payment_method, sale.total_cents, sale.change_cents,
    )
    return sale


# =============================================================================
# REVERSAL
# =============================================================================

def void_sale(sale_id: int, actor_user_id: int | None = None, reason: str | None = None) -> Sale:
    """
    Void a posted sale and give its stock back.

    A second void is rejected with ALREADY_VOIDED (informational for
    callers) and changes nothing. Products hard-deleted since the sale are
    skipped with a warning instead of failing the void.
    """
    def _op():
        begin_write()
        sale = (
            lock_for_update(db.session.query(Sale).filter_by(id=sale_id))
            .populate_existing()
            .first()
        )
        if not sale:
            raise SaleError("Sale not found", ErrorKind.SALE_NOT_FOUND, details={"sale_id": sale_id})

        if sale.voided:
            raise SaleError(
                "Sale already voided",
                ErrorKind.ALREADY_VOIDED,
                details={"sale_id": sale.id, "folio": sale.folio},
            )

        restocked = []
        skipped = []
        for detail in sale.details:
            try:
                apply_stock_delta(
                    detail.product_id,
                    detail.quantity,
                    reason=STOCK_REASON_SALE_VOID,
                    sale_id=sale.id,
                    user_id=actor_user_id,
                    note=f"Void sale {sale.folio}",
                    allow_deleted=True,
                )
                restocked.append({"product_id": detail.product_id, "quantity": detail.quantity})
            except InventoryError as exc:
                if exc.kind != ErrorKind.PRODUCT_NOT_FOUND:
                    raise
                current_app.logger.warning(
                    "Void of sale %s: product %s no longer exists, restock of %s skipped",
                    sale.folio, detail.product_id, detail.quantity,
                )
                skipped.append(detail.product_id)

        sale.voided = True
        sale.voided_at = utcnow()
        sale.voided_by_user_id = actor_user_id
        sale.void_reason = reason

        append_audit_event(
            event_type="sale.voided",
            entity_type="sale",
            entity_id=sale.id,
            actor_user_id=actor_user_id,
            occurred_at=sale.voided_at,
            note=reason,
            payload={"restocked": restocked, "skipped_product_ids": skipped},
        )
        db.session.flush()
        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info("Voided sale %s", sale.folio)
    return sale


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id).first()
    if not sale:
        raise SaleError("Sale not found", ErrorKind.SALE_NOT_FOUND, details={"sale_id": sale_id})
    return sale


def get_sale_by_folio(folio: str) -> Sale:
    sale = db.session.query(Sale).filter_by(folio=folio).first()
    if not sale:
        raise SaleError("Sale not found", ErrorKind.SALE_NOT_FOUND, details={"folio": folio})
    return sale
