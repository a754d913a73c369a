# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import update

from ..errors import ErrorKind, InvalidInputError, PosError
from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import STOCK_REASON_ADJUST
from ..time_utils import utcnow
from .audit_service import append_audit_event
from .concurrency import begin_write, run_in_transaction
"""
Inventory Ledger invariants (authoritative)

- Product.stock is the current quantity on hand; it is never negative.
- Stock only changes through apply_stock_delta, always inside the caller's
  transaction together with the document that explains it (sale, void,
  adjustment).
- A decrement is one conditional UPDATE ... WHERE stock >= :qty. Its row
  count is the check: two writers racing for the last unit cannot both win.
- Every applied delta is recorded as a StockMovement row.
"""


class InventoryError(PosError):
    """Raised for inventory ledger errors."""


def apply_stock_delta(
    product_id: int,
    quantity_delta: int,
    *,
    reason: str,
    sale_id: int | None = None,
    user_id: int | None = None,
    note: str | None = None,
    allow_deleted: bool = False,
) -> StockMovement:
    """
    Apply a signed stock delta to one product row.

    Does not commit. Raises InventoryError with
    - PRODUCT_NOT_FOUND when the row is gone (or soft-deleted and not allowed)
    - INSUFFICIENT_STOCK when a decrement would overdraw the product
    """
    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int) or quantity_delta == 0:
        raise InvalidInputError("quantity_delta must be a non-zero integer", details={"quantity_delta": quantity_delta})

    conditions = [Product.id == product_id]
    if not allow_deleted:
        conditions.append(Product.deleted_at.is_(None))
    if quantity_delta < 0:
        conditions.append(Product.stock >= -quantity_delta)

    stmt = (
        update(Product)
        .where(*conditions)
        .values(stock=Product.stock + quantity_delta)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    if not result.rowcount:
        row = db.session.query(Product.stock, Product.deleted_at).filter(Product.id == product_id).first()
        if row is None or (row.deleted_at is not None and not allow_deleted):
            raise InventoryError(
                f"Product {product_id} not found",
                ErrorKind.PRODUCT_NOT_FOUND,
                details={"product_id": product_id},
            )
        raise InventoryError(
            "Insufficient stock",
            ErrorKind.INSUFFICIENT_STOCK,
            details={
                "product_id": product_id,
                "requested_quantity": -quantity_delta,
                "on_hand": int(row.stock),
            },
        )

    # Keep any loaded Product in step with the row
    cached = db.session.identity_map.get(db.session.identity_key(Product, product_id))
    if cached is not None:
        db.session.expire(cached, ["stock"])

    stock_after = db.session.query(Product.stock).filter(Product.id == product_id).scalar()

    movement = StockMovement(
        product_id=product_id,
        quantity_delta=quantity_delta,
        stock_after=int(stock_after),
        reason=reason,
        sale_id=sale_id,
        user_id=user_id,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def adjust_stock(
    product_id: int,
    quantity_delta: int,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """
    Manual stock correction (receiving goods, shrinkage).

    Overdraft is rejected like any other decrement.
    """
    def _op():
        begin_write()
        movement = apply_stock_delta(
            product_id,
            quantity_delta,
            reason=STOCK_REASON_ADJUST,
            user_id=actor_user_id,
            note=note,
        )
        append_audit_event(
            event_type="inventory.adjusted",
            entity_type="product",
            entity_id=product_id,
            actor_user_id=actor_user_id,
            occurred_at=movement.occurred_at,
            note=note,
            payload={"quantity_delta": quantity_delta, "stock_after": movement.stock_after},
        )
        return movement

    return run_in_transaction(_op)


def get_stock(product_id: int) -> int:
    stock = db.session.query(Product.stock).filter(Product.id == product_id).scalar()
    if stock is None:
        raise InventoryError(
            f"Product {product_id} not found",
            ErrorKind.PRODUCT_NOT_FOUND,
            details={"product_id": product_id},
        )
    return int(stock)


def list_stock_movements(product_id: int) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.occurred_at.asc(), StockMovement.id.asc())
        .all()
    )
