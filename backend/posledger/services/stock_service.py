# Overview: Stock mutator and stock read/audit helpers.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..errors import ProductNotFound, UserNotFound, ValidationError
from ..extensions import db
from ..models import Product, Stock, StockMovement, User
from ..models.enums import MovementType, values
from ..time_utils import utcnow
from .unit_of_work import lock_for_update
"""
posledger Stock Invariants (authoritative)

Stock model:
- Stock.quantity_on_hand is the only stored quantity; Product.stock is
  derived from it, so the two cannot diverge.
- A product without a Stock row has on-hand 0. The first mutation creates
  the row with the delta as its initial value.

Movement parity:
- Every change to quantity_on_hand appends exactly one StockMovement in the
  same unit of work (type, signed delta, actor, product-name snapshot).
- Therefore SUM(movement.quantity) == quantity_on_hand for every product,
  except after a reconciliation whose snapshot went stale (the count sets
  the absolute physical quantity but records the snapshot variance).

Unit of work:
- Functions here flush but never commit. Callers own the transaction.
- No non-negativity check here; sale callers decide per oversell policy.
"""


def get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFound(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def ensure_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise UserNotFound(f"User {user_id} not found", details={"user_id": user_id})
    return user


def _get_stock_row(product_id: int) -> Stock | None:
    return lock_for_update(db.session.query(Stock).filter_by(product_id=product_id)).first()


def get_quantity_on_hand(product_id: int) -> int:
    qty = db.session.query(Stock.quantity_on_hand).filter_by(product_id=product_id).scalar()
    return int(qty or 0)


def _append_movement(
    product: Product,
    *,
    movement_type: str,
    quantity: int,
    user_id: int,
    notes: str | None,
    occurred_at: datetime | None = None,
) -> StockMovement:
    movement = StockMovement(
        product_id=product.id,
        product_name=product.name,
        type=movement_type,
        quantity=quantity,
        user_id=user_id,
        notes=notes,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(movement)
    return movement


def apply_stock_delta(
    product_id: int,
    quantity_delta: int,
    movement_type: str,
    user_id: int,
    notes: str | None = None,
) -> StockMovement:
    """
    Change a product's on-hand quantity and append the matching movement.

    Runs inside the caller's unit of work. The increment is a single SQL
    expression (quantity_on_hand = quantity_on_hand + :delta) so concurrent
    writers serialize on the row lock instead of overwriting each other.
    """
    if movement_type not in values(MovementType):
        raise ValidationError(f"Invalid movement type '{movement_type}'")

    product = get_product(product_id)

    stock = _get_stock_row(product_id)
    if stock is None:
        stock = Stock(product_id=product_id, quantity_on_hand=quantity_delta)
        db.session.add(stock)
    else:
        stock.quantity_on_hand = Stock.quantity_on_hand + quantity_delta
        stock.updated_at = utcnow()

    movement = _append_movement(
        product,
        movement_type=movement_type,
        quantity=quantity_delta,
        user_id=user_id,
        notes=notes,
    )
    db.session.flush()

    # Derived Product.stock must be re-read after the write
    db.session.expire(product, ["stock"])
    return movement


def set_counted_quantity(
    product_id: int,
    *,
    physical_quantity: int,
    variance: int,
    user_id: int,
    notes: str | None,
    counted_at: datetime,
) -> StockMovement:
    """
    Reconciliation write: on-hand becomes the physical count and one
    adjustment movement records the session variance.
    """
    product = get_product(product_id)

    stock = _get_stock_row(product_id)
    if stock is None:
        stock = Stock(product_id=product_id)
        db.session.add(stock)
    stock.quantity_on_hand = physical_quantity
    stock.last_counted_date = counted_at
    stock.updated_at = counted_at

    movement = _append_movement(
        product,
        movement_type=MovementType.ADJUSTMENT.value,
        quantity=variance,
        user_id=user_id,
        notes=notes,
        occurred_at=counted_at,
    )
    db.session.flush()
    db.session.expire(product, ["stock"])
    return movement


def touch_last_counted(product_id: int, counted_at: datetime) -> Stock:
    """Exact-match count: refresh last_counted_date, no movement."""
    stock = _get_stock_row(product_id)
    if stock is None:
        get_product(product_id)
        stock = Stock(product_id=product_id, quantity_on_hand=0)
        db.session.add(stock)
    stock.last_counted_date = counted_at
    stock.updated_at = counted_at
    db.session.flush()
    return stock


def list_movements(product_id: int | None = None, limit: int = 200) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter_by(product_id=product_id)
    return q.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc()).limit(limit).all()


def verify_movement_parity(product_id: int | None = None) -> list[dict]:
    """
    Audit: compare each product's movement sum with its on-hand quantity.

    Returns one entry per product that disagrees; an empty list means the
    audit log fully explains current stock.
    """
    movement_sums = (
        db.session.query(
            StockMovement.product_id.label("product_id"),
            func.coalesce(func.sum(StockMovement.quantity), 0).label("movement_total"),
        )
        .group_by(StockMovement.product_id)
        .subquery()
    )

    q = (
        db.session.query(
            Product.id,
            Product.sku,
            Product.name,
            func.coalesce(Stock.quantity_on_hand, 0),
            func.coalesce(movement_sums.c.movement_total, 0),
        )
        .outerjoin(Stock, Stock.product_id == Product.id)
        .outerjoin(movement_sums, movement_sums.c.product_id == Product.id)
    )
    if product_id is not None:
        q = q.filter(Product.id == product_id)

    discrepancies = []
    for pid, sku, name, on_hand, movement_total in q.order_by(Product.id).all():
        on_hand = int(on_hand)
        movement_total = int(movement_total)
        if on_hand != movement_total:
            discrepancies.append({
                "product_id": pid,
                "sku": sku,
                "name": name,
                "quantity_on_hand": on_hand,
                "movement_total": movement_total,
                "difference": on_hand - movement_total,
            })
    return discrepancies


def list_reorder_candidates() -> list[dict]:
    """Products whose on-hand quantity is at or below their min_stock."""
    on_hand = func.coalesce(Stock.quantity_on_hand, 0)
    rows = (
        db.session.query(Product, on_hand)
        .outerjoin(Stock, Stock.product_id == Product.id)
        .filter(on_hand <= Product.min_stock)
        .order_by(Product.name)
        .all()
    )
    return [
        {
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "quantity_on_hand": int(qty),
            "min_stock": product.min_stock,
            "shortfall": product.min_stock - int(qty),
        }
        for product, qty in rows
    ]
