# Overview: Purchase order lifecycle (pending -> received / cancelled).

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import InvalidState, OrderNotFound, SupplierNotFound, ValidationError
from ..extensions import db
from ..models import Product, PurchaseOrder, PurchaseOrderItem, Supplier
from ..models.enums import MovementType, PurchaseOrderStatus
from ..time_utils import utcnow
from ..validation import coerce_choice, coerce_int, coerce_items, coerce_money
from .lifecycle import (
    PURCHASE_ORDER_TRANSITIONS,
    ensure_purchase_order_transition,
    sources_of,
)
from .stock_service import apply_stock_delta, ensure_user, get_product
from .unit_of_work import guarded_status_flip, lock_for_update, unit_of_work
"""
posledger Purchase Order Invariants (authoritative)

- A pending order has never touched stock. Editing is allowed only while
  pending and replaces the whole item list.
- received is the single point where ordered quantities become stock:
  one 'purchase' movement per line and Product.cost := line cost
  (latest cost wins when a product appears on several lines).
- received and cancelled are terminal. The flip out of pending is a
  guarded UPDATE, so an order can be received at most once.
"""

# Statuses accepted on creation
CREATE_STATUSES = [PurchaseOrderStatus.PENDING.value, PurchaseOrderStatus.RECEIVED.value]


def _normalize_items(items) -> list[dict]:
    lines = []
    for i, item in enumerate(coerce_items(items)):
        missing = [f for f in ("product_id", "quantity", "cost") if item.get(f) is None]
        if missing:
            raise ValidationError(
                f"items[{i}] missing required fields: {', '.join(missing)}",
                details={"item_index": i, "missing": missing},
            )
        lines.append({
            "product_id": coerce_int(item["product_id"], f"items[{i}].product_id", minimum=1),
            "quantity": coerce_int(item["quantity"], f"items[{i}].quantity", minimum=1),
            "cost": coerce_money(item["cost"], f"items[{i}].cost"),
        })
    return lines


def _lines_total(lines: list[dict]) -> Decimal:
    return sum((line["cost"] * line["quantity"] for line in lines), Decimal("0.00"))


def _get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFound(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def _get_order(order_id: int, *, lock: bool = False) -> PurchaseOrder:
    query = db.session.query(PurchaseOrder).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise OrderNotFound(f"Purchase order {order_id} not found", details={"order_id": order_id})
    return order


def _raise_lost_flip(order_id: int, to_status: str) -> None:
    """The guarded UPDATE matched no row: report the status the row holds now."""
    current = db.session.query(PurchaseOrder.status).filter_by(id=order_id).scalar()
    ensure_purchase_order_transition(order_id, current, to_status)
    raise InvalidState(
        f"Purchase order {order_id} changed concurrently (now {current})",
        details={"order_id": order_id, "status": current},
    )


def _insert_items(order: PurchaseOrder, lines: list[dict]) -> None:
    for line in lines:
        product = get_product(line["product_id"])
        order.items.append(PurchaseOrderItem(
            product_id=product.id,
            product_name=product.name,
            quantity=line["quantity"],
            cost=line["cost"],
        ))


def _apply_receipt(order: PurchaseOrder, user_id: int) -> None:
    """Stock and cost effects of receiving. Caller owns the unit of work."""
    for item in order.items:
        apply_stock_delta(
            item.product_id,
            item.quantity,
            MovementType.PURCHASE.value,
            user_id,
            notes=f"Received from PO {order.id}",
        )
        product = db.session.get(Product, item.product_id)
        product.cost = item.cost


def create_purchase_order(
    *,
    supplier_id: int,
    items,
    total=None,
    status: str = PurchaseOrderStatus.PENDING.value,
    user_id: int | None = None,
) -> PurchaseOrder:
    """
    Insert an order and its lines.

    total defaults to sum(quantity * cost). status='received' is the
    direct-receive path: the receipt effects run inline, in the same unit
    of work as the insert, and need a user_id for movement attribution.
    """
    if supplier_id is None:
        raise ValidationError("supplier_id is required")
    supplier_id = coerce_int(supplier_id, "supplier_id", minimum=1)
    status = coerce_choice(status or PurchaseOrderStatus.PENDING.value, "status", CREATE_STATUSES)
    lines = _normalize_items(items)
    amount = _lines_total(lines) if total is None else coerce_money(total, "total")

    receive_now = status == PurchaseOrderStatus.RECEIVED.value
    if receive_now:
        if user_id is None:
            raise ValidationError("user_id is required to create a received purchase order")
        user_id = coerce_int(user_id, "user_id", minimum=1)

    with unit_of_work():
        _get_supplier(supplier_id)
        if receive_now:
            ensure_user(user_id)

        order = PurchaseOrder(
            supplier_id=supplier_id,
            status=PurchaseOrderStatus.PENDING.value,
            total=amount,
            ordered_at=utcnow(),
        )
        db.session.add(order)
        _insert_items(order, lines)
        db.session.flush()

        if receive_now:
            _apply_receipt(order, user_id)
            order.status = PurchaseOrderStatus.RECEIVED.value
            order.received_at = utcnow()
            order.received_by = user_id

    current_app.logger.info(
        "Created purchase order %s for supplier %s (%d lines, %s)",
        order.id, supplier_id, len(lines), order.status,
    )
    return order


def update_purchase_order(
    order_id: int,
    *,
    supplier_id: int | None = None,
    items=None,
    total=None,
) -> PurchaseOrder:
    """
    Edit a pending order. items, when given, replaces every existing line;
    total is recomputed from the new lines unless passed explicitly.

    Raises:
        OrderNotFound: order does not exist
        InvalidState: order is not pending
    """
    if supplier_id is not None:
        supplier_id = coerce_int(supplier_id, "supplier_id", minimum=1)
    lines = _normalize_items(items) if items is not None else None
    amount = coerce_money(total, "total") if total is not None else None

    with unit_of_work():
        order = _get_order(order_id, lock=True)
        if order.status != PurchaseOrderStatus.PENDING:
            ensure_purchase_order_transition(order_id, order.status, PurchaseOrderStatus.PENDING.value)

        if supplier_id is not None:
            _get_supplier(supplier_id)
            order.supplier_id = supplier_id

        if lines is not None:
            order.items.clear()
            db.session.flush()
            _insert_items(order, lines)
            if amount is None:
                amount = _lines_total(lines)

        if amount is not None:
            order.total = amount

    return order


def receive_purchase_order(order_id: int, user_id: int) -> PurchaseOrder:
    """
    Receive a pending order: stock up by each line quantity, cost updated,
    status -> received. Atomic as a whole.

    Raises:
        OrderNotFound: order does not exist
        InvalidState: order is not pending
    """
    if user_id is None:
        raise ValidationError("user_id is required")
    user_id = coerce_int(user_id, "user_id", minimum=1)

    with unit_of_work():
        order = _get_order(order_id, lock=True)
        ensure_purchase_order_transition(order_id, order.status, PurchaseOrderStatus.RECEIVED.value)
        ensure_user(user_id)

        now = utcnow()
        flipped = guarded_status_flip(
            PurchaseOrder,
            order_id,
            from_statuses=sources_of(PURCHASE_ORDER_TRANSITIONS, PurchaseOrderStatus.RECEIVED),
            to_status=PurchaseOrderStatus.RECEIVED.value,
            received_at=now,
            received_by=user_id,
        )
        if not flipped:
            _raise_lost_flip(order_id, PurchaseOrderStatus.RECEIVED.value)

        _apply_receipt(order, user_id)

    db.session.refresh(order)
    current_app.logger.info("Received purchase order %s (%d lines)", order_id, len(order.items))
    return order


def cancel_purchase_order(order_id: int) -> PurchaseOrder:
    """
    Cancel a pending order. No stock effect.

    Raises:
        OrderNotFound: order does not exist
        InvalidState: order is not pending
    """
    with unit_of_work():
        order = _get_order(order_id, lock=True)
        ensure_purchase_order_transition(order_id, order.status, PurchaseOrderStatus.CANCELLED.value)

        flipped = guarded_status_flip(
            PurchaseOrder,
            order_id,
            from_statuses=sources_of(PURCHASE_ORDER_TRANSITIONS, PurchaseOrderStatus.CANCELLED),
            to_status=PurchaseOrderStatus.CANCELLED.value,
            cancelled_at=utcnow(),
        )
        if not flipped:
            _raise_lost_flip(order_id, PurchaseOrderStatus.CANCELLED.value)

    db.session.refresh(order)
    current_app.logger.info("Cancelled purchase order %s", order_id)
    return order


def get_purchase_order(order_id: int) -> PurchaseOrder:
    return _get_order(order_id)


def list_purchase_orders(status: str | None = None, limit: int = 100) -> list[PurchaseOrder]:
    q = db.session.query(PurchaseOrder)
    if status:
        q = q.filter_by(status=coerce_choice(status, "status", [s.value for s in PurchaseOrderStatus]))
    return q.order_by(PurchaseOrder.ordered_at.desc(), PurchaseOrder.id.desc()).limit(limit).all()
