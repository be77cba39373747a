# backend/posledger/services/count_service.py
"""
Physical inventory count sessions.

WHY: Regular physical counts keep stock accurate. A session snapshots the
expected (system) quantity of every product, accumulates physical counts,
and on reconciliation writes the variances back to stock exactly once.

LIFECYCLE:
1. in_progress: snapshot taken, counts being entered, items may be added
2. completed: counting closed (optional), counts may still be corrected
3. reconciled: variances applied to stock (terminal)

BASELINE: variance is always physical - snapshot. The snapshot is never
refreshed from live stock; audits are based on what was expected when
counting started.
"""
from __future__ import annotations

from flask import current_app

from ..errors import DuplicateItem, InvalidState, SessionNotFound, ValidationError
from ..extensions import db
from ..models import InventoryItem, InventorySession, Product, Stock
from ..models.enums import SessionStatus
from ..time_utils import utcnow
from ..validation import coerce_int, optional_text
from .lifecycle import SESSION_TRANSITIONS, ensure_session_transition, sources_of
from .stock_service import (
    ensure_user,
    get_product,
    get_quantity_on_hand,
    set_counted_quantity,
    touch_last_counted,
)
from .unit_of_work import guarded_status_flip, lock_for_update, unit_of_work


def _get_session(session_id: int, *, lock: bool = False) -> InventorySession:
    query = db.session.query(InventorySession).filter_by(id=session_id)
    if lock:
        query = lock_for_update(query)
    session = query.first()
    if session is None:
        raise SessionNotFound(f"Inventory session {session_id} not found", details={"session_id": session_id})
    return session


def start_session(counted_by: int, notes: str | None = None) -> InventorySession:
    """
    Create a session and snapshot every product's current on-hand quantity.

    Each item starts with physical_quantity = 0 and variance = -snapshot:
    nothing counted yet reads as a full deficit until updated.

    Args:
        counted_by: User performing the count
        notes: Optional free text

    Returns:
        InventorySession: The created session with its items

    Raises:
        ValidationError: counted_by missing or malformed
        UserNotFound: counted_by does not exist
    """
    if counted_by is None:
        raise ValidationError("counted_by is required")
    counted_by = coerce_int(counted_by, "counted_by", minimum=1)
    notes = optional_text(notes, "notes")

    with unit_of_work():
        ensure_user(counted_by)

        session = InventorySession(
            counted_by=counted_by,
            notes=notes,
            status=SessionStatus.IN_PROGRESS.value,
            count_date=utcnow(),
        )
        db.session.add(session)
        db.session.flush()

        snapshot = (
            db.session.query(Product.id, db.func.coalesce(Stock.quantity_on_hand, 0))
            .outerjoin(Stock, Stock.product_id == Product.id)
            .order_by(Product.id)
            .all()
        )
        for product_id, on_hand in snapshot:
            on_hand = int(on_hand)
            db.session.add(InventoryItem(
                session_id=session.id,
                product_id=product_id,
                quantity_in_stock=on_hand,
                physical_quantity=0,
                variance=-on_hand,
            ))

    current_app.logger.info("Started inventory session %s (%d items)", session.id, len(snapshot))
    return session


def add_item(session_id: int, product_id: int) -> InventoryItem:
    """
    Add a product to an in-progress session.
    Its baseline is the on-hand quantity at the moment it is added.

    Raises:
        SessionNotFound: session does not exist
        InvalidState: session is not in_progress
        DuplicateItem: product already in the session
        ProductNotFound: product does not exist
    """
    if product_id is None:
        raise ValidationError("product_id is required")
    product_id = coerce_int(product_id, "product_id", minimum=1)

    with unit_of_work():
        session = _get_session(session_id, lock=True)

        if session.status != SessionStatus.IN_PROGRESS:
            raise InvalidState(
                f"Cannot add items to a session in {session.status} status",
                details={"session_id": session_id, "status": session.status},
            )

        existing = db.session.query(InventoryItem).filter_by(
            session_id=session_id,
            product_id=product_id,
        ).first()
        if existing:
            raise DuplicateItem(
                f"Product {product_id} already in count session",
                details={"session_id": session_id, "product_id": product_id},
            )

        get_product(product_id)
        on_hand = get_quantity_on_hand(product_id)

        item = InventoryItem(
            session_id=session_id,
            product_id=product_id,
            quantity_in_stock=on_hand,
            physical_quantity=0,
            variance=-on_hand,
        )
        db.session.add(item)
        session.updated_at = utcnow()

    return item


def update_items(session_id: int, items) -> int:
    """
    Record physical counts. Repeatable and idempotent.

    variance = physical_quantity - quantity_in_stock (the snapshot), so a
    second update replaces the first instead of accumulating. Products that
    are not part of the session are ignored.

    Args:
        session_id: Session ID
        items: [{"product_id": int, "physical_quantity": int}, ...]

    Returns:
        int: Number of session items updated

    Raises:
        SessionNotFound: session does not exist
        AlreadyReconciled: session is reconciled
        ValidationError: malformed items
    """
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    counts: dict[int, int] = {}
    for i, entry in enumerate(items):
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{i}] must be an object")
        product_id = coerce_int(entry.get("product_id"), f"items[{i}].product_id", minimum=1)
        counts[product_id] = coerce_int(
            entry.get("physical_quantity"), f"items[{i}].physical_quantity", minimum=0
        )

    with unit_of_work():
        session = _get_session(session_id, lock=True)
        if session.status == SessionStatus.RECONCILED:
            ensure_session_transition(session_id, session.status, SessionStatus.RECONCILED.value)

        updated = 0
        if counts:
            rows = db.session.query(InventoryItem).filter(
                InventoryItem.session_id == session_id,
                InventoryItem.product_id.in_(list(counts)),
            ).all()
            for item in rows:
                physical = counts[item.product_id]
                item.physical_quantity = physical
                item.variance = physical - item.quantity_in_stock
                updated += 1

        session.updated_at = utcnow()

    return updated


def complete_session(session_id: int) -> InventorySession:
    """Close counting (in_progress -> completed). Reconciliation still pending."""
    with unit_of_work():
        session = _get_session(session_id, lock=True)
        ensure_session_transition(session_id, session.status, SessionStatus.COMPLETED.value)

        now = utcnow()
        session.status = SessionStatus.COMPLETED.value
        session.completed_at = now
        session.updated_at = now

    return session


def reconcile_session(session_id: int) -> InventorySession:
    """
    Apply all variances to stock and mark the session reconciled. One-shot.

    For each item with a variance: on-hand := physical quantity,
    last_counted_date := now, one 'adjustment' movement of quantity=variance
    attributed to counted_by. Exact matches only refresh last_counted_date.

    The status flip is a guarded UPDATE in the same unit of work as the
    stock writes: a concurrent second reconcile finds no row to flip and
    fails with AlreadyReconciled, applying nothing.

    Raises:
        SessionNotFound: session does not exist
        AlreadyReconciled: session already reconciled
    """
    with unit_of_work():
        session = _get_session(session_id, lock=True)
        ensure_session_transition(session_id, session.status, SessionStatus.RECONCILED.value)

        now = utcnow()
        flipped = guarded_status_flip(
            InventorySession,
            session_id,
            from_statuses=sources_of(SESSION_TRANSITIONS, SessionStatus.RECONCILED),
            to_status=SessionStatus.RECONCILED.value,
            reconciled_at=now,
            updated_at=now,
        )
        if not flipped:
            ensure_session_transition(session_id, SessionStatus.RECONCILED.value, SessionStatus.RECONCILED.value)

        note = f"Inventory Count Reconciliation (Session {session.id})"
        adjusted = 0
        for item in session.items:
            if item.variance != 0:
                set_counted_quantity(
                    item.product_id,
                    physical_quantity=item.physical_quantity,
                    variance=item.variance,
                    user_id=session.counted_by,
                    notes=note,
                    counted_at=now,
                )
                adjusted += 1
            else:
                touch_last_counted(item.product_id, now)

    db.session.refresh(session)
    current_app.logger.info(
        "Reconciled inventory session %s (%d of %d items adjusted)",
        session_id, adjusted, len(session.items),
    )
    return session


def get_session(session_id: int) -> InventorySession:
    return _get_session(session_id)


def get_session_summary(session_id: int) -> dict:
    """
    Session with items and variance totals.

    Raises:
        SessionNotFound: session does not exist
    """
    session = _get_session(session_id)
    items = session.items
    return {
        **session.to_dict(),
        "items": [item.to_dict() for item in items],
        "totals": {
            "item_count": len(items),
            "items_with_variance": sum(1 for item in items if item.variance != 0),
            "net_variance_units": sum(item.variance for item in items),
            "expected_units": sum(item.quantity_in_stock for item in items),
            "counted_units": sum(item.physical_quantity for item in items),
        },
    }


def list_sessions(status: str | None = None, limit: int = 100) -> list[InventorySession]:
    q = db.session.query(InventorySession)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(InventorySession.created_at.desc(), InventorySession.id.desc()).limit(limit).all()
