# Overview: Manual stock corrections with a mandatory reason.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import StockAdjustment
from ..models.enums import AdjustmentType, MovementType, values
from ..validation import coerce_choice, coerce_int, optional_text, require_present, require_text
from .stock_service import apply_stock_delta, ensure_user, get_product
from .unit_of_work import unit_of_work


def post_adjustment(
    *,
    product_id: int,
    quantity_change: int,
    adjustment_type: str,
    reason: str,
    created_by: int,
    reference_number: str | None = None,
    notes: str | None = None,
) -> StockAdjustment:
    """
    Record an immutable adjustment and apply it to stock.

    The adjustment row and its single 'adjustment' movement commit together.
    No magnitude limit: an adjustment may take stock negative, which is
    kept as an audit signal rather than rejected.
    """
    require_present(
        {
            "product_id": product_id,
            "quantity_change": quantity_change,
            "adjustment_type": adjustment_type,
            "created_by": created_by,
        },
        ["product_id", "quantity_change", "adjustment_type", "created_by"],
    )
    product_id = coerce_int(product_id, "product_id", minimum=1)
    quantity_change = coerce_int(quantity_change, "quantity_change", allow_zero=False)
    adjustment_type = coerce_choice(adjustment_type, "adjustment_type", values(AdjustmentType))
    reason = require_text(reason, "reason")
    created_by = coerce_int(created_by, "created_by", minimum=1)
    reference_number = optional_text(reference_number, "reference_number", max_length=128)
    notes = optional_text(notes, "notes")

    with unit_of_work():
        ensure_user(created_by)
        get_product(product_id)

        adjustment = StockAdjustment(
            product_id=product_id,
            quantity_change=quantity_change,
            adjustment_type=adjustment_type,
            reason=reason,
            reference_number=reference_number,
            created_by=created_by,
            notes=notes,
        )
        db.session.add(adjustment)
        db.session.flush()

        movement = apply_stock_delta(
            product_id,
            quantity_change,
            MovementType.ADJUSTMENT.value,
            created_by,
            notes=f"Adjustment ({adjustment_type}): {reason}",
        )
        adjustment.stock_movement_id = movement.id

    current_app.logger.info(
        "Adjustment %s on product %s: %+d (%s)",
        adjustment.id, product_id, quantity_change, adjustment_type,
    )
    return adjustment


def list_adjustments(product_id: int | None = None, limit: int = 200) -> list[StockAdjustment]:
    q = db.session.query(StockAdjustment)
    if product_id is not None:
        q = q.filter_by(product_id=product_id)
    return q.order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc()).limit(limit).all()
