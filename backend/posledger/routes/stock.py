# Overview: Flask API routes for stock adjustments and stock audit reads.

"""
Stock Routes

- Adjustments are immutable; there is no update or delete endpoint.
- /parity is the movement audit: an empty list means every product's
  on-hand quantity is fully explained by its movement log.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import adjustment_service, stock_service
from ..validation import require_object


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("/adjustments")
def post_adjustment_route():
    """
    Post a stock adjustment.

    Request body:
    {
        "product_id": int,
        "quantity_change": int (signed, non-zero),
        "adjustment_type": str,
        "reason": str (required),
        "created_by": int,
        "reference_number": str (optional),
        "notes": str (optional)
    }

    Returns:
        201: Adjustment created
        400: Invalid payload
        404: Product or user not found
    """
    try:
        data = require_object(request.get_json(silent=True))
        adjustment = adjustment_service.post_adjustment(
            product_id=data.get("product_id"),
            quantity_change=data.get("quantity_change"),
            adjustment_type=data.get("adjustment_type"),
            reason=data.get("reason"),
            created_by=data.get("created_by"),
            reference_number=data.get("reference_number"),
            notes=data.get("notes"),
        )
        return jsonify(adjustment.to_dict()), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to post adjustment")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/adjustments")
def list_adjustments_route():
    product_id = request.args.get("product_id", type=int)
    limit = max(1, min(request.args.get("limit", 200, type=int), 500))

    try:
        rows = adjustment_service.list_adjustments(product_id=product_id, limit=limit)
        return jsonify({"items": [a.to_dict() for a in rows], "count": len(rows)}), 200
    except Exception:
        current_app.logger.exception("Failed to list adjustments")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/movements")
def list_movements_route():
    product_id = request.args.get("product_id", type=int)
    limit = max(1, min(request.args.get("limit", 200, type=int), 500))

    try:
        rows = stock_service.list_movements(product_id=product_id, limit=limit)
        return jsonify({"items": [m.to_dict() for m in rows], "count": len(rows)}), 200
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/reorder")
def reorder_route():
    try:
        rows = stock_service.list_reorder_candidates()
        return jsonify({"items": rows, "count": len(rows)}), 200
    except Exception:
        current_app.logger.exception("Failed to list reorder candidates")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/parity")
def parity_route():
    product_id = request.args.get("product_id", type=int)

    try:
        discrepancies = stock_service.verify_movement_parity(product_id)
        return jsonify({
            "ok": not discrepancies,
            "discrepancies": discrepancies,
        }), 200
    except Exception:
        current_app.logger.exception("Failed to verify movement parity")
        return jsonify({"error": "Internal server error"}), 500
