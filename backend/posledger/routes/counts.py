# backend/posledger/routes/counts.py
"""
Physical inventory count session API routes.
"""
from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import count_service
from ..validation import require_object


counts_bp = Blueprint("counts", __name__, url_prefix="/api/inventory-sessions")


@counts_bp.post("")
def start_session_route():
    """
    Start a count session and snapshot every product's on-hand quantity.

    Request body:
    {
        "counted_by": int,
        "notes": str (optional)
    }

    Returns:
        201: Session created (with snapshotted items)
        400: Invalid request
        404: User not found
    """
    try:
        data = require_object(request.get_json(silent=True))
        session = count_service.start_session(
            counted_by=data.get("counted_by"),
            notes=data.get("notes"),
        )
        return jsonify(count_service.get_session_summary(session.id)), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to start inventory session")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.get("")
def list_sessions_route():
    status = request.args.get("status")
    limit = max(1, min(request.args.get("limit", 100, type=int), 500))

    try:
        rows = count_service.list_sessions(status=status, limit=limit)
        return jsonify({"items": [s.to_dict() for s in rows], "count": len(rows)}), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory sessions")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.get("/<int:session_id>")
def get_session_route(session_id: int):
    try:
        return jsonify(count_service.get_session_summary(session_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load inventory session")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/<int:session_id>/items")
def add_item_route(session_id: int):
    """
    Add a product to an in-progress session.
    Baseline quantity is read from live stock at the moment of adding.

    Request body:
    {
        "product_id": int
    }

    Returns:
        201: Item added
        404: Session or product not found
        409: Session not in progress / product already in session
    """
    try:
        data = require_object(request.get_json(silent=True))
        item = count_service.add_item(session_id, data.get("product_id"))
        return jsonify(item.to_dict()), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add inventory item")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.patch("/<int:session_id>")
def update_items_route(session_id: int):
    """
    Record physical counts (repeatable).

    Request body:
    {
        "items": [{"product_id": int, "physical_quantity": int}]
    }

    Returns:
        200: {"updated": int}
        404: Session not found
        409: Session already reconciled
    """
    try:
        data = require_object(request.get_json(silent=True))
        updated = count_service.update_items(session_id, data.get("items"))
        return jsonify({"session_id": session_id, "updated": updated}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update inventory items")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/<int:session_id>/complete")
def complete_session_route(session_id: int):
    try:
        session = count_service.complete_session(session_id)
        return jsonify(session.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete inventory session")
        return jsonify({"error": "Internal server error"}), 500


@counts_bp.post("/<int:session_id>/reconcile")
def reconcile_session_route(session_id: int):
    """
    Apply all variances to stock. One-shot.

    CRITICAL: Once reconciled, a session cannot be reconciled again.

    Returns:
        200: Session reconciled
        404: Session not found
        409: Session already reconciled
    """
    try:
        session = count_service.reconcile_session(session_id)
        return jsonify(session.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reconcile inventory session")
        return jsonify({"error": "Internal server error"}), 500
