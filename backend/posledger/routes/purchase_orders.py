# Overview: Flask API routes for purchase order operations; parses input and returns JSON responses.

"""
Purchase Order Routes

LIFECYCLE:
- pending orders may be edited (PATCH replaces all items)
- /receive moves ordered quantities into stock (one-way)
- /cancel closes a pending order with no stock effect
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import purchase_order_service
from ..validation import require_object


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.post("")
def create_purchase_order_route():
    """
    Create a purchase order.

    Request body:
    {
        "supplier_id": int,
        "items": [{"product_id": int, "quantity": int, "cost": "4.50"}],
        "total": "45.00" (optional, defaults to sum of lines),
        "status": "pending" | "received" (optional),
        "user_id": int (required when status is received)
    }
    """
    try:
        data = require_object(request.get_json(silent=True))
        order = purchase_order_service.create_purchase_order(
            supplier_id=data.get("supplier_id"),
            items=data.get("items"),
            total=data.get("total"),
            status=data.get("status") or "pending",
            user_id=data.get("user_id"),
        )
        return jsonify(order.to_dict()), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("")
def list_purchase_orders_route():
    status = request.args.get("status")
    limit = max(1, min(request.args.get("limit", 100, type=int), 500))

    try:
        rows = purchase_order_service.list_purchase_orders(status=status, limit=limit)
        return jsonify({
            "items": [order.to_dict(include_items=False) for order in rows],
            "count": len(rows),
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list purchase orders")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("/<int:order_id>")
def get_purchase_order_route(order_id: int):
    try:
        order = purchase_order_service.get_purchase_order(order_id)
        return jsonify(order.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.patch("/<int:order_id>")
def update_purchase_order_route(order_id: int):
    """Edit a pending order. Returns 409 once it is received or cancelled."""
    try:
        data = require_object(request.get_json(silent=True))
        order = purchase_order_service.update_purchase_order(
            order_id,
            supplier_id=data.get("supplier_id"),
            items=data.get("items"),
            total=data.get("total"),
        )
        return jsonify(order.to_dict()), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:order_id>/receive")
def receive_purchase_order_route(order_id: int):
    """
    Receive a pending order.

    Request body:
    {
        "user_id": int
    }

    Returns:
        200: Order received, stock incremented
        404: Order not found
        409: Order not pending
    """
    try:
        data = require_object(request.get_json(silent=True))
        order = purchase_order_service.receive_purchase_order(order_id, data.get("user_id"))
        return jsonify(order.to_dict()), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:order_id>/cancel")
def cancel_purchase_order_route(order_id: int):
    try:
        order = purchase_order_service.cancel_purchase_order(order_id)
        return jsonify(order.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel purchase order")
        return jsonify({"error": "Internal server error"}), 500
