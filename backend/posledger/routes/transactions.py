# Overview: Flask API routes for posting and reading sales and purchases.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import transaction_service
from ..validation import require_object


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.post("")
def post_transaction_route():
    """
    Post a sale or purchase.

    Request body:
    {
        "type": "sale" | "purchase",
        "payment_method": "cash" | "card" | "credit",
        "client_id": int (required for credit),
        "user_id": int,
        "items": [{"product_id": int, "quantity": int, "price": "9.99", "discount": "0"}],
        "total": "19.98"
    }

    Returns:
        201: Transaction created
        400: Invalid payload
        404: Client, product or user not found
        409: Credit limit exceeded / insufficient stock
    """
    try:
        data = require_object(request.get_json(silent=True))
        tx = transaction_service.post_transaction(
            type=data.get("type"),
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            user_id=data.get("user_id"),
            total=data.get("total"),
            client_id=data.get("client_id"),
            status=data.get("status") or "completed",
        )
        return jsonify(tx.to_dict()), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to post transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
def list_transactions_route():
    tx_type = request.args.get("type")
    limit = request.args.get("limit", 100, type=int)

    # Clamp limit
    limit = max(1, min(limit, 500))

    try:
        rows = transaction_service.list_transactions(type=tx_type, limit=limit)
        return jsonify({
            "items": [tx.to_dict(include_items=False) for tx in rows],
            "count": len(rows),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        tx = transaction_service.get_transaction(transaction_id)
        return jsonify(tx.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load transaction")
        return jsonify({"error": "Internal server error"}), 500
