# Overview: Flask API routes for credit payments and client credit status.

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import credit_service
from ..validation import require_object


credit_bp = Blueprint("credit", __name__, url_prefix="/api/credit")


@credit_bp.post("/records/<int:record_id>/payments")
def record_payment_route(record_id: int):
    """
    Pay down a credit record.

    Request body:
    {
        "amount": "25.00",
        "method": "cash" | "card",
        "user_id": int
    }

    Returns:
        201: Payment recorded
        400: Invalid amount (non-positive or above outstanding)
        404: Credit record not found
        409: Record already paid
    """
    try:
        data = require_object(request.get_json(silent=True))
        payment = credit_service.record_credit_payment(
            record_id,
            amount=data.get("amount"),
            method=data.get("method"),
            user_id=data.get("user_id"),
        )
        record = credit_service.get_credit_record(record_id)
        return jsonify({"payment": payment.to_dict(), "credit_record": record.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record credit payment")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.get("/clients/<int:client_id>")
def client_credit_route(client_id: int):
    try:
        return jsonify(credit_service.get_client_credit_summary(client_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load client credit summary")
        return jsonify({"error": "Internal server error"}), 500
