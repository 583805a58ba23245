# Overview: Flask API routes for customer debt operations.

# backend/kassa/routes/debts.py

from flask import Blueprint, current_app, jsonify, request

from ..errors import KassaError
from ..services import debt_service
from . import error_response, flag, internal_error

debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")


@debts_bp.get("")
def list_debts_route():
    include_paid = flag(request.args.get("include_paid", "1"))
    return jsonify({"items": debt_service.list_debts(include_paid=include_paid)})


@debts_bp.post("/customers/<int:customer_id>/pay")
def pay_customer_debt_route(customer_id: int):
    """Body: {"amount_cents": 20000}. Applied to open debts oldest first."""
    payload = request.get_json(silent=True) or {}
    try:
        result = debt_service.pay_debt(customer_id, payload.get("amount_cents"), note=payload.get("note"))
        return jsonify(result)
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record debt payment")
        return internal_error()


@debts_bp.post("/<int:debt_id>/pay")
def pay_debt_record_route(debt_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        result = debt_service.pay_debt_record(debt_id, payload.get("amount_cents"))
        return jsonify({"success": True, **result})
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record debt payment")
        return internal_error()


@debts_bp.get("/customers/<int:customer_id>/transactions")
def list_transactions_route(customer_id: int):
    try:
        transactions = debt_service.list_transactions(customer_id)
    except KassaError as e:
        return error_response(e)
    return jsonify({"items": [t.to_dict() for t in transactions]})
