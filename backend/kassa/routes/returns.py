# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/kassa/routes/returns.py

from flask import Blueprint, current_app, jsonify, request

from ..errors import KassaError
from ..services import return_service
from . import error_response, internal_error

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
def create_return_route():
    """
    Request body:
    {
        "sale_id": 123,
        "lines": [{"sale_item_id": 456, "qty": 1}],
        "refund": {"method": "cash", "cents": 10000},   (optional)
        "debt_reduce_cents": 0,                          (optional)
        "note": "damaged"
    }

    Without refund.cents / debt_reduce_cents the sale's open debt is reduced
    first and the rest refunded.

    Returns:
        201: return summary
        404: unknown sale or sale item
        409: over-return
    """
    payload = request.get_json(silent=True) or {}
    try:
        sale_return = return_service.create_return(
            payload.get("sale_id"),
            payload.get("lines"),
            refund=payload.get("refund"),
            debt_reduce_cents=payload.get("debt_reduce_cents"),
            note=payload.get("note"),
        )
        return jsonify({"return": return_service.get_return_summary(sale_return.id)}), 201
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create return")
        return internal_error()


@returns_bp.get("")
def list_returns_route():
    limit = request.args.get("limit", type=int)
    return jsonify({"items": return_service.list_returns(limit=limit)})


@returns_bp.get("/<int:return_id>")
def get_return_route(return_id: int):
    try:
        summary = return_service.get_return_summary(return_id)
    except KassaError as e:
        return error_response(e)
    return jsonify({"return": summary})
