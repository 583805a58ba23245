# Overview: Flask API routes for stock operations; parses input and returns JSON responses.

# backend/kassa/routes/inventory.py

from flask import Blueprint, current_app, jsonify, request

from ..errors import KassaError
from ..services import inventory_service
from . import error_response, internal_error

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/<int:product_id>/set-stock")
def set_stock_route(product_id: int):
    """Absolute stock count. Body: {"qty": 12, "note": "..."}"""
    payload = request.get_json(silent=True) or {}
    try:
        movement = inventory_service.adjust_stock(product_id, payload.get("qty"), payload.get("note"))
        return jsonify({"movement": movement.to_dict()})
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return internal_error()


@inventory_bp.post("/<int:product_id>/receive")
def receive_stock_route(product_id: int):
    """Goods in. Body: {"qty": 10, "cost_cents": 7000, "note": "..."}"""
    payload = request.get_json(silent=True) or {}
    try:
        movement = inventory_service.receive_stock(
            product_id,
            payload.get("qty"),
            cost_cents=payload.get("cost_cents"),
            note=payload.get("note"),
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return internal_error()


@inventory_bp.get("/<int:product_id>/movements")
def list_movements_route(product_id: int):
    limit = request.args.get("limit", default=200, type=int)
    try:
        movements = inventory_service.list_movements(product_id, limit=limit)
    except KassaError as e:
        return error_response(e)
    return jsonify({"items": [m.to_dict() for m in movements]})
