# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/kassa/routes/sales.py
"""
Sale API Routes

A sale is created in one call: the cart, payment method, discount and
optional customer arrive together and are committed atomically.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import KassaError
from ..services import sales_service
from . import error_response, internal_error

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Request body:
    {
        "items": [{"product_id": 1, "qty": 2}],
        "payment_method": "cash",          (cash | card | mixed | debt)
        "discount_cents": 0,
        "customer": {"name": "Ali", "phone": "900000000"},   (required for debt)
        "note": ""
    }

    Returns:
        201: {"sale_id", "total_cents"}
        400: empty cart, invalid input, missing customer
        404: unknown product
        409: insufficient stock
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = sales_service.create_sale(
            payload.get("items"),
            payload.get("payment_method"),
            discount_cents=payload.get("discount_cents", 0),
            customer=payload.get("customer"),
            note=payload.get("note", ""),
        )
        return jsonify(result), 201
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return internal_error()


@sales_bp.get("")
def list_sales_route():
    limit = request.args.get("limit", default=50, type=int)
    return jsonify({"items": sales_service.list_sales(limit=limit)})


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        body = sale.to_dict()
        body["items"] = sales_service.get_sale_items(sale_id)
        body["payments"] = [payment.to_dict() for payment in sale.payments]
    except KassaError as e:
        return error_response(e)
    return jsonify({"sale": body})


@sales_bp.get("/<int:sale_id>/items")
def get_sale_items_route(sale_id: int):
    try:
        items = sales_service.get_sale_items(sale_id)
    except KassaError as e:
        return error_response(e)
    return jsonify({"items": items})
