# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/kassa/routes/products.py

from flask import Blueprint, current_app, jsonify, request

from ..errors import KassaError
from ..services import products_service
from . import error_response, flag, internal_error

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    List catalog products (active only unless ?include_inactive=1).

    Products without a barcode get a generated one first.
    """
    try:
        products = products_service.list_products(include_inactive=flag(request.args.get("include_inactive")))
    except KassaError as e:
        return error_response(e)
    return jsonify({"items": [p.to_dict() for p in products]})


@products_bp.get("/find")
def find_product_route():
    """Scanner lookup: ?code= matches barcode first, then SKU."""
    try:
        product = products_service.find_product(request.args.get("code"))
    except KassaError as e:
        return error_response(e)
    if product is None:
        return jsonify({"error": "Product not found", "code": "not_found", "details": {}}), 404
    return jsonify({"product": product.to_dict()})


@products_bp.post("")
def create_product_route():
    """
    Request body:
    {
        "sku": "A-1",            (optional; defaults to the barcode)
        "name": "Tea 100g",
        "price_cents": 10000,
        "unit": "piece",         (piece | pack | liter | meter)
        "qty": 5,                (opening stock)
        "barcode": "12345670",   (optional; generated when absent)
        "cost_cents": 7000,
        "min_stock": 1
    }
    """
    payload = request.get_json(silent=True) or {}
    fields = {
        key: payload[key]
        for key in ("sku", "name", "price_cents", "unit", "qty", "barcode", "cost_cents", "min_stock")
        if key in payload
    }
    try:
        product = products_service.create_product(**fields)
        return jsonify({"product": product.to_dict()}), 201
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return internal_error()


@products_bp.patch("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, payload)
        return jsonify({"product": product.to_dict()})
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return internal_error()


@products_bp.post("/<int:product_id>/cost")
def set_cost_route(product_id: int):
    """Body: {"cost_cents": 7000}. Applies to sales made after the change."""
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.set_cost(product_id, payload.get("cost_cents"))
        return jsonify({"product": product.to_dict()})
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set product cost")
        return internal_error()


@products_bp.post("/<int:product_id>/deactivate")
def deactivate_product_route(product_id: int):
    """
    Soft-delete. Referenced products answer 409 with requires_confirmation
    until the call is repeated with {"force": true}.
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = products_service.deactivate_product(product_id, force=flag(payload.get("force")))
    except KassaError as e:
        return error_response(e)

    if result["success"]:
        return jsonify(result)
    if result["requires_confirmation"]:
        return jsonify(result), 409
    return jsonify(result), 404


@products_bp.post("/ensure-barcodes")
def ensure_barcodes_route():
    try:
        assigned = products_service.ensure_missing_barcodes()
    except KassaError as e:
        return error_response(e)
    return jsonify({"assigned": assigned})
