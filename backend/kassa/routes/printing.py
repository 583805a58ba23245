# Overview: Flask API routes that trigger label/receipt printing.

# backend/kassa/routes/printing.py
"""
Printing API Routes

Each call creates one print job and runs the external executable
synchronously. A failed print answers with the error class status and the
failed job id in ``details``; the job row keeps the captured error text.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import KassaError
from ..services import print_service
from . import error_response, internal_error

printing_bp = Blueprint("printing", __name__, url_prefix="/api/print")


def _run(action, *args, **kwargs):
    try:
        job = action(*args, **kwargs)
        return jsonify({"job": job.to_dict()}), 201
    except KassaError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Print request failed")
        return internal_error()


@printing_bp.post("/label")
def print_label_route():
    """Body: {"product_id": 1, "copies": 2, "printer_name": "label"}"""
    payload = request.get_json(silent=True) or {}
    return _run(
        print_service.print_label,
        payload.get("product_id"),
        copies=payload.get("copies", 1),
        printer_name=payload.get("printer_name"),
    )


@printing_bp.post("/receipt")
def print_receipt_route():
    payload = request.get_json(silent=True) or {}
    return _run(print_service.print_receipt, payload.get("sale_id"), printer_name=payload.get("printer_name"))


@printing_bp.post("/return-receipt")
def print_return_receipt_route():
    payload = request.get_json(silent=True) or {}
    return _run(
        print_service.print_return_receipt,
        payload.get("return_id"),
        printer_name=payload.get("printer_name"),
    )


@printing_bp.get("/jobs")
def list_jobs_route():
    limit = request.args.get("limit", default=100, type=int)
    try:
        jobs = print_service.list_print_jobs(status=request.args.get("status"), limit=limit)
    except KassaError as e:
        return error_response(e)
    return jsonify({"items": [job.to_dict() for job in jobs]})
