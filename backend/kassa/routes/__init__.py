# Overview: Shared helpers for the JSON transport blueprints.

from flask import jsonify

from ..errors import KassaError


def error_response(exc: KassaError):
    """Structured failure body with the status code of the error class."""
    return jsonify(exc.to_dict()), exc.status_code


def internal_error():
    return jsonify({"error": "Internal server error", "code": "internal", "details": {}}), 500


def flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}
