# backend/kassa/routes/system.py
"""
System health endpoint.

Reports store connectivity and the schema revision the store is at, for
support and deployment debugging.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import Product
from ..store import schema_revision

system_bp = Blueprint("system", __name__, url_prefix="/api")


@system_bp.get("/health")
def health():
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        revision = schema_revision(db.session.connection())
    except Exception:
        current_app.logger.exception("Database health check failed")
        return jsonify({
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }), 503

    return jsonify({
        "status": "healthy",
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "schema_revision": revision,
        "store_name": current_app.config["STORE_NAME"],
        "details": {"products": product_count},
    })
