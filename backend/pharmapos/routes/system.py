# Overview: Health endpoint for deployment checks.

import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import Outlet, Product
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    """
    Check database connectivity with two cheap counts.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        outlet_count = db.session.query(Outlet).count()
        product_count = db.session.query(Product).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"outlets": outlet_count, "products": product_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "currency_symbol": current_app.config.get("CURRENCY_SYMBOL"),
        "checks": {"database": database},
    }
    return jsonify(body), 200 if healthy else 503
